"""Tests for read-only snapshots."""

import pytest
from pydantic import ValidationError

from woven_city.state.schema import ChoicePattern, GameState, ThreadType
from woven_city.state.snapshots import snapshot_city, snapshot_game_state


class TestCitySnapshot:
    """Frozen views of a city."""

    def test_reflects_city(self, city, graph):
        graph.weave_many([ThreadType.TRANSIT, ThreadType.HOUSING])
        snap = snapshot_city(city)
        assert snap.name == "Test City"
        assert [t.display_name for t in snap.threads] == ["Transit_01", "Housing_01"]
        assert snap.threads[0].relationship_count == 1
        assert snap.threads[0].integration_level == 0.75

    def test_is_frozen(self, city):
        snap = snapshot_city(city)
        with pytest.raises(ValidationError):
            snap.progress = 0.5

    def test_does_not_track_later_changes(self, city):
        snap = snapshot_city(city)
        city.log.append("later")
        assert snap.recent_log == ()

    def test_missing_resources_are_filled(self, city):
        city.resources = {"trust": 0.9}
        snap = snapshot_city(city)
        assert snap.resource("trust") == 0.9
        assert snap.resource("coherence") == 1.0
        assert {name for name, _ in snap.resources} == {"coherence", "memory", "trust", "autonomy", "complexity"}

    def test_resources_cannot_be_changed_in_place(self, city):
        """The resource view is as read-only as the rest of the snapshot."""
        snap = snapshot_city(city)
        with pytest.raises(TypeError):
            snap.resources[0] = ("coherence", 0.0)
        with pytest.raises(AttributeError):
            snap.resources.update({"coherence": 0.0})
        assert snap.resource("coherence") == 1.0

    def test_log_tail(self, city):
        city.log.extend(f"line {i}" for i in range(20))
        assert snapshot_city(city, log_tail=3).recent_log == ("line 17", "line 18", "line 19")
        assert snapshot_city(city, log_tail=0).recent_log == ()


class TestGameStateSnapshot:
    def test_reflects_state(self):
        state = GameState()
        state.record_choice(ChoicePattern.AUTONOMY)
        state.destroy_moment("m1")
        snap = snapshot_game_state(state)
        assert snap.total_choices == 1
        assert snap.dominant_pattern == ChoicePattern.AUTONOMY
        assert snap.destroyed_moments == 1
        assert snap.ratio(ChoicePattern.AUTONOMY) == 1.0

    def test_ratios_cannot_be_changed_in_place(self):
        snap = snapshot_game_state(GameState())
        with pytest.raises(TypeError):
            snap.choice_ratios[0] = (ChoicePattern.STORY, 1.0)
        assert snap.ratio(ChoicePattern.STORY) == 0.0
