"""Tests for story beat triggers, firing and thought resolution."""

import pytest
from pydantic import TypeAdapter

from woven_city.content.schemas import BeatEffects, BeatTrigger, StoryBeat
from woven_city.state import resources
from woven_city.state.event_bus import EventType
from woven_city.state.schema import EmergentProperty, ThreadType
from woven_city.systems.beats import (
    StoryBeatEngine,
    ThoughtResolutionError,
    trigger_matches,
)

TRIGGER = TypeAdapter(BeatTrigger)


def trigger(**data):
    return TRIGGER.validate_python(data)


def beat(beat_id, trigger_data, **data):
    return StoryBeat.model_validate({"id": beat_id, "name": beat_id.title(), "trigger": trigger_data, **data})


class TestTriggers:
    """Each trigger kind against a city."""

    def test_thread_created_counts_all_threads(self, city, graph):
        t = trigger(type="threadCreated", count=2)
        graph.weave(ThreadType.TRANSIT)
        assert not trigger_matches(t, city)
        graph.weave(ThreadType.PARKS)
        assert trigger_matches(t, city)

    def test_thread_created_is_at_least(self, city, graph):
        """Passing the count still matches; a missed evaluation is not lost."""
        graph.weave_many([ThreadType.TRANSIT] * 3)
        assert trigger_matches(trigger(type="threadCreated", count=2), city)

    def test_thread_created_type(self, city, graph):
        t = trigger(type="threadCreatedType", threadType="culture", count=2)
        graph.weave_many([ThreadType.CULTURE, ThreadType.HOUSING])
        assert not trigger_matches(t, city)
        graph.weave(ThreadType.CULTURE)
        assert trigger_matches(t, city)

    def test_relationship_formed(self, city, graph):
        t = trigger(type="relationshipFormed", type1="housing", type2="transit")
        graph.weave(ThreadType.TRANSIT)
        assert not trigger_matches(t, city)
        graph.weave(ThreadType.HOUSING)
        assert trigger_matches(t, city)

    def test_emergent_property(self, city):
        t = trigger(type="emergentProperty", name="Green Lungs")
        assert not trigger_matches(t, city)
        city.emergent_properties.append(EmergentProperty(name="Green Lungs"))
        assert trigger_matches(t, city)

    def test_synergy(self, city, graph):
        graph.weave_many([ThreadType.CULTURE, ThreadType.KNOWLEDGE])
        assert trigger_matches(trigger(type="synergy", type1="culture", type2="knowledge", threshold=0.7), city)
        assert not trigger_matches(trigger(type="synergy", type1="culture", type2="knowledge", threshold=0.9), city)

    def test_synergy_without_pair_never_matches(self, city, graph):
        graph.weave(ThreadType.CULTURE)
        assert not trigger_matches(trigger(type="synergy", type1="culture", type2="knowledge", threshold=-1.0), city)

    def test_tension(self, city, graph):
        """Commerce and parks pull against each other."""
        graph.weave_many([ThreadType.COMMERCE, ThreadType.PARKS])
        assert trigger_matches(trigger(type="tension", type1="commerce", type2="parks", threshold=0.15), city)
        assert not trigger_matches(trigger(type="tension", type1="commerce", type2="parks", threshold=0.5), city)

    def test_harmonious_pair_has_no_tension(self, city, graph):
        graph.weave_many([ThreadType.CULTURE, ThreadType.PARKS])
        assert not trigger_matches(trigger(type="tension", type1="culture", type2="parks", threshold=0.01), city)

    def test_city_coherence(self, city):
        t = trigger(type="cityCoherence", threshold=0.95)
        assert trigger_matches(t, city)
        resources.set_resource(city, "coherence", 0.5)
        assert not trigger_matches(t, city)

    def test_thread_complexity(self, city, graph):
        t = trigger(type="threadComplexity", threadType="transit", threshold=0.3)
        thread = graph.weave(ThreadType.TRANSIT)
        assert not trigger_matches(t, city)
        thread.complexity = 0.3
        assert trigger_matches(t, city)

    def test_unknown_trigger_type_is_rejected(self):
        with pytest.raises(ValueError):
            trigger(type="moonPhase", threshold=1)


class TestFiring:
    """Firing beats against a city."""

    @pytest.fixture
    def engine(self, bus, clock):
        return StoryBeatEngine(
            [
                beat(
                    "beat_first",
                    {"type": "threadCreated", "count": 1},
                    dialogue=[{"speaker": "city", "text": "Something stirs."}],
                    effects={"cityComplexity": 0.02, "citySelfAwareness": 0.1},
                ),
                beat(
                    "beat_repeat",
                    {"type": "cityCoherence", "threshold": 0.5},
                    oneTimeOnly=False,
                ),
            ],
            bus=bus,
            clock=clock,
        )

    def test_nothing_fires_on_empty_city(self, city, engine):
        assert [b.id for b in engine.evaluate(city)] == ["beat_repeat"]

    def test_fire_logs_dialogue_and_applies_effects(self, city, graph, engine):
        graph.weave(ThreadType.TRANSIT)
        fired = engine.evaluate(city)
        assert "beat_first" in [b.id for b in fired]
        assert "CITY: Something stirs." in city.log
        assert resources.complexity(city) == pytest.approx(0.02)
        assert resources.get_parameter(city, "selfAwareness") == pytest.approx(0.1)

    def test_one_time_beats_fire_once(self, city, graph, engine):
        graph.weave(ThreadType.TRANSIT)
        engine.evaluate(city)
        second = engine.evaluate(city)
        assert [b.id for b in second] == ["beat_repeat"]
        assert city.log.count("CITY: Something stirs.") == 1

    def test_fired_state_lives_on_city(self, city, graph, engine, now):
        """Beats are shared content; another city can still fire them."""
        from woven_city.state.schema import City

        graph.weave(ThreadType.TRANSIT)
        engine.evaluate(city)
        other = City(name="Other", last_interaction=now)
        assert engine.is_eligible(engine.get("beat_first"), other)
        assert city.has_triggered("beat_first")

    def test_occurrence_flag_in_content_is_ignored(self, city, graph, bus, clock):
        """Only the city records what has fired; a stored hasOccurred flag changes nothing."""
        stale = beat("beat_stale", {"type": "threadCreated", "count": 1}, hasOccurred=True)
        engine = StoryBeatEngine([stale], bus, clock)
        graph.weave(ThreadType.TRANSIT)
        assert [b.id for b in engine.evaluate(city)] == ["beat_stale"]
        assert "has_occurred" not in stale.model_dump()

    def test_check_does_not_fire(self, city, graph, engine):
        graph.weave(ThreadType.TRANSIT)
        engine.check(city)
        assert city.triggered_beat_ids == []

    def test_events(self, city, graph, engine, bus):
        graph.weave(ThreadType.TRANSIT)
        engine.evaluate(city)
        assert {e.data["beat_id"] for e in bus.get_history(EventType.BEAT_FIRED)} == {"beat_first", "beat_repeat"}

    def test_fire_by_id_unknown(self, city, engine, caplog):
        assert engine.fire_by_id(city, "beat_missing") is False
        assert "not found" in caplog.text


class TestEffects:
    """Beat effects on the city and its threads."""

    def test_thread_effects_by_category(self, city, graph):
        transit, housing = graph.weave_many([ThreadType.TRANSIT, ThreadType.HOUSING])
        effects = BeatEffects.model_validate(
            {"threadCoherence": {"transit": 0.1}, "threadComplexity": {"housing": 0.95}}
        )
        StoryBeatEngine.apply_effects(city, effects)
        assert transit.coherence == pytest.approx(0.6)
        assert housing.coherence == 0.5
        assert housing.complexity == 1.0

    def test_city_coherence_is_clamped(self, city):
        StoryBeatEngine.apply_effects(city, BeatEffects(city_coherence=0.5))
        assert resources.coherence(city) == 1.0

    def test_unknown_thread_type_is_skipped(self, city, graph, caplog):
        """One bad category does not cost the beat its other effects."""
        transit = graph.weave(ThreadType.TRANSIT)
        effects = BeatEffects.model_validate({"threadCoherence": {"airport": 0.3, "transit": 0.1}})
        StoryBeatEngine.apply_effects(city, effects)
        assert transit.coherence == pytest.approx(0.6)
        assert "unknown thread type 'airport'" in caplog.text

    def test_beat_with_unknown_thread_type_loads(self):
        loaded = beat("beat_odd", {"type": "threadCreated", "count": 1}, effects={"threadComplexity": {"airport": 0.1}})
        assert loaded.effects.thread_complexity == {"airport": 0.1}


class TestThoughts:
    """Spawned thoughts and their resolution."""

    @pytest.fixture
    def engine(self, bus, clock):
        return StoryBeatEngine(
            [
                beat(
                    "beat_question",
                    {"type": "threadCreated", "count": 1},
                    spawnedThought={
                        "thoughtTitle": "What am I?",
                        "thoughtBody": "The city asks.",
                        "branches": {"A city": "beat_named", "Wait": "beat_waiting"},
                    },
                ),
                beat(
                    "beat_named",
                    {"type": "threadCreated", "count": 99},
                    dialogue=[{"speaker": "city", "text": "A city, then."}],
                ),
                beat("beat_waiting", {"type": "threadCreated", "count": 99}),
                beat(
                    "beat_musing",
                    {"type": "threadCreated", "count": 2},
                    spawnedThought={"thoughtTitle": "Idle thought", "thoughtBody": "Hm."},
                ),
            ],
            bus=bus,
            clock=clock,
        )

    @pytest.fixture
    def asked(self, city, graph, engine):
        graph.weave(ThreadType.TRANSIT)
        engine.evaluate(city)
        return city

    def test_thought_is_queued(self, asked, now, bus):
        thought = asked.pending_thoughts[0]
        assert thought.title == "What am I?"
        assert thought.beat_id == "beat_question"
        assert thought.spawned_at == now
        assert len(bus.get_history(EventType.THOUGHT_SPAWNED)) == 1

    def test_resolving_fires_branch(self, asked, engine):
        fired = engine.resolve_thought(asked, "What am I?", "A city")
        assert fired.id == "beat_named"
        assert asked.pending_thoughts == []
        assert "The planner answers: 'A city'" in asked.log
        assert asked.log[-1] == "CITY: A city, then."
        assert asked.has_triggered("beat_named")

    def test_unknown_thought(self, asked, engine):
        with pytest.raises(ThoughtResolutionError):
            engine.resolve_thought(asked, "Who are you?", "A city")

    def test_unknown_choice_keeps_thought(self, asked, engine):
        with pytest.raises(ThoughtResolutionError) as exc:
            engine.resolve_thought(asked, "What am I?", "A forest")
        assert exc.value.thought_title == "What am I?"
        assert len(asked.pending_thoughts) == 1

    def test_branch_already_fired(self, asked, engine):
        asked.mark_triggered("beat_waiting")
        assert engine.resolve_thought(asked, "What am I?", "Wait") is None
        assert asked.pending_thoughts == []

    def test_thought_without_branches_is_dismissed(self, asked, graph, engine):
        graph.weave(ThreadType.PARKS)
        engine.evaluate(asked)
        assert engine.resolve_thought(asked, "Idle thought", "Noted") is None
        assert [t.title for t in asked.pending_thoughts] == ["What am I?"]
