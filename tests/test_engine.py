"""Tests for the simulation tick loop."""

import asyncio
from datetime import timedelta

import pytest

from woven_city.simulation.engine import SimulationEngine
from woven_city.state import resources
from woven_city.state.event_bus import EventType
from woven_city.state.schema import CityMood, RequestItem, ThreadType


class CountingProgression:
    """Stands in for the progression system and counts evaluations."""

    def __init__(self):
        self.calls = 0

    def evaluate(self, city):
        self.calls += 1


@pytest.fixture
def engine(fast_config, memory_store, rng, clock, bus):
    return SimulationEngine(fast_config, memory_store, None, rng, clock, bus)


def run(engine, city, cancel_event=None):
    return asyncio.run(engine.run(city, cancel_event))


def final_lines(city):
    return [line for line in city.log if line.startswith("Simulation complete.")]


class TestConsciousness:
    """Per-tick resource drift."""

    def test_attention_decays(self, engine, city):
        engine.update_consciousness(city, 0.0)
        assert city.attention_level == pytest.approx(0.999)

    def test_attended_coherence_drifts_to_target(self, engine, city):
        engine.update_consciousness(city, 0.0)
        assert resources.coherence(city) == pytest.approx(0.9975)

    def test_neglected_coherence_erodes(self, engine, city):
        city.attention_level = 0.2
        engine.update_consciousness(city, 0.0)
        assert resources.coherence(city) == pytest.approx(0.998)

    def test_memory_follows_progress_and_answers(self, engine, city):
        city.progress = 0.5
        city.requests.append(RequestItem(title="?", response="!"))
        engine.update_consciousness(city, 0.0)
        assert resources.memory(city) == pytest.approx(0.45)

    def test_answered_requests_build_trust(self, engine, city):
        city.requests.append(RequestItem(title="?", response="!"))
        engine.update_consciousness(city, 0.0)
        assert resources.trust(city) == pytest.approx((1.0 + 0.5 + 0.85) / 3)

    def test_trust_drifts_up_while_present(self, engine, city):
        engine.update_consciousness(city, 0.0)
        assert resources.trust(city) == pytest.approx(0.50175)

    def test_trust_erodes_after_a_day(self, engine, city):
        engine.update_consciousness(city, 25.0)
        assert resources.trust(city) == pytest.approx(0.49)

    def test_autonomy_grows_when_left_alone(self, engine, city):
        engine.update_consciousness(city, 13.0)
        assert resources.autonomy(city) == pytest.approx(0.005)


class TestTick:
    """A single tick."""

    def test_progress_and_log(self, engine, city):
        engine.tick(city, 1)
        assert city.progress == 0.01
        assert city.log[-1] == "Tick 1: progress = 0.01"

    def test_progress_log_can_be_disabled(self, engine, city):
        engine.config.simulation.log_progress = False
        engine.tick(city, 1)
        assert city.log == []

    def test_progression_runs_on_interval(self, fast_config, city, clock):
        progression = CountingProgression()
        engine = SimulationEngine(fast_config, None, progression, clock=clock)
        for tick in range(1, 21):
            engine.tick(city, tick)
        assert progression.calls == 2

    def test_mood_change_is_published(self, engine, city, bus):
        city.progress = 0.5
        engine.tick(city, 1)
        assert city.mood == CityMood.WAITING
        event = bus.get_history(EventType.MOOD_CHANGED)[0]
        assert event.data == {"before": "awakening", "after": "waiting"}
        assert event.tick == 1

    def test_autosave_interval(self, engine, city, memory_store):
        for tick in range(1, 11):
            engine.tick(city, tick)
        assert memory_store.save_count == 1


class TestRun:
    """Whole runs."""

    def test_fresh_city_runs_to_completion(self, engine, city, memory_store):
        result = run(engine, city)

        assert result.started
        assert result.ticks == 100
        assert not result.cancelled
        assert city.progress == 1.0
        assert city.is_running is False
        assert final_lines(city) == [result.final_line]
        assert city.log[-1] == "Simulation complete. The city waits in the silence."
        # Ten autosaves plus the final save
        assert memory_store.save_count == 11

    def test_fresh_city_never_transcends(self, engine, city, bus):
        run(engine, city)
        moods = {e.data["after"] for e in bus.get_history(EventType.MOOD_CHANGED)}
        assert "transcendent" not in moods
        assert city.mood != CityMood.TRANSCENDENT

    def test_unattended_city_ends_forgotten_not_transcendent(self, engine, city, now, bus):
        """
        A city left alone for more than a day and run for a full 100 ticks
        ends forgotten with exactly one concluding line. A run takes seconds,
        so abandonment never passes the 48 hours transcendence needs.
        """
        city.last_interaction = now - timedelta(hours=30)
        result = run(engine, city)

        assert result.ticks == 100
        assert result.mood in (CityMood.FORGOTTEN, CityMood.ANXIOUS)
        assert result.mood == CityMood.FORGOTTEN
        moods = {e.data["after"] for e in bus.get_history(EventType.MOOD_CHANGED)}
        assert "transcendent" not in moods
        assert len(final_lines(city)) == 1

    def test_recently_touched_city_ends_waiting(self, engine, city):
        """Interaction at creation keeps abandonment at zero, so neither forgotten nor anxious."""
        result = run(engine, city)
        assert result.mood == CityMood.WAITING
        assert resources.trust(city) < 0.7

    def test_tick_limit(self, engine, city):
        engine.config.simulation.max_ticks = 5
        result = run(engine, city)
        assert result.ticks == 5
        assert city.progress == pytest.approx(0.05)
        assert len(final_lines(city)) == 1

    def test_already_running_is_skipped(self, engine, city, bus, memory_store):
        city.is_running = True
        result = run(engine, city)
        assert result.started is False
        assert city.log == []
        assert memory_store.save_count == 0
        assert len(bus.get_history(EventType.SIMULATION_SKIPPED)) == 1

    def test_lifecycle_events(self, engine, city, bus):
        result = run(engine, city)
        assert len(bus.get_history(EventType.SIMULATION_STARTED)) == 1
        completed = bus.get_history(EventType.SIMULATION_COMPLETED)
        assert completed[0].data["final_line"] == result.final_line
        assert completed[0].data["cancelled"] is False


class TestCancellation:
    """Stopping a run early still ends it properly."""

    def test_cancel_before_start(self, engine, city, memory_store):
        cancel = asyncio.Event()
        cancel.set()
        result = run(engine, city, cancel)
        assert result.cancelled
        assert result.ticks == 0
        assert city.progress == 0.0
        assert len(final_lines(city)) == 1
        assert memory_store.save_count == 1

    def test_cancel_mid_run(self, engine, city, bus):
        """Cancellation is observed at the next tick boundary."""
        engine.config.simulation.autosave_interval = 5

        async def scenario():
            cancel = asyncio.Event()

            def stop_at_five(event):
                if event.tick == 5:
                    cancel.set()

            bus.on(EventType.CITY_SAVED, stop_at_five)
            return await engine.run(city, cancel)

        result = asyncio.run(scenario())
        assert result.cancelled
        assert result.ticks == 5
        assert city.progress == pytest.approx(0.05)
        assert city.is_running is False
        assert len(final_lines(city)) == 1

    def test_task_cancellation(self, engine, city, memory_store):
        """Cancelling the task still clears the flag, concludes and saves."""
        engine.config.simulation.tick_delay = 10

        async def scenario():
            task = asyncio.create_task(engine.run(city))
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert city.is_running is False
        assert city.progress == 0.01
        assert len(final_lines(city)) == 1
        assert memory_store.load(city.id).log[-1].startswith("Simulation complete.")


class TestFinalAssessment:
    """Exactly one concluding line, chosen by the final resources."""

    def test_independence(self, engine, city):
        resources.set_resource(city, "autonomy", 0.9)
        assert engine.assess_final_mood(city) == "Simulation complete. The city no longer needs guidance."
        assert city.awareness_events[-1] == "The city has achieved independence."

    def test_harmony(self, engine, city):
        resources.set_resource(city, "trust", 0.9)
        assert engine.assess_final_mood(city) == "Simulation complete. The city trusts your vision."

    def test_fragmented(self, engine, city):
        resources.set_resource(city, "coherence", 0.1)
        assert engine.assess_final_mood(city) == "Simulation complete. The city lost coherence."

    def test_silence(self, engine, city):
        assert engine.assess_final_mood(city) == "Simulation complete. The city waits in the silence."
        assert city.log == ["Simulation complete. The city waits in the silence."]


class TestManagerRun:
    """Running through the manager wires in progression."""

    def test_run_with_threads(self, manager, memory_store):
        city = manager.create_city("Lumen")
        manager.weave_threads([ThreadType.CULTURE, ThreadType.KNOWLEDGE])
        result = asyncio.run(manager.run_simulation())

        assert result.ticks == 100
        assert city.has_triggered("beat_culture_synergy")
        assert memory_store.load(city.id).progress == 1.0
        assert len(final_lines(city)) == 1
