"""Tests for the simulation driver: full runs, lifecycle and safety valves."""

from collections import Counter

import pytest

from tokensim.core import (
    AlreadyRunningError,
    ConservationError,
    EventKind,
    ForcedReason,
    RunPhase,
    Simulation,
    SimulationConfig,
    potential,
)


def _totals(state):
    totals = Counter()
    for process in state.processes:
        totals.update(process.stack)
    return totals


def _initial_totals(distribution):
    totals = Counter()
    for stack in distribution.values():
        totals.update(stack)
    return totals


class TestFeasibleRun:
    """A perfect partition exists: every process ends monochrome in its own color."""

    def test_converges(self, feasible_distribution, palette):
        sim = Simulation(feasible_distribution, SimulationConfig(palette=palette))
        summary = sim.start()
        final = sim.get_state()

        assert final.complete
        assert summary.phase is RunPhase.COMPLETED
        assert summary.forced is None
        assert summary.converged
        assert summary.feasible

        colors = []
        for process in final.processes:
            assert len(process.stack) == 10
            assert process.is_monochrome
            assert process.done
            colors.append(process.stack[0])
        assert sorted(colors) == ["B", "G", "R"]

        assert sim.get_potential() == 0
        assert summary.potential == 0
        assert final.total_exchanges > 0
        assert final.pending_messages == ()

    def test_summary_matches_state(self, feasible_distribution):
        sim = Simulation(feasible_distribution)
        summary = sim.start()

        assert summary.total_exchanges == sim.get_state().total_exchanges
        assert summary.iterations <= sim.config.max_iterations
        assert not summary.cancelled

    def test_history(self, feasible_distribution):
        sim = Simulation(feasible_distribution)
        summary = sim.start()
        history = sim.get_history()

        # One snapshot at reset, one per dispatched message
        assert len(history) == summary.dispatched + 1
        assert [list(p.stack) for p in history[0].processes] == list(feasible_distribution.values())
        assert potential(history[0].processes) == 18
        assert history[-1].complete

    def test_history_is_a_copy(self, feasible_distribution):
        sim = Simulation(feasible_distribution)
        sim.start()
        sim.get_history().clear()
        assert len(sim.get_history()) > 1

    def test_deterministic(self, feasible_distribution):
        first = Simulation(feasible_distribution)
        second = Simulation(feasible_distribution)
        a, b = first.start(), second.start()

        assert a == b
        assert first.get_state() == second.get_state()
        assert len(first.get_history()) == len(second.get_history())


class TestTrivialRuns:
    """Distributions that are finished, or stuck, from the start."""

    def test_single_tokens_finish_immediately(self, single_token_distribution):
        sim = Simulation(single_token_distribution)
        summary = sim.start()
        final = sim.get_state()

        assert final.complete
        assert summary.phase is RunPhase.COMPLETED
        assert summary.total_exchanges == 0
        # Only the DONE broadcasts travel
        assert summary.dispatched == 3
        assert [list(p.stack) for p in final.processes] == [["R"], ["G"], ["R"]]
        assert _totals(final) == {"R": 2, "G": 1}

    def test_empty_process(self, empty_process_distribution):
        sim = Simulation(empty_process_distribution)
        summary = sim.start()
        final = sim.get_state()

        assert final.process(1).stack == ()
        assert final.process(1).done
        assert final.complete
        assert _totals(final) == {"G": 2, "R": 1}

        # The other two keep asking for G that neither will give up
        assert summary.phase is RunPhase.FORCE_COMPLETED
        assert summary.forced is ForcedReason.STAGNATION
        assert sim.forced is ForcedReason.STAGNATION
        assert summary.iterations == 50

    def test_all_empty(self):
        sim = Simulation({1: [], 2: []})
        summary = sim.start()

        assert summary.phase is RunPhase.COMPLETED
        assert sim.get_state().complete


# Distributions without a perfect partition, plus a few larger ones
CUSTOM_DISTRIBUTIONS = [
    {1: ["R", "R", "G", "B"], 2: ["G", "G", "R", "G"], 3: ["B", "B", "R", "G"]},
    {1: ["R", "R", "R", "G"], 2: ["G"], 3: ["R", "G"]},
    {1: ["R"], 2: ["G"], 3: ["R"]},
    {1: ["R", "G"], 2: ["G", "R"]},
    {"a": ["R", "G", "B", "Y"], "b": ["Y", "B", "G", "R"], "c": ["G", "R", "Y", "B"], "d": ["B", "Y", "R", "G"]},
    {1: ["R", "R", "R", "R", "R", "R"], 2: ["G", "G"], 3: ["R", "G", "B"]},
]


class TestTermination:
    """Every run ends, conserves tokens and leaves every process done."""

    @pytest.mark.parametrize("distribution", CUSTOM_DISTRIBUTIONS)
    def test_terminates_and_conserves(self, distribution):
        sim = Simulation(distribution)
        summary = sim.start()
        final = sim.get_state()

        assert summary.phase in (RunPhase.COMPLETED, RunPhase.FORCE_COMPLETED)
        assert summary.iterations <= sim.config.max_iterations
        assert all(p.done for p in final.processes)
        assert final.complete
        assert final.pending_messages == ()
        assert _totals(final) == _initial_totals(distribution)
        assert sim.get_potential() >= 0

    @pytest.mark.parametrize("distribution", CUSTOM_DISTRIBUTIONS)
    def test_every_snapshot_conserves(self, distribution):
        sim = Simulation(distribution)
        sim.start()

        expected = _initial_totals(distribution)
        for state in sim.get_history():
            totals = _totals(state)
            totals.update(m.color for m in state.pending_messages if m.carries_token)
            assert totals == expected

    def test_iteration_ceiling(self, feasible_distribution):
        sim = Simulation(feasible_distribution, SimulationConfig(max_iterations=0))
        summary = sim.start()
        final = sim.get_state()

        assert summary.phase is RunPhase.FORCE_COMPLETED
        assert summary.forced is ForcedReason.ITERATION_CEILING
        assert summary.iterations == 0
        assert all(p.done for p in final.processes)
        assert final.pending_messages == ()
        assert _totals(final) == _initial_totals(feasible_distribution)

    def test_iteration_ceiling_resolves_conflicts(self, palette):
        # Process 2 concedes R at the start but wants it back after one
        # exchange; the ceiling hits while both claim R
        distribution = {1: ["R", "R", "R", "G"], 2: ["R", "R", "R", "B"]}
        sim = Simulation(distribution, SimulationConfig(palette=palette, max_iterations=1))
        claims = []
        sim.events.subscribe(
            lambda event: claims.append([p.wanted for p in sim.get_state().processes])
            if event.kind is EventKind.WARNING else None
        )
        summary = sim.start()
        final = sim.get_state()

        assert summary.forced is ForcedReason.ITERATION_CEILING
        assert claims == [["R", "B"]]
        assert final.process(1).wanted == "R"
        assert final.process(2).wanted == "B"
        assert _totals(final) == _initial_totals(distribution)


class TestDoneTransition:
    """A complete process leaves the protocol as soon as it is checked."""

    def test_feasible_monochrome_done_after_seeding(self):
        sim = Simulation({1: ["R", "R"], 2: ["G", "G", "R", "G"]})
        sim.start()
        history = sim.get_history()

        assert sim.feasible
        # The first dispatched message is the DONE process 1 sent while seeding
        assert history[1].process(1).done
        assert history[1].process(1).stack == ("R", "R")
        assert not history[1].process(2).done


class TestLifecycle:
    """Phases, re-entrancy and reset."""

    def test_phases(self, feasible_distribution):
        sim = Simulation(feasible_distribution)
        phases = []
        sim.events.subscribe(lambda event: phases.append(sim.phase))

        assert sim.phase is RunPhase.IDLE
        sim.start()

        assert phases[0] is RunPhase.RUNNING
        assert sim.phase is RunPhase.COMPLETED

    def test_start_while_running(self, feasible_distribution):
        sim = Simulation(feasible_distribution)
        errors = []

        def observer(event):
            if event.kind is EventKind.STARTING:
                with pytest.raises(AlreadyRunningError):
                    sim.start()
                errors.append(event)

        sim.events.subscribe(observer)
        summary = sim.start()

        assert len(errors) == 1
        assert summary.phase is RunPhase.COMPLETED

    def test_failing_observer_returns_to_idle(self, feasible_distribution):
        sim = Simulation(feasible_distribution)

        def observer(event):
            raise RuntimeError("observer failed")

        unsubscribe = sim.events.subscribe(observer)
        with pytest.raises(RuntimeError, match="observer failed"):
            sim.start()
        assert sim.phase is RunPhase.IDLE

        unsubscribe()
        sim.reset()
        assert sim.start().converged

    def test_reset_reuses_distribution(self, feasible_distribution):
        sim = Simulation(feasible_distribution)
        sim.start()
        sim.reset()

        state = sim.get_state()
        assert sim.phase is RunPhase.IDLE
        assert sim.feasible is None
        assert sim.forced is None
        assert state.total_exchanges == 0
        assert [list(p.stack) for p in state.processes] == list(feasible_distribution.values())
        assert not any(p.done for p in state.processes)
        assert len(sim.get_history()) == 1

    def test_reset_with_new_distribution(self, feasible_distribution, single_token_distribution):
        sim = Simulation(feasible_distribution)
        sim.reset(single_token_distribution)

        assert sim.palette == ("R", "G")
        assert sim.distribution == {1: ("R",), 2: ("G",), 3: ("R",)}
        assert sim.start().total_exchanges == 0

    def test_reset_during_run_cancels(self, empty_process_distribution):
        sim = Simulation(empty_process_distribution)
        resets = []

        def observer(event):
            if event.kind is EventKind.ITERATION_CHECKED and not resets:
                resets.append(event.payload["iteration"])
                sim.reset()

        sim.events.subscribe(observer)
        summary = sim.start()

        assert summary.cancelled
        assert summary.phase is RunPhase.IDLE
        assert summary.iterations == 10
        assert resets == [10]
        assert sim.phase is RunPhase.IDLE
        assert len(sim.get_history()) == 1
        assert sim.get_state().total_exchanges == 0

        # The fresh state runs normally
        assert not sim.start().cancelled

    def test_feasible_property(self, feasible_distribution):
        sim = Simulation(feasible_distribution)
        assert sim.feasible is None
        sim.start()
        assert sim.feasible is True

    def test_get_state_before_start(self, single_token_distribution):
        sim = Simulation(single_token_distribution)
        state = sim.get_state()

        # Every stack is already monochrome
        assert state.complete
        assert state.total_exchanges == 0
        assert state.pending_messages == ()


class TestEvents:
    """Lifecycle events reach subscribed observers."""

    def test_run_events(self, empty_process_distribution):
        sim = Simulation(empty_process_distribution)
        events = []
        sim.events.subscribe(events.append)
        sim.start()

        kinds = [event.kind for event in events]
        assert kinds[0] is EventKind.STARTING
        assert kinds[-1] is EventKind.COMPLETED
        assert kinds.count(EventKind.ITERATION_CHECKED) == 5
        assert EventKind.WARNING in kinds

        warning = events[kinds.index(EventKind.WARNING)]
        assert warning.payload["reason"] == "stagnation"
        assert events[-1].payload["phase"] == "force_completed"

    def test_quiet_run_has_no_checkpoints(self, single_token_distribution):
        sim = Simulation(single_token_distribution)
        events = []
        sim.events.subscribe(events.append)
        sim.start()

        assert [event.kind for event in events] == [EventKind.STARTING, EventKind.COMPLETED]

    def test_reset_events(self, single_token_distribution):
        sim = Simulation(single_token_distribution)
        events = []
        sim.events.subscribe(events.append)
        sim.reset()

        assert [event.kind for event in events] == [EventKind.INITIALIZED, EventKind.RESET]
        assert events[0].payload["tokens"] == 3
        assert events[1].payload["cancelled"] is False


class TestValidation:
    """Bad input is rejected up front."""

    def test_empty_distribution(self):
        with pytest.raises(ValueError):
            Simulation({})

    def test_color_outside_palette(self):
        with pytest.raises(ValueError):
            Simulation({1: ["R", "X"]}, SimulationConfig(palette=("R", "G")))

    def test_bad_reset_keeps_state(self, single_token_distribution):
        sim = Simulation(single_token_distribution)
        with pytest.raises(ValueError):
            sim.reset({})
        assert len(sim.get_state().processes) == 3

    @pytest.mark.parametrize("kwargs", [
        {"checkpoint_interval": 0},
        {"stagnation_checkpoints": 0},
        {"max_iterations": -1},
    ])
    def test_bad_config(self, kwargs):
        with pytest.raises(ValueError):
            SimulationConfig(**kwargs)

    def test_conservation_violation(self, feasible_distribution):
        sim = Simulation(feasible_distribution)
        # Corrupt the live state behind the engine's back
        sim._state.processes[0].stack.append("R")

        with pytest.raises(ConservationError):
            sim.start()
        assert sim.phase is RunPhase.IDLE


class TestSerialization:
    def test_state_to_dict(self, single_token_distribution):
        sim = Simulation(single_token_distribution)
        sim.start()
        data = sim.get_state().to_dict()

        assert data["complete"] is True
        assert data["total_exchanges"] == 0
        assert data["pending_messages"] == []
        assert data["processes"][0] == {
            "id": 1,
            "stack": ["R"],
            "wanted": None,
            "partner": None,
            "done": True,
        }

    def test_summary_to_dict(self, single_token_distribution):
        summary = Simulation(single_token_distribution).start()
        data = summary.to_dict()

        assert data["phase"] == "completed"
        assert data["forced"] is None
        assert data["cancelled"] is False
