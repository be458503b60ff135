"""
Simulation driver: owns the message queue and runs the protocol.

Run lifecycle:

    IDLE ──start()──▶ RUNNING ──▶ COMPLETED          (all done, queue empty)
                              └─▶ FORCE_COMPLETED    (stagnation / ceiling)

Each iteration either dispatches the oldest message or, when the queue has
run dry, lets idle processes issue fresh requests. Every
``checkpoint_interval`` iterations the driver re-resolves color conflicts and
measures the potential Φ. If Φ fails to improve for
``stagnation_checkpoints`` checks in a row, or the iteration ceiling is hit,
the remaining processes are forced done and the queue is drained so that
in-flight tokens land.

The pause between iterations exists for external observers only; outcomes
do not depend on it.
"""

from __future__ import annotations
import logging
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Mapping, Sequence

from tokensim.core.colors import ColorSelector
from tokensim.core.dispatcher import Dispatcher
from tokensim.core.errors import AlreadyRunningError, ConservationError
from tokensim.core.events import EventBus, EventKind
from tokensim.core.oracle import ConvergenceOracle, color_totals, potential
from tokensim.core.partners import PartnerSelector
from tokensim.core.process import (
    Color,
    ProcessId,
    build_processes,
    derive_palette,
    validate_distribution,
)
from tokensim.core.state import EngineState, SystemState

logger = logging.getLogger(__name__)

Distribution = Mapping[ProcessId, Sequence[Color]]


class RunPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FORCE_COMPLETED = "force_completed"


class ForcedReason(str, Enum):
    STAGNATION = "stagnation"
    ITERATION_CEILING = "iteration_ceiling"


@dataclass
class SimulationConfig:
    """Configuration for a simulation run."""

    palette: tuple | None = None      # None: colors in order of first appearance
    checkpoint_interval: int = 10     # Iterations between conflict/stagnation checks
    stagnation_checkpoints: int = 5   # Checks without Φ improvement before forcing
    max_iterations: int = 200         # Hard ceiling on loop iterations
    pause_seconds: float = 0.0        # Observer-facing pause per iteration
    validate_conservation: bool = True

    def __post_init__(self):
        if self.checkpoint_interval < 1:
            raise ValueError("checkpoint_interval must be at least 1")
        if self.stagnation_checkpoints < 1:
            raise ValueError("stagnation_checkpoints must be at least 1")
        if self.max_iterations < 0:
            raise ValueError("max_iterations must be non-negative")
        if self.palette is not None:
            self.palette = tuple(self.palette)


@dataclass
class RunSummary:
    """What ``start()`` reports when a run ends."""

    iterations: int
    dispatched: int
    total_exchanges: int
    potential: int
    feasible: bool
    phase: RunPhase
    forced: ForcedReason | None = None
    cancelled: bool = False

    @property
    def converged(self) -> bool:
        return self.phase is RunPhase.COMPLETED

    def to_dict(self) -> dict:
        data = asdict(self)
        data["phase"] = self.phase.value
        data["forced"] = self.forced.value if self.forced else None
        return data


class Simulation:
    """
    The token-redistribution engine.

    Usage:
        sim = Simulation({1: ["R", "G"], 2: ["G", "R"]})
        summary = sim.start()
        final = sim.get_state()
    """

    def __init__(
        self,
        distribution: Distribution,
        config: SimulationConfig | None = None,
        *,
        oracle: ConvergenceOracle | None = None,
        partners: PartnerSelector | None = None,
        events: EventBus | None = None,
    ):
        self.config = config or SimulationConfig()
        self.oracle = oracle or ConvergenceOracle()
        self.partners = partners or PartnerSelector()
        self.events = events or EventBus()

        self._phase = RunPhase.IDLE
        self._forced: ForcedReason | None = None
        self._generation = 0
        self._load(distribution)

    # ═══════════════════════════════════════════════════════════════
    # PUBLIC INTERFACE
    # ═══════════════════════════════════════════════════════════════

    @property
    def phase(self) -> RunPhase:
        return self._phase

    @property
    def feasible(self) -> bool | None:
        """Cached feasibility of the current run (None before ``start()``)."""
        return self._state.feasible

    @property
    def forced(self) -> ForcedReason | None:
        """Why the last run was forced to complete, if it was."""
        return self._forced

    @property
    def distribution(self) -> dict[ProcessId, tuple[Color, ...]]:
        return dict(self._distribution)

    def start(self) -> RunSummary:
        """
        Run the protocol to completion.

        Raises:
            AlreadyRunningError: if a run is already in progress.
            ConservationError: if token accounting drifts (engine defect).
        """
        if self._phase is RunPhase.RUNNING:
            raise AlreadyRunningError("Simulation is already running")

        self._phase = RunPhase.RUNNING
        generation = self._generation
        try:
            return self._run(generation)
        except BaseException:
            if self._generation == generation:
                self._phase = RunPhase.IDLE
            raise

    def reset(self, distribution: Distribution | None = None) -> None:
        """
        Discard all run state and start over.

        Reuses the previous distribution when none is given. Called while a
        run is in progress (from an observer), it cancels that run.
        """
        cancelling = self._phase is RunPhase.RUNNING
        self._load(distribution if distribution is not None else self._distribution)
        self._phase = RunPhase.IDLE
        if cancelling:
            logger.info("Reset cancelled the run in progress")
        self.events.emit(EventKind.RESET, processes=len(self._state.processes), cancelled=cancelling)

    def get_state(self) -> SystemState:
        return self._snapshot(self._state)

    def get_history(self) -> list[SystemState]:
        return list(self._state.history)

    def get_potential(self) -> int:
        return potential(self._state.processes)

    # ═══════════════════════════════════════════════════════════════
    # RUN LOOP
    # ═══════════════════════════════════════════════════════════════

    def _run(self, generation: int) -> RunSummary:
        state = self._state
        cfg = self.config

        state.feasible = self.oracle.is_perfect_outcome_feasible(state.processes)
        best = potential(state.processes)
        logger.info(
            "Starting run: %d processes, feasible=%s, Φ=%d",
            len(state.processes), state.feasible, best,
        )
        self.events.emit(
            EventKind.STARTING,
            processes=len(state.processes),
            feasible=state.feasible,
            potential=best,
        )
        if self._generation != generation:
            return self._cancelled(state, 0, 0)

        self._seed(state)

        stagnant = 0
        iteration = 0
        dispatched = 0
        forced: ForcedReason | None = None

        while not state.settled():
            if self._generation != generation:
                return self._cancelled(state, iteration, dispatched)
            if iteration >= cfg.max_iterations:
                forced = ForcedReason.ITERATION_CEILING
                break
            iteration += 1

            if state.queue:
                self._dispatch_next(state)
                dispatched += 1
            else:
                self.dispatcher.request_pending(state)

            if iteration % cfg.checkpoint_interval == 0:
                conflicts = self.colors.detect_conflicts(state.processes)
                reassigned = self.colors.resolve_conflicts(state.processes)
                phi = potential(state.processes)
                if phi < best:
                    best, stagnant = phi, 0
                else:
                    stagnant += 1

                logger.debug(
                    "Checkpoint %d: Φ=%d, exchanges=%d, conflicts=%s, stagnant=%d",
                    iteration, phi, state.total_exchanges, conflicts, stagnant,
                )
                self.events.emit(
                    EventKind.ITERATION_CHECKED,
                    iteration=iteration,
                    potential=phi,
                    total_exchanges=state.total_exchanges,
                    conflicts=conflicts,
                    reassigned=len(reassigned),
                    stagnant_checks=stagnant,
                )
                if self._generation != generation:
                    return self._cancelled(state, iteration, dispatched)

                if stagnant >= cfg.stagnation_checkpoints:
                    forced = ForcedReason.STAGNATION
                    break

            if cfg.pause_seconds > 0:
                time.sleep(cfg.pause_seconds)

        if forced is not None:
            drained = self._force_completion(state, forced, iteration, generation)
            if drained is None:
                return self._cancelled(state, iteration, dispatched)
            dispatched += drained

        self._forced = forced
        self._phase = RunPhase.FORCE_COMPLETED if forced else RunPhase.COMPLETED
        summary = RunSummary(
            iterations=iteration,
            dispatched=dispatched,
            total_exchanges=state.total_exchanges,
            potential=potential(state.processes),
            feasible=bool(state.feasible),
            phase=self._phase,
            forced=forced,
        )
        logger.info(
            "Run %s after %d iterations: %d exchanges, Φ=%d",
            self._phase.value, iteration, summary.total_exchanges, summary.potential,
        )
        self.events.emit(EventKind.COMPLETED, **summary.to_dict())
        return summary

    def _seed(self, state: EngineState):
        """Initial completion pass, then everyone still active makes a first request."""
        for process in state.processes:
            self.dispatcher.check_completion(state, process)

        active = state.active()
        for process in active:
            self.colors.compute_wanted(process)
        self.colors.resolve_conflicts(state.processes)

        for process in active:
            self.partners.choose_partner(process, state.processes)
            self.dispatcher.send_request(state, process)

        if self.config.validate_conservation:
            self._validate(state)

    def _dispatch_next(self, state: EngineState):
        message = state.queue.pop()
        self.dispatcher.dispatch(state, message)
        state.history.append(self._snapshot(state))
        if self.config.validate_conservation:
            self._validate(state)

    def _force_completion(
        self,
        state: EngineState,
        reason: ForcedReason,
        iteration: int,
        generation: int,
    ) -> int | None:
        """
        Mark every active process done and deliver what is still queued.

        Returns the number of messages drained, or None if an observer
        reset the simulation in the meantime.
        """
        if reason is ForcedReason.ITERATION_CEILING:
            self.colors.resolve_conflicts(state.processes)

        message = f"Forcing completion after {iteration} iterations ({reason.value})"
        logger.warning(message)
        self.events.emit(
            EventKind.WARNING,
            message=message,
            reason=reason.value,
            iteration=iteration,
            potential=potential(state.processes),
        )
        if self._generation != generation:
            return None

        for process in state.active():
            self.dispatcher.force_done(process)

        drained = 0
        while state.queue:
            self._dispatch_next(state)
            drained += 1
        return drained

    def _cancelled(self, state: EngineState, iteration: int, dispatched: int) -> RunSummary:
        # The phase now belongs to the fresh state; leave it alone
        return RunSummary(
            iterations=iteration,
            dispatched=dispatched,
            total_exchanges=state.total_exchanges,
            potential=potential(state.processes),
            feasible=bool(state.feasible),
            phase=RunPhase.IDLE,
            cancelled=True,
        )

    # ═══════════════════════════════════════════════════════════════
    # STATE HELPERS
    # ═══════════════════════════════════════════════════════════════

    def _load(self, distribution: Distribution):
        validate_distribution(distribution, self.config.palette)

        self._distribution = {pid: tuple(stack) for pid, stack in distribution.items()}
        if self.config.palette is not None:
            self.palette = self.config.palette
        else:
            self.palette = derive_palette(self._distribution)

        self.colors = ColorSelector(self.palette)
        self.dispatcher = Dispatcher(self.colors, self.partners, self.oracle)
        self._initial_totals = dict(color_totals(self._distribution.values()))
        self._state = EngineState(build_processes(self._distribution))
        self._forced = None
        self._generation += 1

        self._state.history.append(self._snapshot(self._state))
        self.events.emit(
            EventKind.INITIALIZED,
            processes=len(self._state.processes),
            tokens=sum(self._initial_totals.values()),
            palette=self.palette,
        )

    def _snapshot(self, state: EngineState) -> SystemState:
        feasible = state.feasible
        if feasible is None:
            feasible = self.oracle.is_perfect_outcome_feasible(state.processes)
        return SystemState(
            processes=state.snapshot_processes(),
            pending_messages=state.queue.snapshot(),
            total_exchanges=state.total_exchanges,
            complete=self.oracle.is_system_complete(state.processes, state.queue, feasible),
        )

    def _validate(self, state: EngineState):
        try:
            self.oracle.check_conservation(state.processes, state.queue, self._initial_totals)
        except ConservationError as exc:
            logger.error("%s", exc)
            raise
