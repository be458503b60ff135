"""
Core engine primitives.

This layer knows NOTHING about plots, traces or assignments.
It only knows:
- Processes holding stacks of colored tokens
- Messages and the FIFO queue they travel through
- Which color each process collects, and whom it asks
- When a process, or the whole system, is finished
- Driving the protocol until it settles or is forced to stop

Simulation is the entry point; everything else is a collaborator it wires up.
"""

from tokensim.core.process import Process, build_processes, derive_palette, validate_distribution
from tokensim.core.messages import Message, MessageKind, MessageQueue
from tokensim.core.colors import ColorSelector, Reassignment, rotated_palette
from tokensim.core.partners import PartnerSelector
from tokensim.core.oracle import ConvergenceOracle, potential, target_color
from tokensim.core.state import EngineState, ProcessSnapshot, SystemState
from tokensim.core.dispatcher import Dispatcher
from tokensim.core.events import Event, EventBus, EventKind
from tokensim.core.errors import AlreadyRunningError, ConservationError, SimulationError
from tokensim.core.driver import (
    ForcedReason,
    RunPhase,
    RunSummary,
    Simulation,
    SimulationConfig,
)

__all__ = [
    "Process",
    "build_processes",
    "derive_palette",
    "validate_distribution",
    "Message",
    "MessageKind",
    "MessageQueue",
    "ColorSelector",
    "Reassignment",
    "rotated_palette",
    "PartnerSelector",
    "ConvergenceOracle",
    "potential",
    "target_color",
    "EngineState",
    "ProcessSnapshot",
    "SystemState",
    "Dispatcher",
    "Event",
    "EventBus",
    "EventKind",
    # Errors
    "SimulationError",
    "AlreadyRunningError",
    "ConservationError",
    # Driver
    "ForcedReason",
    "RunPhase",
    "RunSummary",
    "Simulation",
    "SimulationConfig",
]
