"""
Engine state and the read-only snapshots handed to the outside world.

EngineState is the driver's private, mutable state: processes, the message
queue, counters and history. Nothing outside the engine mutates it.

SystemState is a frozen point-in-time copy. It never aliases live state, so
observers can keep as many snapshots as they like.
"""

from __future__ import annotations
from dataclasses import dataclass, field

from tokensim.core.messages import Message, MessageQueue
from tokensim.core.process import Color, Process, ProcessId


@dataclass(frozen=True)
class ProcessSnapshot:
    """Immutable copy of one process."""

    id: ProcessId
    stack: tuple[Color, ...]
    wanted: Color | None
    partner: ProcessId | None
    done: bool

    @classmethod
    def of(cls, process: Process) -> ProcessSnapshot:
        return cls(
            id=process.id,
            stack=tuple(process.stack),
            wanted=process.wanted,
            partner=process.partner,
            done=process.done,
        )

    @property
    def is_monochrome(self) -> bool:
        return len(set(self.stack)) <= 1

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stack": list(self.stack),
            "wanted": self.wanted,
            "partner": self.partner,
            "done": self.done,
        }


@dataclass(frozen=True)
class SystemState:
    """Point-in-time snapshot of the whole engine."""

    processes: tuple[ProcessSnapshot, ...]
    pending_messages: tuple[Message, ...]
    total_exchanges: int
    complete: bool

    def process(self, pid: ProcessId) -> ProcessSnapshot:
        for snapshot in self.processes:
            if snapshot.id == pid:
                return snapshot
        raise KeyError(pid)

    @property
    def in_flight(self) -> int:
        """Tokens carried by pending SEND messages."""
        return sum(1 for m in self.pending_messages if m.carries_token)

    def to_dict(self) -> dict:
        """JSON-friendly rendering for transports."""
        return {
            "processes": [p.to_dict() for p in self.processes],
            "pending_messages": [m.to_dict() for m in self.pending_messages],
            "total_exchanges": self.total_exchanges,
            "complete": self.complete,
        }


@dataclass
class EngineState:
    """Everything a run mutates. Owned by the driver."""

    processes: list[Process]
    queue: MessageQueue = field(default_factory=MessageQueue)
    total_exchanges: int = 0
    history: list[SystemState] = field(default_factory=list)
    feasible: bool | None = None  # Cached once per run

    def __post_init__(self):
        self._index = {p.id: p for p in self.processes}

    def get(self, pid: ProcessId) -> Process | None:
        return self._index.get(pid)

    def active(self) -> list[Process]:
        return [p for p in self.processes if not p.done]

    @property
    def all_done(self) -> bool:
        return all(p.done for p in self.processes)

    def settled(self) -> bool:
        """All processes done and nothing left in the queue."""
        return self.all_done and not self.queue

    def snapshot_processes(self) -> tuple[ProcessSnapshot, ...]:
        return tuple(ProcessSnapshot.of(p) for p in self.processes)
