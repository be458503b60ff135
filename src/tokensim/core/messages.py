"""
Messages and the FIFO queue they travel through.

Three message kinds drive the protocol:
- REQUEST: "send me one token of this color"
- SEND: carries exactly one token to the recipient
- DONE: the sender has finished and leaves the protocol

The queue is the only shared mutable resource in the engine. A SEND sitting
in the queue holds its token: it has left the sender's stack but not yet
reached the recipient's, so conservation counts it as in flight.
"""

from __future__ import annotations
from collections import Counter, deque
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from tokensim.core.process import Color, ProcessId


class MessageKind(str, Enum):
    REQUEST = "REQUEST"
    SEND = "SEND"
    DONE = "DONE"


@dataclass(frozen=True)
class Message:
    """
    A point-to-point protocol message.

    ``sequence`` is assigned by the queue and strictly increases across a run.
    """

    kind: MessageKind
    sender: ProcessId
    recipient: ProcessId
    color: Color | None = None
    sequence: int = 0

    def __post_init__(self):
        if self.kind in (MessageKind.REQUEST, MessageKind.SEND) and self.color is None:
            raise ValueError(f"{self.kind.value} message requires a color")
        if self.kind is MessageKind.DONE and self.color is not None:
            raise ValueError("DONE message carries no color")

    @property
    def carries_token(self) -> bool:
        """Only SEND messages move a token."""
        return self.kind is MessageKind.SEND

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "sender": self.sender,
            "recipient": self.recipient,
            "color": self.color,
            "sequence": self.sequence,
        }


class MessageQueue:
    """
    FIFO message queue with a run-wide sequence counter.

    Delivery order is global FIFO, which also gives FIFO order per
    destination.
    """

    def __init__(self):
        self._messages: deque[Message] = deque()
        self._next_sequence = 1

    def enqueue(
        self,
        kind: MessageKind,
        sender: ProcessId,
        recipient: ProcessId,
        color: Color | None = None,
    ) -> Message:
        """Stamp a new message with the next sequence number and append it."""
        message = Message(kind, sender, recipient, color, self._next_sequence)
        self._next_sequence += 1
        self._messages.append(message)
        return message

    def request(self, sender: ProcessId, recipient: ProcessId, color: Color) -> Message:
        return self.enqueue(MessageKind.REQUEST, sender, recipient, color)

    def send(self, sender: ProcessId, recipient: ProcessId, token: Color) -> Message:
        return self.enqueue(MessageKind.SEND, sender, recipient, token)

    def done(self, sender: ProcessId, recipient: ProcessId) -> Message:
        return self.enqueue(MessageKind.DONE, sender, recipient)

    def pop(self) -> Message:
        """Remove and return the oldest message."""
        return self._messages.popleft()

    def peek(self) -> Message | None:
        return self._messages[0] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def __bool__(self) -> bool:
        return bool(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def snapshot(self) -> tuple[Message, ...]:
        """Immutable copy of the pending messages, oldest first."""
        return tuple(self._messages)

    def in_flight_tokens(self) -> Counter:
        """Tokens carried by pending SEND messages, per color."""
        return Counter(m.color for m in self._messages if m.carries_token)

    def has_pending_request(self, sender: ProcessId) -> bool:
        """Whether ``sender`` already has a REQUEST waiting in the queue."""
        return any(
            m.kind is MessageKind.REQUEST and m.sender == sender
            for m in self._messages
        )

    def clear(self) -> None:
        self._messages.clear()
