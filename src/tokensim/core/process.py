"""
Process model: the token holders that take part in the protocol.

A process owns a stack of colored tokens plus the protocol flags the engine
mutates (wanted color, partner, done). Stack order carries no meaning for the
protocol; it only makes token removal deterministic.

Colors and process ids are opaque hashables. A palette is just the ordered
tuple of colors in play.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from typing import Hashable, Iterable, Mapping, Sequence

Color = Hashable
ProcessId = Hashable


@dataclass
class Process:
    """A single participant in the protocol."""

    id: ProcessId
    stack: list[Color] = field(default_factory=list)
    wanted: Color | None = None
    partner: ProcessId | None = None
    done: bool = False  # Monotonic: only a full reset clears it

    # Position in distribution order; drives the color priority rotation
    position: int = 0

    @property
    def size(self) -> int:
        return len(self.stack)

    @property
    def is_empty(self) -> bool:
        return not self.stack

    @property
    def is_monochrome(self) -> bool:
        """At most one distinct color on the stack."""
        return len(set(self.stack)) <= 1

    def color_counts(self) -> Counter:
        """Token count per color, in order of first appearance on the stack."""
        return Counter(self.stack)

    def count(self, color: Color) -> int:
        return sum(1 for token in self.stack if token == color)

    def dominant_count(self) -> int:
        counts = self.color_counts()
        return max(counts.values()) if counts else 0

    def majority_color(self) -> Color | None:
        """Most frequent color; the earliest on the stack wins ties."""
        counts = self.color_counts()
        if not counts:
            return None
        return counts.most_common(1)[0][0]

    def take(self, color: Color, keep: Color | None = None) -> Color | None:
        """
        Remove the first token equal to ``color`` and different from ``keep``.

        Returns the removed token, or None when no such token exists.
        """
        for i, token in enumerate(self.stack):
            if token == color and token != keep:
                return self.stack.pop(i)
        return None


def derive_palette(distribution: Mapping[ProcessId, Sequence[Color]]) -> tuple[Color, ...]:
    """Colors of a distribution in order of first appearance."""
    seen: dict[Color, None] = {}
    for stack in distribution.values():
        for color in stack:
            seen.setdefault(color, None)
    return tuple(seen)


def validate_distribution(
    distribution: Mapping[ProcessId, Sequence[Color]],
    palette: Iterable[Color] | None = None,
) -> None:
    """
    Reject distributions the engine cannot run.

    Raises:
        ValueError: if there are no processes, or a token's color is not in
            the explicit palette.
    """
    if not distribution:
        raise ValueError("Distribution must contain at least one process")

    if palette is None:
        return

    allowed = set(palette)
    for pid, stack in distribution.items():
        unknown = [color for color in stack if color not in allowed]
        if unknown:
            raise ValueError(
                f"Process {pid!r} holds colors outside the palette: {sorted(set(map(str, unknown)))}"
            )


def build_processes(distribution: Mapping[ProcessId, Sequence[Color]]) -> list[Process]:
    """Create fresh processes from a distribution, preserving its order."""
    return [
        Process(id=pid, stack=list(stack), position=i)
        for i, (pid, stack) in enumerate(distribution.items())
    ]
