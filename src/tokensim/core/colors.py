"""
Color selection: which color each process is collecting.

Every process gets a fixed preference order over the palette, a left
rotation of it by the process's position. Process 0 prefers the first color,
process 1 the second, and so on. Ties in token counts are broken by this
order, so processes with balanced stacks drift towards distinct colors
without talking to each other.

When two active processes still end up wanting the same color, conflict
resolution lets the one that ranks the color highest keep it. The others
concede it and switch to their next-best color. The switch lasts until the
process next recomputes its wanted color from its stack.
"""

from __future__ import annotations
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Sequence

from tokensim.core.process import Color, Process, ProcessId

logger = logging.getLogger(__name__)


def rotated_palette(palette: Sequence[Color], position: int) -> tuple[Color, ...]:
    """Palette rotated left by ``position`` (mod its length)."""
    palette = tuple(palette)
    if not palette:
        return ()
    k = position % len(palette)
    return palette[k:] + palette[:k]


@dataclass(frozen=True)
class Reassignment:
    """A conflict loser switching away from a contested color."""

    process_id: ProcessId
    conceded: Color
    wanted: Color


@dataclass
class ColorSelector:
    """Computes wanted colors and settles contested ones."""

    palette: tuple[Color, ...]

    def priority_order(self, process: Process) -> tuple[Color, ...]:
        return rotated_palette(self.palette, process.position)

    def priority_rank(self, process: Process, color: Color) -> int:
        """0 = this process's first preference. Unknown colors rank last."""
        order = self.priority_order(process)
        try:
            return order.index(color)
        except ValueError:
            return len(order)

    def best_color(self, process: Process, exclude: Iterable[Color] = ()) -> Color | None:
        """
        Most frequent color on the stack, skipping ``exclude``.

        Ties go to the color ranked higher in the process's priority order.
        Returns None when nothing is left to choose from.
        """
        excluded = set(exclude)
        counts = process.color_counts()
        candidates = [color for color in counts if color not in excluded]
        if not candidates:
            return None
        return min(candidates, key=lambda c: (-counts[c], self.priority_rank(process, c)))

    def compute_wanted(self, process: Process) -> Color | None:
        """
        Set ``process.wanted`` to the color it should collect and return it.

        An empty stack leaves the process with no wanted color.
        """
        wanted = self.best_color(process)
        process.wanted = wanted
        return wanted

    def detect_conflicts(self, processes: Sequence[Process]) -> dict[Color, list[ProcessId]]:
        """Colors wanted by two or more active processes, with their claimants."""
        claims = self._claims(processes)
        return {
            color: [p.id for p in claimants]
            for color, claimants in claims.items()
            if len(claimants) > 1
        }

    def resolve_conflicts(self, processes: Sequence[Process]) -> list[Reassignment]:
        """
        Leave each contested color with its highest-priority claimant.

        Every other claimant concedes the color and switches to its best
        remaining one. A claimant holding no other color keeps its claim.

        Returns:
            The reassignments made, in resolution order.
        """
        reassignments: list[Reassignment] = []

        for color, claimants in self._claims(processes).items():
            if len(claimants) < 2:
                continue

            ranked = sorted(claimants, key=lambda p: self.priority_rank(p, color))
            winner = ranked[0]
            logger.debug(
                "Color %r contested by %s; process %r keeps it",
                color, [p.id for p in ranked], winner.id,
            )

            for loser in ranked[1:]:
                alternative = self.best_color(loser, exclude={color})
                if alternative is None:
                    continue

                loser.wanted = alternative
                reassignments.append(Reassignment(loser.id, color, alternative))
                logger.debug("Process %r now wants %r instead of %r", loser.id, alternative, color)

        return reassignments

    @staticmethod
    def _claims(processes: Sequence[Process]) -> dict[Color, list[Process]]:
        claims: dict[Color, list[Process]] = defaultdict(list)
        for process in processes:
            if not process.done and process.wanted is not None:
                claims[process.wanted].append(process)
        return claims
