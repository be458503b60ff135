"""
Optimal one-color-per-process assignment for a snapshot.

Treats the (process × color) token counts as a profit matrix and solves the
assignment problem with scipy's Hungarian solver. The result is the best any
redistribution could do while keeping tokens where they are: every token not
matching its holder's assigned color would still have to move.

Comparing this against a run's final state shows how far the heuristic
protocol landed from the best distinct-color assignment.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence

from scipy.optimize import linear_sum_assignment

from tokensim.analysis.trace import color_count_matrix, state_palette
from tokensim.core.oracle import potential
from tokensim.core.state import SystemState


@dataclass
class AssignmentResult:
    """Best distinct-color assignment for one snapshot."""

    assignment: dict         # process id -> color (None when colors ran out)
    matched_tokens: int      # tokens already matching their holder's color
    misplaced_tokens: int    # tokens that would still need to move
    total_tokens: int
    efficiency: float        # matched / total, 1.0 for an empty system


def optimal_color_assignment(state: SystemState, palette: Sequence | None = None) -> AssignmentResult:
    """
    Assign each process a distinct color, maximizing tokens already in place.

    With more processes than colors some processes get no color; all their
    tokens count as misplaced.

    Args:
        state: Snapshot to evaluate
        palette: Colors to assign; defaults to the colors present

    Returns:
        AssignmentResult
    """
    palette = tuple(palette) if palette is not None else state_palette(state)
    counts = color_count_matrix(state, palette)
    total = int(counts.sum())

    assignment = {process.id: None for process in state.processes}
    matched = 0
    if counts.size:
        rows, cols = linear_sum_assignment(counts, maximize=True)
        for row, col in zip(rows, cols):
            assignment[state.processes[row].id] = palette[col]
        matched = int(counts[rows, cols].sum())

    return AssignmentResult(
        assignment=assignment,
        matched_tokens=matched,
        misplaced_tokens=total - matched,
        total_tokens=total,
        efficiency=matched / total if total else 1.0,
    )


def assignment_gap(state: SystemState, palette: Sequence | None = None) -> int:
    """
    Misplaced tokens relative to the optimal assignment minus Φ.

    Φ measures distance from monochrome stacks; this also charges processes
    that share a dominant color. Zero when the stacks are monochrome in
    distinct colors.
    """
    result = optimal_color_assignment(state, palette)
    return result.misplaced_tokens - potential(state.processes)
