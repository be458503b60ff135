"""
Analysis layer: derived quantities for visualization and comparison.

IMPORTANT: This is NOT seen by the engine. One-way derivation only.

- color_count_matrix: tokens per (process, color) as a numpy array
- potential_trace / exchange_trace / pending_trace: per-step series
- summarize_history: headline numbers of a run
- optimal_color_assignment: best distinct-color assignment (scipy)
"""

from tokensim.analysis.trace import (
    TraceSummary,
    color_count_matrix,
    conservation_trace,
    exchange_trace,
    pending_trace,
    potential_trace,
    state_palette,
    summarize_history,
)
from tokensim.analysis.assignment import (
    AssignmentResult,
    assignment_gap,
    optimal_color_assignment,
)

__all__ = [
    "TraceSummary",
    "color_count_matrix",
    "conservation_trace",
    "exchange_trace",
    "pending_trace",
    "potential_trace",
    "state_palette",
    "summarize_history",
    # Assignment
    "AssignmentResult",
    "assignment_gap",
    "optimal_color_assignment",
]
