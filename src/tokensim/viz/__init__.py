"""
Visualization utilities.

- Potential traces
- Per-process color distributions
- Run summaries
"""

from tokensim.viz.runs import (
    TOKEN_COLORS,
    plot_color_distribution,
    plot_potential_trace,
    plot_run_summary,
    save_figure,
    token_color,
)

__all__ = [
    "TOKEN_COLORS",
    "plot_color_distribution",
    "plot_potential_trace",
    "plot_run_summary",
    "save_figure",
    "token_color",
]
