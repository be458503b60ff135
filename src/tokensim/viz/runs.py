"""
Plots of simulation runs.

- Potential Φ over the run, with delivered exchanges on a twin axis
- Stacked per-process color distribution for a snapshot
- Before/after summary of a whole history

All plots use matplotlib and follow the (fig, ax) convention: pass ``ax`` to
draw into an existing figure.
"""

from __future__ import annotations
from pathlib import Path
from typing import Sequence

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from tokensim.analysis.trace import (
    color_count_matrix,
    exchange_trace,
    potential_trace,
    state_palette,
)
from tokensim.core.state import SystemState


# Named token colors map onto matplotlib's tab palette; anything else cycles
TOKEN_COLORS = {
    "R": "tab:red",
    "G": "tab:green",
    "B": "tab:blue",
    "Y": "tab:olive",
    "O": "tab:orange",
    "P": "tab:purple",
}
_FALLBACK_COLORS = ["tab:cyan", "tab:brown", "tab:pink", "tab:gray"]


def token_color(color, index: int = 0) -> str:
    """Matplotlib color for a token color."""
    if color in TOKEN_COLORS:
        return TOKEN_COLORS[color]
    return _FALLBACK_COLORS[index % len(_FALLBACK_COLORS)]


def plot_potential_trace(
    history: Sequence[SystemState],
    title: str = "Potential Φ",
    ax: Axes | None = None,
    show_exchanges: bool = True,
    figsize: tuple[float, float] = (8, 5),
) -> tuple[Figure, Axes]:
    """
    Plot Φ against dispatched messages.

    Args:
        history: Run history (one snapshot per step)
        title: Plot title
        ax: Existing axes to plot on (creates new figure if None)
        show_exchanges: Overlay cumulative exchanges on a twin axis
        figsize: Figure size if creating new figure

    Returns:
        (fig, ax) tuple
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    phi = potential_trace(history)
    steps = np.arange(len(phi))
    ax.step(steps, phi, where="post", color="tab:purple", label="Φ")
    ax.set_xlabel("Dispatched messages")
    ax.set_ylabel("Φ (misplaced tokens)")
    ax.set_ylim(bottom=0)
    ax.grid(True, alpha=0.3)

    if show_exchanges and len(history):
        ax2 = ax.twinx()
        ax2.plot(steps, exchange_trace(history), color="tab:gray", linestyle="--", label="exchanges")
        ax2.set_ylabel("Exchanges")

    ax.set_title(title)
    return fig, ax


def plot_color_distribution(
    state: SystemState,
    palette: Sequence | None = None,
    title: str = "Color distribution",
    ax: Axes | None = None,
    figsize: tuple[float, float] = (8, 5),
) -> tuple[Figure, Axes]:
    """
    Stacked bars of tokens per color for every process.

    Done processes are marked with a check below their bar.
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    palette = tuple(palette) if palette is not None else state_palette(state)
    counts = color_count_matrix(state, palette)
    x = np.arange(len(state.processes))
    bottom = np.zeros(len(state.processes))

    for j, color in enumerate(palette):
        ax.bar(x, counts[:, j], bottom=bottom, color=token_color(color, j), label=str(color))
        bottom += counts[:, j]

    labels = [f"{p.id}{' ✓' if p.done else ''}" for p in state.processes]
    ax.set_xticks(x)
    ax.set_xticklabels(labels)
    ax.set_xlabel("Process")
    ax.set_ylabel("Tokens")
    ax.set_title(title)
    if palette:
        ax.legend(title="Color")

    return fig, ax


def plot_run_summary(
    history: Sequence[SystemState],
    palette: Sequence | None = None,
    figsize: tuple[float, float] = (16, 4),
) -> Figure:
    """
    Initial distribution, final distribution and the Φ trace side by side.

    Raises:
        ValueError: if the history is empty.
    """
    if not history:
        raise ValueError("History must contain at least one snapshot")

    palette = tuple(palette) if palette is not None else state_palette(history[0])
    fig, axes = plt.subplots(1, 3, figsize=figsize)

    plot_color_distribution(history[0], palette, title="Initial", ax=axes[0])
    plot_color_distribution(history[-1], palette, title="Final", ax=axes[1])
    plot_potential_trace(history, ax=axes[2])

    fig.tight_layout()
    return fig


def save_figure(fig: Figure, path: str | Path, dpi: int = 150, **kwargs) -> None:
    """Save figure to file."""
    fig.savefig(path, dpi=dpi, bbox_inches="tight", **kwargs)
