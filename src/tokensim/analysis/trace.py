"""
Traces derived from a run history.

IMPORTANT: This is NOT seen by the engine. One-way derivation only.

A history is the list of SystemState snapshots a Simulation records: one at
reset and one after every dispatched message. The functions here turn it into
numpy arrays indexed by step, ready for plotting or comparison.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from tokensim.core.oracle import potential
from tokensim.core.state import SystemState


def state_palette(state: SystemState) -> tuple:
    """Colors present in a snapshot, in order of first appearance."""
    seen: dict = {}
    for process in state.processes:
        for color in process.stack:
            seen.setdefault(color, None)
    for message in state.pending_messages:
        if message.carries_token:
            seen.setdefault(message.color, None)
    return tuple(seen)


def color_count_matrix(state: SystemState, palette: Sequence | None = None) -> np.ndarray:
    """
    Tokens per (process, color).

    Args:
        state: Snapshot to read
        palette: Column order; defaults to the snapshot's colors in order of
            first appearance

    Returns:
        Integer array of shape (n_processes, n_colors). Colors outside the
        palette are not counted.
    """
    palette = tuple(palette) if palette is not None else state_palette(state)
    column = {color: j for j, color in enumerate(palette)}

    counts = np.zeros((len(state.processes), len(palette)), dtype=np.int64)
    for i, process in enumerate(state.processes):
        for token in process.stack:
            j = column.get(token)
            if j is not None:
                counts[i, j] += 1
    return counts


def potential_trace(history: Sequence[SystemState]) -> np.ndarray:
    """Φ at every recorded step."""
    return np.array([potential(state.processes) for state in history], dtype=np.int64)


def exchange_trace(history: Sequence[SystemState]) -> np.ndarray:
    """Cumulative delivered tokens at every recorded step."""
    return np.array([state.total_exchanges for state in history], dtype=np.int64)


def pending_trace(history: Sequence[SystemState]) -> np.ndarray:
    """Queue length at every recorded step."""
    return np.array([len(state.pending_messages) for state in history], dtype=np.int64)


def conservation_trace(history: Sequence[SystemState], palette: Sequence | None = None) -> np.ndarray:
    """
    Tokens per color at every step, counting stacks and in-flight SENDs.

    Returns:
        Array of shape (n_steps, n_colors). For a healthy run every column
        is constant.
    """
    if not history:
        return np.zeros((0, 0), dtype=np.int64)

    palette = tuple(palette) if palette is not None else state_palette(history[0])
    column = {color: j for j, color in enumerate(palette)}

    totals = np.zeros((len(history), len(palette)), dtype=np.int64)
    for step, state in enumerate(history):
        totals[step] = color_count_matrix(state, palette).sum(axis=0)
        for message in state.pending_messages:
            if message.carries_token and message.color in column:
                totals[step, column[message.color]] += 1
    return totals


@dataclass
class TraceSummary:
    """Headline numbers of a run history."""

    steps: int
    initial_potential: int
    final_potential: int
    min_potential: int
    total_exchanges: int
    max_pending: int
    conserved: bool
    first_complete_step: int | None  # Index of the first snapshot marked complete

    @property
    def potential_drop(self) -> int:
        return self.initial_potential - self.final_potential


def summarize_history(history: Sequence[SystemState], palette: Sequence | None = None) -> TraceSummary:
    """
    Condense a run history into a TraceSummary.

    Raises:
        ValueError: if the history is empty.
    """
    if not history:
        raise ValueError("History must contain at least one snapshot")

    phi = potential_trace(history)
    pending = pending_trace(history)
    totals = conservation_trace(history, palette)
    conserved = bool(np.all(totals == totals[0])) if totals.size else True

    first_complete = next((i for i, state in enumerate(history) if state.complete), None)

    return TraceSummary(
        steps=len(history),
        initial_potential=int(phi[0]),
        final_potential=int(phi[-1]),
        min_potential=int(phi.min()),
        total_exchanges=int(history[-1].total_exchanges),
        max_pending=int(pending.max()),
        conserved=conserved,
        first_complete_step=first_complete,
    )
