"""
Convergence oracle: when is a process, or the whole system, finished?

Two regimes:
- Feasible: the global token counts admit a perfect partition, one color
  per process with equal shares. A process is complete only when its stack
  is monochrome.
- Infeasible: no perfect partition exists, so a process is complete once it
  has nothing left to gain or give and its dominant color clearly
  prevails on its stack.

The potential Φ counts tokens that do not match their holder's dominant
color. It never goes negative and is 0 exactly when every stack is
monochrome. The driver uses it as a progress signal only.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from tokensim.core.errors import ConservationError
from tokensim.core.messages import MessageQueue
from tokensim.core.process import Color, Process


def target_color(process: Process) -> Color | None:
    """
    The color a process is working towards.

    Its wanted color while it still holds that color, otherwise its
    majority color.
    """
    if process.wanted is not None and process.count(process.wanted) > 0:
        return process.wanted
    return process.majority_color()


def color_totals(stacks: Iterable[Sequence[Color]]) -> Counter:
    """Token count per color across the given stacks."""
    totals: Counter = Counter()
    for stack in stacks:
        totals.update(stack)
    return totals


def potential(processes: Iterable) -> int:
    """
    Φ = Σ (stack size − largest per-color count) over all processes.

    Accepts live processes or snapshots: anything with a ``stack``.
    """
    phi = 0
    for process in processes:
        if not process.stack:
            continue
        counts = Counter(process.stack)
        phi += len(process.stack) - max(counts.values())
    return phi


@dataclass
class ConvergenceOracle:
    """
    Feasibility, per-process completion and conservation checks.

    The share thresholds only matter in the infeasible regime.
    """

    two_color_threshold: float = 0.80
    multi_color_threshold: float = 0.60

    def is_perfect_outcome_feasible(self, processes: Sequence[Process]) -> bool:
        """
        Whether every process can end up with ``total / n`` tokens of one color.

        Requires at least as many present colors as processes and a total
        divisible by the process count; then colors are handed out greedily,
        most abundant first, one full share at a time.
        """
        n = len(processes)
        if n == 0:
            return False

        totals = {c: k for c, k in color_totals(p.stack for p in processes).items() if k > 0}
        if len(totals) < n:
            return False

        total = sum(totals.values())
        if total % n != 0:
            return False
        share = total // n

        assigned = 0
        for _, count in sorted(totals.items(), key=lambda item: -item[1]):
            assigned += min(count // share, n - assigned)
            if assigned >= n:
                break

        return assigned >= n

    def can_still_gain(self, process: Process, processes: Sequence[Process]) -> bool:
        """
        Whether another active process holds tokens of this process's
        dominant color that it does not want for itself.
        """
        dominant = target_color(process)
        if dominant is None:
            return False

        for other in processes:
            if other.id == process.id or other.done:
                continue
            if other.count(dominant) > 0 and target_color(other) != dominant:
                return True
        return False

    def can_still_give(self, process: Process, processes: Sequence[Process]) -> bool:
        """
        Whether this process holds a token that another active process is
        collecting and that is not its own dominant color.
        """
        dominant = target_color(process)
        for other in processes:
            if other.id == process.id or other.done:
                continue
            wanted = target_color(other)
            if wanted is not None and wanted != dominant and process.count(wanted) > 0:
                return True
        return False

    def is_process_complete(
        self,
        process: Process,
        processes: Sequence[Process],
        feasible: bool,
    ) -> bool:
        if process.is_empty:
            return True

        if feasible:
            return process.is_monochrome

        if self.can_still_gain(process, processes):
            return False
        if self.can_still_give(process, processes):
            return False

        share = process.dominant_count() / process.size
        if len(set(process.stack)) == 2:
            return share >= self.two_color_threshold
        return share >= self.multi_color_threshold

    def is_system_complete(
        self,
        processes: Sequence[Process],
        queue: MessageQueue,
        feasible: bool,
    ) -> bool:
        """No messages in flight and every process done or complete."""
        if queue:
            return False
        if all(p.done for p in processes):
            return True
        return all(self.is_process_complete(p, processes, feasible) for p in processes)

    @staticmethod
    def potential(processes: Iterable) -> int:
        return potential(processes)

    @staticmethod
    def color_totals(processes: Sequence[Process], queue: MessageQueue | None = None) -> Counter:
        """Tokens per color held on stacks plus those carried by pending SENDs."""
        totals = color_totals(p.stack for p in processes)
        if queue is not None:
            totals.update(queue.in_flight_tokens())
        return totals

    def check_conservation(
        self,
        processes: Sequence[Process],
        queue: MessageQueue,
        expected: Mapping[Color, int],
    ) -> None:
        """
        Raise ConservationError if any color's count drifted.

        Compares stacks plus in-flight tokens against ``expected``.
        """
        found = self.color_totals(processes, queue)
        colors = set(expected) | set(found)
        drift = {c: (expected.get(c, 0), found.get(c, 0)) for c in colors
                 if expected.get(c, 0) != found.get(c, 0)}
        if drift:
            detail = ", ".join(f"{c!r}: expected {e}, found {f}" for c, (e, f) in drift.items())
            raise ConservationError(
                f"Token conservation violated ({detail})",
                expected=dict(expected),
                found=dict(found),
            )
