"""
Partner selection: who a process asks for its next token.

Candidates are scored on how likely an exchange with them pays off:
- holding the color we want is good,
- wanting the same color as us is bad (we would compete, not trade),
- wanting a color we hold but do not need is good (the trade goes both ways).

When no candidate scores above zero the process walks the candidates
round-robin so that it keeps probing instead of stalling.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Sequence

from tokensim.core.process import Process, ProcessId

logger = logging.getLogger(__name__)


@dataclass
class PartnerSelector:
    """Scores and picks communication partners."""

    supply_weight: int = 3       # per candidate token of the color we want
    conflict_penalty: int = 20   # candidate chases the same color
    mutual_weight: int = 2       # per token of ours the candidate wants

    def score(self, process: Process, candidate: Process) -> int:
        if process.wanted is None:
            return 0

        score = self.supply_weight * candidate.count(process.wanted)

        if candidate.wanted == process.wanted:
            score -= self.conflict_penalty

        if candidate.wanted is not None:
            spare = sum(
                1 for token in process.stack
                if token == candidate.wanted and token != process.wanted
            )
            score += self.mutual_weight * spare

        return score

    def choose_partner(self, process: Process, processes: Sequence[Process]) -> ProcessId | None:
        """
        Set ``process.partner`` and return it.

        The highest score wins, the earliest candidate on ties. Falls back to
        round-robin when nobody scores above zero, and clears the partner
        when no other process is active.
        """
        candidates = [p for p in processes if p.id != process.id and not p.done]
        if not candidates:
            process.partner = None
            return None

        best: Process | None = None
        best_score = 0
        for candidate in candidates:
            score = self.score(process, candidate)
            if best is None or score > best_score:
                best, best_score = candidate, score

        if best_score > 0:
            process.partner = best.id
        else:
            ids = [c.id for c in candidates]
            current = ids.index(process.partner) if process.partner in ids else -1
            process.partner = ids[(current + 1) % len(ids)]

        logger.debug("Process %r chose partner %r (score %d)", process.id, process.partner, best_score)
        return process.partner
