"""
Message dispatcher: the protocol's state-transition function.

Each dispatched message mutates at most a couple of processes and may
enqueue follow-up messages:

    REQUEST(c)  S → R   R hands over one token of color c it does not want,
                        then (if still active) picks its next request.
    SEND(c)     S → R   R receives the token, then (if still active) picks
                        its next request.
    DONE        S → R   S is marked done.

A process that becomes done tells every other active process with a DONE
message. Messages naming unknown processes are dropped.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field

from tokensim.core.colors import ColorSelector
from tokensim.core.messages import Message, MessageKind
from tokensim.core.oracle import ConvergenceOracle
from tokensim.core.partners import PartnerSelector
from tokensim.core.process import Process
from tokensim.core.state import EngineState

logger = logging.getLogger(__name__)


@dataclass
class Dispatcher:
    """Applies messages to engine state."""

    colors: ColorSelector
    partners: PartnerSelector = field(default_factory=PartnerSelector)
    oracle: ConvergenceOracle = field(default_factory=ConvergenceOracle)

    def dispatch(self, state: EngineState, message: Message) -> bool:
        """
        Apply one message.

        Returns:
            False if the message was dropped for naming an unknown process.
        """
        recipient = state.get(message.recipient)
        sender = state.get(message.sender)
        if recipient is None or sender is None:
            logger.debug("Dropping message #%d: unknown process in %s", message.sequence, message)
            return False

        if message.kind is MessageKind.REQUEST:
            self._handle_request(state, message, recipient, sender)
        elif message.kind is MessageKind.SEND:
            self._handle_send(state, message, recipient)
        else:
            self._handle_done(sender)
        return True

    def _handle_request(
        self,
        state: EngineState,
        message: Message,
        recipient: Process,
        sender: Process,
    ):
        if recipient.done:
            logger.debug("Process %r is done; ignoring request from %r", recipient.id, sender.id)
            return

        token = recipient.take(message.color, keep=recipient.wanted)
        if token is not None:
            state.queue.send(recipient.id, sender.id, token)
            logger.debug("Process %r sends %r to %r", recipient.id, token, sender.id)
            self.check_completion(state, recipient)
        else:
            logger.debug("Process %r has no spare %r for %r", recipient.id, message.color, sender.id)

        if not recipient.done:
            self.advance(state, recipient)

    def _handle_send(self, state: EngineState, message: Message, recipient: Process):
        # Always land the token, done or not: it must not vanish
        recipient.stack.append(message.color)
        state.total_exchanges += 1

        self.check_completion(state, recipient)
        if not recipient.done:
            self.advance(state, recipient)

    def _handle_done(self, sender: Process):
        sender.done = True

    def advance(self, state: EngineState, process: Process):
        """Recompute wanted color and partner, then ask the partner."""
        self.colors.compute_wanted(process)
        self.partners.choose_partner(process, state.processes)
        self.send_request(state, process)

    def send_request(self, state: EngineState, process: Process) -> Message | None:
        if process.partner is None or process.wanted is None:
            return None
        return state.queue.request(process.id, process.partner, process.wanted)

    def check_completion(self, state: EngineState, process: Process) -> bool:
        """Mark ``process`` done once the oracle reports it complete."""
        if process.done:
            return True

        feasible = bool(state.feasible)
        if self.oracle.is_process_complete(process, state.processes, feasible):
            self.mark_done(state, process)
        return process.done

    def mark_done(self, state: EngineState, process: Process):
        """Transition to done and tell every other active process."""
        if process.done:
            return
        process.done = True
        logger.debug("Process %r is done with %d tokens", process.id, process.size)

        for other in state.processes:
            if other.id != process.id and not other.done:
                state.queue.done(process.id, other.id)

    def force_done(self, process: Process):
        """Safety-valve transition: done without announcing it."""
        process.done = True

    def request_pending(self, state: EngineState) -> int:
        """
        Re-issue requests for active processes with none outstanding.

        Keeps the protocol live when the queue runs dry. Returns the number
        of requests sent.
        """
        sent = 0
        for process in state.processes:
            if process.done or state.queue.has_pending_request(process.id):
                continue
            self.colors.compute_wanted(process)
            self.partners.choose_partner(process, state.processes)
            if self.send_request(state, process) is not None:
                sent += 1
        return sent
