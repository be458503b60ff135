"""Exceptions raised by the simulation engine."""


class SimulationError(RuntimeError):
    """Base class for engine errors."""

    pass


class AlreadyRunningError(SimulationError):
    """Raised when ``start()`` is called while a run is in progress."""

    pass


class ConservationError(AssertionError):
    """
    Token accounting drifted away from the initial distribution.

    This is an internal invariant failure, never a user-facing outcome.
    ``expected`` and ``found`` map each color to its token count.
    """

    def __init__(self, message: str, expected: dict | None = None, found: dict | None = None):
        super().__init__(message)
        self.expected = dict(expected or {})
        self.found = dict(found or {})
