"""Domain errors shared by the lifecycle services.

Everything except Unavailable is terminal for the call: retrying cannot
change the outcome. Unavailable wraps transient store failures and timeouts.
"""


class CoreServiceError(Exception):
    """Base exception for core service errors."""

    retryable = False


class InvalidTransition(CoreServiceError):
    """Operation not allowed from the record's current state."""

    def __init__(self, current_state: str, attempted_op: str):
        self.current_state = current_state
        self.attempted_op = attempted_op
        super().__init__(f"Cannot {attempted_op} from status '{current_state}'")


class AlreadyResolved(CoreServiceError):
    """Lost the exclusive accept race: another donor already holds the request."""

    pass


class SlotConflict(CoreServiceError):
    """Donor already has a non-cancelled appointment inside the buffer window."""

    pass


class InsufficientUnits(CoreServiceError):
    """A decrement would take a stock counter below zero."""

    pass


class NotFound(CoreServiceError):
    """Record does not exist (or is not visible to the caller)."""

    pass


class ValidationFailed(CoreServiceError):
    """Malformed input: missing field, out-of-range date, unsupported group."""

    pass


class Unavailable(CoreServiceError):
    """Transient store failure or timeout. Safe to retry."""

    retryable = True
