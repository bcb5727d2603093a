"""
Domain-specific exceptions for the ledger services.

These exceptions represent business rule violations and are converted to
HTTP responses by the handler registered in main.py. Each class carries the
status code it maps to.
"""


class LedgerServiceError(Exception):
    """Base exception for all ledger service errors."""
    status_code = 400


class TripNotFoundError(LedgerServiceError):
    """Raised when a trip does not exist or has been deleted."""
    status_code = 404


class ExpenseNotFoundError(LedgerServiceError):
    """Raised when an expense does not exist or has been deleted."""
    status_code = 404


class SettlementNotFoundError(LedgerServiceError):
    status_code = 404


class PaymentNotFoundError(LedgerServiceError):
    status_code = 404


class UserNotFoundError(LedgerServiceError):
    status_code = 404


class TimelineItemNotFoundError(LedgerServiceError):
    status_code = 404


class NotMemberError(LedgerServiceError):
    """Raised when a user tries to perform an action requiring membership."""
    status_code = 403


class InsufficientPermissionsError(LedgerServiceError):
    """Raised when a user lacks required permissions for an action."""
    status_code = 403


class SpendingClosedError(LedgerServiceError):
    """Raised when expenses are modified while the trip's spend window is closed."""
    status_code = 409


class ExpenseLockedError(LedgerServiceError):
    """Raised when a closed expense or its assignments are edited."""
    status_code = 409


class AssignmentMismatchError(LedgerServiceError):
    """Raised when finalizing an expense whose assignments don't cover its amount."""
    pass


class InvalidStatusTransitionError(LedgerServiceError):
    pass


class PaymentExceedsSettlementError(LedgerServiceError):
    pass


class AlreadyMemberError(LedgerServiceError):
    """Raised when inviting a user who is already on the trip."""
    pass


class FxRateUnavailableError(LedgerServiceError):
    """Raised when no exchange rate can be found or fetched."""
    status_code = 502


class InvalidAssignmentError(LedgerServiceError):
    """Raised when assignment input cannot be turned into shares."""
    pass
