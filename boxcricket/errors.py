"""
Typed errors raised by the scoring core and its services.

Every error carries the HTTP status the API layer answers with and a stable
error code clients can switch on.
"""


class ScoringError(Exception):
    status_code = 500
    error_code = "SCORING_ERROR"

    def __init__(self, message: str = "Scoring failed"):
        super().__init__(message)
        self.message = message


class ValidationError(ScoringError):
    """Illegal state transition or malformed scoring input"""
    status_code = 400
    error_code = "VALIDATION_ERROR"


class EmptyLedgerError(ScoringError):
    status_code = 400
    error_code = "EMPTY_LEDGER"

    def __init__(self, message: str = "ledger is empty"):
        super().__init__(message)


class AuthorizationError(ScoringError):
    """Caller may not score this match"""
    status_code = 403
    error_code = "AUTHORIZATION_ERROR"

    def __init__(self, message: str = "You do not have permission to score this match"):
        super().__init__(message)


class NotFoundError(ScoringError):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, message: str = "Match not found"):
        super().__init__(message)


class ConflictError(ScoringError):
    """Another scoring call for the same match won the race"""
    status_code = 409
    error_code = "CONFLICT"

    def __init__(self, message: str = "Match was updated concurrently, please retry"):
        super().__init__(message)


class LedgerInconsistencyError(ScoringError):
    """Innings totals drifted from the ball ledger"""
    status_code = 500
    error_code = "LEDGER_INCONSISTENT"
