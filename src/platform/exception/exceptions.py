class CustomBaseError(Exception):
    """Base class for all custom exceptions - controls logging behavior in @Logger.io"""

    def __init__(self, message: str, status_code: int) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ValidationError(CustomBaseError):
    """Malformed input (bad quantity, price, signature). Never retried."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message, status_code)


class UnauthorizedActorError(ValidationError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 403)


class NotFoundError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 404)


class InventoryError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 409)


class ConflictError(CustomBaseError):
    """A concurrent transition won the race. Surfaced, not retried automatically."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 409)


class UniqueViolationError(ConflictError):
    pass


class LedgerError(CustomBaseError):
    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(message, status_code)


class LedgerTransientError(LedgerError):
    """Timeout / node unavailable / tx not yet final. Retried with backoff."""

    pass


class LedgerFinalError(LedgerError):
    """Chain-confirmed failure or rejection. Terminal."""

    pass
