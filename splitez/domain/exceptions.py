"""Domain-specific exceptions"""

from typing import List, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Split input is malformed or inconsistent; nothing was persisted"""

    def __init__(self, reason: str, expected: Optional[float] = None, actual: Optional[float] = None):
        self.reason = reason
        self.expected = expected
        self.actual = actual
        if expected is not None and actual is not None:
            super().__init__(f"{reason}: expected {expected:.2f}, got {actual:.2f}")
        else:
            super().__init__(reason)


class NotFoundError(DomainException):
    """Referenced expense, group, settlement or account does not exist"""

    pass


class ForbiddenError(DomainException):
    """Caller is not allowed to perform this operation"""

    pass


class PersistenceError(DomainException):
    """Transient store failure; mutating operations are safe to retry"""

    pass


class PartialFailureError(DomainException):
    """Multi-step operation finished some sub-writes but not all"""

    def __init__(self, message: str, expense_id: str, failed_step: str, completed: List[str] | None = None):
        super().__init__(message)
        self.expense_id = expense_id
        self.failed_step = failed_step
        self.completed = completed or []


class ConflictError(DomainException):
    """Write would break a uniqueness rule owned by another record"""

    pass
