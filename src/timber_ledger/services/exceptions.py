"""Service layer exception classes for Timber Ledger.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application. Every exception carries an
``ErrorCode`` so the boundary in ``services.api`` can turn it into a
structured result.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   └── DuplicateRecordError
    ├── NotFoundError
    │   ├── LogNotFound
    │   ├── ProductTypeNotFound
    │   ├── ProductionBatchNotFound
    │   └── MasterDataNotFound
    ├── OverDraftError
    ├── PhysicsViolationError
    └── TransactionFailure
        └── ImmutabilityViolationError
"""

from enum import Enum
from typing import Iterable, List


class ErrorCode(str, Enum):
    """Error taxonomy exposed to callers of the core."""

    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    OVER_DRAFT = "OVER_DRAFT"
    PHYSICS_VIOLATION = "PHYSICS_VIOLATION"
    TRANSACTION_FAILURE = "TRANSACTION_FAILURE"


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class and set
    ``code``.
    """

    code = ErrorCode.TRANSACTION_FAILURE

    @property
    def details(self) -> dict:
        """Machine-readable context for the error (empty by default)."""
        return {}


class ValidationError(ServiceError):
    """Raised when input validation fails.

    Args:
        errors: List of human-readable validation messages

    Example:
        >>> raise ValidationError(["circumference: Must be a positive number"])
        ValidationError: Validation failed: circumference: Must be a positive number
    """

    code = ErrorCode.VALIDATION

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Validation failed: {'; '.join(self.errors)}")

    @property
    def details(self) -> dict:
        return {"errors": self.errors}


class DuplicateRecordError(ValidationError):
    """Raised when a unique key (tag id, product name, supplier code) is taken."""

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__([f"{entity} '{key}' already exists"])

    @property
    def details(self) -> dict:
        return {"entity": self.entity, "key": self.key, "errors": self.errors}


class NotFoundError(ServiceError):
    """Base class for missing referenced records."""

    code = ErrorCode.NOT_FOUND


class LogNotFound(NotFoundError):
    """Raised when one or more logs cannot be found by ID.

    Example:
        >>> raise LogNotFound([7, 9])
        LogNotFound: Logs not found: 7, 9
    """

    def __init__(self, log_ids: Iterable[int]):
        self.log_ids = sorted(log_ids)
        ids = ", ".join(str(i) for i in self.log_ids)
        super().__init__(f"Logs not found: {ids}")

    @property
    def details(self) -> dict:
        return {"log_ids": self.log_ids}


class ProductTypeNotFound(NotFoundError):
    """Raised when one or more product types cannot be found by ID."""

    def __init__(self, product_type_ids: Iterable[int]):
        self.product_type_ids = sorted(product_type_ids)
        ids = ", ".join(str(i) for i in self.product_type_ids)
        super().__init__(f"Product types not found: {ids}")

    @property
    def details(self) -> dict:
        return {"product_type_ids": self.product_type_ids}


class ProductionBatchNotFound(NotFoundError):
    """Raised when a production batch cannot be found by ID."""

    def __init__(self, batch_id: int):
        self.batch_id = batch_id
        super().__init__(f"Production batch with ID {batch_id} not found")

    @property
    def details(self) -> dict:
        return {"batch_id": self.batch_id}


class MasterDataNotFound(NotFoundError):
    """Raised when a referenced supplier or wood type does not exist."""

    def __init__(self, entity: str, key):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} '{key}' not found")

    @property
    def details(self) -> dict:
        return {"entity": self.entity, "key": self.key}


class OverDraftError(ServiceError):
    """Raised when an allocation asks for more units than a log has left.

    Example:
        >>> raise OverDraftError(3, "LOG-1700000000000", requested=30, remaining=25)
        OverDraftError: Log LOG-1700000000000 over-drafted: requested 30, remaining 25 (short 5)
    """

    code = ErrorCode.OVER_DRAFT

    def __init__(self, log_id: int, tag_id: str, requested: int, remaining: int):
        self.log_id = log_id
        self.tag_id = tag_id
        self.requested = requested
        self.remaining = remaining
        self.shortfall = requested - remaining
        super().__init__(
            f"Log {tag_id} over-drafted: requested {requested}, "
            f"remaining {remaining} (short {self.shortfall})"
        )

    @property
    def details(self) -> dict:
        return {
            "log_id": self.log_id,
            "tag_id": self.tag_id,
            "requested": self.requested,
            "remaining": self.remaining,
            "shortfall": self.shortfall,
        }


class PhysicsViolationError(ServiceError):
    """Raised when declared output volume exceeds allocated input volume."""

    code = ErrorCode.PHYSICS_VIOLATION

    def __init__(self, total_input: float, total_output: float):
        self.total_input = total_input
        self.total_output = total_output
        self.excess = total_output - total_input
        super().__init__(
            f"Physics violation: output ({total_output} pts) exceeds "
            f"input ({total_input} pts) by {self.excess} pts"
        )

    @property
    def details(self) -> dict:
        return {
            "total_input": self.total_input,
            "total_output": self.total_output,
            "excess": self.excess,
        }


class TransactionFailure(ServiceError):
    """Raised when the record store fails to commit a unit of work.

    The original error is kept for logging but never shown to callers.
    """

    code = ErrorCode.TRANSACTION_FAILURE

    def __init__(self, message: str = "Transaction failed", original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message)


class ImmutabilityViolationError(TransactionFailure):
    """Raised by ORM guards when code tries to rewrite audit or frozen data."""

    def __init__(self, entity: str, reason: str):
        self.entity = entity
        self.reason = reason
        super().__init__(f"{entity} is immutable: {reason}")
