"""Data Transfer Objects for the service layer.

Typed request structs are validated once, at construction, so the
inventory core only ever sees clean numeric values. ``from_mapping``
constructors accept the string-valued payloads a form or CLI produces and
coerce them field by field, collecting every problem into one
ValidationError.

Also provides the result containers returned across the core boundary
(ServiceResult, ErrorInfo) and pagination helpers for history queries.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Generic, List, Mapping, Optional, TypeVar

from ..utils.constants import (
    ERROR_INVALID_INTEGER,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_POSITIVE,
    ERROR_REQUIRED_FIELD,
    MAX_CIRCUMFERENCE,
    MAX_LENGTH,
    MAX_LOG_QUANTITY,
    MAX_PRICE_PER_UNIT,
    MAX_TAG_LENGTH,
)
from .exceptions import ErrorCode, ValidationError

T = TypeVar("T")


# =============================================================================
# Field checks
# =============================================================================


def _is_real(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _is_finite(value) -> bool:
    # math.isfinite converts to float: it overflows on huge ints and raises on sNaN
    if isinstance(value, Decimal):
        return value.is_finite()
    if isinstance(value, int):
        return True
    return math.isfinite(value)


def _check_maximum(value: Any, name: str, maximum: Optional[int], errors: List[str]) -> None:
    if maximum is not None and value > maximum:
        errors.append(f"{name}: Must be at most {maximum:,}")


def _check_positive(value: Any, name: str, errors: List[str], maximum: Optional[int] = None) -> None:
    if not _is_real(value) or not _is_finite(value):
        errors.append(f"{name}: {ERROR_INVALID_NUMBER}")
    elif value <= 0:
        errors.append(f"{name}: {ERROR_INVALID_POSITIVE}")
    else:
        _check_maximum(value, name, maximum, errors)


def _check_non_negative(value: Any, name: str, errors: List[str], maximum: Optional[int] = None) -> None:
    if not _is_real(value) or not _is_finite(value):
        errors.append(f"{name}: {ERROR_INVALID_NUMBER}")
    elif value < 0:
        errors.append(f"{name}: {ERROR_INVALID_NON_NEGATIVE}")
    else:
        _check_maximum(value, name, maximum, errors)


def _check_positive_int(value: Any, name: str, errors: List[str], maximum: Optional[int] = None) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        errors.append(f"{name}: {ERROR_INVALID_INTEGER}")
    elif value <= 0:
        errors.append(f"{name}: {ERROR_INVALID_POSITIVE}")
    else:
        _check_maximum(value, name, maximum, errors)


def _check_optional_id(value: Any, name: str, errors: List[str]) -> None:
    if value is not None:
        _check_positive_int(value, name, errors)


def _coerce(raw: Any, name: str, kind: type, errors: List[str], required: bool = True):
    """Convert a form value to ``kind``; record an error and return None on failure."""
    if raw is None or (isinstance(raw, str) and raw.strip() == ""):
        if required:
            errors.append(f"{name}: {ERROR_REQUIRED_FIELD}")
        return None
    if not isinstance(raw, str):
        return raw
    text = raw.strip()
    try:
        if kind is int:
            return int(text)
        if kind is Decimal:
            return Decimal(text)
        return float(text)
    except (ValueError, InvalidOperation):
        message = ERROR_INVALID_INTEGER if kind is int else ERROR_INVALID_NUMBER
        errors.append(f"{name}: {message}")
        return None


# =============================================================================
# Requests
# =============================================================================


@dataclass(frozen=True)
class LogPurchaseRequest:
    """Purchase entry for a batch of logs.

    Attributes:
        circumference: Circumference per log in cm (> 0)
        length: Length per log in cm (> 0)
        quantity: Number of logs in the batch (whole number > 0)
        market_price_per_unit: Price per volume point (>= 0)
        supplier_id: Optional Supplier reference
        wood_type_id: Optional WoodType reference
        tag_id: Optional tag; generated when omitted
        purchase_date: Optional purchase timestamp (defaults to now)

    Raises:
        ValidationError: If any field is missing or malformed
    """

    circumference: float
    length: float
    quantity: int
    market_price_per_unit: Decimal
    supplier_id: Optional[int] = None
    wood_type_id: Optional[int] = None
    tag_id: Optional[str] = None
    purchase_date: Optional[datetime] = None

    def __post_init__(self) -> None:
        errors: List[str] = []
        _check_positive(self.circumference, "circumference", errors, MAX_CIRCUMFERENCE)
        _check_positive(self.length, "length", errors, MAX_LENGTH)
        _check_positive_int(self.quantity, "quantity", errors, MAX_LOG_QUANTITY)
        _check_non_negative(
            self.market_price_per_unit, "market_price_per_unit", errors, MAX_PRICE_PER_UNIT
        )
        _check_optional_id(self.supplier_id, "supplier_id", errors)
        _check_optional_id(self.wood_type_id, "wood_type_id", errors)
        if self.tag_id is not None:
            if not isinstance(self.tag_id, str) or not self.tag_id.strip():
                errors.append(f"tag_id: {ERROR_REQUIRED_FIELD}")
            elif len(self.tag_id) > MAX_TAG_LENGTH:
                errors.append(f"tag_id: Must be at most {MAX_TAG_LENGTH} characters")
        if self.purchase_date is not None and not isinstance(self.purchase_date, datetime):
            errors.append("purchase_date: Must be a datetime")
        if errors:
            raise ValidationError(errors)
        if not isinstance(self.market_price_per_unit, Decimal):
            object.__setattr__(
                self, "market_price_per_unit", Decimal(str(self.market_price_per_unit))
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LogPurchaseRequest":
        """Build a request from string-valued form data."""
        errors: List[str] = []
        values = {
            "circumference": _coerce(data.get("circumference"), "circumference", float, errors),
            "length": _coerce(data.get("length"), "length", float, errors),
            "quantity": _coerce(data.get("quantity"), "quantity", int, errors),
            "market_price_per_unit": _coerce(
                data.get("market_price_per_unit", data.get("market_price")),
                "market_price_per_unit",
                Decimal,
                errors,
            ),
            "supplier_id": _coerce(data.get("supplier_id"), "supplier_id", int, errors, False),
            "wood_type_id": _coerce(data.get("wood_type_id"), "wood_type_id", int, errors, False),
        }
        if errors:
            raise ValidationError(errors)
        tag_id = data.get("tag_id")
        if isinstance(tag_id, str):
            tag_id = tag_id.strip() or None
        return cls(tag_id=tag_id, **values)


@dataclass(frozen=True)
class AllocationRequest:
    """Draw ``qty_used`` logs from the batch ``log_id``."""

    log_id: int
    qty_used: int

    def __post_init__(self) -> None:
        errors: List[str] = []
        _check_positive_int(self.log_id, "log_id", errors)
        _check_positive_int(self.qty_used, "qty_used", errors)
        if errors:
            raise ValidationError(errors)


@dataclass(frozen=True)
class OutputRequest:
    """Produce ``quantity`` pieces of ``product_type_id``."""

    product_type_id: int
    quantity: int

    def __post_init__(self) -> None:
        errors: List[str] = []
        _check_positive_int(self.product_type_id, "product_type_id", errors)
        _check_positive_int(self.quantity, "quantity", errors)
        if errors:
            raise ValidationError(errors)


@dataclass(frozen=True)
class ProductionRunRequest:
    """A production run: which logs are drawn and what comes out.

    At least one allocation is required. An empty output list is allowed
    (everything drawn is written off as waste).
    """

    allocations: List[AllocationRequest]
    outputs: List[OutputRequest] = field(default_factory=list)
    batch_date: Optional[datetime] = None

    def __post_init__(self) -> None:
        errors: List[str] = []
        allocations = list(self.allocations or [])
        outputs = list(self.outputs or [])
        if not allocations:
            errors.append(f"allocations: {ERROR_REQUIRED_FIELD}")
        if any(not isinstance(a, AllocationRequest) for a in allocations):
            errors.append("allocations: Must be AllocationRequest items")
        if any(not isinstance(o, OutputRequest) for o in outputs):
            errors.append("outputs: Must be OutputRequest items")
        if self.batch_date is not None and not isinstance(self.batch_date, (datetime, date)):
            errors.append("batch_date: Must be a date or datetime")
        if errors:
            raise ValidationError(errors)
        object.__setattr__(self, "allocations", allocations)
        object.__setattr__(self, "outputs", outputs)
        if isinstance(self.batch_date, date) and not isinstance(self.batch_date, datetime):
            object.__setattr__(
                self, "batch_date", datetime.combine(self.batch_date, datetime.min.time())
            )

    @property
    def log_ids(self) -> List[int]:
        return sorted({a.log_id for a in self.allocations})

    @property
    def product_type_ids(self) -> List[int]:
        return sorted({o.product_type_id for o in self.outputs})

    def quantities_by_log(self) -> Dict[int, int]:
        """Total units requested per log (repeated log ids are summed)."""
        totals: Dict[int, int] = {}
        for allocation in self.allocations:
            totals[allocation.log_id] = totals.get(allocation.log_id, 0) + allocation.qty_used
        return totals

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProductionRunRequest":
        """Build a request from a payload of plain dicts / strings."""
        errors: List[str] = []
        allocations = []
        for index, item in enumerate(data.get("allocations") or []):
            log_id = _coerce(item.get("log_id"), f"allocations[{index}].log_id", int, errors)
            qty = _coerce(item.get("qty_used"), f"allocations[{index}].qty_used", int, errors)
            if log_id is not None and qty is not None:
                allocations.append((log_id, qty))
        outputs = []
        for index, item in enumerate(data.get("outputs") or []):
            product_id = _coerce(
                item.get("product_type_id"), f"outputs[{index}].product_type_id", int, errors
            )
            qty = _coerce(item.get("quantity"), f"outputs[{index}].quantity", int, errors)
            if product_id is not None and qty is not None:
                outputs.append((product_id, qty))
        if errors:
            raise ValidationError(errors)

        batch_date = data.get("batch_date")
        if isinstance(batch_date, str):
            try:
                batch_date = datetime.fromisoformat(batch_date)
            except ValueError as e:
                raise ValidationError(["batch_date: Must be an ISO date"]) from e

        return cls(
            allocations=[AllocationRequest(log_id, qty) for log_id, qty in allocations],
            outputs=[OutputRequest(product_id, qty) for product_id, qty in outputs],
            batch_date=batch_date,
        )


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class ErrorInfo:
    """Typed error returned to callers instead of a raised exception."""

    code: ErrorCode
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": dict(self.details)}


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Success flag plus either the payload or a typed error."""

    success: bool
    data: Optional[T] = None
    error: Optional[ErrorInfo] = None

    @classmethod
    def ok(cls, data: T) -> "ServiceResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: ErrorInfo) -> "ServiceResult[T]":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.success:
            result["data"] = self.data
        else:
            result["error"] = self.error.to_dict()
        return result


# =============================================================================
# Pagination
# =============================================================================


@dataclass
class PaginationParams:
    """Pagination parameters for list operations.

    Attributes:
        page: Page number (1-indexed, default 1)
        per_page: Items per page (default 50, max 1000)

    Raises:
        ValueError: If page < 1, per_page < 1, or per_page > 1000
    """

    page: int = 1
    per_page: int = 50

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.per_page < 1:
            raise ValueError("per_page must be >= 1")
        if self.per_page > 1000:
            raise ValueError("per_page must be <= 1000")

    def offset(self) -> int:
        """SQL OFFSET for this page: (page - 1) * per_page."""
        return (self.page - 1) * self.per_page


@dataclass
class PaginatedResult(Generic[T]):
    """Generic paginated result container.

    Attributes:
        items: List of items for this page
        total: Total number of items across all pages
        page: Current page number (1-indexed)
        per_page: Items per page
    """

    items: List[T]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        """Total number of pages (minimum 1, even for empty results)."""
        if self.total == 0:
            return 1
        return (self.total + self.per_page - 1) // self.per_page

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1
