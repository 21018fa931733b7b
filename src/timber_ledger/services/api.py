"""Structured-result boundary for the inventory core.

The service modules raise typed ServiceErrors. Callers that prefer plain
values (forms, the CLI, anything serialising to JSON) go through this
module instead: each function returns a ServiceResult and no ServiceError
escapes. Technical details of store failures are logged here and replaced
by a generic message.

Example:
    result = api.record_production_run(store, {
        "allocations": [{"log_id": 3, "qty_used": 25}],
        "outputs": [{"product_type_id": 1, "quantity": 1}],
    })
    if not result.success:
        print(result.error.code, result.error.message)
"""

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Union

from . import audit_service, log_service, production_service
from .dto import ErrorInfo, LogPurchaseRequest, ProductionRunRequest, ServiceResult
from .exceptions import ErrorCode, ServiceError, TransactionFailure

logger = logging.getLogger(__name__)

TRANSACTION_FAILURE_MESSAGE = "The operation could not be saved. Please try again."


def to_error_info(exception: ServiceError, operation: str = "Operation") -> ErrorInfo:
    """Map a service exception to the ErrorInfo shown to callers.

    Validation, not-found, over-draft and physics errors keep their message
    and details. Transaction failures are logged with the original error and
    reported with a generic message.
    """
    if isinstance(exception, TransactionFailure):
        original = exception.original_error
        logger.error(
            f"{operation} failed: {exception}"
            + (f" (caused by {type(original).__name__}: {original})" if original else "")
        )
        return ErrorInfo(ErrorCode.TRANSACTION_FAILURE, TRANSACTION_FAILURE_MESSAGE)

    logger.warning(f"{operation} rejected: {exception}")
    return ErrorInfo(exception.code, str(exception), exception.details)


def _call(operation: str, fn: Callable[[], Any]) -> ServiceResult:
    try:
        return ServiceResult.ok(fn())
    except ServiceError as e:
        return ServiceResult.fail(to_error_info(e, operation))


def create_log_record(
    store, request: Union[LogPurchaseRequest, Mapping[str, Any]]
) -> ServiceResult[Dict[str, Any]]:
    """Record a log purchase from a request or raw form data."""

    def _run():
        req = (
            request
            if isinstance(request, LogPurchaseRequest)
            else LogPurchaseRequest.from_mapping(request)
        )
        return log_service.create_log_record(store, req)

    return _call("create_log_record", _run)


def record_production_run(
    store, request: Union[ProductionRunRequest, Mapping[str, Any]]
) -> ServiceResult[Dict[str, Any]]:
    """Record a production run from a request or raw payload."""

    def _run():
        req = (
            request
            if isinstance(request, ProductionRunRequest)
            else ProductionRunRequest.from_mapping(request)
        )
        return production_service.record_production_run(store, req)

    return _call("record_production_run", _run)


def reconcile(store, tolerance: Optional[Any] = None) -> ServiceResult[Dict[str, Any]]:
    """Run the ledger reconciliation; data is the report as a dict."""
    return _call("reconcile", lambda: audit_service.reconcile(store, tolerance).to_dict())


def auto_allocate(store, total_volume_needed: float) -> ServiceResult[Dict[str, Any]]:
    """Suggest an oldest-first allocation for a target volume."""
    return _call(
        "auto_allocate", lambda: production_service.auto_allocate(store, total_volume_needed)
    )
