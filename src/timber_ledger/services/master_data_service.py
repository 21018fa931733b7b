"""
Master data service for suppliers and wood types.
"""

import logging
from typing import Any, Dict, List

from ..utils.constants import MAX_CODE_LENGTH, MAX_NAME_LENGTH
from .exceptions import DuplicateRecordError, ServiceError, ValidationError
from .logging_utils import get_service_logger, log_operation
from .record_store import RecordStore

logger = get_service_logger(__name__)


def _require_text(value, field_name: str, max_length: int, errors: List[str]) -> None:
    if not isinstance(value, str) or not value.strip():
        errors.append(f"{field_name}: This field is required")
    elif len(value.strip()) > max_length:
        errors.append(f"{field_name}: Must be at most {max_length} characters")


def _run_logged(store: RecordStore, operation: str, fn) -> Dict[str, Any]:
    try:
        result = store.run_in_transaction(fn)
    except ServiceError as e:
        log_operation(
            logger,
            operation=operation,
            outcome=e.code.value.lower(),
            level=logging.WARNING,
            error=str(e),
        )
        raise
    log_operation(logger, operation=operation, outcome="success", record_id=result["id"])
    return result


def create_supplier(store: RecordStore, code: str, name: str) -> Dict[str, Any]:
    """
    Create a supplier.

    Raises:
        ValidationError: If code or name is missing
        DuplicateRecordError: If the code is taken
    """
    errors: List[str] = []
    _require_text(code, "code", MAX_CODE_LENGTH, errors)
    _require_text(name, "name", MAX_NAME_LENGTH, errors)
    if errors:
        raise ValidationError(errors)
    code, name = code.strip(), name.strip()

    def _create(tx):
        if tx.find_supplier(code=code) is not None:
            raise DuplicateRecordError("Supplier", code)
        return tx.create_supplier(code, name).to_dict()

    return _run_logged(store, "create_supplier", _create)


def create_wood_type(store: RecordStore, name: str) -> Dict[str, Any]:
    """
    Create a wood type.

    Raises:
        ValidationError: If name is missing
        DuplicateRecordError: If the name is taken
    """
    errors: List[str] = []
    _require_text(name, "name", MAX_NAME_LENGTH, errors)
    if errors:
        raise ValidationError(errors)
    name = name.strip()

    def _create(tx):
        if tx.find_wood_type(name=name) is not None:
            raise DuplicateRecordError("WoodType", name)
        return tx.create_wood_type(name).to_dict()

    return _run_logged(store, "create_wood_type", _create)


def get_master_data(store: RecordStore) -> Dict[str, List[Dict[str, Any]]]:
    """Suppliers and wood types for purchase entry forms."""
    return store.run_read_only(
        lambda tx: {
            "suppliers": [s.to_dict() for s in tx.list_suppliers()],
            "wood_types": [w.to_dict() for w in tx.list_wood_types()],
        }
    )
