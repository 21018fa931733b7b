"""
Product Service - finished-goods catalog and warehouse stock.

Product types carry a fixed standard volume per piece. Their stock count
only grows, through production runs; this module never changes it.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from ..utils.constants import DEFAULT_PRODUCT_CATALOG, MAX_NAME_LENGTH, MAX_VOLUME_POINTS
from .exceptions import DuplicateRecordError, ServiceError, ValidationError
from .logging_utils import get_service_logger, log_operation
from .record_store import RecordStore, StoreTransaction

logger = get_service_logger(__name__)


def _validate_product(name, sku, standard_volume) -> None:
    errors = []
    if not isinstance(name, str) or not name.strip():
        errors.append("name: This field is required")
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(f"name: Must be at most {MAX_NAME_LENGTH} characters")
    if sku is not None and (not isinstance(sku, str) or not sku.strip()):
        errors.append("sku: Must be a non-empty string")
    if (
        not isinstance(standard_volume, (int, float))
        or isinstance(standard_volume, bool)
        or (isinstance(standard_volume, float) and not math.isfinite(standard_volume))
        or standard_volume <= 0
    ):
        errors.append("standard_volume: Must be a positive number")
    elif standard_volume > MAX_VOLUME_POINTS:
        errors.append(f"standard_volume: Must be at most {MAX_VOLUME_POINTS:,}")
    if errors:
        raise ValidationError(errors)


def create_product_type(
    store: RecordStore, name: str, standard_volume: float, sku: Optional[str] = None
) -> Dict[str, Any]:
    """
    Add a product type to the catalog with zero stock.

    Raises:
        ValidationError: If name or standard_volume is invalid
        DuplicateRecordError: If the name is already in the catalog
    """
    _validate_product(name, sku, standard_volume)
    name = name.strip()

    def _create(tx: StoreTransaction) -> Dict[str, Any]:
        if tx.find_product_type_by_name(name) is not None:
            raise DuplicateRecordError("ProductType", name)
        return tx.create_product_type(name, sku, float(standard_volume)).to_dict()

    try:
        result = store.run_in_transaction(_create)
    except ServiceError as e:
        log_operation(
            logger,
            operation="create_product_type",
            outcome=e.code.value.lower(),
            level=logging.WARNING,
            error=str(e),
        )
        raise

    log_operation(
        logger,
        operation="create_product_type",
        outcome="success",
        product_type_id=result["id"],
        product_name=result["name"],
    )
    return result


def seed_product_catalog(
    store: RecordStore, catalog: Optional[List[Dict[str, Any]]] = None
) -> Dict[str, int]:
    """
    Upsert the default product catalog by name.

    Existing products are left alone (their standard volume is fixed), so
    running the seed twice is harmless.

    Returns:
        Dict with "created" and "existing" counts
    """
    catalog = DEFAULT_PRODUCT_CATALOG if catalog is None else catalog
    for item in catalog:
        _validate_product(item.get("name"), item.get("sku"), item.get("standard_volume"))

    def _seed(tx: StoreTransaction) -> Dict[str, int]:
        counts = {"created": 0, "existing": 0}
        for item in catalog:
            if tx.find_product_type_by_name(item["name"]) is not None:
                counts["existing"] += 1
                continue
            tx.create_product_type(item["name"], item.get("sku"), float(item["standard_volume"]))
            counts["created"] += 1
        return counts

    counts = store.run_in_transaction(_seed)
    log_operation(
        logger,
        operation="seed_product_catalog",
        outcome="success",
        created_count=counts["created"],
        existing_count=counts["existing"],
    )
    return counts


def get_product_types(store: RecordStore) -> List[Dict[str, Any]]:
    """All product types ordered by name."""
    return store.run_read_only(lambda tx: [p.to_dict() for p in tx.list_product_types()])


def get_product_inventory(store: RecordStore) -> Dict[str, Any]:
    """
    Warehouse view of finished goods.

    Returns:
        Dict with "products" (each with stock_volume = stock_count x
        standard_volume) and "kpis": total_units, total_volume, product_count
    """

    def _query(tx: StoreTransaction) -> Dict[str, Any]:
        products = tx.list_product_types()
        return {
            "products": [p.to_dict() for p in products],
            "kpis": {
                "total_units": sum(p.stock_count for p in products),
                "total_volume": sum(p.stock_volume for p in products),
                "product_count": len(products),
            },
        }

    return store.run_read_only(_query)
