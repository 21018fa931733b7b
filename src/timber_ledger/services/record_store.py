"""
Transactional record store used by the inventory core.

The core never opens sessions on its own. Every service function takes a
``RecordStore`` and runs its work through ``run_in_transaction(fn)``, which
hands ``fn`` a ``StoreTransaction`` exposing the reads and writes the core
needs. Everything ``fn`` does commits together or not at all.

``SqlAlchemyRecordStore`` is the implementation:

- one Session per unit of work, committed on success, rolled back on any
  exception;
- logs and product types touched by a production run are read with
  ``SELECT ... FOR UPDATE`` in id order (a no-op on SQLite);
- Log and ProductType rows carry a version counter, so a concurrent writer
  surfaces as ``StaleDataError``. Conflicts (``StaleDataError``, ``OperationalError``)
  re-run the whole unit of work, which re-validates against fresh state,
  up to ``max_retries`` times;
- any other store failure becomes ``TransactionFailure``.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ..models import (
    InventoryLedgerEntry,
    LedgerAction,
    Log,
    LogStatus,
    ProductionBatch,
    ProductionOutput,
    ProductType,
    Supplier,
    WasteRecord,
    WoodType,
)
from ..utils.constants import DEFAULT_TRANSACTION_RETRIES, DEFAULT_WASTE_REASON
from ..utils.datetime_utils import utc_now
from .exceptions import ServiceError, TransactionFailure
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

R = TypeVar("R")

RETRYABLE_ERRORS = (StaleDataError, OperationalError)


class StoreTransaction(ABC):
    """Operations available inside one unit of work."""

    # --- Logs -------------------------------------------------------------

    @abstractmethod
    def find_logs_by_ids(self, log_ids: Iterable[int], for_update: bool = False) -> List[Log]:
        """Return the logs that exist among ``log_ids`` (ordered by id)."""

    @abstractmethod
    def create_log(self, **fields) -> Log:
        """Insert a new log and return it with its id assigned."""

    @abstractmethod
    def update_log(
        self,
        log_id: int,
        remaining_quantity: int,
        status: LogStatus,
        production_batch_id: Optional[int] = None,
    ) -> Log:
        """Apply a draw-down to a log."""

    @abstractmethod
    def tag_exists(self, tag_id: str) -> bool:
        """True when a log already uses ``tag_id``."""

    @abstractmethod
    def list_logs(
        self,
        in_stock_only: bool = False,
        search: Optional[str] = None,
        oldest_first: bool = False,
    ) -> List[Log]:
        """List logs, optionally only those with units left or matching a tag search."""

    # --- Ledger -----------------------------------------------------------

    @abstractmethod
    def append_ledger_entry(
        self,
        log_id: int,
        action: LedgerAction,
        amount_change: Decimal,
        production_batch_id: Optional[int] = None,
        entry_date: Optional[datetime] = None,
    ) -> InventoryLedgerEntry:
        """Append an entry to the cost ledger."""

    @abstractmethod
    def list_ledger_entries(self, log_id: Optional[int] = None) -> List[InventoryLedgerEntry]:
        """Ledger entries in insertion order, optionally for one log."""

    @abstractmethod
    def ledger_totals_by_log(self) -> Dict[int, Decimal]:
        """Sum of amount_change per log id."""

    # --- Products ---------------------------------------------------------

    @abstractmethod
    def find_product_types_by_ids(
        self, product_type_ids: Iterable[int], for_update: bool = False
    ) -> List[ProductType]:
        """Return the product types that exist among the ids (ordered by id)."""

    @abstractmethod
    def find_product_type_by_name(self, name: str) -> Optional[ProductType]:
        """Product type with this exact name, if any."""

    @abstractmethod
    def create_product_type(self, name: str, sku: Optional[str], standard_volume: float) -> ProductType:
        """Insert a product type with zero stock."""

    @abstractmethod
    def list_product_types(self) -> List[ProductType]:
        """All product types ordered by name."""

    @abstractmethod
    def increment_product_stock(self, product_type_id: int, delta: int) -> ProductType:
        """Add ``delta`` pieces to a product's stock count."""

    # --- Production -------------------------------------------------------

    @abstractmethod
    def create_batch(self, batch_date: datetime, target_volume: float) -> int:
        """Insert a production batch and return its id."""

    @abstractmethod
    def create_production_output(
        self, batch_id: int, product_type_id: int, quantity: int, volume_produced: float
    ) -> ProductionOutput:
        """Insert one output line of a batch."""

    @abstractmethod
    def create_waste_record(self, batch_id: int, volume_loss: float, reason: str) -> WasteRecord:
        """Insert the waste record of a batch."""

    @abstractmethod
    def get_batch(self, batch_id: int) -> Optional[ProductionBatch]:
        """Batch with outputs, waste records, ledger entries and consumed logs loaded."""

    @abstractmethod
    def list_batches(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[ProductionBatch], int]:
        """Batches newest first, plus the total matching count."""

    # --- Master data ------------------------------------------------------

    @abstractmethod
    def create_supplier(self, code: str, name: str) -> Supplier:
        """Insert a supplier."""

    @abstractmethod
    def find_supplier(self, supplier_id: Optional[int] = None, code: Optional[str] = None) -> Optional[Supplier]:
        """Supplier by id or code."""

    @abstractmethod
    def list_suppliers(self) -> List[Supplier]:
        """All suppliers ordered by code."""

    @abstractmethod
    def create_wood_type(self, name: str) -> WoodType:
        """Insert a wood type."""

    @abstractmethod
    def find_wood_type(self, wood_type_id: Optional[int] = None, name: Optional[str] = None) -> Optional[WoodType]:
        """Wood type by id or name."""

    @abstractmethod
    def list_wood_types(self) -> List[WoodType]:
        """All wood types ordered by name."""


class RecordStore(ABC):
    """A source of atomic units of work."""

    @abstractmethod
    def run_in_transaction(self, fn: Callable[[StoreTransaction], R]) -> R:
        """Run ``fn`` in one all-or-nothing transaction and return its result."""

    @abstractmethod
    def run_read_only(self, fn: Callable[[StoreTransaction], R]) -> R:
        """Run ``fn`` and discard anything it wrote."""


# =============================================================================
# SQLAlchemy implementation
# =============================================================================


class SqlAlchemyTransaction(StoreTransaction):
    """StoreTransaction bound to one SQLAlchemy Session."""

    def __init__(self, session: Session):
        self.session = session

    def find_logs_by_ids(self, log_ids, for_update=False):
        ids = sorted(set(log_ids))
        if not ids:
            return []
        query = self.session.query(Log).filter(Log.id.in_(ids)).order_by(Log.id)
        if for_update:
            query = query.with_for_update()
        return query.all()

    def create_log(self, **fields):
        log = Log(**fields)
        self.session.add(log)
        self.session.flush()
        return log

    def update_log(self, log_id, remaining_quantity, status, production_batch_id=None):
        log = self.session.get(Log, log_id)
        log.remaining_quantity = remaining_quantity
        log.status = LogStatus(status).value
        if production_batch_id is not None:
            log.production_batch_id = production_batch_id
        self.session.flush()
        return log

    def tag_exists(self, tag_id):
        return self.session.query(Log.id).filter(Log.tag_id == tag_id).first() is not None

    def list_logs(self, in_stock_only=False, search=None, oldest_first=False):
        query = self.session.query(Log).options(
            joinedload(Log.supplier), joinedload(Log.wood_type)
        )
        if in_stock_only:
            query = query.filter(Log.remaining_quantity > 0)
        if search:
            query = query.filter(Log.tag_id.contains(search))
        if oldest_first:
            query = query.order_by(Log.purchase_date.asc(), Log.id.asc())
        else:
            query = query.order_by(Log.purchase_date.desc(), Log.id.desc())
        return query.all()

    def append_ledger_entry(
        self, log_id, action, amount_change, production_batch_id=None, entry_date=None
    ):
        entry = InventoryLedgerEntry(
            log_id=log_id,
            action=LedgerAction(action).value,
            amount_change=amount_change,
            production_batch_id=production_batch_id,
            entry_date=entry_date or utc_now(),
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def list_ledger_entries(self, log_id=None):
        query = self.session.query(InventoryLedgerEntry)
        if log_id is not None:
            query = query.filter(InventoryLedgerEntry.log_id == log_id)
        return query.order_by(InventoryLedgerEntry.id).all()

    def ledger_totals_by_log(self):
        rows = (
            self.session.query(
                InventoryLedgerEntry.log_id, func.sum(InventoryLedgerEntry.amount_change)
            )
            .group_by(InventoryLedgerEntry.log_id)
            .all()
        )
        return {log_id: Decimal(str(total or 0)) for log_id, total in rows}

    def find_product_types_by_ids(self, product_type_ids, for_update=False):
        ids = sorted(set(product_type_ids))
        if not ids:
            return []
        query = (
            self.session.query(ProductType)
            .filter(ProductType.id.in_(ids))
            .order_by(ProductType.id)
        )
        if for_update:
            query = query.with_for_update()
        return query.all()

    def find_product_type_by_name(self, name):
        return self.session.query(ProductType).filter(ProductType.name == name).first()

    def create_product_type(self, name, sku, standard_volume):
        product = ProductType(name=name, sku=sku, standard_volume=standard_volume, stock_count=0)
        self.session.add(product)
        self.session.flush()
        return product

    def list_product_types(self):
        return self.session.query(ProductType).order_by(ProductType.name.asc()).all()

    def increment_product_stock(self, product_type_id, delta):
        product = self.session.get(ProductType, product_type_id)
        # Flushes as UPDATE ... WHERE version = <version read>; a concurrent
        # increment committed since then makes this raise StaleDataError
        product.stock_count = product.stock_count + delta
        self.session.flush()
        return product

    def create_batch(self, batch_date, target_volume):
        batch = ProductionBatch(batch_date=batch_date, target_volume=target_volume)
        self.session.add(batch)
        self.session.flush()
        return batch.id

    def create_production_output(self, batch_id, product_type_id, quantity, volume_produced):
        output = ProductionOutput(
            batch_id=batch_id,
            product_type_id=product_type_id,
            quantity=quantity,
            volume_produced=volume_produced,
        )
        self.session.add(output)
        self.session.flush()
        return output

    def create_waste_record(self, batch_id, volume_loss, reason=DEFAULT_WASTE_REASON):
        record = WasteRecord(batch_id=batch_id, volume_loss=volume_loss, reason=reason)
        self.session.add(record)
        self.session.flush()
        return record

    def get_batch(self, batch_id):
        return (
            self.session.query(ProductionBatch)
            .options(
                joinedload(ProductionBatch.outputs).joinedload(ProductionOutput.product_type),
                joinedload(ProductionBatch.waste_records),
                joinedload(ProductionBatch.ledger_entries).joinedload(InventoryLedgerEntry.log),
                joinedload(ProductionBatch.consumed_logs),
            )
            .filter(ProductionBatch.id == batch_id)
            .first()
        )

    def list_batches(self, start_date=None, end_date=None, offset=0, limit=None):
        query = self.session.query(ProductionBatch)
        if start_date:
            query = query.filter(ProductionBatch.batch_date >= start_date)
        if end_date:
            query = query.filter(ProductionBatch.batch_date <= end_date)
        total = query.count()

        query = query.options(
            joinedload(ProductionBatch.outputs).joinedload(ProductionOutput.product_type),
            joinedload(ProductionBatch.waste_records),
        ).order_by(ProductionBatch.batch_date.desc(), ProductionBatch.id.desc())
        query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all(), total

    def create_supplier(self, code, name):
        supplier = Supplier(code=code, name=name)
        self.session.add(supplier)
        self.session.flush()
        return supplier

    def find_supplier(self, supplier_id=None, code=None):
        query = self.session.query(Supplier)
        if supplier_id is not None:
            return query.filter(Supplier.id == supplier_id).first()
        return query.filter(Supplier.code == code).first()

    def list_suppliers(self):
        return self.session.query(Supplier).order_by(Supplier.code.asc()).all()

    def create_wood_type(self, name):
        wood_type = WoodType(name=name)
        self.session.add(wood_type)
        self.session.flush()
        return wood_type

    def find_wood_type(self, wood_type_id=None, name=None):
        query = self.session.query(WoodType)
        if wood_type_id is not None:
            return query.filter(WoodType.id == wood_type_id).first()
        return query.filter(WoodType.name == name).first()

    def list_wood_types(self):
        return self.session.query(WoodType).order_by(WoodType.name.asc()).all()


class SqlAlchemyRecordStore(RecordStore):
    """
    RecordStore backed by a SQLAlchemy session factory.

    Args:
        session_factory: sessionmaker producing Sessions for the target database
        max_retries: Extra attempts for a unit of work that hit a conflict

    Example:
        store = SqlAlchemyRecordStore.from_engine(engine)
        batch_id = store.run_in_transaction(lambda tx: tx.create_batch(now, 12.5))
    """

    def __init__(self, session_factory: sessionmaker, max_retries: int = DEFAULT_TRANSACTION_RETRIES):
        self._session_factory = session_factory
        self.max_retries = max_retries

    @classmethod
    def from_engine(cls, engine: Engine, **kwargs) -> "SqlAlchemyRecordStore":
        return cls(sessionmaker(bind=engine, expire_on_commit=False), **kwargs)

    def _transaction(self, session: Session) -> StoreTransaction:
        return SqlAlchemyTransaction(session)

    def run_in_transaction(self, fn):
        attempt = 0
        while True:
            attempt += 1
            session = self._session_factory()
            try:
                result = fn(self._transaction(session))
                session.commit()
                return result
            except ServiceError:
                session.rollback()
                raise
            except RETRYABLE_ERRORS as e:
                session.rollback()
                if attempt <= self.max_retries:
                    log_operation(
                        logger,
                        operation="run_in_transaction",
                        outcome="conflict_retry",
                        level=logging.WARNING,
                        attempt=attempt,
                        error=str(e),
                    )
                    continue
                log_operation(
                    logger,
                    operation="run_in_transaction",
                    outcome="conflict_exhausted",
                    level=logging.ERROR,
                    attempts=attempt,
                    error=str(e),
                )
                raise TransactionFailure("Transaction failed after retries", original_error=e) from e
            except SQLAlchemyError as e:
                session.rollback()
                log_operation(
                    logger,
                    operation="run_in_transaction",
                    outcome="error",
                    level=logging.ERROR,
                    error=str(e),
                )
                raise TransactionFailure(original_error=e) from e
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def run_read_only(self, fn):
        session = self._session_factory()
        try:
            return fn(self._transaction(session))
        except SQLAlchemyError as e:
            log_operation(
                logger,
                operation="run_read_only",
                outcome="error",
                level=logging.ERROR,
                error=str(e),
            )
            raise TransactionFailure(original_error=e) from e
        finally:
            session.rollback()
            session.close()
