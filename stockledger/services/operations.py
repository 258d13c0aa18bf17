# stockledger/services/operations.py
"""
Stock operations: inward, adjust, transfer and sale.

Each operation is one unit of work: the writes it makes across the batch
registry, warehouse batch stock, movement ledger and live stock log are
committed together or not at all, while the per-key stock locks are held.
The acting user is always an explicit argument.
"""

import logging
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockledger.errors import InsufficientStock, InventoryError, NotAuthenticated, ValidationError
from stockledger.models.batch import Batch
from stockledger.models.ledger import MovementKind
from stockledger.models.operation import OperationRecord
from stockledger.models.stock import ADJUSTMENT_TYPES, PURCHASE, SALE, TRANSFER_IN, TRANSFER_OUT
from stockledger.models.users import User
from stockledger.services import accounting, batch_registry, batch_stock, directory, ledger, live_stock
from stockledger.services.allocator import STRATEGIES, Candidate, allocate
from stockledger.utils.locks import batch_key, idempotency_lock_key, stock_key, stock_locks, take_advisory_locks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InwardResult:
    batch_id: int
    batch_quantity: int
    warehouse_quantity: int
    ledger_entry_id: int
    live_stock_entry_id: int
    replayed: bool = False


@dataclass(frozen=True)
class AdjustResult:
    entry_id: int
    quantity_change: int
    stock_after: int
    replayed: bool = False


@dataclass(frozen=True)
class TransferResult:
    out_entry_id: int
    in_entry_id: int
    source_stock: int
    target_stock: int
    replayed: bool = False


@dataclass(frozen=True)
class SaleResult:
    live_stock_entry_id: int
    ledger_entry_ids: List[int]
    allocations: List[dict]
    cost_value: Decimal
    stock_after: int
    replayed: bool = False


# --- validation helpers ---

def _require_actor(actor: Optional[User]) -> User:
    if actor is None or getattr(actor, "id", None) is None:
        raise NotAuthenticated(step="validate")
    return actor


def _positive_int(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer", step="validate")
    if value <= 0:
        raise ValidationError(f"{name} must be greater than zero", step="validate")
    return value


def _cost(value) -> Decimal:
    if value is None:
        raise ValidationError("Cost price is required", step="validate")
    try:
        cost = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Invalid cost price: {value}", step="validate")
    if not cost.is_finite() or cost < 0:
        raise ValidationError("Cost price must be zero or greater", step="validate")
    return cost


def _tax_rate(value) -> Decimal:
    try:
        rate = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Invalid tax rate: {value}", step="validate")
    if not rate.is_finite() or rate < 0:
        raise ValidationError("Tax rate must be zero or greater", step="validate")
    return rate


def _expiry(value) -> date:
    if value is None:
        raise ValidationError("Expiry date is required", step="validate")
    if isinstance(value, datetime):
        return value.date()
    if not isinstance(value, date):
        raise ValidationError(f"Invalid expiry date: {value}", step="validate")
    return value


# --- unit of work ---

class _Work:
    # Stored result of an earlier call with the same idempotency key, if any
    def __init__(self, stored=None):
        self.stored = stored


def _replay(db: Session, key: Optional[str], operation: str):
    if not key:
        return None
    record = db.query(OperationRecord).filter(OperationRecord.key == key).first()
    if record is None:
        return None
    if record.operation != operation:
        raise ValidationError(
            f"Idempotency key {key} was already used for {record.operation}", step="idempotency"
        )
    return record.result


def _remember(db: Session, key: Optional[str], operation: str, actor: User, result) -> None:
    if not key:
        return
    payload = asdict(result)
    payload.pop("replayed")
    for name, value in payload.items():
        if isinstance(value, Decimal):
            payload[name] = str(value)
    try:
        with db.begin_nested():
            db.add(OperationRecord(key=key, operation=operation, performed_by=actor.id, result=payload))
    except IntegrityError as exc:
        raise ValidationError(f"Idempotency key {key} is already in use", step="idempotency") from exc


@contextmanager
def _unit_of_work(db: Session, operation: str, log_fields: dict, keys, idempotency: Optional[str] = None):
    if idempotency:
        keys = (*keys, idempotency_lock_key(idempotency))
    work = _Work()
    with stock_locks.hold(*keys):
        try:
            take_advisory_locks(db, keys)
            work.stored = _replay(db, idempotency, operation)
            yield work
            db.commit()
        except InventoryError as exc:
            db.rollback()
            logger.warning(
                "%s rejected: %s",
                operation,
                exc.message,
                extra={**log_fields, "operation": operation, "code": exc.code, "step": exc.step},
            )
            raise
        except Exception:
            db.rollback()
            logger.exception("%s failed", operation, extra={**log_fields, "operation": operation})
            raise
    if work.stored is not None:
        logger.info(
            "%s replayed for idempotency key %s", operation, idempotency,
            extra={**log_fields, "operation": operation},
        )
    else:
        logger.info("%s committed", operation, extra={**log_fields, "operation": operation})


# --- operations ---

def inward_stock(
    db: Session,
    actor: Optional[User],
    *,
    variant_id: int,
    warehouse_id: int,
    batch_number: str,
    expiry_date,
    cost_price,
    quantity: int,
    reason: Optional[str] = None,
    hsn_code: Optional[str] = None,
    tax_rate=None,
    idempotency_key: Optional[str] = None,
) -> InwardResult:
    """
    Receive a costed, dated lot into a warehouse.

    Steps: refresh tax metadata (when supplied), upsert the batch, add to the
    warehouse batch stock, append the PURCHASE ledger entry, post the
    inventory asset debit, append the purchase live stock entry.
    """
    actor = _require_actor(actor)
    quantity = _positive_int(quantity, "Quantity")
    cost = _cost(cost_price)
    expiry = _expiry(expiry_date)
    batch_number = (batch_number or "").strip()
    if not batch_number:
        raise ValidationError("Batch number is required", step="validate")
    if tax_rate is not None:
        tax_rate = _tax_rate(tax_rate)

    log_fields = {"variant_id": variant_id, "warehouse_id": warehouse_id, "quantity": quantity, "actor_id": actor.id}
    keys = (batch_key(variant_id), stock_key(variant_id, warehouse_id))
    with _unit_of_work(db, "inward", log_fields, keys, idempotency_key) as work:
        if work.stored is not None:
            return InwardResult(**work.stored, replayed=True)

        variant = directory.get_variant(db, variant_id, step="validate")
        directory.get_warehouse(db, warehouse_id, active=True, step="validate")

        if hsn_code or tax_rate is not None:
            directory.update_tax_fields(db, variant, hsn_code=hsn_code, tax_rate=tax_rate)

        upserted = batch_registry.upsert_batch(
            db,
            variant_id=variant_id,
            batch_number=batch_number,
            expiry_date=expiry,
            cost_price=cost,
            quantity=quantity,
        )
        batch = upserted.batch

        warehouse_quantity = batch_stock.add_stock(
            db, warehouse_id=warehouse_id, variant_id=variant_id, batch_id=batch.id, delta=quantity
        )

        value = cost * quantity
        entry = ledger.append_entry(
            db,
            warehouse_id=warehouse_id,
            variant_id=variant_id,
            batch_id=batch.id,
            kind=MovementKind.PURCHASE,
            quantity_change=quantity,
            running_balance=warehouse_quantity,
            unit_cost=cost,
            total_value=value,
            reason=reason or "Stock Inward",
            performed_by=actor.id,
        )

        accounting.post_purchase(
            db, batch_id=batch.id, batch_number=batch_number, quantity=quantity, value=value
        )

        live_entry = live_stock.append_entry(
            db,
            variant_id=variant_id,
            warehouse_id=warehouse_id,
            quantity_change=quantity,
            transaction_type=PURCHASE,
            reason=reason or f"Inward Batch: {batch_number}",
            reference_id=batch.id,
            performed_by=actor.id,
        )

        result = InwardResult(
            batch_id=batch.id,
            batch_quantity=upserted.quantity,
            warehouse_quantity=warehouse_quantity,
            ledger_entry_id=entry.id,
            live_stock_entry_id=live_entry.id,
        )
        _remember(db, idempotency_key, "inward", actor, result)
    return result


def adjust_stock(
    db: Session,
    actor: Optional[User],
    *,
    variant_id: int,
    warehouse_id: int,
    quantity_change: int,
    reason: str,
    type: str = "adjustment",
    reference_id=None,
    idempotency_key: Optional[str] = None,
) -> AdjustResult:
    """
    Record a batch-agnostic correction in the live stock log.

    Only the aggregate (variant, warehouse) stock moves; batches and
    warehouse batch stock are untouched. A decrease below zero is refused.
    """
    actor = _require_actor(actor)
    if isinstance(quantity_change, bool) or not isinstance(quantity_change, int):
        raise ValidationError("Quantity change must be an integer", step="validate")
    if quantity_change == 0:
        raise ValidationError("Quantity change cannot be zero", step="validate")
    if not reason or not reason.strip():
        raise ValidationError("Reason is required", step="validate")
    type = type or "adjustment"
    if type not in ADJUSTMENT_TYPES:
        raise ValidationError(f"Unknown adjustment type: {type}", step="validate")

    log_fields = {"variant_id": variant_id, "warehouse_id": warehouse_id, "quantity": quantity_change, "actor_id": actor.id}
    keys = (stock_key(variant_id, warehouse_id),)
    with _unit_of_work(db, "adjust", log_fields, keys, idempotency_key) as work:
        if work.stored is not None:
            return AdjustResult(**work.stored, replayed=True)

        directory.get_variant(db, variant_id, step="validate")
        directory.get_warehouse(db, warehouse_id, step="validate")

        current = live_stock.current_stock(db, variant_id, warehouse_id)
        if current + quantity_change < 0:
            raise InsufficientStock(current, -quantity_change, step="check_stock")

        entry = live_stock.append_entry(
            db,
            variant_id=variant_id,
            warehouse_id=warehouse_id,
            quantity_change=quantity_change,
            transaction_type=type,
            reason=reason.strip(),
            reference_id=reference_id,
            performed_by=actor.id,
        )
        result = AdjustResult(
            entry_id=entry.id,
            quantity_change=quantity_change,
            stock_after=current + quantity_change,
        )
        _remember(db, idempotency_key, "adjust", actor, result)
    return result


def transfer_stock(
    db: Session,
    actor: Optional[User],
    *,
    variant_id: int,
    source_warehouse_id: int,
    target_warehouse_id: int,
    quantity: int,
    reason: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> TransferResult:
    """
    Move aggregate stock between warehouses: a transfer_out entry at the
    source and a transfer_in entry at the target, committed together.
    Batch-agnostic, so valuation is unchanged.
    """
    actor = _require_actor(actor)
    quantity = _positive_int(quantity, "Quantity")
    if source_warehouse_id == target_warehouse_id:
        raise ValidationError("Source and target warehouse must differ", step="validate")
    reason = (reason or "").strip() or "Stock transfer"

    log_fields = {
        "variant_id": variant_id,
        "warehouse_id": source_warehouse_id,
        "target_warehouse_id": target_warehouse_id,
        "quantity": quantity,
        "actor_id": actor.id,
    }
    keys = (stock_key(variant_id, source_warehouse_id), stock_key(variant_id, target_warehouse_id))
    with _unit_of_work(db, "transfer", log_fields, keys, idempotency_key) as work:
        if work.stored is not None:
            return TransferResult(**work.stored, replayed=True)

        directory.get_variant(db, variant_id, step="validate")
        source = directory.get_warehouse(db, source_warehouse_id, step="validate")
        target = directory.get_warehouse(db, target_warehouse_id, active=True, step="validate")

        available = live_stock.current_stock(db, variant_id, source.id)
        if available < quantity:
            raise InsufficientStock(available, quantity, step="check_stock")

        out_entry = live_stock.append_entry(
            db,
            variant_id=variant_id,
            warehouse_id=source.id,
            quantity_change=-quantity,
            transaction_type=TRANSFER_OUT,
            reason=f"Transfer to {target.name} - {reason}",
            performed_by=actor.id,
        )
        in_entry = live_stock.append_entry(
            db,
            variant_id=variant_id,
            warehouse_id=target.id,
            quantity_change=quantity,
            transaction_type=TRANSFER_IN,
            reason=f"Transfer from {source.name} - {reason}",
            reference_id=out_entry.id,
            performed_by=actor.id,
        )
        result = TransferResult(
            out_entry_id=out_entry.id,
            in_entry_id=in_entry.id,
            source_stock=available - quantity,
            target_stock=live_stock.current_stock(db, variant_id, target.id),
        )
        _remember(db, idempotency_key, "transfer", actor, result)
    return result


def record_sale(
    db: Session,
    actor: Optional[User],
    *,
    variant_id: int,
    warehouse_id: int,
    quantity: int,
    reason: Optional[str] = None,
    strategy: str = "FEFO",
    reference_id=None,
    idempotency_key: Optional[str] = None,
) -> SaleResult:
    """
    Ship units out of a warehouse, drawing on its batches by strategy.

    One SALE ledger entry is written per consumed batch, valued at that
    batch's cost, plus a single sale entry in the live stock log.
    """
    actor = _require_actor(actor)
    quantity = _positive_int(quantity, "Quantity")
    strategy = (strategy or "FEFO").upper()
    if strategy not in STRATEGIES:
        raise ValidationError(f"Unknown allocation strategy: {strategy}", step="validate")
    reason = reason or "Sale"

    log_fields = {"variant_id": variant_id, "warehouse_id": warehouse_id, "quantity": quantity, "actor_id": actor.id}
    keys = (batch_key(variant_id), stock_key(variant_id, warehouse_id))
    with _unit_of_work(db, "sale", log_fields, keys, idempotency_key) as work:
        if work.stored is not None:
            stored = {**work.stored, "cost_value": Decimal(work.stored["cost_value"])}
            return SaleResult(**stored, replayed=True)

        directory.get_variant(db, variant_id, step="validate")
        directory.get_warehouse(db, warehouse_id, step="validate")

        aggregate = live_stock.current_stock(db, variant_id, warehouse_id)
        if aggregate < quantity:
            raise InsufficientStock(aggregate, quantity, step="check_stock")

        rows = batch_stock.list_stock(db, warehouse_id=warehouse_id, variant_id=variant_id)
        batches = {row.batch_id: row.batch for row in rows}
        plan = allocate(
            quantity,
            [
                Candidate(
                    batch_id=row.batch_id,
                    quantity=row.quantity,
                    created_at=row.batch.created_at,
                    expiry_date=row.batch.expiry_date,
                )
                for row in rows
            ],
            strategy,
        )
        if plan.missing > 0:
            raise InsufficientStock(plan.allocated, quantity, step="allocate")

        cost_value = Decimal("0")
        entry_ids = []
        for allocation in plan.allocations:
            batch: Batch = batches[allocation.batch_id]
            remaining = batch_stock.add_stock(
                db,
                warehouse_id=warehouse_id,
                variant_id=variant_id,
                batch_id=batch.id,
                delta=-allocation.quantity,
            )
            batch_registry.consume_batch(db, batch, allocation.quantity)
            value = Decimal(batch.cost_price) * allocation.quantity
            entry = ledger.append_entry(
                db,
                warehouse_id=warehouse_id,
                variant_id=variant_id,
                batch_id=batch.id,
                kind=MovementKind.SALE,
                quantity_change=-allocation.quantity,
                running_balance=remaining,
                unit_cost=batch.cost_price,
                total_value=-value,
                reason=reason,
                performed_by=actor.id,
            )
            entry_ids.append(entry.id)
            cost_value += value

        live_entry = live_stock.append_entry(
            db,
            variant_id=variant_id,
            warehouse_id=warehouse_id,
            quantity_change=-quantity,
            transaction_type=SALE,
            reason=reason,
            reference_id=reference_id,
            performed_by=actor.id,
        )
        accounting.post_sale_cost(
            db, variant_id=variant_id, quantity=quantity, value=cost_value, reference_id=reference_id
        )

        result = SaleResult(
            live_stock_entry_id=live_entry.id,
            ledger_entry_ids=entry_ids,
            allocations=[{"batch_id": a.batch_id, "quantity": a.quantity} for a in plan.allocations],
            cost_value=cost_value,
            stock_after=aggregate - quantity,
        )
        _remember(db, idempotency_key, "sale", actor, result)
    return result
