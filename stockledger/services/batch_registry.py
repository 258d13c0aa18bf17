# stockledger/services/batch_registry.py
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from stockledger.errors import InsufficientStock, NotFound, ValidationError
from stockledger.models.batch import Batch


@dataclass(frozen=True)
class BatchUpsert:
    batch: Batch
    quantity: int
    created: bool


def upsert_batch(
    db: Session,
    *,
    variant_id: int,
    batch_number: str,
    expiry_date: date,
    cost_price: Decimal,
    quantity: int,
) -> BatchUpsert:
    """
    Create the (variant, batch number) lot or merge an inward into it.

    A merge adds ``quantity`` to both initial and current quantity and
    overwrites cost price and expiry with the supplied values (last write
    wins). Returns the batch and its current quantity after the update.
    """
    if quantity <= 0:
        raise ValidationError("Batch quantity must be positive", step="upsert_batch")

    batch = (
        db.query(Batch)
        .filter(Batch.variant_id == variant_id, Batch.batch_number == batch_number)
        .with_for_update()
        .populate_existing()
        .first()
    )
    created = batch is None
    if created:
        batch = Batch(
            variant_id=variant_id,
            batch_number=batch_number,
            expiry_date=expiry_date,
            cost_price=cost_price,
            initial_quantity=quantity,
            current_quantity=quantity,
        )
        db.add(batch)
    else:
        batch.initial_quantity += quantity
        batch.current_quantity += quantity
        batch.cost_price = cost_price
        batch.expiry_date = expiry_date
    db.flush()
    return BatchUpsert(batch=batch, quantity=batch.current_quantity, created=created)


def consume_batch(db: Session, batch: Batch, quantity: int) -> int:
    # Remove sold units from a lot; current quantity never goes below zero
    remaining = batch.current_quantity - quantity
    if remaining < 0:
        raise InsufficientStock(batch.current_quantity, quantity, step="consume_batch")
    batch.current_quantity = remaining
    return remaining


def get_batch(db: Session, batch_id: int) -> Batch:
    batch = db.query(Batch).filter(Batch.id == batch_id).first()
    if batch is None:
        raise NotFound("Batch", batch_id)
    return batch


def list_batches(db: Session, variant_id: int, *, in_stock_only: bool = False) -> List[Batch]:
    # Earliest expiry first; undated lots last
    query = db.query(Batch).filter(Batch.variant_id == variant_id)
    if in_stock_only:
        query = query.filter(Batch.current_quantity > 0)
    return query.order_by(Batch.expiry_date.is_(None), Batch.expiry_date, Batch.id).all()
