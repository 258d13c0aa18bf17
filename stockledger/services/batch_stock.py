# stockledger/services/batch_stock.py
from typing import List

from sqlalchemy.orm import Session

from stockledger.errors import InsufficientStock
from stockledger.models.batch import WarehouseBatchStock


def get_quantity(db: Session, warehouse_id: int, variant_id: int, batch_id: int) -> int:
    row = (
        db.query(WarehouseBatchStock)
        .filter(
            WarehouseBatchStock.warehouse_id == warehouse_id,
            WarehouseBatchStock.variant_id == variant_id,
            WarehouseBatchStock.batch_id == batch_id,
        )
        .first()
    )
    return row.quantity if row else 0


def add_stock(db: Session, *, warehouse_id: int, variant_id: int, batch_id: int, delta: int) -> int:
    """
    Apply a signed delta to one (warehouse, variant, batch) quantity.

    This is the only place warehouse-batch quantities change. The row is read
    with a row lock, and the write is refused if the result would be
    negative. Returns the new quantity.
    """
    row = (
        db.query(WarehouseBatchStock)
        .filter(
            WarehouseBatchStock.warehouse_id == warehouse_id,
            WarehouseBatchStock.variant_id == variant_id,
            WarehouseBatchStock.batch_id == batch_id,
        )
        .with_for_update()
        .populate_existing()
        .first()
    )
    current = row.quantity if row else 0
    new_quantity = current + delta
    if new_quantity < 0:
        raise InsufficientStock(current, -delta, step="add_stock")

    if row is None:
        row = WarehouseBatchStock(
            warehouse_id=warehouse_id,
            variant_id=variant_id,
            batch_id=batch_id,
            quantity=new_quantity,
        )
        db.add(row)
    else:
        row.quantity = new_quantity
    db.flush()
    return new_quantity


def list_stock(db: Session, *, warehouse_id: int, variant_id: int, in_stock_only: bool = True) -> List[WarehouseBatchStock]:
    query = db.query(WarehouseBatchStock).filter(
        WarehouseBatchStock.warehouse_id == warehouse_id,
        WarehouseBatchStock.variant_id == variant_id,
    )
    if in_stock_only:
        query = query.filter(WarehouseBatchStock.quantity > 0)
    return query.with_for_update().populate_existing().all()
