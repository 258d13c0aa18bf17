# stockledger/services/live_stock.py
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from stockledger.models.stock import LiveStockEntry


def append_entry(
    db: Session,
    *,
    variant_id: int,
    warehouse_id: int,
    quantity_change: int,
    transaction_type: str,
    performed_by: int,
    reason: Optional[str] = None,
    reference_id=None,
) -> LiveStockEntry:
    entry = LiveStockEntry(
        variant_id=variant_id,
        warehouse_id=warehouse_id,
        quantity_change=quantity_change,
        transaction_type=transaction_type,
        reason=reason,
        reference_id=str(reference_id) if reference_id is not None else None,
        performed_by=performed_by,
    )
    db.add(entry)
    db.flush()
    return entry


# Current stock of a variant: sum of its signed changes, optionally in one warehouse
def current_stock(db: Session, variant_id: int, warehouse_id: Optional[int] = None) -> int:
    query = db.query(func.coalesce(func.sum(LiveStockEntry.quantity_change), 0)).filter(
        LiveStockEntry.variant_id == variant_id
    )
    if warehouse_id is not None:
        query = query.filter(LiveStockEntry.warehouse_id == warehouse_id)
    return int(query.scalar())


def stock_by_warehouse(db: Session, variant_id: int) -> Dict[int, int]:
    rows = (
        db.query(LiveStockEntry.warehouse_id, func.sum(LiveStockEntry.quantity_change))
        .filter(LiveStockEntry.variant_id == variant_id)
        .group_by(LiveStockEntry.warehouse_id)
        .all()
    )
    return {warehouse_id: int(total or 0) for warehouse_id, total in rows}


def stock_by_variant(db: Session) -> Dict[int, int]:
    rows = (
        db.query(LiveStockEntry.variant_id, func.sum(LiveStockEntry.quantity_change))
        .group_by(LiveStockEntry.variant_id)
        .all()
    )
    return {variant_id: int(total or 0) for variant_id, total in rows}


def list_entries(
    db: Session,
    *,
    variant_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    transaction_type: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[LiveStockEntry], int]:
    query = db.query(LiveStockEntry)
    if variant_id is not None:
        query = query.filter(LiveStockEntry.variant_id == variant_id)
    if warehouse_id is not None:
        query = query.filter(LiveStockEntry.warehouse_id == warehouse_id)
    if transaction_type:
        query = query.filter(LiveStockEntry.transaction_type == transaction_type)

    total = query.count()
    items = (
        query.options(
            joinedload(LiveStockEntry.variant),
            joinedload(LiveStockEntry.warehouse),
            joinedload(LiveStockEntry.user),
        )
        .order_by(LiveStockEntry.created_at.desc(), LiveStockEntry.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, total
