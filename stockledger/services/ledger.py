# stockledger/services/ledger.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from stockledger.models.ledger import LedgerEntry, MovementKind


def append_entry(
    db: Session,
    *,
    warehouse_id: int,
    variant_id: int,
    batch_id: int,
    kind: MovementKind,
    quantity_change: int,
    running_balance: int,
    unit_cost: Decimal,
    performed_by: int,
    reason: Optional[str] = None,
    total_value: Optional[Decimal] = None,
    transaction_date: Optional[datetime] = None,
) -> LedgerEntry:
    """
    Insert one ledger entry. The running balance is supplied by the caller,
    normally the post-update quantity returned by ``batch_stock.add_stock``.
    total_value defaults to unit_cost × quantity_change (signed).
    """
    if total_value is None:
        total_value = Decimal(unit_cost) * quantity_change
    entry = LedgerEntry(
        warehouse_id=warehouse_id,
        variant_id=variant_id,
        batch_id=batch_id,
        transaction_type=kind,
        quantity_change=quantity_change,
        running_balance=running_balance,
        unit_cost=unit_cost,
        total_value=total_value,
        reason=reason,
        performed_by=performed_by,
    )
    if transaction_date is not None:
        entry.transaction_date = transaction_date
    db.add(entry)
    db.flush()
    return entry


def _filtered(
    db: Session,
    *,
    variant_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    batch_id: Optional[int] = None,
    kind: Optional[MovementKind] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
):
    query = db.query(LedgerEntry)
    if variant_id is not None:
        query = query.filter(LedgerEntry.variant_id == variant_id)
    if warehouse_id is not None:
        query = query.filter(LedgerEntry.warehouse_id == warehouse_id)
    if batch_id is not None:
        query = query.filter(LedgerEntry.batch_id == batch_id)
    if kind is not None:
        query = query.filter(LedgerEntry.transaction_type == kind)
    if date_from is not None:
        query = query.filter(LedgerEntry.transaction_date >= date_from)
    if date_to is not None:
        query = query.filter(LedgerEntry.transaction_date <= date_to)
    return query


# Listing view: newest first
def list_entries(
    db: Session,
    *,
    variant_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    kind: Optional[MovementKind] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: Optional[int] = 100,
) -> List[LedgerEntry]:
    query = (
        _filtered(
            db,
            variant_id=variant_id,
            warehouse_id=warehouse_id,
            kind=kind,
            date_from=date_from,
            date_to=date_to,
        )
        .options(
            joinedload(LedgerEntry.batch),
            joinedload(LedgerEntry.warehouse),
            joinedload(LedgerEntry.variant),
        )
        .order_by(LedgerEntry.transaction_date.desc(), LedgerEntry.id.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


# Balance reconstruction view of one (warehouse, variant, batch) key: oldest first
def balance_history(db: Session, *, warehouse_id: int, variant_id: int, batch_id: int) -> List[LedgerEntry]:
    return (
        _filtered(db, variant_id=variant_id, warehouse_id=warehouse_id, batch_id=batch_id)
        .order_by(LedgerEntry.transaction_date.asc(), LedgerEntry.id.asc())
        .all()
    )


def verify_running_balances(entries: List[LedgerEntry]) -> bool:
    # Each balance must equal the previous balance plus this entry's change
    previous = 0
    for entry in entries:
        if entry.running_balance != previous + entry.quantity_change:
            return False
        previous = entry.running_balance
    return True
