# stockledger/services/reporting.py
"""
Read-side inventory reports. Everything is recomputed from the stored
batches, stock rows and logs on each call; nothing here writes.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import pandas as pd
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from stockledger.config import settings
from stockledger.models.batch import Batch, WarehouseBatchStock
from stockledger.models.ledger import LedgerEntry, MovementKind
from stockledger.models.product import Variant
from stockledger.models.stock import LiveStockEntry
from stockledger.services import live_stock
from stockledger.utils.clock import utcnow

LEDGER_COLUMNS = [
    "id", "transaction_date", "warehouse", "sku", "batch_number", "expiry_date",
    "transaction_type", "quantity_change", "running_balance", "unit_cost",
    "total_value", "reason", "performed_by",
]


@dataclass(frozen=True)
class InventoryStats:
    asset_value: Decimal
    revenue_potential: Decimal
    total_units: int


@dataclass(frozen=True)
class LowStockRow:
    variant: Variant
    current_stock: int
    threshold: int
    reorder_quantity: int


@dataclass(frozen=True)
class AgingRow:
    variant: Variant
    current_stock: int
    last_movement: datetime
    value: Decimal


@dataclass(frozen=True)
class DriftRow:
    variant_id: int
    warehouse_id: int
    batch_stock: int
    ledger_stock: int
    live_stock: int

    @property
    def drift(self) -> int:
        return self.live_stock - self.batch_stock

    @property
    def in_sync(self) -> bool:
        return self.batch_stock == self.ledger_stock == self.live_stock


def asset_value(db: Session) -> Decimal:
    """Σ quantity × batch cost price over every warehouse batch stock row."""
    rows = (
        db.query(WarehouseBatchStock.quantity, Batch.cost_price)
        .join(Batch, Batch.id == WarehouseBatchStock.batch_id)
        .all()
    )
    return sum((Decimal(cost or 0) * quantity for quantity, cost in rows), Decimal("0"))


def inventory_stats(db: Session) -> InventoryStats:
    rows = (
        db.query(WarehouseBatchStock.quantity, Batch.cost_price, Variant.price)
        .join(Batch, Batch.id == WarehouseBatchStock.batch_id)
        .join(Variant, Variant.id == WarehouseBatchStock.variant_id)
        .all()
    )
    asset = Decimal("0")
    revenue = Decimal("0")
    units = 0
    for quantity, cost, price in rows:
        asset += Decimal(cost or 0) * quantity
        revenue += Decimal(price or 0) * quantity
        units += quantity
    return InventoryStats(asset_value=asset, revenue_potential=revenue, total_units=units)


def cogs(db: Session, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None) -> Decimal:
    """Σ |total value| of SALE ledger entries dated within [date_from, date_to]."""
    query = db.query(LedgerEntry.quantity_change, LedgerEntry.unit_cost, LedgerEntry.total_value).filter(
        LedgerEntry.transaction_type == MovementKind.SALE
    )
    if date_from is not None:
        query = query.filter(LedgerEntry.transaction_date >= date_from)
    if date_to is not None:
        query = query.filter(LedgerEntry.transaction_date <= date_to)

    total = Decimal("0")
    for quantity, unit_cost, total_value in query.all():
        value = Decimal(total_value or 0)
        if not value:
            # Entries written without a valuation fall back to quantity × unit cost
            value = Decimal(unit_cost or 0) * quantity
        total += abs(value)
    return total


def expiring_batches(db: Session, days: Optional[int] = None, today: Optional[date] = None) -> List[Batch]:
    # Lots still holding stock whose expiry falls in [today, today + days]
    days = settings.EXPIRY_ALERT_DAYS if days is None else days
    today = today or utcnow().date()
    horizon = today + timedelta(days=days)
    return (
        db.query(Batch)
        .options(joinedload(Batch.variant))
        .filter(
            Batch.current_quantity > 0,
            Batch.expiry_date >= today,
            Batch.expiry_date <= horizon,
        )
        .order_by(Batch.expiry_date, Batch.id)
        .all()
    )


def low_stock_variants(db: Session) -> List[LowStockRow]:
    # Current stock at or below the variant's minimum (inclusive)
    stock = live_stock.stock_by_variant(db)
    rows = []
    for variant in db.query(Variant).order_by(Variant.id).all():
        threshold = variant.min_stock_level
        if threshold is None:
            threshold = settings.DEFAULT_MIN_STOCK_LEVEL
        current = stock.get(variant.id, 0)
        if current <= threshold:
            rows.append(
                LowStockRow(
                    variant=variant,
                    current_stock=current,
                    threshold=threshold,
                    reorder_quantity=variant.reorder_quantity or 0,
                )
            )
    rows.sort(key=lambda r: (r.current_stock, r.variant.id))
    return rows


def aging_stock(db: Session, days: Optional[int] = None, now: Optional[datetime] = None) -> List[AgingRow]:
    """
    Dead stock: variants still in stock whose last ledger movement is older
    than ``days``. Variants that never moved are aged from their creation.
    """
    days = settings.AGING_DAYS if days is None else days
    cutoff = (now or utcnow()) - timedelta(days=days)
    stock = live_stock.stock_by_variant(db)
    last_moves: Dict[int, datetime] = dict(
        db.query(LedgerEntry.variant_id, func.max(LedgerEntry.transaction_date))
        .group_by(LedgerEntry.variant_id)
        .all()
    )

    rows = []
    for variant in db.query(Variant).order_by(Variant.id).all():
        current = stock.get(variant.id, 0)
        if current <= 0:
            continue
        last_move = last_moves.get(variant.id) or variant.created_at
        if last_move < cutoff:
            rows.append(
                AgingRow(
                    variant=variant,
                    current_stock=current,
                    last_movement=last_move,
                    value=Decimal(variant.price or 0) * current,
                )
            )
    return rows


def purchase_sales_summary(
    db: Session, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None
) -> List[dict]:
    """
    Monthly purchase and sales value from the ledger. Purchases are valued at
    cost, sales at the variant's selling price.
    """
    query = (
        db.query(
            LedgerEntry.transaction_date,
            LedgerEntry.transaction_type,
            LedgerEntry.quantity_change,
            LedgerEntry.total_value,
            Variant.price,
        )
        .join(Variant, Variant.id == LedgerEntry.variant_id)
        .filter(LedgerEntry.transaction_type.in_([MovementKind.PURCHASE, MovementKind.SALE]))
    )
    if date_from is not None:
        query = query.filter(LedgerEntry.transaction_date >= date_from)
    if date_to is not None:
        query = query.filter(LedgerEntry.transaction_date <= date_to)

    records = [
        {
            "month": pd.Timestamp(ts).to_period("M"),
            "purchases": float(total_value or 0) if kind == MovementKind.PURCHASE else 0.0,
            "sales": abs(quantity) * float(price or 0) if kind == MovementKind.SALE else 0.0,
        }
        for ts, kind, quantity, total_value, price in query.all()
    ]
    if not records:
        return []

    df = pd.DataFrame.from_records(records)
    monthly = df.groupby("month", sort=True)[["purchases", "sales"]].sum().reset_index()
    return [
        {
            "month": str(row.month),
            "purchases": round(row.purchases, 2),
            "sales": round(row.sales, 2),
        }
        for row in monthly.itertuples(index=False)
    ]


def reconciliation(db: Session, only_drift: bool = False) -> List[DriftRow]:
    """
    Per (variant, warehouse): batch stock total, ledger quantity total and
    live stock total. Adjustments and transfers move only the live stock,
    so rows touched by them show a drift.
    """
    totals: Dict[Tuple[int, int], Dict[str, int]] = {}

    def _collect(name, rows):
        for variant_id, warehouse_id, total in rows:
            slot = totals.setdefault((variant_id, warehouse_id), {"batch": 0, "ledger": 0, "live": 0})
            slot[name] = int(total or 0)

    _collect(
        "batch",
        db.query(WarehouseBatchStock.variant_id, WarehouseBatchStock.warehouse_id, func.sum(WarehouseBatchStock.quantity))
        .group_by(WarehouseBatchStock.variant_id, WarehouseBatchStock.warehouse_id)
        .all(),
    )
    _collect(
        "ledger",
        db.query(LedgerEntry.variant_id, LedgerEntry.warehouse_id, func.sum(LedgerEntry.quantity_change))
        .group_by(LedgerEntry.variant_id, LedgerEntry.warehouse_id)
        .all(),
    )
    _collect(
        "live",
        db.query(LiveStockEntry.variant_id, LiveStockEntry.warehouse_id, func.sum(LiveStockEntry.quantity_change))
        .group_by(LiveStockEntry.variant_id, LiveStockEntry.warehouse_id)
        .all(),
    )

    rows = [
        DriftRow(
            variant_id=variant_id,
            warehouse_id=warehouse_id,
            batch_stock=slot["batch"],
            ledger_stock=slot["ledger"],
            live_stock=slot["live"],
        )
        for (variant_id, warehouse_id), slot in sorted(totals.items())
    ]
    if only_drift:
        rows = [r for r in rows if not r.in_sync]
    return rows


def ledger_frame(entries: List[LedgerEntry]) -> pd.DataFrame:
    # Flat table of ledger entries for export
    return pd.DataFrame(
        [
            {
                "id": e.id,
                "transaction_date": e.transaction_date.isoformat(),
                "warehouse": e.warehouse.name if e.warehouse else e.warehouse_id,
                "sku": e.variant.sku if e.variant else e.variant_id,
                "batch_number": e.batch.batch_number if e.batch else e.batch_id,
                "expiry_date": e.batch.expiry_date.isoformat() if e.batch and e.batch.expiry_date else "",
                "transaction_type": e.transaction_type.value,
                "quantity_change": e.quantity_change,
                "running_balance": e.running_balance,
                "unit_cost": str(e.unit_cost),
                "total_value": str(e.total_value),
                "reason": e.reason or "",
                "performed_by": e.performed_by,
            }
            for e in entries
        ],
        columns=LEDGER_COLUMNS,
    )


def ledger_csv(entries: List[LedgerEntry]) -> str:
    return ledger_frame(entries).to_csv(index=False)
