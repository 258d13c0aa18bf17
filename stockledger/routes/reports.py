# routes/reports.py

from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.config import settings
from stockledger.database import get_db
from stockledger.models.users import User
from stockledger.routes.inventory import parse_date_bound
from stockledger.services import reporting
from stockledger.utils.clock import utcnow
from stockledger.utils.tokenJWT import role_required, STOCK_ROLES
from stockledger.schemas.reports import (
    InventoryStatsResponse, CogsResponse,
    ExpiringBatchResponse, ExpiringBatchItem,
    LowStockPage, LowStockItem,
    AgingResponse, AgingItem,
    PurchaseSalesResponse, PurchaseSalesItem,
    ReconciliationResponse, ReconciliationItem,
)

router = APIRouter(prefix="/reports", tags=["Reports"])

role_ok = role_required(*STOCK_ROLES)

# -----------------------------
# 1) Valuation
# -----------------------------
@router.get("/stats", response_model=InventoryStatsResponse)
def report_stats(db: Session = Depends(get_db), current_user: User = Depends(role_ok)):
    stats = reporting.inventory_stats(db)
    return InventoryStatsResponse(
        asset_value=stats.asset_value,
        revenue_potential=stats.revenue_potential,
        total_units=stats.total_units,
    )

@router.get("/cogs", response_model=CogsResponse)
def report_cogs(
    date_from: Optional[str] = Query(None, description="ISO date/datetime from"),
    date_to: Optional[str] = Query(None, description="ISO date/datetime to"),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_ok),
):
    fdt = parse_date_bound(date_from)
    tdt = parse_date_bound(date_to, end=True)
    return CogsResponse(cogs=reporting.cogs(db, fdt, tdt), date_from=fdt, date_to=tdt)

# -----------------------------
# 2) Alerts
# -----------------------------
@router.get("/expiring-batches", response_model=ExpiringBatchResponse)
def report_expiring_batches(
    days: int = Query(settings.EXPIRY_ALERT_DAYS, ge=0, description="Expiry window in days"),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_ok),
):
    today = utcnow().date()
    items = [
        ExpiringBatchItem(
            batch_id=b.id,
            batch_number=b.batch_number,
            variant_id=b.variant_id,
            sku=b.variant.sku,
            expiry_date=b.expiry_date,
            days_left=(b.expiry_date - today).days,
            current_quantity=b.current_quantity,
            cost_price=b.cost_price,
        )
        for b in reporting.expiring_batches(db, days, today=today)
    ]
    return ExpiringBatchResponse(items=items, days=days)

@router.get("/low-stock", response_model=LowStockPage)
def report_low_stock(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_ok),
):
    rows = reporting.low_stock_variants(db)
    window = rows[(page - 1) * page_size: page * page_size]

    items: List[LowStockItem] = [
        LowStockItem(
            variant_id=r.variant.id,
            sku=r.variant.sku,
            name=r.variant.name,
            stock_quantity=r.current_stock,
            min_stock_level=r.threshold,
            reorder_quantity=r.reorder_quantity,
        )
        for r in window
    ]
    return {"items": items, "total": len(rows), "page": page, "page_size": page_size}

@router.get("/aging", response_model=AgingResponse)
def report_aging(
    days: int = Query(settings.AGING_DAYS, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_ok),
):
    rows = reporting.aging_stock(db, days)
    items = [
        AgingItem(
            variant_id=r.variant.id,
            sku=r.variant.sku,
            stock_quantity=r.current_stock,
            last_movement=r.last_movement,
            value=r.value,
        )
        for r in rows
    ]
    return AgingResponse(items=items, days=days, total_value=sum(r.value for r in rows))

# -----------------------------
# 3) Ledger analysis
# -----------------------------
@router.get("/purchase-sales", response_model=PurchaseSalesResponse)
def report_purchase_sales(
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_ok),
):
    fdt = parse_date_bound(date_from)
    tdt = parse_date_bound(date_to, end=True)
    items = [PurchaseSalesItem(**row) for row in reporting.purchase_sales_summary(db, fdt, tdt)]
    return PurchaseSalesResponse(items=items, date_from=fdt, date_to=tdt)

@router.get("/reconciliation", response_model=ReconciliationResponse)
def report_reconciliation(
    only_drift: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_ok),
):
    rows = reporting.reconciliation(db, only_drift=only_drift)
    items = [
        ReconciliationItem(
            variant_id=r.variant_id,
            warehouse_id=r.warehouse_id,
            batch_stock=r.batch_stock,
            ledger_stock=r.ledger_stock,
            live_stock=r.live_stock,
            drift=r.drift,
            in_sync=r.in_sync,
        )
        for r in rows
    ]
    return ReconciliationResponse(items=items, drifting=sum(1 for r in rows if not r.in_sync))
