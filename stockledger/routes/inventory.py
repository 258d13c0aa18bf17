# stockledger/routes/inventory.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from stockledger.database import get_db
from stockledger.models.users import User
from stockledger.services import batch_registry, directory, ledger, live_stock, operations, reporting
from stockledger.utils.tokenJWT import role_required, STOCK_ROLES
from stockledger.utils.audit import write_log, client_ip
from stockledger.schemas.inventory import (
    InwardRequest, InwardResponse, SaleRequest, SaleResponse,
    BatchOut, LedgerEntryOut, WarehouseStockResponse, WarehouseStockItem,
)

router = APIRouter(prefix="/inventory", tags=["Inventory"])

can_manage_stock = role_required(*STOCK_ROLES)


def parse_date_bound(s: Optional[str], *, end: bool = False) -> Optional[datetime]:
    if not s:
        return None
    # A bare YYYY-MM-DD end bound covers the whole day
    if end and len(s) == 10:
        s += " 23:59:59.999999"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Bad datetime format: {s}")


def _ledger_entry_out(e) -> LedgerEntryOut:
    return LedgerEntryOut(
        id=e.id,
        transaction_date=e.transaction_date,
        warehouse_id=e.warehouse_id,
        warehouse_name=e.warehouse.name if e.warehouse else None,
        variant_id=e.variant_id,
        sku=e.variant.sku if e.variant else None,
        batch_id=e.batch_id,
        batch_number=e.batch.batch_number if e.batch else None,
        expiry_date=e.batch.expiry_date if e.batch else None,
        transaction_type=e.transaction_type.value,
        quantity_change=e.quantity_change,
        running_balance=e.running_balance,
        unit_cost=e.unit_cost,
        total_value=e.total_value,
        reason=e.reason,
        performed_by=e.performed_by,
    )


@router.post("/inward", response_model=InwardResponse)
def inward_stock(
    payload: InwardRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_stock),
):
    result = operations.inward_stock(
        db,
        current_user,
        variant_id=payload.variant_id,
        warehouse_id=payload.warehouse_id,
        batch_number=payload.batch_number,
        expiry_date=payload.expiry_date,
        cost_price=payload.cost_price,
        quantity=payload.quantity,
        reason=payload.reason,
        hsn_code=payload.hsn_code,
        tax_rate=payload.tax_rate,
        idempotency_key=payload.idempotency_key,
    )
    write_log(
        db, user_id=current_user.id, action="STOCK_INWARD", resource="inventory", status="SUCCESS",
        ip=client_ip(request), meta={"batch_id": result.batch_id, "qty": payload.quantity, "replayed": result.replayed},
    )
    return result


@router.post("/sale", response_model=SaleResponse)
def record_sale(
    payload: SaleRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_stock),
):
    result = operations.record_sale(
        db,
        current_user,
        variant_id=payload.variant_id,
        warehouse_id=payload.warehouse_id,
        quantity=payload.quantity,
        reason=payload.reason,
        strategy=payload.strategy,
        reference_id=payload.reference_id,
        idempotency_key=payload.idempotency_key,
    )
    write_log(
        db, user_id=current_user.id, action="STOCK_SALE", resource="inventory", status="SUCCESS",
        ip=client_ip(request), meta={"entries": result.ledger_entry_ids, "replayed": result.replayed},
    )
    return result


@router.get("/ledger", response_model=List[LedgerEntryOut])
def get_ledger(
    variant_id: Optional[int] = Query(None),
    warehouse_id: Optional[int] = Query(None),
    date_from: Optional[str] = Query(None, description="ISO date/datetime from"),
    date_to: Optional[str] = Query(None, description="ISO date/datetime to"),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_stock),
):
    entries = ledger.list_entries(
        db,
        variant_id=variant_id,
        warehouse_id=warehouse_id,
        date_from=parse_date_bound(date_from),
        date_to=parse_date_bound(date_to, end=True),
        limit=limit,
    )
    return [_ledger_entry_out(e) for e in entries]


@router.get("/ledger/export")
def export_ledger(
    variant_id: Optional[int] = Query(None),
    warehouse_id: Optional[int] = Query(None),
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_stock),
):
    entries = ledger.list_entries(
        db,
        variant_id=variant_id,
        warehouse_id=warehouse_id,
        date_from=parse_date_bound(date_from),
        date_to=parse_date_bound(date_to, end=True),
        limit=None,
    )
    return Response(
        content=reporting.ledger_csv(entries),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="inventory-ledger.csv"'},
    )


@router.get("/variants/{variant_id}/batches", response_model=List[BatchOut])
def get_batches(
    variant_id: int,
    in_stock: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_stock),
):
    directory.get_variant(db, variant_id)
    return batch_registry.list_batches(db, variant_id, in_stock_only=in_stock)


@router.get("/batches/{batch_id}", response_model=BatchOut)
def get_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_stock),
):
    return batch_registry.get_batch(db, batch_id)


@router.get("/variants/{variant_id}/stock", response_model=WarehouseStockResponse)
def get_warehouse_stock(
    variant_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_stock),
):
    directory.get_variant(db, variant_id)
    per_warehouse = live_stock.stock_by_warehouse(db, variant_id)

    # Every active warehouse is listed, plus any other warehouse still holding a balance
    items = {
        w.id: WarehouseStockItem(warehouse_id=w.id, warehouse_name=w.name, quantity=per_warehouse.get(w.id, 0))
        for w in directory.list_active_warehouses(db)
    }
    for warehouse_id, quantity in per_warehouse.items():
        if warehouse_id not in items:
            w = directory.get_warehouse(db, warehouse_id)
            items[warehouse_id] = WarehouseStockItem(warehouse_id=w.id, warehouse_name=w.name, quantity=quantity)

    return WarehouseStockResponse(
        variant_id=variant_id,
        total=sum(per_warehouse.values()),
        warehouses=sorted(items.values(), key=lambda i: i.warehouse_id),
    )
