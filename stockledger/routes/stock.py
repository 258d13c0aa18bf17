# stockledger/routes/stock.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from stockledger.database import get_db
from stockledger.models.users import User
from stockledger.services import live_stock, operations
from stockledger.utils.tokenJWT import role_required, STOCK_ROLES
from stockledger.utils.audit import write_log, client_ip
import stockledger.schemas.stock as stock_schemas

router = APIRouter(tags=["Stock"])

# Admin, Warehouse and Salesman roles may manage stock
can_manage_stock = role_required(*STOCK_ROLES)


@router.get("/", response_model=stock_schemas.StockMovementPage)
def list_movements(
    variant_id: Optional[int] = Query(None),
    warehouse_id: Optional[int] = Query(None),
    type: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_stock),
):
    items, total = live_stock.list_entries(
        db,
        variant_id=variant_id,
        warehouse_id=warehouse_id,
        transaction_type=type.lower() if type else None,
        page=page,
        page_size=page_size,
    )

    results = []
    for m in items:
        results.append({
            "id": m.id,
            "created_at": m.created_at,
            "variant_id": m.variant_id,
            "warehouse_id": m.warehouse_id,
            "quantity_change": m.quantity_change,
            "type": m.transaction_type,
            "reason": m.reason,
            "reference_id": m.reference_id,
            "performed_by": m.performed_by,
            "sku": m.variant.sku if m.variant else "-",
            "warehouse_name": m.warehouse.name if m.warehouse else "-",
            "user_email": m.user.email if m.user else "System",
        })

    return {"items": results, "total": total, "page": page, "page_size": page_size}


@router.post("/adjust", response_model=stock_schemas.StockAdjustResponse)
def adjust_stock(
    payload: stock_schemas.StockAdjustRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_stock),
):
    result = operations.adjust_stock(
        db,
        current_user,
        variant_id=payload.variant_id,
        warehouse_id=payload.warehouse_id,
        quantity_change=payload.quantity_change,
        reason=payload.reason,
        type=payload.type,
        reference_id=payload.reference_id,
        idempotency_key=payload.idempotency_key,
    )
    write_log(
        db, user_id=current_user.id, action="STOCK_ADJUSTMENT", resource="stock", status="SUCCESS",
        ip=client_ip(request), meta={"id": result.entry_id, "qty": result.quantity_change, "replayed": result.replayed},
    )
    return result


@router.post("/transfer", response_model=stock_schemas.StockTransferResponse)
def transfer_stock(
    payload: stock_schemas.StockTransferRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage_stock),
):
    result = operations.transfer_stock(
        db,
        current_user,
        variant_id=payload.variant_id,
        source_warehouse_id=payload.source_warehouse_id,
        target_warehouse_id=payload.target_warehouse_id,
        quantity=payload.quantity,
        reason=payload.reason,
        idempotency_key=payload.idempotency_key,
    )
    write_log(
        db, user_id=current_user.id, action="STOCK_TRANSFER", resource="stock", status="SUCCESS",
        ip=client_ip(request), meta={"out": result.out_entry_id, "in": result.in_entry_id, "replayed": result.replayed},
    )
    return result
