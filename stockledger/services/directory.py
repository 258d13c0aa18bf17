# stockledger/services/directory.py
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from stockledger.errors import NotFound, ValidationError
from stockledger.models.product import Variant
from stockledger.models.warehouse import Warehouse


# Variant directory: read a variant by id
def get_variant(db: Session, variant_id: int, *, step: Optional[str] = None) -> Variant:
    variant = db.query(Variant).filter(Variant.id == variant_id).first()
    if variant is None:
        raise NotFound("Variant", variant_id, step=step)
    return variant


# Variant directory: refresh tax metadata supplied with an inward
def update_tax_fields(
    db: Session,
    variant: Variant,
    *,
    hsn_code: Optional[str] = None,
    tax_rate: Optional[Decimal] = None,
) -> Variant:
    if hsn_code:
        variant.hsn_code = hsn_code
    if tax_rate is not None:
        if tax_rate < 0 or tax_rate > 100:
            raise ValidationError("Tax rate must be between 0 and 100", step="update_tax")
        variant.tax_rate = tax_rate
    return variant


# Warehouse directory: read a warehouse by id, optionally requiring it active
def get_warehouse(
    db: Session, warehouse_id: int, *, active: bool = False, step: Optional[str] = None
) -> Warehouse:
    warehouse = db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()
    if warehouse is None:
        raise NotFound("Warehouse", warehouse_id, step=step)
    if active and not warehouse.is_active:
        raise ValidationError(f"Warehouse {warehouse.name} is not active", step=step)
    return warehouse


def list_active_warehouses(db: Session) -> List[Warehouse]:
    return (
        db.query(Warehouse)
        .filter(Warehouse.is_active.is_(True))
        .order_by(Warehouse.created_at, Warehouse.id)
        .all()
    )
