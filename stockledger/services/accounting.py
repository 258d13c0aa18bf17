# stockledger/services/accounting.py
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockledger.config import settings
from stockledger.models.accounting import AccountingEntry

logger = logging.getLogger(__name__)


def post_entry(
    db: Session,
    *,
    ledger_type: str,
    account_name: str,
    debit: Decimal = Decimal("0"),
    credit: Decimal = Decimal("0"),
    reference_id=None,
    reference_type: Optional[str] = None,
    description: Optional[str] = None,
) -> Optional[AccountingEntry]:
    """
    Fire-and-forget append to the accounting ledger.

    The row is written inside a SAVEPOINT: if the sink fails, the failure is
    logged and only the savepoint is rolled back, leaving the enclosing
    inventory operation intact. Returns None when the posting was dropped.
    """
    entry = AccountingEntry(
        ledger_type=ledger_type,
        account_name=account_name,
        debit_amount=debit,
        credit_amount=credit,
        reference_id=str(reference_id) if reference_id is not None else None,
        reference_type=reference_type,
        description=description,
    )
    try:
        with db.begin_nested():
            db.add(entry)
    except SQLAlchemyError:
        logger.exception(
            "Accounting posting dropped",
            extra={"account": account_name, "ledger_type": ledger_type, "reference_id": reference_id},
        )
        return None
    return entry


def post_purchase(db: Session, *, batch_id: int, batch_number: str, quantity: int, value: Decimal):
    # Inward: debit the inventory asset account
    return post_entry(
        db,
        ledger_type="PURCHASE",
        account_name=settings.INVENTORY_ASSET_ACCOUNT,
        debit=value,
        reference_id=batch_id,
        reference_type="inward_batch",
        description=f"Purchased {quantity} units of batch {batch_number}",
    )


def post_sale_cost(db: Session, *, variant_id: int, quantity: int, value: Decimal, reference_id=None):
    # Sale: move the consumed cost from inventory asset to COGS
    description = f"Cost of {quantity} units of variant {variant_id} sold"
    post_entry(
        db,
        ledger_type="SALE",
        account_name=settings.COGS_ACCOUNT,
        debit=value,
        reference_id=reference_id,
        reference_type="sale",
        description=description,
    )
    return post_entry(
        db,
        ledger_type="SALE",
        account_name=settings.INVENTORY_ASSET_ACCOUNT,
        credit=value,
        reference_id=reference_id,
        reference_type="sale",
        description=description,
    )
