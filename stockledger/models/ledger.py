# stockledger/models/ledger.py
import enum
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Enum, event
from sqlalchemy.orm import relationship
from stockledger.database import Base
from stockledger.errors import ImmutableEntry
from stockledger.utils.clock import utcnow
from stockledger.models.batch import Batch  # noqa: F401
from stockledger.models.users import User  # noqa: F401

# Kinds of batch-level movement recorded in the ledger
class MovementKind(str, enum.Enum):
    PURCHASE = "PURCHASE"
    SALE = "SALE"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"

# Append-only, batch-resolution record of a stock change. running_balance is
# the (warehouse, variant, batch) quantity right after this entry.
class LedgerEntry(Base):
    __tablename__ = "inventory_ledger"

    id = Column(Integer, primary_key=True, index=True)
    transaction_date = Column(DateTime, nullable=False, default=utcnow, index=True)

    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=False, index=True)
    batch_id = Column(Integer, ForeignKey("product_batches.id"), nullable=False, index=True)

    transaction_type = Column(Enum(MovementKind), nullable=False, index=True)
    quantity_change = Column(Integer, nullable=False)
    running_balance = Column(Integer, nullable=False)

    # Valuation; total_value carries the sign of quantity_change
    unit_cost = Column(Numeric(12, 2), nullable=False, default=0)
    total_value = Column(Numeric(14, 2), nullable=False, default=0)

    reason = Column(String, nullable=True)
    performed_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    batch = relationship("Batch")
    warehouse = relationship("Warehouse")
    variant = relationship("Variant")
    user = relationship("User")


@event.listens_for(LedgerEntry, "before_update")
def _ledger_entry_is_immutable(mapper, connection, target):
    raise ImmutableEntry(f"Ledger entry {target.id} cannot be modified")


@event.listens_for(LedgerEntry, "before_delete")
def _ledger_entry_is_permanent(mapper, connection, target):
    raise ImmutableEntry(f"Ledger entry {target.id} cannot be deleted")
