# stockledger/models/stock.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, event
from sqlalchemy.orm import relationship
from stockledger.database import Base
from stockledger.errors import ImmutableEntry
from stockledger.utils.clock import utcnow
from stockledger.models.product import Variant  # noqa: F401
from stockledger.models.warehouse import Warehouse  # noqa: F401
from stockledger.models.users import User  # noqa: F401

# Movement types of the live stock log
PURCHASE = "purchase"
SALE = "sale"
TRANSFER_IN = "transfer_in"
TRANSFER_OUT = "transfer_out"
ADJUSTMENT_TYPES = ("adjustment", "return", "damage", "correction")

# Batch-agnostic, append-only log of signed quantity changes per
# (variant, warehouse). Current stock is the sum of quantity_change.
class LiveStockEntry(Base):
    __tablename__ = "inventory_transactions"

    id = Column(Integer, primary_key=True, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)

    # Signed quantity involved in the movement
    quantity_change = Column(Integer, nullable=False)

    # Movement classification (purchase, sale, adjustment, transfer_out, ...)
    transaction_type = Column(String, nullable=False, index=True)
    reason = Column(String, nullable=True)

    # Optional link to the originating record (batch id for purchases)
    reference_id = Column(String, nullable=True)

    performed_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    variant = relationship("Variant")
    warehouse = relationship("Warehouse")
    user = relationship("User")


@event.listens_for(LiveStockEntry, "before_update")
def _live_stock_entry_is_immutable(mapper, connection, target):
    raise ImmutableEntry(f"Stock log entry {target.id} cannot be modified")


@event.listens_for(LiveStockEntry, "before_delete")
def _live_stock_entry_is_permanent(mapper, connection, target):
    raise ImmutableEntry(f"Stock log entry {target.id} cannot be deleted")
