# stockledger/models/batch.py
from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, ForeignKey,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from stockledger.database import Base
from stockledger.utils.clock import utcnow
from stockledger.models.product import Variant  # noqa: F401
from stockledger.models.warehouse import Warehouse  # noqa: F401

# A dated, costed lot of one variant. The batch number identifies the lot
# within its variant; a repeated inward under the same number merges into it.
class Batch(Base):
    __tablename__ = "product_batches"
    __table_args__ = (
        UniqueConstraint("variant_id", "batch_number", name="uq_product_batches_variant_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=False, index=True)
    batch_number = Column(String, nullable=False)
    expiry_date = Column(Date, nullable=True, index=True)

    # Acquisition cost of the latest inward under this number
    cost_price = Column(Numeric(12, 2), CheckConstraint("cost_price >= 0"), nullable=False)

    initial_quantity = Column(Integer, CheckConstraint("initial_quantity >= 0"), nullable=False, default=0)
    current_quantity = Column(Integer, CheckConstraint("current_quantity >= 0"), nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    variant = relationship("Variant")


# Quantity of one batch held in one warehouse; the finest-grained stock fact.
class WarehouseBatchStock(Base):
    __tablename__ = "warehouse_batch_stock"
    __table_args__ = (
        UniqueConstraint("warehouse_id", "variant_id", "batch_id", name="uq_warehouse_batch_stock_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=False, index=True)
    batch_id = Column(Integer, ForeignKey("product_batches.id"), nullable=False, index=True)
    quantity = Column(Integer, CheckConstraint("quantity >= 0"), nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    batch = relationship("Batch")
    warehouse = relationship("Warehouse")
