# stockledger/models/product.py
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from stockledger.database import Base
from stockledger.utils.clock import utcnow

# Model Product
# Owning catalog record of one or more sellable variants. Maintained by the
# catalog; the inventory engine only reads it.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    code = Column(String, unique=True, nullable=True, index=True)
    category = Column(String)

    variants = relationship("Variant", back_populates="product")


# Model Variant
# Sellable unit. Prices and thresholds come from the catalog; tax metadata
# may also be refreshed by a stock inward.
class Variant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    sku = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)

    # Prices and tax rate, guarded by constraints
    price = Column(Numeric(12, 2), CheckConstraint("price >= 0"), nullable=False, default=0)
    cost_price = Column(Numeric(12, 2), CheckConstraint("cost_price >= 0"), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), CheckConstraint("tax_rate >= 0 AND tax_rate <= 100"), nullable=False, default=0)
    hsn_code = Column(String, nullable=True)

    # Alerting thresholds
    min_stock_level = Column(Integer, CheckConstraint("min_stock_level >= 0"), nullable=False, default=10)
    reorder_quantity = Column(Integer, CheckConstraint("reorder_quantity >= 0"), nullable=False, default=50)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    product = relationship("Product", back_populates="variants")
