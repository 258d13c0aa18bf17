# stockledger/models/warehouse.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from stockledger.database import Base
from stockledger.utils.clock import utcnow

# Physical stock location. Managed outside the inventory engine, which only
# references it; inactive warehouses cannot receive stock.
class Warehouse(Base):
    __tablename__ = "warehouses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
