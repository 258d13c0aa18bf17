# stockledger/models/operation.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from stockledger.database import Base
from stockledger.utils.clock import utcnow

# Result of a write operation stored under the caller's idempotency key, so a
# retried request replays the result instead of applying its delta twice.
class OperationRecord(Base):
    __tablename__ = "operation_records"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(128), unique=True, nullable=False, index=True)
    operation = Column(String(20), nullable=False)
    performed_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    result = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
