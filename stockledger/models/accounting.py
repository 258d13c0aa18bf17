# stockledger/models/accounting.py
from sqlalchemy import Column, Integer, String, Numeric, DateTime
from stockledger.database import Base
from stockledger.utils.clock import utcnow

# Debit/credit line handed to the accounting ledger. The inventory engine
# only appends here and never reads its own postings back.
class AccountingEntry(Base):
    __tablename__ = "accounting_ledger"

    id = Column(Integer, primary_key=True, index=True)
    transaction_date = Column(DateTime, nullable=False, default=utcnow, index=True)
    ledger_type = Column(String(20), nullable=False)
    account_name = Column(String, nullable=False, index=True)
    debit_amount = Column(Numeric(14, 2), nullable=False, default=0)
    credit_amount = Column(Numeric(14, 2), nullable=False, default=0)
    reference_id = Column(String, nullable=True)
    reference_type = Column(String(50), nullable=True)
    description = Column(String, nullable=True)
