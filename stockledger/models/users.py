# stockledger/models/users.py
from sqlalchemy import Column, Integer, String
from stockledger.database import Base

# Acting user; every stock-affecting write is attributed to one
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    role = Column(String, nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
