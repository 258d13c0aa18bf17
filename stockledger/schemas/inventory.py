# stockledger/schemas/inventory.py
from pydantic import BaseModel, Field, ConfigDict
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Literal


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Receipt of a dated, costed lot into a warehouse
class InwardRequest(BaseModel):
    variant_id: int
    warehouse_id: int
    batch_number: str = Field(min_length=1)
    expiry_date: date
    cost_price: Decimal = Field(ge=0)
    quantity: int = Field(gt=0)
    reason: Optional[str] = None
    hsn_code: Optional[str] = None
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    idempotency_key: Optional[str] = Field(default=None, max_length=128)

class InwardResponse(BaseModel):
    batch_id: int
    batch_quantity: int
    warehouse_quantity: int
    ledger_entry_id: int
    live_stock_entry_id: int
    replayed: bool = False


# Outgoing sale drawn from batches by allocation strategy
class SaleRequest(BaseModel):
    variant_id: int
    warehouse_id: int
    quantity: int = Field(gt=0)
    reason: Optional[str] = None
    strategy: Literal["FEFO", "FIFO", "LIFO"] = "FEFO"
    reference_id: Optional[str] = None
    idempotency_key: Optional[str] = Field(default=None, max_length=128)

class SaleAllocation(BaseModel):
    batch_id: int
    quantity: int

class SaleResponse(BaseModel):
    live_stock_entry_id: int
    ledger_entry_ids: List[int]
    allocations: List[SaleAllocation]
    cost_value: float
    stock_after: int
    replayed: bool = False


class BatchOut(ORMBase):
    id: int
    variant_id: int
    batch_number: str
    expiry_date: Optional[date] = None
    cost_price: float
    initial_quantity: int
    current_quantity: int
    created_at: datetime


class LedgerEntryOut(ORMBase):
    id: int
    transaction_date: datetime
    warehouse_id: int
    warehouse_name: Optional[str] = None
    variant_id: int
    sku: Optional[str] = None
    batch_id: int
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    transaction_type: str
    quantity_change: int
    running_balance: int
    unit_cost: float
    total_value: float
    reason: Optional[str] = None
    performed_by: int


class WarehouseStockItem(BaseModel):
    warehouse_id: int
    warehouse_name: str
    quantity: int

class WarehouseStockResponse(BaseModel):
    variant_id: int
    total: int
    warehouses: List[WarehouseStockItem]
