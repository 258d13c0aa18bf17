# schemas/reports.py
from datetime import datetime, date
from typing import List, Optional
from pydantic import BaseModel

# Inventory valuation summary
class InventoryStatsResponse(BaseModel):
    asset_value: float
    revenue_potential: float
    total_units: int

class CogsResponse(BaseModel):
    cogs: float
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

# Schemas for expiry alerting
class ExpiringBatchItem(BaseModel):
    batch_id: int
    batch_number: str
    variant_id: int
    sku: str
    expiry_date: date
    days_left: int
    current_quantity: int
    cost_price: float

class ExpiringBatchResponse(BaseModel):
    items: List[ExpiringBatchItem]
    days: int

# Schemas for low stock alerting
class LowStockItem(BaseModel):
    variant_id: int
    sku: str
    name: Optional[str] = None
    stock_quantity: int
    min_stock_level: int
    reorder_quantity: int

class LowStockPage(BaseModel):
    items: List[LowStockItem]
    total: int
    page: int
    page_size: int

# Dead stock report
class AgingItem(BaseModel):
    variant_id: int
    sku: str
    stock_quantity: int
    last_movement: datetime
    value: float

class AgingResponse(BaseModel):
    items: List[AgingItem]
    days: int
    total_value: float

# Monthly purchases vs sales
class PurchaseSalesItem(BaseModel):
    month: str
    purchases: float
    sales: float

class PurchaseSalesResponse(BaseModel):
    items: List[PurchaseSalesItem]
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

# Ledger vs live stock drift
class ReconciliationItem(BaseModel):
    variant_id: int
    warehouse_id: int
    batch_stock: int
    ledger_stock: int
    live_stock: int
    drift: int
    in_sync: bool

class ReconciliationResponse(BaseModel):
    items: List[ReconciliationItem]
    drifting: int
