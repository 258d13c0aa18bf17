# stockledger/schemas/stock.py
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import List, Optional, Literal

# Allowed types for manual stock adjustments
AdjustmentType = Literal["adjustment", "return", "damage", "correction"]

# Request for a batch-agnostic stock adjustment
class StockAdjustRequest(BaseModel):
    variant_id: int
    warehouse_id: int
    quantity_change: int
    reason: str
    type: AdjustmentType = "adjustment"
    reference_id: Optional[str] = None
    idempotency_key: Optional[str] = Field(default=None, max_length=128)

class StockAdjustResponse(BaseModel):
    entry_id: int
    quantity_change: int
    stock_after: int
    replayed: bool = False

# Request for moving aggregate stock between two warehouses
class StockTransferRequest(BaseModel):
    variant_id: int
    source_warehouse_id: int
    target_warehouse_id: int
    quantity: int = Field(gt=0)
    reason: Optional[str] = None
    idempotency_key: Optional[str] = Field(default=None, max_length=128)

class StockTransferResponse(BaseModel):
    out_entry_id: int
    in_entry_id: int
    source_stock: int
    target_stock: int
    replayed: bool = False

# Single live stock log entry as shown in movement history
class StockMovementResponse(BaseModel):
    id: int
    created_at: datetime
    variant_id: int
    warehouse_id: int
    quantity_change: int
    type: str
    reason: Optional[str] = None
    reference_id: Optional[str] = None
    performed_by: int
    sku: str
    warehouse_name: str
    user_email: str

    model_config = ConfigDict(from_attributes=True)

# Paginated response for stock movement history
class StockMovementPage(BaseModel):
    items: List[StockMovementResponse]
    total: int
    page: int
    page_size: int
