from typing import Optional
from pydantic import BaseModel, Field

class MetricsRunSummary(BaseModel):
    success: bool
    products_updated_count: int = 0
    products_failed_count: int = 0
    message: str = ""

class SyncRunSummary(BaseModel):
    success: bool
    shop_domain: str
    message: str = ""
    locations_mapped: int = 0
    products_written: int = 0
    products_failed: int = 0
    variants_written: int = 0
    variants_failed: int = 0
    inventory_written: int = 0
    inventory_failed: int = 0
    inventory_skipped: int = 0
    pages_fetched: int = 0
    last_cursor: Optional[str] = None
    metrics: Optional[MetricsRunSummary] = None
    sync_log_id: Optional[int] = None
    duration_ms: int = 0

class PushResult(BaseModel):
    success: bool
    message: str = ""
    variant_id: Optional[int] = None
    location_id: Optional[str] = None
    quantity: Optional[int] = None
    adjustment_group_id: Optional[str] = None
    user_errors: list = Field(default_factory=list)
    local_inventory_id: Optional[int] = None

class ShopRef(BaseModel):
    domain: str
    access_token: str
