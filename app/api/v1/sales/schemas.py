from pydantic import Field
from typing import List, Optional
from datetime import date

from app.api.v1.inventory.schemas import CamelModel


class SaleCreate(CamelModel):
    medicine: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    strength: Optional[str] = None


class AllocationResponse(CamelModel):
    batch_id: str
    strength: str
    expiry_date: date
    quantity: int
    depleted: bool


class SaleResponse(CamelModel):
    message: str
    medicine: str
    quantity_sold: int
    remaining: int
    allocations: List[AllocationResponse] = []
