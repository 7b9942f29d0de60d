from pydantic import BaseModel
from typing import List
from datetime import date


class Allocation(BaseModel):
    """Units taken from one batch by a sale"""
    batch_id: str
    strength: str
    expiry_date: date
    quantity: int
    depleted: bool = False


class SaleResult(BaseModel):
    medicine: str
    quantity_sold: int
    remaining: int
    allocations: List[Allocation] = []
    message: str

    @property
    def depleted_batches(self) -> List[Allocation]:
        return [a for a in self.allocations if a.depleted]
