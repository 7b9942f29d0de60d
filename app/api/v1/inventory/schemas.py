from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import date
import enum

from app.domain.inventory.models import ExpiryStatus, coerce_expiry_date


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class StatusFilter(str, enum.Enum):
    ALL = "all"
    EXPIRED = "expired"
    SOON = "soon"
    NEAR = "near"
    OK = "ok"


class SortOrder(str, enum.Enum):
    INSERTION = "insertion"
    EXPIRY = "expiry"


class StockCreate(CamelModel):
    name: str = Field(..., min_length=1)
    strength: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    expiry_date: date

    @field_validator("expiry_date", mode="before")
    @classmethod
    def parse_expiry(cls, v):
        try:
            return coerce_expiry_date(v)
        except ValueError:
            # let pydantic report the original value
            return v


class StatusResponse(BaseModel):
    key: ExpiryStatus
    label: str

    model_config = ConfigDict(from_attributes=True)


class BatchResponse(CamelModel):
    id: str
    name: str
    strength: str
    quantity: int
    expiry_date: date
    status: Optional[StatusResponse] = None


class StockAddedResponse(CamelModel):
    message: str
    created: bool
    item: BatchResponse


class DeleteResponse(CamelModel):
    message: str
    removed: int


class StockSummaryResponse(CamelModel):
    name: str
    total_quantity: int
    batches: int
    strengths: List[str]
    earliest_expiry: Optional[date] = None
    status: Optional[StatusResponse] = None
