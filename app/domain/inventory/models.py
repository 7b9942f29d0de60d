from sqlalchemy import Column, String, Integer, Date, DateTime, CheckConstraint, func
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Optional
from datetime import date, datetime
import enum
import uuid

from app.db.base import Base


def gen_uuid():
    return str(uuid.uuid4())


class StoreBackend(str, enum.Enum):
    JSON = "json"
    DATABASE = "database"


class IdentityModel(str, enum.Enum):
    NAME_ONLY = "name-only"
    NAME_STRENGTH = "name+strength"
    NAME_STRENGTH_EXPIRY = "name+strength+expiry"


class DuplicatePolicy(str, enum.Enum):
    MERGE = "merge"
    REJECT = "reject"


class SalePolicy(str, enum.Enum):
    FIFO = "fifo"
    SINGLE_BATCH = "single-batch"


class ExpiryStatus(str, enum.Enum):
    EXPIRED = "expired"
    SOON = "soon"
    NEAR = "near"
    OK = "ok"


def status_labels(soon_days: int = 30, near_days: int = 90) -> Dict[ExpiryStatus, str]:
    """Display labels for each status under the given expiry windows"""
    return {
        ExpiryStatus.EXPIRED: "Expired",
        ExpiryStatus.SOON: f"≤{soon_days}d",
        ExpiryStatus.NEAR: f"≤{near_days}d",
        ExpiryStatus.OK: "OK",
    }


def coerce_expiry_date(value) -> date:
    """Accept a date, a datetime or an ISO string; time of day is dropped."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        return date.fromisoformat(value.strip().split("T")[0])
    raise ValueError(f"Invalid expiry date: {value!r}")


class BatchRecord(Base):
    __tablename__ = "medicine_batches"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    position = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    strength = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    expiry_date = Column(Date, nullable=False)
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_medicine_batches_quantity_non_negative"),
    )


class Batch(BaseModel):
    """One received lot of a medicine."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=gen_uuid)
    name: str
    strength: str
    quantity: int = Field(ge=0)
    expiry_date: date

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v):
        # legacy files carry numeric timestamp ids
        return str(v) if isinstance(v, int) else v

    @field_validator("expiry_date", mode="before")
    @classmethod
    def parse_expiry(cls, v):
        return coerce_expiry_date(v)


class StatusInfo(BaseModel):
    key: ExpiryStatus
    label: str


class BatchView(Batch):
    status: StatusInfo


class StockSummary(BaseModel):
    name: str
    total_quantity: int
    batches: int
    strengths: List[str]
    earliest_expiry: Optional[date] = None
    status: Optional[StatusInfo] = None
