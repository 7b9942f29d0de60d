from typing import Any, Dict, List, Optional, Tuple, Union
from datetime import date
from loguru import logger

from app.core.config import Settings, settings
from app.core.exceptions import ValidationError, NotFoundError, ConflictError
from app.domain.inventory.models import (
    Batch,
    BatchView,
    DuplicatePolicy,
    ExpiryStatus,
    IdentityModel,
    StatusInfo,
    StockSummary,
    coerce_expiry_date,
    status_labels,
)
from app.domain.inventory.repository import InventoryStore

STATUS_FILTER_ALL = "all"
SORT_ORDERS = ("insertion", "expiry")


def classify_expiry(
    expiry_date: date,
    today: date,
    soon_days: int = 30,
    near_days: int = 90,
) -> ExpiryStatus:
    """Bucket an expiry date by whole days remaining from ``today``."""
    days_remaining = (expiry_date - today).days
    if days_remaining < 0:
        return ExpiryStatus.EXPIRED
    if days_remaining <= soon_days:
        return ExpiryStatus.SOON
    if days_remaining <= near_days:
        return ExpiryStatus.NEAR
    return ExpiryStatus.OK


class InventoryCatalog:
    """Service layer for the medicine batch collection"""

    def __init__(self, store: InventoryStore, config: Settings = settings):
        self.store = store
        self.identity_model = IdentityModel(config.IDENTITY_MODEL)
        self.duplicate_policy = DuplicatePolicy(config.DUPLICATE_POLICY)
        self.case_sensitive = config.IDENTITY_CASE_SENSITIVE
        self.soon_days = config.EXPIRY_SOON_DAYS
        self.near_days = config.EXPIRY_NEAR_DAYS
        self.labels = status_labels(self.soon_days, self.near_days)

    def get_status(self, expiry_date: date, today: Optional[date] = None) -> StatusInfo:
        key = classify_expiry(
            expiry_date, today or date.today(), self.soon_days, self.near_days
        )
        return StatusInfo(key=key, label=self.labels[key])

    def identity_key(self, name: str, strength: str, expiry_date: date) -> Tuple:
        """Key under which two batches are considered the same stock"""
        if not self.case_sensitive:
            name, strength = name.casefold(), strength.casefold()

        if self.identity_model == IdentityModel.NAME_ONLY:
            return (name,)
        if self.identity_model == IdentityModel.NAME_STRENGTH:
            return (name, strength)
        return (name, strength, expiry_date)

    async def list_batches(
        self,
        search: Optional[str] = None,
        status_filter: Union[str, ExpiryStatus, None] = None,
        sort: str = "insertion",
        today: Optional[date] = None,
    ) -> List[BatchView]:
        """List batches with their expiry status, optionally searched and filtered"""
        wanted = self._parse_status_filter(status_filter)
        if sort not in SORT_ORDERS:
            raise ValidationError(
                f"Unknown sort order: {sort}",
                details={"allowed": list(SORT_ORDERS)}
            )

        today = today or date.today()
        term = (search or "").strip().casefold()

        views = []
        for batch in await self.store.load_all():
            if batch.quantity <= 0:
                continue
            if term and term not in batch.name.casefold() and term not in batch.strength.casefold():
                continue
            status = self.get_status(batch.expiry_date, today)
            if wanted is not None and status.key != wanted:
                continue
            views.append(BatchView(**batch.model_dump(), status=status))

        if sort == "expiry":
            views.sort(key=lambda v: v.expiry_date)
        return views

    async def add_stock(
        self,
        name: Any,
        strength: Any,
        quantity: Any,
        expiry_date: Any,
    ) -> Tuple[Batch, bool]:
        """Insert a new batch or fold the stock into an existing one.

        Returns the stored batch and whether a new row was created. Under the
        ``reject`` duplicate policy an identity match raises ConflictError.
        """
        name, strength, quantity, expiry_date = self._validate_stock(
            name, strength, quantity, expiry_date
        )
        key = self.identity_key(name, strength, expiry_date)

        async with self.store.transaction() as batches:
            existing = next(
                (b for b in batches
                 if self.identity_key(b.name, b.strength, b.expiry_date) == key),
                None,
            )

            if existing is None:
                batch = Batch(
                    name=name,
                    strength=strength,
                    quantity=quantity,
                    expiry_date=expiry_date,
                )
                batches.append(batch)
                created = True
            elif self.duplicate_policy == DuplicatePolicy.REJECT:
                raise ConflictError(
                    f"Stock item {existing.name} ({existing.strength}) already exists",
                    details={"identity_model": self.identity_model.value, "id": existing.id},
                )
            else:
                existing.quantity += quantity
                # keep the soonest expiry
                if expiry_date < existing.expiry_date:
                    existing.expiry_date = expiry_date
                batch = existing
                created = False

        if created:
            logger.info(f"Added {name} ({strength}) x{quantity}, expires {expiry_date}")
        else:
            logger.info(f"Merged {quantity} units into {batch.name} ({batch.strength}), now {batch.quantity}")
        return batch.model_copy(), created

    async def delete_by_name(self, name: str) -> int:
        """Remove every batch of a medicine, whatever its strength or expiry"""
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Medicine name is required")

        wanted = name.strip().casefold()
        async with self.store.transaction() as batches:
            kept = [b for b in batches if b.name.casefold() != wanted]
            removed = len(batches) - len(kept)
            if removed == 0:
                raise NotFoundError(
                    f"No medicine found with the name: {name}",
                    details={"name": name},
                )
            batches[:] = kept

        logger.info(f"Deleted {removed} batches of {name}")
        return removed

    async def summary(self, today: Optional[date] = None) -> List[StockSummary]:
        """Stock totals per medicine name, in order of first appearance"""
        groups: Dict[str, List[Batch]] = {}
        for batch in await self.store.load_all():
            if batch.quantity > 0:
                groups.setdefault(batch.name.casefold(), []).append(batch)

        summaries = []
        for batches in groups.values():
            earliest = min(b.expiry_date for b in batches)
            strengths = list(dict.fromkeys(b.strength for b in batches))
            summaries.append(StockSummary(
                name=batches[0].name,
                total_quantity=sum(b.quantity for b in batches),
                batches=len(batches),
                strengths=strengths,
                earliest_expiry=earliest,
                status=self.get_status(earliest, today),
            ))
        return summaries

    def _parse_status_filter(self, status_filter) -> Optional[ExpiryStatus]:
        if status_filter is None or status_filter == STATUS_FILTER_ALL:
            return None
        try:
            return ExpiryStatus(status_filter)
        except ValueError:
            raise ValidationError(
                f"Unknown status filter: {status_filter}",
                details={"allowed": [STATUS_FILTER_ALL] + [s.value for s in ExpiryStatus]}
            )

    def _validate_stock(self, name, strength, quantity, expiry_date):
        fields = (
            ("name", name),
            ("strength", strength),
            ("quantity", quantity),
            ("expiryDate", expiry_date),
        )
        missing = [
            field for field, value in fields
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            raise ValidationError("All fields are required", details={"missing": missing})

        if not isinstance(name, str) or not isinstance(strength, str):
            raise ValidationError("Name and strength must be text")

        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(
                "Quantity must be a positive integer",
                details={"quantity": quantity}
            )

        try:
            expiry = coerce_expiry_date(expiry_date)
        except (TypeError, ValueError):
            raise ValidationError(
                "Expiry date must be a calendar date (YYYY-MM-DD)",
                details={"expiryDate": str(expiry_date)}
            )

        return name.strip(), strength.strip(), quantity, expiry
