from typing import Any, Callable, Dict, List, Optional, Tuple
from loguru import logger

from app.core.config import Settings, settings
from app.core.exceptions import ValidationError, NotFoundError, InsufficientStockError
from app.domain.inventory.models import Batch, SalePolicy
from app.domain.inventory.repository import InventoryStore
from app.domain.sales.models import Allocation, SaleResult


def _allocation(batch: Batch, taken: int) -> Allocation:
    return Allocation(
        batch_id=batch.id,
        strength=batch.strength,
        expiry_date=batch.expiry_date,
        quantity=taken,
        depleted=batch.quantity == 0,
    )


def allocate_fifo(batches: List[Batch], quantity: int) -> Tuple[List[Allocation], int]:
    """Debit batches soonest-expiry first until ``quantity`` is covered.

    The given batches are mutated in place, so callers pass scratch copies.
    Ties on expiry keep the incoming order. Returns the allocations and the
    quantity that could not be covered.
    """
    remaining = quantity
    allocations = []

    for batch in sorted(batches, key=lambda b: b.expiry_date):
        if remaining == 0:
            break
        if batch.quantity >= remaining:
            taken = remaining
            batch.quantity -= remaining
            remaining = 0
        else:
            taken = batch.quantity
            remaining -= batch.quantity
            batch.quantity = 0
        allocations.append(_allocation(batch, taken))

    return allocations, remaining


def allocate_single_batch(batches: List[Batch], quantity: int) -> Tuple[List[Allocation], int]:
    """Debit the soonest-expiring batch that covers ``quantity`` on its own"""
    for batch in sorted(batches, key=lambda b: b.expiry_date):
        if batch.quantity >= quantity:
            batch.quantity -= quantity
            return [_allocation(batch, quantity)], 0
    return [], quantity


ALLOCATORS: Dict[SalePolicy, Callable[[List[Batch], int], Tuple[List[Allocation], int]]] = {
    SalePolicy.FIFO: allocate_fifo,
    SalePolicy.SINGLE_BATCH: allocate_single_batch,
}


class SaleEngine:
    """Records sales against stock using the configured sale policy"""

    def __init__(self, store: InventoryStore, config: Settings = settings):
        self.store = store
        self.policy = SalePolicy(config.SALE_POLICY)

    async def record_sale(
        self,
        medicine: Any,
        quantity: Any,
        strength: Optional[str] = None,
    ) -> SaleResult:
        """Sell ``quantity`` units of a medicine.

        All strengths of the medicine are pooled unless ``strength`` is given.
        The debit is computed on scratch copies; nothing is persisted unless
        the whole quantity can be covered. Batches left at zero are removed.
        """
        medicine, quantity, strength = self._validate(medicine, quantity, strength)
        wanted = medicine.casefold()
        wanted_strength = strength.casefold() if strength else None

        async with self.store.transaction() as batches:
            matching = [
                b for b in batches
                if b.name.casefold() == wanted
                and (wanted_strength is None or b.strength.casefold() == wanted_strength)
            ]
            if not matching:
                raise NotFoundError(
                    f"Medicine not found: {medicine}",
                    details={"medicine": medicine, "strength": strength},
                )

            stocked = [b for b in matching if b.quantity > 0]
            scratch = [b.model_copy() for b in stocked]
            available = sum(b.quantity for b in scratch)

            allocations, short = ALLOCATORS[self.policy](scratch, quantity)
            if short > 0:
                logger.warning(
                    f"Sale of {quantity} {medicine} refused, {available} available"
                )
                raise InsufficientStockError(
                    available=available,
                    requested=quantity,
                    message=f"Insufficient stock for {medicine}. Available: {available}",
                )

            # scratch[i] is the copy of stocked[i]; ids may repeat in legacy data
            for batch, debited in zip(stocked, scratch):
                batch.quantity = debited.quantity
            batches[:] = [b for b in batches if b.quantity > 0]

        display_name = matching[0].name
        remaining = available - quantity
        if remaining == 0:
            message = (
                f"Sale of {quantity} units of {display_name} recorded. "
                f"{display_name} stock depleted and removed."
            )
        else:
            message = f"Sale of {quantity} units of {display_name} recorded. Remaining: {remaining}"

        logger.info(
            f"Sold {quantity} {display_name} from {len(allocations)} batch(es), "
            f"{sum(1 for a in allocations if a.depleted)} depleted"
        )
        return SaleResult(
            medicine=display_name,
            quantity_sold=quantity,
            remaining=remaining,
            allocations=allocations,
            message=message,
        )

    def _validate(self, medicine, quantity, strength):
        if not isinstance(medicine, str) or not medicine.strip():
            raise ValidationError(
                "Valid medicine and quantity required",
                details={"medicine": medicine}
            )
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(
                "Valid medicine and quantity required",
                details={"quantity": quantity}
            )
        if strength is not None and not isinstance(strength, str):
            raise ValidationError("Strength must be text", details={"strength": strength})

        strength = strength.strip() if strength else None
        return medicine.strip(), quantity, strength or None
