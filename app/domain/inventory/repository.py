from typing import AsyncIterator, List
from contextlib import asynccontextmanager
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import asyncio

from app.core.exceptions import ErrorHandler
from app.domain.inventory.models import Batch, BatchRecord


class InventoryStore:
    """Persistence collaborator over the whole batch collection.

    Reads go through ``load_all``. Every mutation runs inside ``transaction()``,
    which loads the collection, yields it as a mutable list and persists the
    list only when the block exits cleanly. Transactions are serialized by a
    lock owned by the store.
    """

    backend = "abstract"

    def __init__(self):
        self._lock = asyncio.Lock()

    async def load_all(self) -> List[Batch]:
        raise NotImplementedError

    async def save_all(self, batches: List[Batch]) -> None:
        raise NotImplementedError

    async def find_by_name(self, name: str) -> List[Batch]:
        """Batches whose name matches case-insensitively, in insertion order"""
        wanted = name.casefold()
        return [b for b in await self.load_all() if b.name.casefold() == wanted]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[List[Batch]]:
        async with self._lock:
            async with self._unit_of_work() as batches:
                yield batches

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[List[Batch]]:
        batches = await self.load_all()
        yield batches
        await self.save_all(batches)


class SqlInventoryStore(InventoryStore):
    """Batch rows in a relational table, one row per batch"""

    backend = "database"

    def __init__(self, session_factory: async_sessionmaker):
        super().__init__()
        self.session_factory = session_factory

    async def load_all(self) -> List[Batch]:
        with ErrorHandler("load inventory"):
            async with self.session_factory() as session:
                result = await session.execute(
                    select(BatchRecord).order_by(BatchRecord.position)
                )
                return [Batch.model_validate(r) for r in result.scalars().all()]

    async def save_all(self, batches: List[Batch]) -> None:
        async with self.transaction() as current:
            current[:] = batches

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[List[Batch]]:
        # Closing the session without a commit rolls the transaction back.
        async with self.session_factory() as session:
            with ErrorHandler("load inventory for update"):
                result = await session.execute(
                    select(BatchRecord).order_by(BatchRecord.position).with_for_update()
                )
                records = list(result.scalars().all())
            batches = [Batch.model_validate(r) for r in records]

            yield batches

            with ErrorHandler("save inventory"):
                await self._apply(session, records, batches)
                await session.commit()

    async def _apply(
        self,
        session: AsyncSession,
        records: List[BatchRecord],
        batches: List[Batch],
    ) -> None:
        existing = {r.id: r for r in records}
        keep = {b.id for b in batches}

        for record in records:
            if record.id not in keep:
                await session.delete(record)

        position = max((r.position for r in records), default=0)
        for batch in batches:
            record = existing.get(batch.id)
            if record is None:
                position += 1
                session.add(BatchRecord(
                    id=batch.id,
                    position=position,
                    name=batch.name,
                    strength=batch.strength,
                    quantity=batch.quantity,
                    expiry_date=batch.expiry_date,
                ))
            else:
                record.name = batch.name
                record.strength = batch.strength
                record.quantity = batch.quantity
                record.expiry_date = batch.expiry_date
