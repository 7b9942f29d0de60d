import pytest
from datetime import date

from app.core.exceptions import ValidationError, NotFoundError, InsufficientStockError
from app.domain.inventory.models import Batch
from app.domain.inventory.repository import InventoryStore
from app.domain.inventory.service import InventoryCatalog
from app.domain.sales.service import SaleEngine, allocate_fifo, allocate_single_batch
from app.infrastructure.json_store import JsonFileInventoryStore
from tests.conftest import days_from_today


async def total_quantity(store, name: str) -> int:
    return sum(b.quantity for b in await store.find_by_name(name))


@pytest.mark.unit
@pytest.mark.sales
class TestAllocators:
    """The pure allocation functions on hand-built batches."""

    def test_fifo_takes_soonest_expiry_first(self):
        later = Batch(name="X", strength="1", quantity=5, expiry_date=date(2027, 1, 20))
        sooner = Batch(name="X", strength="1", quantity=5, expiry_date=date(2027, 1, 10))

        allocations, short = allocate_fifo([later, sooner], 7)

        assert short == 0
        assert [(a.batch_id, a.quantity, a.depleted) for a in allocations] == [
            (sooner.id, 5, True),
            (later.id, 2, False),
        ]
        assert sooner.quantity == 0
        assert later.quantity == 3

    def test_fifo_ties_keep_incoming_order(self):
        first = Batch(name="X", strength="a", quantity=3, expiry_date=date(2027, 1, 10))
        second = Batch(name="X", strength="b", quantity=3, expiry_date=date(2027, 1, 10))

        allocations, _ = allocate_fifo([first, second], 4)

        assert [a.batch_id for a in allocations] == [first.id, second.id]
        assert first.quantity == 0
        assert second.quantity == 2

    def test_fifo_reports_shortfall(self):
        batch = Batch(name="X", strength="1", quantity=3, expiry_date=date(2027, 1, 10))

        allocations, short = allocate_fifo([batch], 5)

        assert short == 2
        assert allocations[0].quantity == 3

    def test_fifo_exact_depletion(self):
        batch = Batch(name="X", strength="1", quantity=4, expiry_date=date(2027, 1, 10))

        allocations, short = allocate_fifo([batch], 4)

        assert short == 0
        assert allocations[0].depleted is True

    def test_single_batch_skips_batches_too_small(self):
        small = Batch(name="X", strength="1", quantity=2, expiry_date=date(2027, 1, 10))
        large = Batch(name="X", strength="1", quantity=9, expiry_date=date(2027, 3, 10))

        allocations, short = allocate_single_batch([small, large], 5)

        assert short == 0
        assert [a.batch_id for a in allocations] == [large.id]
        assert small.quantity == 2
        assert large.quantity == 4

    def test_single_batch_never_splits(self):
        a = Batch(name="X", strength="1", quantity=3, expiry_date=date(2027, 1, 10))
        b = Batch(name="X", strength="1", quantity=3, expiry_date=date(2027, 2, 10))

        allocations, short = allocate_single_batch([a, b], 5)

        assert allocations == []
        assert short == 5
        assert (a.quantity, b.quantity) == (3, 3)


@pytest.mark.sales
class TestRecordSale:
    async def test_fifo_depletes_oldest_batch(self, catalog: InventoryCatalog, sale_engine: SaleEngine):
        """A(5, day 10) and B(5, day 20): selling 7 removes A and leaves B at 3, then 1 more leaves 2"""
        await catalog.add_stock("Paracetamol", "500mg", 5, days_from_today(20))
        await catalog.add_stock("Paracetamol", "500mg", 5, days_from_today(10))

        result = await sale_engine.record_sale("Paracetamol", 7)

        assert result.quantity_sold == 7
        assert result.remaining == 3
        assert [a.quantity for a in result.allocations] == [5, 2]
        assert [a.expiry_date for a in result.depleted_batches] == [days_from_today(10)]

        batches = await sale_engine.store.load_all()
        assert [(b.quantity, b.expiry_date) for b in batches] == [(3, days_from_today(20))]

        await sale_engine.record_sale("Paracetamol", 1)

        batches = await sale_engine.store.load_all()
        assert [b.quantity for b in batches] == [2]

    async def test_conservation_over_many_sales(self, catalog: InventoryCatalog, sale_engine: SaleEngine):
        await catalog.add_stock("Ibuprofen", "200mg", 7, days_from_today(40))
        await catalog.add_stock("Ibuprofen", "400mg", 11, days_from_today(5))
        await catalog.add_stock("Ibuprofen", "200mg", 6, days_from_today(300))
        await catalog.add_stock("Aspirin", "75mg", 9, days_from_today(5))
        before = await total_quantity(sale_engine.store, "Ibuprofen")

        sold = 0
        for qty in (3, 8, 1, 6, 2):
            await sale_engine.record_sale("ibuprofen", qty)
            sold += qty
            assert await total_quantity(sale_engine.store, "Ibuprofen") == before - sold
            assert all(b.quantity > 0 for b in await sale_engine.store.load_all())

        # other medicines are untouched
        assert await total_quantity(sale_engine.store, "Aspirin") == 9

    async def test_insufficient_stock_changes_nothing(self, catalog: InventoryCatalog, sale_engine: SaleEngine):
        await catalog.add_stock("Amoxicillin", "250mg", 3, days_from_today(50))

        with pytest.raises(InsufficientStockError) as exc_info:
            await sale_engine.record_sale("Amoxicillin", 5)

        assert exc_info.value.available == 3
        assert exc_info.value.details == {"available": 3, "requested": 5}
        batches = await sale_engine.store.load_all()
        assert [b.quantity for b in batches] == [3]

    async def test_insufficient_across_batches_is_atomic(self, catalog: InventoryCatalog, sale_engine: SaleEngine):
        await catalog.add_stock("Amoxicillin", "250mg", 3, days_from_today(50))
        await catalog.add_stock("Amoxicillin", "250mg", 4, days_from_today(80))

        with pytest.raises(InsufficientStockError) as exc_info:
            await sale_engine.record_sale("Amoxicillin", 8)

        assert exc_info.value.available == 7
        assert [b.quantity for b in await sale_engine.store.load_all()] == [3, 4]

    async def test_exact_depletion_removes_all_batches(self, catalog: InventoryCatalog, sale_engine: SaleEngine):
        await catalog.add_stock("Cetirizine", "10mg", 2, days_from_today(50))
        await catalog.add_stock("Cetirizine", "10mg", 3, days_from_today(80))

        result = await sale_engine.record_sale("Cetirizine", 5)

        assert result.remaining == 0
        assert "depleted" in result.message
        assert len(result.depleted_batches) == 2
        assert await sale_engine.store.load_all() == []
        assert await catalog.list_batches(search="Cetirizine") == []

    async def test_match_is_case_insensitive(self, catalog: InventoryCatalog, sale_engine: SaleEngine):
        await catalog.add_stock("Cetirizine", "10mg", 6, days_from_today(50))

        result = await sale_engine.record_sale("CETIRIZINE", 2)

        assert result.medicine == "Cetirizine"
        assert result.remaining == 4

    async def test_strengths_are_pooled(self, catalog: InventoryCatalog, sale_engine: SaleEngine):
        await catalog.add_stock("Paracetamol", "650mg", 4, days_from_today(30))
        await catalog.add_stock("Paracetamol", "500mg", 4, days_from_today(60))

        result = await sale_engine.record_sale("Paracetamol", 6)

        assert [a.strength for a in result.allocations] == ["650mg", "500mg"]
        batches = await sale_engine.store.load_all()
        assert [(b.strength, b.quantity) for b in batches] == [("500mg", 2)]

    async def test_strength_narrows_selection(self, catalog: InventoryCatalog, sale_engine: SaleEngine):
        await catalog.add_stock("Paracetamol", "650mg", 4, days_from_today(30))
        await catalog.add_stock("Paracetamol", "500mg", 4, days_from_today(60))

        result = await sale_engine.record_sale("Paracetamol", 3, strength="500MG")

        assert [a.strength for a in result.allocations] == ["500mg"]
        batches = await sale_engine.store.load_all()
        assert [(b.strength, b.quantity) for b in batches] == [("650mg", 4), ("500mg", 1)]

        with pytest.raises(InsufficientStockError):
            await sale_engine.record_sale("Paracetamol", 5, strength="650mg")

    async def test_unknown_medicine(self, catalog: InventoryCatalog, sale_engine: SaleEngine):
        await catalog.add_stock("Paracetamol", "500mg", 4, days_from_today(30))

        with pytest.raises(NotFoundError):
            await sale_engine.record_sale("Aspirin", 1)

        with pytest.raises(NotFoundError):
            await sale_engine.record_sale("Paracetamol", 1, strength="1g")

    async def test_expired_stock_is_sold_first(self, catalog: InventoryCatalog, sale_engine: SaleEngine):
        await catalog.add_stock("Aspirin", "75mg", 5, days_from_today(100))
        await catalog.add_stock("Aspirin", "75mg", 5, days_from_today(-2))

        result = await sale_engine.record_sale("Aspirin", 1)

        assert result.allocations[0].expiry_date == days_from_today(-2)

    @pytest.mark.parametrize(
        "medicine, quantity",
        [("", 1), ("   ", 1), (None, 1), ("Aspirin", 0), ("Aspirin", -1), ("Aspirin", True), ("Aspirin", "2")],
    )
    async def test_invalid_request(self, catalog: InventoryCatalog, sale_engine: SaleEngine, medicine, quantity):
        await catalog.add_stock("Aspirin", "75mg", 5, days_from_today(100))

        with pytest.raises(ValidationError):
            await sale_engine.record_sale(medicine, quantity)

        assert [b.quantity for b in await sale_engine.store.load_all()] == [5]

    async def test_single_batch_policy(self, store, catalog: InventoryCatalog, make_settings):
        engine = SaleEngine(store, make_settings(SALE_POLICY="single-batch"))
        await catalog.add_stock("Aspirin", "75mg", 2, days_from_today(10))
        await catalog.add_stock("Aspirin", "75mg", 6, days_from_today(90))

        result = await engine.record_sale("Aspirin", 4)
        assert [a.expiry_date for a in result.allocations] == [days_from_today(90)]
        assert result.remaining == 4

        with pytest.raises(InsufficientStockError) as exc_info:
            await engine.record_sale("Aspirin", 3)
        assert exc_info.value.available == 4
        assert [b.quantity for b in await store.load_all()] == [2, 2]


@pytest.mark.sales
async def test_zero_quantity_rows_count_as_no_stock(tmp_path, test_settings):
    """Legacy files may hold zero-quantity rows; a sale against them is insufficient stock"""
    path = tmp_path / "data.json"
    path.write_text(
        '{"inventory": [{"name": "Aspirin", "strength": "75mg", "quantity": 0, "expiryDate": "2027-01-01"},'
        ' {"name": "Zinc", "strength": "20mg", "quantity": 0, "expiryDate": "2027-01-01"}]}',
        encoding="utf-8",
    )
    store = JsonFileInventoryStore(path)
    engine = SaleEngine(store, test_settings)

    with pytest.raises(InsufficientStockError) as exc_info:
        await engine.record_sale("Aspirin", 1)

    assert exc_info.value.available == 0
    assert len(await store.load_all()) == 2


@pytest.mark.sales
async def test_shared_legacy_ids_are_debited_separately(tmp_path, test_settings):
    """Two rows sharing one timestamp id are still debited as two batches"""
    path = tmp_path / "data.json"
    path.write_text(
        '[{"id": 1700000000000, "name": "Aspirin", "strength": "75mg", "quantity": 5, "expiryDate": "2027-01-10"},'
        ' {"id": 1700000000000, "name": "Aspirin", "strength": "150mg", "quantity": 5, "expiryDate": "2027-01-20"}]',
        encoding="utf-8",
    )
    store = JsonFileInventoryStore(path)
    engine = SaleEngine(store, test_settings)

    result = await engine.record_sale("Aspirin", 3)

    assert result.remaining == 7
    batches = await store.load_all()
    assert sum(b.quantity for b in batches) == 7
    assert [(b.strength, b.quantity) for b in batches] == [("75mg", 2), ("150mg", 5)]
    assert len({b.id for b in batches}) == 2

    await engine.record_sale("Aspirin", 4)

    batches = await store.load_all()
    assert [(b.strength, b.quantity) for b in batches] == [("150mg", 3)]


class MemoryInventoryStore(InventoryStore):
    """Keeps batches as given, repeated ids included"""

    backend = "memory"

    def __init__(self, batches):
        super().__init__()
        self.batches = batches

    async def load_all(self):
        return [b.model_copy() for b in self.batches]

    async def save_all(self, batches):
        self.batches = [b.model_copy() for b in batches]


@pytest.mark.sales
async def test_sale_debits_each_row_when_ids_repeat(test_settings):
    store = MemoryInventoryStore([
        Batch(id="1700000000000", name="Aspirin", strength="75mg", quantity=5, expiry_date=date(2027, 1, 10)),
        Batch(id="1700000000000", name="Aspirin", strength="150mg", quantity=5, expiry_date=date(2027, 1, 20)),
    ])
    engine = SaleEngine(store, test_settings)

    await engine.record_sale("Aspirin", 7)

    assert [(b.strength, b.quantity) for b in store.batches] == [("150mg", 3)]
