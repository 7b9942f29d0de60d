import asyncio
from datetime import date, timedelta
from pathlib import Path
import os
import sys
import tempfile

# Add project root to python path
sys.path.append(os.getcwd())

from app.core.config import Settings
from app.core.exceptions import InsufficientStockError
from app.domain.inventory.service import InventoryCatalog
from app.domain.sales.service import SaleEngine
from app.infrastructure.json_store import JsonFileInventoryStore


async def run_workflow():
    workdir = tempfile.mkdtemp(prefix="inventory-")
    data_file = Path(workdir) / "data.json"
    print(f"Using inventory file {data_file}")

    config = Settings(_env_file=None)
    store = JsonFileInventoryStore(data_file)
    catalog = InventoryCatalog(store, config)
    engine = SaleEngine(store, config)
    today = date.today()

    try:
        print("\n--- 1. Receive Stock ---")
        await catalog.add_stock("Paracetamol", "500mg", 5, today + timedelta(days=20))
        await catalog.add_stock("Paracetamol", "500mg", 5, today + timedelta(days=10))
        await catalog.add_stock("Amoxicillin", "250mg", 12, today + timedelta(days=150))
        batch, created = await catalog.add_stock("Amoxicillin", "250mg", 3, today + timedelta(days=150))
        print(f"Amoxicillin merged: {not created}, quantity now {batch.quantity}")

        print("\n--- 2. List Inventory ---")
        for view in await catalog.list_batches():
            print(f"{view.name} {view.strength}: {view.quantity} (expires {view.expiry_date}, {view.status.label})")

        print("\n--- 3. Sell Paracetamol ---")
        result = await engine.record_sale("Paracetamol", 7)
        print(result.message)
        for allocation in result.allocations:
            print(f"  took {allocation.quantity} from batch expiring {allocation.expiry_date}")

        print("\n--- 4. Oversell Is Refused ---")
        try:
            await engine.record_sale("Paracetamol", 10)
        except InsufficientStockError as e:
            print(f"Refused: {e.message}")

        print("\n--- 5. Summary ---")
        for summary in await catalog.summary():
            print(f"{summary.name}: {summary.total_quantity} in {summary.batches} batch(es)")

        print("\n--- 6. Delete Medicine ---")
        removed = await catalog.delete_by_name("amoxicillin")
        print(f"Removed {removed} Amoxicillin batch(es)")

        print("\n✅ WORKFLOW COMPLETED SUCCESSFULLY!")

    except Exception as e:
        print(f"\n❌ WORKFLOW FAILED: {str(e)}")
        import traceback
        traceback.print_exc()
    finally:
        if data_file.exists():
            data_file.unlink()
        os.rmdir(workdir)

if __name__ == "__main__":
    asyncio.run(run_workflow())
