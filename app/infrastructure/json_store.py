from typing import Any, Dict, List, Union
from pathlib import Path
import asyncio
import contextlib
import json
import logging
import os
import tempfile

from app.core.exceptions import ErrorHandler
from app.domain.inventory.models import Batch, gen_uuid
from app.domain.inventory.repository import InventoryStore

logger = logging.getLogger(__name__)

LEGACY_EXPIRY_KEYS = ("expiryDate", "expiry-date")


class JsonFileInventoryStore(InventoryStore):
    """Inventory kept as a single JSON document: ``{"inventory": [...]}``.

    Writes go to a temporary file in the same directory which then replaces
    the document, so a failed write leaves the previous content intact.
    """

    backend = "json"

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)

    async def load_all(self) -> List[Batch]:
        return await asyncio.to_thread(self._read)

    async def save_all(self, batches: List[Batch]) -> None:
        await asyncio.to_thread(self._write, list(batches))

    @staticmethod
    def to_record(batch: Batch) -> Dict[str, Any]:
        return {
            "id": batch.id,
            "name": batch.name,
            "strength": batch.strength,
            "quantity": batch.quantity,
            "expiryDate": batch.expiry_date.isoformat(),
        }

    @staticmethod
    def from_record(record: Dict[str, Any]) -> Batch:
        data = dict(record)
        for key in LEGACY_EXPIRY_KEYS:
            if key in data:
                data["expiry_date"] = data.pop(key)
        return Batch.model_validate(data)

    def _read(self) -> List[Batch]:
        with ErrorHandler(f"read {self.path}"):
            try:
                raw = self.path.read_text(encoding="utf-8")
            except FileNotFoundError:
                logger.info(f"Inventory file {self.path} not found, starting empty")
                return []

            if not raw.strip():
                return []

            parsed = json.loads(raw)
            # Accept either {"inventory": [...]} or a bare array
            if isinstance(parsed, list):
                records = parsed
            elif isinstance(parsed, dict) and isinstance(parsed.get("inventory", []), list):
                records = parsed.get("inventory", [])
            else:
                raise ValueError("Unexpected inventory document layout")

            batches = [self.from_record(r) for r in records]

        # legacy timestamp ids can collide
        seen = set()
        for batch in batches:
            if batch.id in seen:
                old_id, batch.id = batch.id, gen_uuid()
                logger.warning(f"Duplicate batch id {old_id} in {self.path}, reassigned {batch.id}")
            seen.add(batch.id)
        return batches

    def _write(self, batches: List[Batch]) -> None:
        payload = {"inventory": [self.to_record(b) for b in batches]}

        with ErrorHandler(f"write {self.path}"):
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(payload, fh, indent=2, ensure_ascii=False)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)
                raise

        logger.debug(f"Wrote {len(batches)} batches to {self.path}")
