"""
Seed the demo tyre inventory.

This will:
- CREATE the tables if they don't exist yet.
- CREATE one inventory item per sample tyre at its plant/storage location,
  with the sample quantity recorded as an opening-stock movement.
- SKIP items that already exist (safe to run twice).

Run inside docker:
  docker exec -i stockledger-api sh -lc "cd /app && PYTHONPATH=/app uv run python scripts/seed_demo_data.py"
"""

from __future__ import annotations

import asyncio
import os
import sys

# Allow running as a script: `python scripts/seed_demo_data.py`
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

from core.errors import IllegalOperation  # noqa: E402
from core.models import InventoryItem, ItemKey  # noqa: E402
from core.service import InventoryService  # noqa: E402
from db.database import create_db_and_tables, get_session_maker  # noqa: E402
from db.repository import SqlRepository  # noqa: E402


# (plant, storage location, plant name, material, old material no, description, stock, minimum)
SAMPLE_TYRES = [
    ("A001", "WH001", "Main Distribution Center", "T-2055516-BFG", "BFG-205", "BF Goodrich 205/55/R16 All-Terrain", 143, 50),
    ("A001", "WH001", "Main Distribution Center", "T-2557016-MIC", "MIC-255", "Michelin 255/70/R16 Highway Terrain", 97, 30),
    ("A002", "WH002", "South Region Hub", "T-2157016-PIR", "PIR-215", "Pirelli 215/70/R16 Sport", 65, 40),
    ("A002", "WH002", "South Region Hub", "T-1957516-BST", "BST-195", "Bridgestone 195/75/R16 All Season", 212, 60),
    ("A003", "WH003", "North Region Hub", "T-2257517-CNT", "CNT-225", "Continental 225/75/R17 Winter", 86, 45),
]


async def main() -> None:
    await create_db_and_tables()
    service = InventoryService(SqlRepository(get_session_maker()))

    created = 0
    skipped = 0
    for plant, sloc, plant_name, material, old_no, description, stock, minimum in SAMPLE_TYRES:
        item = InventoryItem(
            key=ItemKey(plant=plant, storage_location=sloc, material_code=material),
            plant_name=plant_name,
            material_description=description,
            old_material_no=old_no,
            total_stock=stock,
            minimum_stock=minimum,
        )
        try:
            await service.create_item(item, opening_stock=stock)
            created += 1
        except IllegalOperation:
            skipped += 1

    print(f"Done. Items created: {created}. Already present: {skipped}.")


if __name__ == "__main__":
    asyncio.run(main())
