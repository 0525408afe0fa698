"""Shared fixtures: an in-memory service with the sample tyres loaded."""

import pytest
import pytest_asyncio

from core.models import InventoryItem, ItemKey, Location
from core.repository import InMemoryRepository
from core.service import InventoryService

MAIN = Location(plant="A001", storage_location="WH001")
SOUTH = Location(plant="A002", storage_location="WH002")

BFG = MAIN.item("T-2055516-BFG")
MIC = MAIN.item("T-2557016-MIC")
PIR = SOUTH.item("T-2157016-PIR")


def make_item(key: ItemKey, minimum: int = 0, description: str = "") -> InventoryItem:
    return InventoryItem(key=key, material_description=description, minimum_stock=minimum)


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def service(repository):
    return InventoryService(repository, lock_timeout=0.5, strict_order_transitions=False)


@pytest_asyncio.fixture
async def stocked(service):
    """Service holding BFG=143, MIC=97 at A001/WH001 and PIR=65 at A002/WH002."""
    await service.create_item(make_item(BFG, 50, "BF Goodrich 205/55/R16 All-Terrain"), opening_stock=143)
    await service.create_item(make_item(MIC, 30, "Michelin 255/70/R16 Highway Terrain"), opening_stock=97)
    await service.create_item(make_item(PIR, 40, "Pirelli 215/70/R16 Sport"), opening_stock=65)
    return service
