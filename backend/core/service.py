"""One entry point per caller action.

``InventoryService`` wires the ledger, both workflows and the forecast
functions to a repository and a shared lock table. Routers and scripts go
through this class only.
"""

import logging
import math
from datetime import date
from typing import Iterable, List, Optional
from uuid import UUID

from core.config import settings
from core.errors import InvalidInput
from core.forecast import Forecast, build_forecast, daily_usage_from
from core.ledger import StockLedger
from core.locks import KeyedLocks
from core.models import (
    InventoryItem,
    ItemKey,
    Location,
    MovementKind,
    Order,
    OrderStatus,
    StockMovement,
    StockStatus,
    Transfer,
    TransferStatus,
)
from core.orders import OrderWorkflow
from core.repository import InventoryRepository
from core.transfers import TransferWorkflow

logger = logging.getLogger(__name__)

ITEM_EDITABLE_FIELDS = {
    "plant_name",
    "material_description",
    "old_material_no",
    "description",
    "total_stock",
    "minimum_stock",
}


class InventoryService:
    def __init__(
        self,
        repository: InventoryRepository,
        lock_timeout: Optional[float] = None,
        strict_order_transitions: Optional[bool] = None,
    ):
        self.repository = repository
        self.locks = KeyedLocks(settings.lock_timeout_seconds if lock_timeout is None else lock_timeout)
        self.ledger = StockLedger(repository, self.locks)
        self.transfers = TransferWorkflow(repository, self.ledger, self.locks)
        strict = settings.strict_order_transitions if strict_order_transitions is None else strict_order_transitions
        self.orders = OrderWorkflow(repository, self.ledger, self.locks, strict=strict)

    # reads
    async def get_item(self, key: ItemKey) -> InventoryItem:
        return await self.ledger.get_item(key)

    async def list_items(self, search: Optional[str] = None) -> List[InventoryItem]:
        items = await self.repository.list_items()
        if search:
            needle = search.strip().lower()
            items = [
                it for it in items
                if needle in " ".join(
                    [it.key.material_code, it.material_description, it.description, it.old_material_no]
                ).lower()
            ]
        return items

    async def stock_status(self, key: ItemKey) -> StockStatus:
        return await self.ledger.status_of(key)

    async def list_movements(
        self, item_key: Optional[ItemKey] = None, correlation_id: Optional[str] = None
    ) -> List[StockMovement]:
        return await self.ledger.movements(item_key=item_key, correlation_id=correlation_id)

    async def get_transfer(self, transfer_id: UUID) -> Transfer:
        return await self.transfers.get(transfer_id)

    async def list_transfers(self, status: Optional[TransferStatus] = None) -> List[Transfer]:
        return await self.transfers.list(status=status)

    async def get_order(self, order_id: UUID) -> Order:
        return await self.orders.get(order_id)

    async def list_orders(self, status: Optional[OrderStatus] = None) -> List[Order]:
        return await self.orders.list(status=status)

    async def forecast_for(
        self,
        key: ItemKey,
        horizon_days: Optional[int] = None,
        daily_usage: Optional[float] = None,
        today: Optional[date] = None,
    ) -> Forecast:
        horizon = settings.default_forecast_horizon_days if horizon_days is None else horizon_days
        item = await self.ledger.get_item(key)
        if daily_usage is None:
            daily_usage = daily_usage_from(await self.ledger.movements(item_key=key), settings.usage_lookback_days)
        elif not math.isfinite(daily_usage) or daily_usage < 0:
            raise InvalidInput("daily_usage must be a finite number >= 0", daily_usage=daily_usage)
        return build_forecast(item.current_stock, item.minimum_stock, daily_usage, horizon, today=today)

    # writes
    async def create_item(self, item: InventoryItem, opening_stock: int = 0) -> InventoryItem:
        return await self.ledger.register_item(item, opening_stock=opening_stock)

    async def update_item(self, key: ItemKey, **changes) -> InventoryItem:
        unknown = set(changes) - ITEM_EDITABLE_FIELDS
        if unknown:
            raise InvalidInput(f"Cannot edit {', '.join(sorted(unknown))}")
        item = await self.ledger.get_item(key)
        try:
            updated = InventoryItem.model_validate({**item.model_dump(), **changes})
        except ValueError as e:
            raise InvalidInput(f"Invalid item update: {e}", item_key=key)
        return await self.ledger.update_item(updated)

    async def delete_item(self, key: ItemKey) -> None:
        await self.ledger.delete_item(key)

    async def receive_goods(
        self,
        key: ItemKey,
        quantity: int,
        vendor: str,
        received_date: date,
        notes: Optional[str] = None,
    ) -> StockMovement:
        if quantity <= 0:
            raise InvalidInput("quantity received must be > 0")
        vendor = (vendor or "").strip()
        if not vendor:
            raise InvalidInput("vendor is required")
        note = f"Received from {vendor} on {received_date.isoformat()}"
        if notes and notes.strip():
            note = f"{note}: {notes.strip()}"
        return await self.ledger.apply_delta(key, quantity, MovementKind.RECEIPT, correlation_id=None, note=note)

    async def adjust_stock(self, key: ItemKey, quantity_delta: int, reason: Optional[str] = None) -> StockMovement:
        return await self.ledger.apply_delta(
            key, quantity_delta, MovementKind.ADJUSTMENT, correlation_id=None, note=reason or "Manual adjustment"
        )

    async def create_transfer(
        self,
        source: Location,
        destination: Location,
        lines: Iterable,
        scheduled_date: Optional[date] = None,
        notes: str = "",
        created_by: Optional[str] = None,
    ) -> Transfer:
        return await self.transfers.create(
            source, destination, lines, scheduled_date=scheduled_date, notes=notes, created_by=created_by
        )

    async def transition_transfer(self, transfer_id: UUID, new_status, note: Optional[str] = None) -> Transfer:
        return await self.transfers.transition(transfer_id, new_status, note=note)

    async def delete_transfer(self, transfer_id: UUID) -> None:
        await self.transfers.delete(transfer_id)

    async def create_order(
        self,
        po_number: str,
        po_date: date,
        customer_name: str,
        lines: Iterable,
        customer_address: str = "",
    ) -> Order:
        return await self.orders.create(
            po_number, po_date, customer_name, lines, customer_address=customer_address
        )

    async def update_order_status(self, order_id: UUID, new_status, note: Optional[str] = None) -> Order:
        return await self.orders.update_status(order_id, new_status, note=note)

    async def delete_order(self, order_id: UUID) -> None:
        await self.orders.delete(order_id)

    async def reserve_for_order(self, order_id: UUID, key: ItemKey, quantity: int) -> StockMovement:
        return await self.orders.reserve(order_id, key, quantity)
