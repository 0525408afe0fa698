"""Stock ledger: the only writer of ``current_stock``.

Each delta becomes an immutable ``StockMovement``; the repository appends the
movement and bumps the cached total in one call, so the total always equals
the fold of the log.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from core.errors import IllegalOperation, InsufficientStock, InvalidInput, NotFound
from core.locks import KeyedLocks, item_lock
from core.models import InventoryItem, ItemKey, MovementKind, StockMovement, StockStatus
from core.repository import Aggregate, InventoryRepository, net_deltas

logger = logging.getLogger(__name__)

# (item_key, signed delta, kind, correlation id, note)
DeltaEntry = Tuple[ItemKey, int, MovementKind, Optional[str], Optional[str]]


def stock_status(current_stock: int, minimum_stock: int) -> StockStatus:
    if current_stock <= minimum_stock:
        return StockStatus.CRITICAL
    if current_stock <= minimum_stock * 2:
        return StockStatus.LOW
    return StockStatus.GOOD


def _movement(entry: DeltaEntry) -> StockMovement:
    key, delta, kind, correlation_id, note = entry
    try:
        return StockMovement(
            item_key=key,
            quantity=delta,
            kind=MovementKind(kind),
            correlation_id=correlation_id,
            note=note,
        )
    except (ValidationError, ValueError) as e:
        raise InvalidInput(f"Invalid movement for {key}: {e}", item_key=key)


class StockLedger:
    def __init__(self, repository: InventoryRepository, locks: KeyedLocks):
        self.repository = repository
        self.locks = locks

    async def get_item(self, key: ItemKey) -> InventoryItem:
        item = await self.repository.get_item(key)
        if not item:
            raise NotFound(f"Item {key} not found", item_key=key)
        return item

    async def current_stock(self, key: ItemKey) -> int:
        return (await self.get_item(key)).current_stock

    async def status_of(self, key: ItemKey) -> StockStatus:
        item = await self.get_item(key)
        return stock_status(item.current_stock, item.minimum_stock)

    async def movements(
        self, item_key: Optional[ItemKey] = None, correlation_id: Optional[str] = None
    ) -> List[StockMovement]:
        return await self.repository.list_movements(item_key=item_key, correlation_id=correlation_id)

    async def register_item(self, item: InventoryItem, opening_stock: int = 0) -> InventoryItem:
        if opening_stock < 0:
            raise InvalidInput("opening_stock must be >= 0")
        async with self.locks.hold(item_lock(item.key)):
            await self.repository.add_item(item.model_copy(update={"current_stock": 0}))
            logger.info("Registered item %s", item.key)
            if opening_stock:
                await self.apply_deltas(
                    [(item.key, opening_stock, MovementKind.ADJUSTMENT, None, "Opening stock")],
                    held=True,
                )
        return await self.get_item(item.key)

    async def destination_item(self, key: ItemKey, template: InventoryItem) -> Tuple[InventoryItem, bool]:
        """The item at ``key``, or an unsaved empty copy of ``template`` placed there.

        The flag is True when the item is new; pass it to ``apply_deltas`` as
        ``new_items`` so it is created in the same commit as its first movement.
        """
        item = await self.repository.get_item(key)
        if item:
            return item, False
        return template.model_copy(update={"key": key, "current_stock": 0, "total_stock": 0, "minimum_stock": 0}), True

    async def delete_item(self, key: ItemKey) -> None:
        """Remove an item that never held stock. Anything with a movement stays."""
        async with self.locks.hold(item_lock(key)):
            item = await self.get_item(key)
            if item.current_stock != 0:
                raise IllegalOperation(
                    f"Item {key} still holds {item.current_stock} unit(s)", item_key=key
                )
            if await self.repository.list_movements(item_key=key):
                raise IllegalOperation(f"Item {key} has stock movements", item_key=key)
            await self.repository.delete_item(key)
        logger.info("Deleted item %s", key)

    async def update_item(self, item: InventoryItem) -> InventoryItem:
        async with self.locks.hold(item_lock(item.key)):
            await self.get_item(item.key)
            await self.repository.update_item(item)
        return await self.get_item(item.key)

    async def apply_delta(
        self,
        key: ItemKey,
        quantity_delta: int,
        kind: MovementKind,
        correlation_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> StockMovement:
        movements = await self.apply_deltas([(key, quantity_delta, kind, correlation_id, note)])
        return movements[0]

    async def apply_deltas(
        self,
        entries: Iterable[DeltaEntry],
        held: bool = False,
        record: Optional[Aggregate] = None,
        new_items: Sequence[InventoryItem] = (),
    ) -> List[StockMovement]:
        """Apply every entry or none of them.

        With ``held=True`` the caller already holds the locks of every item
        involved (e.g. a transfer completion that also locks the transfer).
        ``record`` is a transfer or order saved in the same commit, and
        ``new_items`` are inserted with zero stock in that commit too.
        """
        movements = [_movement(entry) for entry in entries]
        if not movements:
            return []
        if held:
            return await self._commit(movements, record, new_items)
        names = [item_lock(mv.item_key) for mv in movements]
        async with self.locks.hold(*names):
            return await self._commit(movements, record, new_items)

    async def _commit(
        self,
        movements: Sequence[StockMovement],
        record: Optional[Aggregate] = None,
        new_items: Sequence[InventoryItem] = (),
    ) -> List[StockMovement]:
        fresh = {item.key: item for item in new_items}
        for key, delta in net_deltas(movements).items():
            item = fresh.get(key) or await self.get_item(key)
            if item.current_stock + delta < 0:
                logger.warning(
                    "Rejected delta %s on %s: only %s in stock", delta, key, item.current_stock
                )
                raise InsufficientStock(key, item.current_stock, -delta)
        await self.repository.commit_movements(movements, record=record, new_items=list(fresh.values()))
        for key in fresh:
            logger.info("Created item %s", key)
        for mv in movements:
            logger.info(
                "Applied %s %+d to %s (correlation=%s)", mv.kind.value, mv.quantity, mv.item_key, mv.correlation_id
            )
        return list(movements)
