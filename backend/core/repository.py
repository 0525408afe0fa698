"""Storage contract for the core plus an in-memory implementation.

The core never talks to a database directly. It loads and saves records by
id, appends history records, and hands the ledger's movements to
``commit_movements`` which must apply them all or none.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Union
from uuid import UUID

from core.errors import DuplicateTransferNumber, IllegalOperation, InsufficientStock, NotFound
from core.models import (
    InventoryItem,
    ItemKey,
    Order,
    OrderStatus,
    StatusRecord,
    StockMovement,
    Transfer,
    TransferStatus,
)


Aggregate = Union[Transfer, Order]


class InventoryRepository(Protocol):
    async def get_item(self, key: ItemKey) -> Optional[InventoryItem]: ...

    async def list_items(self) -> List[InventoryItem]: ...

    async def add_item(self, item: InventoryItem) -> None: ...

    async def update_item(self, item: InventoryItem) -> None:
        """Persist descriptive fields, capacity and minimum. Never ``current_stock``."""
        ...

    async def delete_item(self, key: ItemKey) -> None: ...

    async def commit_movements(
        self,
        movements: Sequence[StockMovement],
        record: Optional[Aggregate] = None,
        new_items: Sequence[InventoryItem] = (),
    ) -> List[InventoryItem]:
        """Append movements and update cached totals atomically.

        Raises ``InsufficientStock`` (and applies nothing) if any total would
        drop below zero. ``record``, when given, is saved in the same commit.
        ``new_items`` are inserted with zero stock first; if the commit is
        refused none of them exist afterwards.
        """
        ...

    async def list_movements(
        self, item_key: Optional[ItemKey] = None, correlation_id: Optional[str] = None
    ) -> List[StockMovement]: ...

    async def get_transfer(self, transfer_id: UUID) -> Optional[Transfer]: ...

    async def list_transfers(self, status: Optional[TransferStatus] = None) -> List[Transfer]: ...

    async def save_transfer(self, transfer: Transfer) -> None: ...

    async def append_transfer_history(self, transfer_id: UUID, record: StatusRecord) -> None: ...

    async def delete_transfer(self, transfer_id: UUID) -> None: ...

    async def get_order(self, order_id: UUID) -> Optional[Order]: ...

    async def list_orders(self, status: Optional[OrderStatus] = None) -> List[Order]: ...

    async def save_order(self, order: Order) -> None: ...

    async def append_order_history(self, order_id: UUID, record: StatusRecord) -> None: ...

    async def delete_order(self, order_id: UUID) -> None: ...


def net_deltas(movements: Iterable[StockMovement]) -> Dict[ItemKey, int]:
    out: Dict[ItemKey, int] = defaultdict(int)
    for mv in movements:
        out[mv.item_key] += mv.quantity
    return dict(out)


class InMemoryRepository:
    """Dict-backed repository. Every read returns a copy."""

    def __init__(self):
        self._items: Dict[ItemKey, InventoryItem] = {}
        self._movements: List[StockMovement] = []
        self._transfers: Dict[UUID, Transfer] = {}
        self._orders: Dict[UUID, Order] = {}

    # items
    async def get_item(self, key: ItemKey) -> Optional[InventoryItem]:
        item = self._items.get(key)
        return item.model_copy(deep=True) if item else None

    async def list_items(self) -> List[InventoryItem]:
        return [it.model_copy(deep=True) for it in sorted(self._items.values(), key=lambda it: str(it.key))]

    async def add_item(self, item: InventoryItem) -> None:
        if item.key in self._items:
            raise IllegalOperation(f"Item {item.key} already exists", item_key=item.key)
        self._items[item.key] = item.model_copy(deep=True)

    async def update_item(self, item: InventoryItem) -> None:
        stored = self._items.get(item.key)
        if not stored:
            raise NotFound(f"Item {item.key} not found", item_key=item.key)
        self._items[item.key] = item.model_copy(update={"current_stock": stored.current_stock}, deep=True)

    async def delete_item(self, key: ItemKey) -> None:
        self._items.pop(key, None)

    # movements
    async def commit_movements(
        self,
        movements: Sequence[StockMovement],
        record: Optional[Aggregate] = None,
        new_items: Sequence[InventoryItem] = (),
    ) -> List[InventoryItem]:
        fresh: Dict[ItemKey, InventoryItem] = {}
        for item in new_items:
            if item.key in self._items or item.key in fresh:
                raise IllegalOperation(f"Item {item.key} already exists", item_key=item.key)
            fresh[item.key] = item.model_copy(update={"current_stock": 0}, deep=True)

        deltas = net_deltas(movements)
        totals: Dict[ItemKey, int] = {}
        # validate everything before touching anything
        for key, delta in deltas.items():
            stored = fresh.get(key) or self._items.get(key)
            if not stored:
                raise NotFound(f"Item {key} not found", item_key=key)
            new_total = stored.current_stock + delta
            if new_total < 0:
                raise InsufficientStock(key, stored.current_stock, -delta)
            totals[key] = new_total

        self._items.update(fresh)
        for key, total in totals.items():
            self._items[key] = self._items[key].model_copy(update={"current_stock": total})
        self._movements.extend(movements)
        if isinstance(record, Transfer):
            await self.save_transfer(record)
        elif isinstance(record, Order):
            await self.save_order(record)
        return [self._items[key].model_copy(deep=True) for key in totals]

    async def list_movements(
        self, item_key: Optional[ItemKey] = None, correlation_id: Optional[str] = None
    ) -> List[StockMovement]:
        out = self._movements
        if item_key is not None:
            out = [mv for mv in out if mv.item_key == item_key]
        if correlation_id is not None:
            out = [mv for mv in out if mv.correlation_id == correlation_id]
        return list(out)

    # transfers
    async def get_transfer(self, transfer_id: UUID) -> Optional[Transfer]:
        t = self._transfers.get(transfer_id)
        return t.model_copy(deep=True) if t else None

    async def list_transfers(self, status: Optional[TransferStatus] = None) -> List[Transfer]:
        out = sorted(self._transfers.values(), key=lambda t: t.request_date)
        if status is not None:
            out = [t for t in out if t.status == status]
        return [t.model_copy(deep=True) for t in out]

    async def save_transfer(self, transfer: Transfer) -> None:
        for other in self._transfers.values():
            if other.id != transfer.id and other.transfer_number == transfer.transfer_number:
                raise DuplicateTransferNumber(
                    f"Transfer number {transfer.transfer_number} is taken", transfer_number=transfer.transfer_number
                )
        self._transfers[transfer.id] = transfer.model_copy(deep=True)

    async def append_transfer_history(self, transfer_id: UUID, record: StatusRecord) -> None:
        t = self._transfers.get(transfer_id)
        if not t:
            raise NotFound(f"Transfer {transfer_id} not found", transfer_id=transfer_id)
        self._transfers[transfer_id] = t.model_copy(update={"status_history": [*t.status_history, record]})

    async def delete_transfer(self, transfer_id: UUID) -> None:
        self._transfers.pop(transfer_id, None)

    # orders
    async def get_order(self, order_id: UUID) -> Optional[Order]:
        o = self._orders.get(order_id)
        return o.model_copy(deep=True) if o else None

    async def list_orders(self, status: Optional[OrderStatus] = None) -> List[Order]:
        out = sorted(self._orders.values(), key=lambda o: o.created_at)
        if status is not None:
            out = [o for o in out if o.status == status]
        return [o.model_copy(deep=True) for o in out]

    async def save_order(self, order: Order) -> None:
        self._orders[order.id] = order.model_copy(deep=True)

    async def append_order_history(self, order_id: UUID, record: StatusRecord) -> None:
        o = self._orders.get(order_id)
        if not o:
            raise NotFound(f"Order {order_id} not found", order_id=order_id)
        self._orders[order_id] = o.model_copy(update={"status_history": [*o.status_history, record]})

    async def delete_order(self, order_id: UUID) -> None:
        self._orders.pop(order_id, None)
