"""Sales order workflow.

Orders move between five states. By default any state may follow any other
(the behaviour the order screens have always had); with
``strict=True`` the ``ORDER_TRANSITIONS`` table is enforced instead.
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from pydantic import ValidationError

from core.errors import IllegalTransition, InvalidInput, NotFound, UnknownStatus
from core.ledger import StockLedger
from core.locks import KeyedLocks, item_lock, order_lock
from core.models import ItemKey, MovementKind, Order, OrderLine, OrderStatus, StatusRecord, StockMovement, utcnow
from core.repository import InventoryRepository

logger = logging.getLogger(__name__)

ORDER_TRANSITIONS: Dict[OrderStatus, Tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING_DELIVERY: (OrderStatus.PENDING_ITEM, OrderStatus.DELIVERY, OrderStatus.PENDING_INVOICE),
    OrderStatus.PENDING_ITEM: (OrderStatus.PENDING_DELIVERY, OrderStatus.DELIVERY),
    OrderStatus.DELIVERY: (OrderStatus.PENDING_INVOICE, OrderStatus.DONE),
    OrderStatus.PENDING_INVOICE: (OrderStatus.DONE,),
    OrderStatus.DONE: (),
}


def parse_order_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise UnknownStatus(f"Unknown order status: {value!r}", status=value)


def _build_lines(lines: Iterable) -> List[OrderLine]:
    try:
        return [line if isinstance(line, OrderLine) else OrderLine.model_validate(line) for line in lines]
    except ValidationError as e:
        raise InvalidInput(f"Invalid order line: {e}")


class OrderWorkflow:
    def __init__(self, repository: InventoryRepository, ledger: StockLedger, locks: KeyedLocks, strict: bool = False):
        self.repository = repository
        self.ledger = ledger
        self.locks = locks
        self.strict = strict

    async def get(self, order_id: UUID) -> Order:
        o = await self.repository.get_order(order_id)
        if not o:
            raise NotFound(f"Order {order_id} not found", order_id=order_id)
        return o

    async def list(self, status: Optional[OrderStatus] = None) -> List[Order]:
        return await self.repository.list_orders(status=status)

    async def create(
        self,
        po_number: str,
        po_date: date,
        customer_name: str,
        lines: Iterable,
        customer_address: str = "",
    ) -> Order:
        built = _build_lines(lines)
        if not built:
            raise InvalidInput("An order needs at least one line")
        if not (customer_name or "").strip():
            raise InvalidInput("customer_name is required")

        now = utcnow()
        order = Order(
            po_number=(po_number or "").strip(),
            po_date=po_date,
            customer_name=customer_name.strip(),
            customer_address=(customer_address or "").strip(),
            created_at=now,
            lines=built,
            status_history=[
                StatusRecord(status=OrderStatus.PENDING_DELIVERY.value, timestamp=now, note="Order created")
            ],
        )
        async with self.locks.hold(order_lock(order.id)):
            await self.repository.save_order(order)
        logger.info("Created order %s (PO %s) total=%s", order.id, order.po_number, order.total_amount)
        return order

    async def update_status(self, order_id: UUID, new_status, note: Optional[str] = None) -> Order:
        target = parse_order_status(new_status)
        async with self.locks.hold(order_lock(order_id)):
            order = await self.get(order_id)
            current = order.status
            if self.strict and target not in ORDER_TRANSITIONS[current]:
                raise IllegalTransition(current.value, target.value, [s.value for s in ORDER_TRANSITIONS[current]])

            record = StatusRecord(status=target.value, timestamp=utcnow(), note=(note or "").strip() or None)
            await self.repository.append_order_history(order_id, record)
            order = order.model_copy(update={"status_history": [*order.status_history, record]})
        logger.info("Order %s: %s -> %s", order_id, current.value, target.value)
        return order

    async def delete(self, order_id: UUID) -> None:
        async with self.locks.hold(order_lock(order_id)):
            await self.get(order_id)
            await self.repository.delete_order(order_id)
        logger.info("Deleted order %s", order_id)

    async def reserve(self, order_id: UUID, item_key: ItemKey, quantity: int) -> StockMovement:
        """Take ``quantity`` of ``item_key`` out of stock for the order."""
        if quantity <= 0:
            raise InvalidInput("quantity must be > 0")
        async with self.locks.hold(order_lock(order_id), item_lock(item_key)):
            order = await self.get(order_id)
            movements = await self.ledger.apply_deltas(
                [(item_key, -quantity, MovementKind.RESERVATION, str(order.id), f"PO {order.po_number}")],
                held=True,
            )
        return movements[0]
