"""SQLAlchemy implementation of ``InventoryRepository``.

Each method runs in its own session and transaction. ``commit_movements``
bumps ``current_stock`` with a guarded ``UPDATE`` so two processes sharing the
database can't push an item below zero even without the in-process locks.
"""

import logging
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from core.converters import (
    history_to_json,
    item_from_model,
    item_model_data,
    movement_from_model,
    order_from_model,
    order_line_models,
    order_model_data,
    transfer_from_model,
    transfer_line_models,
    transfer_model_data,
)
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
    current_status,
)
from core.repository import Aggregate, net_deltas
from db.inventory.item import InventoryItem as InventoryItemModel
from db.inventory.movement import StockMovement as StockMovementModel
from db.order import SalesOrder as SalesOrderModel
from db.transfer import Transfer as TransferModel

logger = logging.getLogger(__name__)


def _key_clause(key: ItemKey):
    return and_(
        InventoryItemModel.plant == key.plant,
        InventoryItemModel.storage_location == key.storage_location,
        InventoryItemModel.material_code == key.material_code,
    )


class SqlRepository:
    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def _item_row(self, db: AsyncSession, key: ItemKey) -> Optional[InventoryItemModel]:
        res = await db.execute(select(InventoryItemModel).where(_key_clause(key)))
        return res.scalar_one_or_none()

    # items
    async def get_item(self, key: ItemKey) -> Optional[InventoryItem]:
        async with self.session_maker() as db:
            row = await self._item_row(db, key)
            return item_from_model(row) if row else None

    async def list_items(self) -> List[InventoryItem]:
        async with self.session_maker() as db:
            res = await db.execute(
                select(InventoryItemModel).order_by(
                    InventoryItemModel.plant,
                    InventoryItemModel.storage_location,
                    InventoryItemModel.material_code,
                )
            )
            return [item_from_model(row) for row in res.scalars().all()]

    async def add_item(self, item: InventoryItem) -> None:
        try:
            async with self.session_maker() as db, db.begin():
                db.add(InventoryItemModel(current_stock=0, **item_model_data(item)))
        except IntegrityError:
            raise IllegalOperation(f"Item {item.key} already exists", item_key=item.key)

    async def update_item(self, item: InventoryItem) -> None:
        async with self.session_maker() as db, db.begin():
            res = await db.execute(
                update(InventoryItemModel).where(_key_clause(item.key)).values(**item_model_data(item))
            )
            if res.rowcount != 1:
                raise NotFound(f"Item {item.key} not found", item_key=item.key)

    async def delete_item(self, key: ItemKey) -> None:
        async with self.session_maker() as db, db.begin():
            await db.execute(delete(InventoryItemModel).where(_key_clause(key)))

    # movements
    async def commit_movements(
        self,
        movements: Sequence[StockMovement],
        record: Optional[Aggregate] = None,
        new_items: Sequence[InventoryItem] = (),
    ) -> List[InventoryItem]:
        async with self.session_maker() as db, db.begin():
            if new_items:
                for item in new_items:
                    db.add(InventoryItemModel(current_stock=0, **item_model_data(item)))
                try:
                    await db.flush()
                except IntegrityError:
                    raise IllegalOperation(
                        "Item already exists: " + ", ".join(str(it.key) for it in new_items)
                    )
            rows = {}
            for key, delta in net_deltas(movements).items():
                row = await self._item_row(db, key)
                if not row:
                    raise NotFound(f"Item {key} not found", item_key=key)
                res = await db.execute(
                    update(InventoryItemModel)
                    .where(InventoryItemModel.id == row.id)
                    .where(InventoryItemModel.current_stock + delta >= 0)
                    .values(current_stock=InventoryItemModel.current_stock + delta)
                    .execution_options(synchronize_session=False)
                )
                if res.rowcount != 1:
                    logger.warning("Guarded stock update refused %+d on %s", delta, key)
                    # leaving the block with an exception rolls everything back
                    raise InsufficientStock(key, int(row.current_stock), -delta)
                rows[key] = row

            for mv in movements:
                db.add(
                    StockMovementModel(
                        id=mv.id,
                        inventory_item_id=rows[mv.item_key].id,
                        quantity=mv.quantity,
                        kind=mv.kind.value,
                        correlation_id=mv.correlation_id,
                        note=mv.note,
                        created_at=mv.created_at,
                    )
                )
            if isinstance(record, Transfer):
                await self._save_transfer(db, record)
            elif isinstance(record, Order):
                await self._save_order(db, record)

            await db.flush()
            out = []
            for row in rows.values():
                await db.refresh(row)
                out.append(item_from_model(row))
        return out

    async def list_movements(
        self, item_key: Optional[ItemKey] = None, correlation_id: Optional[str] = None
    ) -> List[StockMovement]:
        stmt = select(StockMovementModel, InventoryItemModel).join(
            InventoryItemModel, StockMovementModel.inventory_item_id == InventoryItemModel.id
        )
        if item_key is not None:
            stmt = stmt.where(_key_clause(item_key))
        if correlation_id is not None:
            stmt = stmt.where(StockMovementModel.correlation_id == correlation_id)
        stmt = stmt.order_by(StockMovementModel.created_at, StockMovementModel.id)
        async with self.session_maker() as db:
            res = await db.execute(stmt)
            return [movement_from_model(mv, it) for (mv, it) in res.all()]

    # transfers
    async def _transfer_row(self, db: AsyncSession, transfer_id: UUID) -> Optional[TransferModel]:
        res = await db.execute(
            select(TransferModel).options(selectinload(TransferModel.lines)).where(TransferModel.id == transfer_id)
        )
        return res.scalar_one_or_none()

    async def _save_transfer(self, db: AsyncSession, transfer: Transfer) -> None:
        row = await self._transfer_row(db, transfer.id)
        if row is None:
            row = TransferModel(id=transfer.id)
            db.add(row)
        for field, value in transfer_model_data(transfer).items():
            setattr(row, field, value)
        row.lines = transfer_line_models(transfer)

    async def get_transfer(self, transfer_id: UUID) -> Optional[Transfer]:
        async with self.session_maker() as db:
            row = await self._transfer_row(db, transfer_id)
            return transfer_from_model(row) if row else None

    async def list_transfers(self, status: Optional[TransferStatus] = None) -> List[Transfer]:
        stmt = select(TransferModel).options(selectinload(TransferModel.lines)).order_by(TransferModel.request_date)
        if status is not None:
            stmt = stmt.where(TransferModel.status == TransferStatus(status).value)
        async with self.session_maker() as db:
            res = await db.execute(stmt)
            return [transfer_from_model(row) for row in res.scalars().all()]

    async def save_transfer(self, transfer: Transfer) -> None:
        try:
            async with self.session_maker() as db, db.begin():
                await self._save_transfer(db, transfer)
        except IntegrityError:
            # transfer_number is the only unique column besides the id
            raise DuplicateTransferNumber(
                f"Transfer number {transfer.transfer_number} is taken", transfer_number=transfer.transfer_number
            )

    async def append_transfer_history(self, transfer_id: UUID, record: StatusRecord) -> None:
        async with self.session_maker() as db, db.begin():
            row = await self._transfer_row(db, transfer_id)
            if not row:
                raise NotFound(f"Transfer {transfer_id} not found", transfer_id=transfer_id)
            history = [*(row.status_history or []), *history_to_json([record])]
            row.status_history = history
            row.status = current_status(
                [StatusRecord.model_validate(entry) for entry in history]
            )

    async def delete_transfer(self, transfer_id: UUID) -> None:
        async with self.session_maker() as db, db.begin():
            row = await self._transfer_row(db, transfer_id)
            if row:
                await db.delete(row)

    # orders
    async def _order_row(self, db: AsyncSession, order_id: UUID) -> Optional[SalesOrderModel]:
        res = await db.execute(
            select(SalesOrderModel).options(selectinload(SalesOrderModel.lines)).where(SalesOrderModel.id == order_id)
        )
        return res.scalar_one_or_none()

    async def _save_order(self, db: AsyncSession, order: Order) -> None:
        row = await self._order_row(db, order.id)
        if row is None:
            row = SalesOrderModel(id=order.id)
            db.add(row)
        for field, value in order_model_data(order).items():
            setattr(row, field, value)
        row.lines = order_line_models(order)

    async def get_order(self, order_id: UUID) -> Optional[Order]:
        async with self.session_maker() as db:
            row = await self._order_row(db, order_id)
            return order_from_model(row) if row else None

    async def list_orders(self, status: Optional[OrderStatus] = None) -> List[Order]:
        stmt = select(SalesOrderModel).options(selectinload(SalesOrderModel.lines)).order_by(SalesOrderModel.created_at)
        if status is not None:
            stmt = stmt.where(SalesOrderModel.status == OrderStatus(status).value)
        async with self.session_maker() as db:
            res = await db.execute(stmt)
            return [order_from_model(row) for row in res.scalars().all()]

    async def save_order(self, order: Order) -> None:
        async with self.session_maker() as db, db.begin():
            await self._save_order(db, order)

    async def append_order_history(self, order_id: UUID, record: StatusRecord) -> None:
        async with self.session_maker() as db, db.begin():
            row = await self._order_row(db, order_id)
            if not row:
                raise NotFound(f"Order {order_id} not found", order_id=order_id)
            history = [*(row.status_history or []), *history_to_json([record])]
            row.status_history = history
            row.status = current_status([StatusRecord.model_validate(entry) for entry in history])

    async def delete_order(self, order_id: UUID) -> None:
        async with self.session_maker() as db, db.begin():
            row = await self._order_row(db, order_id)
            if row:
                await db.delete(row)
