"""Stock transfer workflow.

draft -> pending -> in-transit -> completed, with cancelled reachable from
every non-terminal state. Stock only moves when a transfer enters
``completed``; until then the lines are a plan checked against the source
stock at creation time.
"""

import logging
import random
from collections import OrderedDict
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from pydantic import ValidationError

from core.errors import (
    DuplicateTransferNumber,
    EmptyTransfer,
    IllegalOperation,
    IllegalTransition,
    InsufficientStock,
    InvalidInput,
    InvalidRoute,
    NotFound,
    UnknownStatus,
)
from core.ledger import DeltaEntry, StockLedger
from core.locks import KeyedLocks, item_lock, transfer_lock
from core.models import (
    InventoryItem,
    Location,
    MovementKind,
    StatusRecord,
    Transfer,
    TransferLine,
    TransferStatus,
    utcnow,
)
from core.repository import InventoryRepository

logger = logging.getLogger(__name__)

TRANSFER_NUMBER_ATTEMPTS = 5

TRANSFER_TRANSITIONS: Dict[TransferStatus, Tuple[TransferStatus, ...]] = {
    TransferStatus.DRAFT: (TransferStatus.PENDING, TransferStatus.CANCELLED),
    TransferStatus.PENDING: (TransferStatus.IN_TRANSIT, TransferStatus.CANCELLED),
    TransferStatus.IN_TRANSIT: (TransferStatus.COMPLETED, TransferStatus.CANCELLED),
    TransferStatus.COMPLETED: (),
    TransferStatus.CANCELLED: (),
}


def parse_transfer_status(value) -> TransferStatus:
    try:
        return TransferStatus(value)
    except ValueError:
        raise UnknownStatus(f"Unknown transfer status: {value!r}", status=value)


def allowed_next(status: TransferStatus) -> Tuple[TransferStatus, ...]:
    return TRANSFER_TRANSITIONS[status]


def generate_transfer_number(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"TRF-{today.strftime('%y%m%d')}-{random.randint(1000, 9999)}"


def _merge_lines(lines: Iterable) -> List[TransferLine]:
    merged: "OrderedDict[str, int]" = OrderedDict()
    try:
        for raw in lines:
            line = raw if isinstance(raw, TransferLine) else TransferLine.model_validate(raw)
            merged[line.material_code] = merged.get(line.material_code, 0) + line.quantity
    except ValidationError as e:
        raise InvalidInput(f"Invalid transfer line: {e}")
    return [TransferLine(material_code=code, quantity=qty) for code, qty in merged.items()]


class TransferWorkflow:
    def __init__(self, repository: InventoryRepository, ledger: StockLedger, locks: KeyedLocks):
        self.repository = repository
        self.ledger = ledger
        self.locks = locks

    async def get(self, transfer_id: UUID) -> Transfer:
        t = await self.repository.get_transfer(transfer_id)
        if not t:
            raise NotFound(f"Transfer {transfer_id} not found", transfer_id=transfer_id)
        return t

    async def list(self, status: Optional[TransferStatus] = None) -> List[Transfer]:
        return await self.repository.list_transfers(status=status)

    async def create(
        self,
        source: Location,
        destination: Location,
        lines: Iterable,
        scheduled_date: Optional[date] = None,
        notes: str = "",
        created_by: Optional[str] = None,
    ) -> Transfer:
        if source == destination:
            raise InvalidRoute(f"Source and destination are both {source}", location=source)
        merged = _merge_lines(lines)
        if not merged:
            raise EmptyTransfer("A transfer needs at least one line")

        source_keys = [source.item(line.material_code) for line in merged]
        async with self.locks.hold(*(item_lock(k) for k in source_keys)):
            for key, line in zip(source_keys, merged):
                available = await self.ledger.current_stock(key)
                if line.quantity > available:
                    raise InsufficientStock(key, available, line.quantity)

            now = utcnow()
            transfer = Transfer(
                transfer_number=generate_transfer_number(now.date()),
                source=source,
                destination=destination,
                request_date=now,
                scheduled_date=scheduled_date or now.date(),
                notes=notes or "",
                created_by=created_by,
                lines=merged,
                status_history=[StatusRecord(status=TransferStatus.DRAFT.value, timestamp=now, note="Transfer created")],
            )
            transfer = await self._save_new(transfer)

        logger.info(
            "Created transfer %s (%s) %s -> %s with %d line(s)",
            transfer.transfer_number, transfer.id, source, destination, len(merged),
        )
        return transfer

    async def _save_new(self, transfer: Transfer) -> Transfer:
        """Save a new transfer, drawing a fresh number while the current one is taken."""
        attempt = 1
        while True:
            try:
                await self.repository.save_transfer(transfer)
                return transfer
            except DuplicateTransferNumber:
                if attempt >= TRANSFER_NUMBER_ATTEMPTS:
                    raise
                attempt += 1
                logger.warning("Transfer number %s taken, drawing another", transfer.transfer_number)
                transfer = transfer.model_copy(
                    update={"transfer_number": generate_transfer_number(transfer.request_date.date())}
                )

    async def transition(self, transfer_id: UUID, new_status, note: Optional[str] = None) -> Transfer:
        target = parse_transfer_status(new_status)
        current = await self.get(transfer_id)

        names = [transfer_lock(transfer_id)]
        if target == TransferStatus.COMPLETED:
            for line in current.lines:
                names.append(item_lock(current.source.item(line.material_code)))
                names.append(item_lock(current.destination.item(line.material_code)))

        async with self.locks.hold(*names):
            # reload under the lock; another caller may have moved it
            transfer = await self.get(transfer_id)
            status = transfer.status
            if target not in allowed_next(status):
                error = IllegalTransition(status.value, target.value, [s.value for s in allowed_next(status)])
                await self._reject(transfer, target, note, error)
                raise error

            now = utcnow()
            update = {"status_history": [*transfer.status_history, StatusRecord(status=target.value, timestamp=now, note=note)]}
            if target == TransferStatus.COMPLETED and transfer.completion_date is None:
                update["completion_date"] = now
            updated = transfer.model_copy(update=update)

            if target == TransferStatus.COMPLETED:
                try:
                    await self._move_stock(updated)
                except InsufficientStock as error:
                    await self._reject(transfer, target, note, error)
                    raise
            else:
                await self.repository.save_transfer(updated)

        logger.info("Transfer %s: %s -> %s", updated.transfer_number, status.value, target.value)
        return updated

    async def delete(self, transfer_id: UUID) -> None:
        async with self.locks.hold(transfer_lock(transfer_id)):
            transfer = await self.get(transfer_id)
            if transfer.status != TransferStatus.DRAFT:
                raise IllegalOperation(
                    f"Only draft transfers can be deleted ({transfer.transfer_number} is {transfer.status.value})",
                    transfer_id=transfer_id,
                )
            await self.repository.delete_transfer(transfer_id)
        logger.info("Deleted draft transfer %s", transfer.transfer_number)

    async def _move_stock(self, transfer: Transfer) -> None:
        """Apply the transfer-out/transfer-in pairs and save ``transfer`` in one commit."""
        correlation = str(transfer.id)
        sources = []
        # every source line must be covered before anything is written
        for line in transfer.lines:
            src = await self.ledger.get_item(transfer.source.item(line.material_code))
            if line.quantity > src.current_stock:
                raise InsufficientStock(src.key, src.current_stock, line.quantity)
            sources.append((line, src))

        entries: List[DeltaEntry] = []
        new_items: List[InventoryItem] = []
        for line, src in sources:
            dst, is_new = await self.ledger.destination_item(transfer.destination.item(line.material_code), src)
            if is_new:
                new_items.append(dst)
            entries.append((src.key, -line.quantity, MovementKind.TRANSFER_OUT, correlation, transfer.transfer_number))
            entries.append((dst.key, line.quantity, MovementKind.TRANSFER_IN, correlation, transfer.transfer_number))
        await self.ledger.apply_deltas(entries, held=True, record=transfer, new_items=new_items)

    async def _reject(self, transfer: Transfer, target: TransferStatus, note: Optional[str], error) -> None:
        text = f"Rejected: {error.message}"
        if note:
            text = f"{note} ({text})"
        record = StatusRecord(status=target.value, timestamp=utcnow(), note=text, accepted=False)
        await self.repository.append_transfer_history(transfer.id, record)
        logger.warning("Transfer %s rejected move to %s: %s", transfer.transfer_number, target.value, error.message)
