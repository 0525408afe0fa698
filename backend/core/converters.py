from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from core.models import (
    InventoryItem,
    ItemKey,
    Location,
    Order,
    OrderLine,
    StatusRecord,
    StockMovement,
    Transfer,
    TransferLine,
)
from db.inventory.item import InventoryItem as InventoryItemModel
from db.inventory.movement import StockMovement as StockMovementModel
from db.order import SalesOrder as SalesOrderModel, SalesOrderLine as SalesOrderLineModel
from db.transfer import Transfer as TransferModel, TransferLine as TransferLineModel


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything we store is UTC
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


def item_key_of(row) -> ItemKey:
    return ItemKey(plant=row.plant, storage_location=row.storage_location, material_code=row.material_code)


def item_from_model(row: InventoryItemModel) -> InventoryItem:
    return InventoryItem(
        key=item_key_of(row),
        plant_name=row.plant_name or "",
        material_description=row.material_description or "",
        old_material_no=row.old_material_no or "",
        description=row.description or "",
        total_stock=int(row.total_stock or 0),
        current_stock=int(row.current_stock or 0),
        minimum_stock=int(row.minimum_stock or 0),
    )


def item_model_data(item: InventoryItem) -> Dict:
    """Column values for everything except ``current_stock``."""
    return {
        "plant": item.key.plant,
        "storage_location": item.key.storage_location,
        "material_code": item.key.material_code,
        "plant_name": item.plant_name,
        "material_description": item.material_description,
        "old_material_no": item.old_material_no,
        "description": item.description,
        "total_stock": item.total_stock,
        "minimum_stock": item.minimum_stock,
    }


def movement_from_model(row: StockMovementModel, item_row: InventoryItemModel) -> StockMovement:
    return StockMovement(
        id=row.id,
        item_key=item_key_of(item_row),
        quantity=int(row.quantity),
        kind=row.kind,
        created_at=_aware(row.created_at),
        correlation_id=row.correlation_id,
        note=row.note,
    )


def history_to_json(history: List[StatusRecord]) -> List[Dict]:
    return [record.model_dump(mode="json") for record in history]


def history_from_json(data) -> List[StatusRecord]:
    return [StatusRecord.model_validate(entry) for entry in (data or [])]


def transfer_from_model(row: TransferModel) -> Transfer:
    return Transfer(
        id=row.id,
        transfer_number=row.transfer_number,
        source=Location(plant=row.source_plant, storage_location=row.source_storage_location),
        destination=Location(plant=row.destination_plant, storage_location=row.destination_storage_location),
        request_date=_aware(row.request_date),
        scheduled_date=row.scheduled_date,
        completion_date=_aware(row.completion_date),
        notes=row.notes or "",
        created_by=row.created_by,
        lines=[TransferLine(material_code=ln.material_code, quantity=int(ln.quantity)) for ln in (row.lines or [])],
        status_history=history_from_json(row.status_history),
    )


def transfer_model_data(transfer: Transfer) -> Dict:
    return {
        "transfer_number": transfer.transfer_number,
        "source_plant": transfer.source.plant,
        "source_storage_location": transfer.source.storage_location,
        "destination_plant": transfer.destination.plant,
        "destination_storage_location": transfer.destination.storage_location,
        "request_date": transfer.request_date,
        "scheduled_date": transfer.scheduled_date,
        "completion_date": transfer.completion_date,
        "notes": transfer.notes,
        "created_by": transfer.created_by,
        "status": transfer.status.value,
        "status_history": history_to_json(transfer.status_history),
    }


def transfer_line_models(transfer: Transfer) -> List[TransferLineModel]:
    return [
        TransferLineModel(position=i, material_code=line.material_code, quantity=line.quantity)
        for i, line in enumerate(transfer.lines)
    ]


def order_from_model(row: SalesOrderModel) -> Order:
    return Order(
        id=row.id,
        po_number=row.po_number,
        po_date=row.po_date,
        customer_name=row.customer_name,
        customer_address=row.customer_address or "",
        created_at=_aware(row.created_at),
        lines=[
            OrderLine(description=ln.description, quantity=int(ln.quantity), unit_price=Decimal(str(ln.unit_price)))
            for ln in (row.lines or [])
        ],
        status_history=history_from_json(row.status_history),
    )


def order_model_data(order: Order) -> Dict:
    return {
        "po_number": order.po_number,
        "po_date": order.po_date,
        "customer_name": order.customer_name,
        "customer_address": order.customer_address,
        "created_at": order.created_at,
        "total_amount": order.total_amount,
        "status": order.status.value,
        "status_history": history_to_json(order.status_history),
    }


def order_line_models(order: Order) -> List[SalesOrderLineModel]:
    return [
        SalesOrderLineModel(
            position=i,
            description=line.description,
            quantity=line.quantity,
            unit_price=line.unit_price,
            line_total=line.line_total,
        )
        for i, line in enumerate(order.lines)
    ]
