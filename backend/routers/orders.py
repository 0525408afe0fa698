from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from core.errors import InventoryError
from core.orders import parse_order_status
from core.service import InventoryService
from routers.deps import get_service, http_error, unexpected_error
from schemas.inventory import MovementOut
from schemas.orders import OrderCreate, OrderOut, OrderStatusUpdate, ReservationRequest

router = APIRouter()


@router.get("/", response_model=List[OrderOut])
async def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    service: InventoryService = Depends(get_service),
):
    try:
        wanted = parse_order_status(status_filter) if status_filter else None
    except InventoryError as e:
        raise http_error(e)
    orders = await service.list_orders(status=wanted)
    return [OrderOut.from_order(o) for o in orders]


@router.post("/", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
async def create_order(payload: OrderCreate, service: InventoryService = Depends(get_service)):
    try:
        order = await service.create_order(
            payload.po_number,
            payload.po_date,
            payload.customer_name,
            [line.model_dump() for line in payload.lines],
            customer_address=payload.customer_address or "",
        )
        return OrderOut.from_order(order)
    except InventoryError as e:
        raise http_error(e)
    except Exception as e:
        raise unexpected_error("create order", e)


@router.get("/{order_id}", response_model=OrderOut)
async def get_order(order_id: UUID, service: InventoryService = Depends(get_service)):
    try:
        order = await service.get_order(order_id)
    except InventoryError as e:
        raise http_error(e)
    return OrderOut.from_order(order)


@router.post("/{order_id}/status", response_model=OrderOut)
async def update_order_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    service: InventoryService = Depends(get_service),
):
    try:
        order = await service.update_order_status(order_id, payload.status, note=payload.note)
        return OrderOut.from_order(order)
    except InventoryError as e:
        raise http_error(e)
    except Exception as e:
        raise unexpected_error("update order status", e)


@router.post("/{order_id}/reservations", response_model=MovementOut, status_code=status.HTTP_201_CREATED)
async def reserve_for_order(
    order_id: UUID,
    payload: ReservationRequest,
    service: InventoryService = Depends(get_service),
):
    try:
        mv = await service.reserve_for_order(order_id, payload.to_key(), payload.quantity)
        return MovementOut.from_movement(mv)
    except InventoryError as e:
        raise http_error(e)
    except Exception as e:
        raise unexpected_error("reserve stock", e)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(order_id: UUID, service: InventoryService = Depends(get_service)):
    try:
        await service.delete_order(order_id)
    except InventoryError as e:
        raise http_error(e)
    except Exception as e:
        raise unexpected_error("delete order", e)
