from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from core.errors import InventoryError
from core.models import ItemKey
from core.service import InventoryService
from routers.deps import get_service, http_error, unexpected_error
from schemas.inventory import (
    ForecastOut,
    InventoryItemCreate,
    InventoryItemOut,
    InventoryItemUpdate,
    MovementOut,
    ReceiveGoodsRequest,
    StockAdjustmentRequest,
)

router = APIRouter()


def _key(plant: str, storage_location: str, material_code: str) -> ItemKey:
    try:
        return ItemKey(plant=plant, storage_location=storage_location, material_code=material_code)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.get("/items", response_model=List[InventoryItemOut])
async def list_items(
    search: Optional[str] = Query(None),
    service: InventoryService = Depends(get_service),
):
    items = await service.list_items(search=search)
    return [InventoryItemOut.from_item(it) for it in items]


@router.post("/items", response_model=InventoryItemOut, status_code=status.HTTP_201_CREATED)
async def create_item(payload: InventoryItemCreate, service: InventoryService = Depends(get_service)):
    try:
        item = await service.create_item(payload.to_item(), opening_stock=payload.opening_stock)
        return InventoryItemOut.from_item(item)
    except InventoryError as e:
        raise http_error(e)
    except Exception as e:
        raise unexpected_error("create item", e)


@router.get("/items/{plant}/{storage_location}/{material_code}", response_model=InventoryItemOut)
async def get_item(
    plant: str,
    storage_location: str,
    material_code: str,
    service: InventoryService = Depends(get_service),
):
    try:
        item = await service.get_item(_key(plant, storage_location, material_code))
    except InventoryError as e:
        raise http_error(e)
    return InventoryItemOut.from_item(item)


@router.patch("/items/{plant}/{storage_location}/{material_code}", response_model=InventoryItemOut)
async def update_item(
    plant: str,
    storage_location: str,
    material_code: str,
    payload: InventoryItemUpdate,
    service: InventoryService = Depends(get_service),
):
    key = _key(plant, storage_location, material_code)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    try:
        item = await service.update_item(key, **changes)
        return InventoryItemOut.from_item(item)
    except InventoryError as e:
        raise http_error(e)
    except Exception as e:
        raise unexpected_error("update item", e)


@router.delete("/items/{plant}/{storage_location}/{material_code}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    plant: str,
    storage_location: str,
    material_code: str,
    service: InventoryService = Depends(get_service),
):
    key = _key(plant, storage_location, material_code)
    try:
        await service.delete_item(key)
    except InventoryError as e:
        raise http_error(e)
    except Exception as e:
        raise unexpected_error("delete item", e)


@router.get("/items/{plant}/{storage_location}/{material_code}/forecast", response_model=ForecastOut)
async def get_forecast(
    plant: str,
    storage_location: str,
    material_code: str,
    horizon_days: Optional[int] = Query(None),
    daily_usage: Optional[float] = Query(None),
    service: InventoryService = Depends(get_service),
):
    key = _key(plant, storage_location, material_code)
    try:
        fc = await service.forecast_for(key, horizon_days=horizon_days, daily_usage=daily_usage)
    except InventoryError as e:
        raise http_error(e)
    return ForecastOut.from_forecast(key, fc)


@router.post("/receipts", response_model=MovementOut, status_code=status.HTTP_201_CREATED)
async def receive_goods(payload: ReceiveGoodsRequest, service: InventoryService = Depends(get_service)):
    try:
        mv = await service.receive_goods(
            payload.to_key(),
            payload.quantity,
            payload.vendor,
            payload.received_date or date.today(),
            notes=payload.notes,
        )
        return MovementOut.from_movement(mv)
    except InventoryError as e:
        raise http_error(e)
    except Exception as e:
        raise unexpected_error("receive goods", e)


@router.post("/adjustments", response_model=MovementOut, status_code=status.HTTP_201_CREATED)
async def adjust_stock(payload: StockAdjustmentRequest, service: InventoryService = Depends(get_service)):
    try:
        mv = await service.adjust_stock(payload.to_key(), payload.quantity_delta, reason=payload.reason)
        return MovementOut.from_movement(mv)
    except InventoryError as e:
        raise http_error(e)
    except Exception as e:
        raise unexpected_error("adjust stock", e)


@router.get("/movements", response_model=List[MovementOut])
async def list_movements(
    item_key: Optional[str] = Query(None, description="PLANT/SLOC/MATERIAL"),
    correlation_id: Optional[str] = Query(None),
    service: InventoryService = Depends(get_service),
):
    key = None
    if item_key:
        try:
            key = ItemKey.parse(item_key)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    movements = await service.list_movements(item_key=key, correlation_id=correlation_id)
    return [MovementOut.from_movement(mv) for mv in movements]
