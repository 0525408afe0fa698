from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from core.errors import InventoryError
from core.service import InventoryService
from core.transfers import parse_transfer_status
from routers.deps import get_service, http_error, unexpected_error
from schemas.transfers import TransferCreate, TransferOut, TransferStatusUpdate

router = APIRouter()


@router.get("/", response_model=List[TransferOut])
async def list_transfers(
    status_filter: Optional[str] = Query(None, alias="status"),
    service: InventoryService = Depends(get_service),
):
    try:
        wanted = parse_transfer_status(status_filter) if status_filter else None
    except InventoryError as e:
        raise http_error(e)
    transfers = await service.list_transfers(status=wanted)
    return [TransferOut.from_transfer(t) for t in transfers]


@router.post("/", response_model=TransferOut, status_code=status.HTTP_201_CREATED)
async def create_transfer(payload: TransferCreate, service: InventoryService = Depends(get_service)):
    try:
        transfer = await service.create_transfer(
            payload.source.to_location(),
            payload.destination.to_location(),
            [line.model_dump() for line in payload.lines],
            scheduled_date=payload.scheduled_date,
            notes=payload.notes or "",
            created_by=payload.created_by,
        )
        return TransferOut.from_transfer(transfer)
    except InventoryError as e:
        raise http_error(e)
    except Exception as e:
        raise unexpected_error("create transfer", e)


@router.get("/{transfer_id}", response_model=TransferOut)
async def get_transfer(transfer_id: UUID, service: InventoryService = Depends(get_service)):
    try:
        transfer = await service.get_transfer(transfer_id)
    except InventoryError as e:
        raise http_error(e)
    return TransferOut.from_transfer(transfer)


@router.post("/{transfer_id}/status", response_model=TransferOut)
async def transition_transfer(
    transfer_id: UUID,
    payload: TransferStatusUpdate,
    service: InventoryService = Depends(get_service),
):
    try:
        transfer = await service.transition_transfer(transfer_id, payload.status, note=payload.note)
        return TransferOut.from_transfer(transfer)
    except InventoryError as e:
        raise http_error(e)
    except Exception as e:
        raise unexpected_error("update transfer status", e)


@router.delete("/{transfer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transfer(transfer_id: UUID, service: InventoryService = Depends(get_service)):
    try:
        await service.delete_transfer(transfer_id)
    except InventoryError as e:
        raise http_error(e)
    except Exception as e:
        raise unexpected_error("delete transfer", e)
