import logging

from fastapi import HTTPException, Request, status

from core.errors import Busy, InventoryError
from core.service import InventoryService

logger = logging.getLogger(__name__)


def get_service(request: Request) -> InventoryService:
    return request.app.state.service


def http_error(e: InventoryError) -> HTTPException:
    headers = {"Retry-After": "1"} if isinstance(e, Busy) else None
    return HTTPException(status_code=e.status_code, detail=e.to_detail(), headers=headers)


def unexpected_error(action: str, e: Exception) -> HTTPException:
    logger.exception("%s failed", action)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}: {e}")
