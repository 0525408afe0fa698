"""Errors raised by the stock ledger and the transfer/order workflows.

Every error carries an HTTP status code and a short machine-readable code so
routers can turn it into an ``HTTPException`` without a lookup table.
"""

from typing import Any, Dict, Optional


class InventoryError(Exception):
    status_code: int = 400
    code: str = "inventory_error"
    retryable: bool = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.context:
            detail["context"] = {k: str(v) for k, v in self.context.items()}
        return detail


class InsufficientStock(InventoryError):
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, item_key: Any, available: int, requested: int, message: Optional[str] = None):
        super().__init__(
            message or f"Not enough stock for {item_key}. Available={available} requested={requested}",
            item_key=item_key,
            available=available,
            requested=requested,
        )
        self.item_key = item_key
        self.available = available
        self.requested = requested


class IllegalTransition(InventoryError):
    status_code = 409
    code = "illegal_transition"

    def __init__(self, current: str, requested: str, allowed=()):
        allowed_txt = ", ".join(allowed) if allowed else "none"
        super().__init__(
            f"Cannot move from '{current}' to '{requested}' (allowed: {allowed_txt})",
            current=current,
            requested=requested,
        )
        self.current = current
        self.requested = requested
        self.allowed = tuple(allowed)


class InvalidRoute(InventoryError):
    code = "invalid_route"


class EmptyTransfer(InventoryError):
    code = "empty_transfer"


class UnknownStatus(InventoryError):
    code = "unknown_status"


class IllegalOperation(InventoryError):
    status_code = 409
    code = "illegal_operation"


class NotFound(InventoryError):
    status_code = 404
    code = "not_found"


class Busy(InventoryError):
    """Lock contention. The only error callers should retry."""

    status_code = 503
    code = "busy"
    retryable = True


class InvalidInput(InventoryError):
    status_code = 422
    code = "invalid_input"


class DuplicateTransferNumber(IllegalOperation):
    code = "duplicate_transfer_number"
