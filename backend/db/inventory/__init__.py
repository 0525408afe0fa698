"""
Inventory tables.

Models:
- InventoryItem (one row per plant / storage location / material, carries the cached current_stock)
- StockMovement (append-only signed deltas; the sum per item equals current_stock)
"""

from .item import InventoryItem
from .movement import StockMovement

__all__ = ["InventoryItem", "StockMovement"]
