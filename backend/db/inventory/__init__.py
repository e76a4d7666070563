"""
Inventory (lots per warehouse and per location).

Models:
- WarehouseInventory (quantity/reserved per batch per warehouse)
- LocationInventory (the same lot seen from its physical location)
- InventoryActionType (initial_load, manual_adjustment, fulfilled, ...)
- InventoryActivityLog (append-only quantity changes with checksum)
"""
