import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import Base, GUID


class InventoryActionType(Base):
    __tablename__ = "inventory_action_types"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True, index=True)
    category = Column(String, nullable=True)  # inbound|outbound|adjustment|system
    description = Column(Text, nullable=True)
    is_adjustment = Column(Boolean, nullable=False, default=False)
    affects_financials = Column(Boolean, nullable=False, default=False)


class InventoryActivityLog(Base):
    __tablename__ = "inventory_activity_logs"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    warehouse_inventory_id = Column(
        GUID, ForeignKey("warehouse_inventory.id", ondelete="SET NULL"), nullable=True, index=True
    )
    location_inventory_id = Column(
        GUID, ForeignKey("location_inventory.id", ondelete="SET NULL"), nullable=True, index=True
    )
    inventory_action_type_id = Column(
        GUID, ForeignKey("inventory_action_types.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    adjustment_type_id = Column(GUID, ForeignKey("inventory_action_types.id", ondelete="SET NULL"), nullable=True)

    previous_quantity = Column(Integer, nullable=False, default=0)
    quantity_change = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)
    status = Column(Text, nullable=True)

    performed_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    performed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    order_id = Column(GUID, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    comments = Column(Text, nullable=True)
    source_type = Column(Text, nullable=True, index=True)  # manual_stock_insert|adjustment|fulfillment|seed
    source_ref_id = Column(GUID, nullable=True)
    checksum = Column(String(64), nullable=False)
    meta = Column("metadata", JSON, nullable=True)

    action_type = relationship("InventoryActionType", foreign_keys=[inventory_action_type_id])
    warehouse_inventory = relationship("WarehouseInventory")
    location_inventory = relationship("LocationInventory")
