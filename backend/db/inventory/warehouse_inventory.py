import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base, GUID


class WarehouseInventory(Base):
    __tablename__ = "warehouse_inventory"
    __table_args__ = (
        UniqueConstraint("warehouse_id", "batch_id", name="ux_warehouse_inventory_warehouse_batch"),
    )

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    warehouse_id = Column(GUID, ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True)
    batch_id = Column(GUID, ForeignKey("batch_registry.id", ondelete="CASCADE"), nullable=False, index=True)

    warehouse_quantity = Column(Integer, nullable=False, default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)
    warehouse_fee = Column(Numeric(12, 2), nullable=True)
    inbound_date = Column(Date, nullable=True, index=True)
    outbound_date = Column(Date, nullable=True)
    status = Column(Text, nullable=False, default="in_stock", index=True)  # in_stock|out_of_stock|unavailable|unassigned|reserved
    last_update = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    warehouse = relationship("Warehouse")
    batch = relationship("BatchRegistry")
