import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base, GUID


class LocationInventory(Base):
    __tablename__ = "location_inventory"
    __table_args__ = (
        UniqueConstraint("location_id", "batch_id", name="ux_location_inventory_location_batch"),
    )

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    location_id = Column(GUID, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True)
    batch_id = Column(GUID, ForeignKey("batch_registry.id", ondelete="CASCADE"), nullable=False, index=True)

    location_quantity = Column(Integer, nullable=False, default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)
    inbound_date = Column(Date, nullable=True)
    outbound_date = Column(Date, nullable=True)
    status = Column(Text, nullable=False, default="in_stock", index=True)
    last_update = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    location = relationship("Location")
    batch = relationship("BatchRegistry")
