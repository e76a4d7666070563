import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .database import Base, GUID


class Warehouse(Base):
    __tablename__ = "warehouses"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, index=True)
    code = Column(String, nullable=False, unique=True, index=True)
    location_id = Column(GUID, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True, index=True)
    warehouse_type = Column(String, nullable=True)
    storage_capacity = Column(Integer, nullable=True)
    default_fee = Column(Numeric(12, 2), nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    status = Column(Text, nullable=False, default="active")

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, nullable=True)

    location = relationship("Location")
