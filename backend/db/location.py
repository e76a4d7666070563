import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from .database import Base, GUID


class LocationType(Base):
    __tablename__ = "location_types"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    code = Column(String, nullable=False, unique=True, index=True)  # WAREHOUSE|OFFICE|RETAIL|...
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)


class Location(Base):
    __tablename__ = "locations"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, index=True)
    location_type_id = Column(GUID, ForeignKey("location_types.id", ondelete="SET NULL"), nullable=True, index=True)
    address_line = Column(String, nullable=True)
    city = Column(String, nullable=True, index=True)
    province = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    country = Column(String, nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    status = Column(Text, nullable=False, default="active")

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, nullable=True)
    updated_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    location_type = relationship("LocationType")
