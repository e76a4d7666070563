import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship

from .database import Base, GUID


class PricingType(Base):
    __tablename__ = "pricing_types"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True, index=True)  # Retail|Wholesale|MSRP|...
    code = Column(String, nullable=True, unique=True)
    description = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="active")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class Pricing(Base):
    __tablename__ = "pricing"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    sku_id = Column(GUID, ForeignKey("skus.id", ondelete="CASCADE"), nullable=False, index=True)
    price_type_id = Column(GUID, ForeignKey("pricing_types.id", ondelete="RESTRICT"), nullable=False, index=True)
    location_id = Column(GUID, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True, index=True)
    price = Column(Numeric(12, 2), nullable=False)
    valid_from = Column(DateTime, nullable=False, index=True)
    valid_to = Column(DateTime, nullable=True, index=True)
    status = Column(Text, nullable=False, default="active", index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, nullable=True)

    sku = relationship("Sku")
    pricing_type = relationship("PricingType")
    location = relationship("Location")
