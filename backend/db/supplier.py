import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text

from .database import Base, GUID


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True, index=True)
    contact = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "name": self.name,
            "contact": self.contact,
            "notes": self.notes,
        }


class Manufacturer(Base):
    __tablename__ = "manufacturers"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True, index=True)
    contact = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "name": self.name,
            "contact": self.contact,
            "notes": self.notes,
        }
