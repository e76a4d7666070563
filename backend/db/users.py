import uuid
from datetime import datetime

from fastapi_users_db_sqlalchemy import SQLAlchemyBaseUserTableUUID
from fastapi_users_db_sqlalchemy.access_token import SQLAlchemyBaseAccessTokenTableUUID
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import declared_attr, relationship

from .database import Base, GUID


class Role(Base):
    __tablename__ = "roles"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True, index=True)  # root_admin|admin|manager|sales|viewer|...
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    role_permissions = relationship("RolePermission", back_populates="role", cascade="all, delete-orphan")


class Permission(Base):
    __tablename__ = "permissions"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    key = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class RolePermission(Base):
    __tablename__ = "role_permissions"
    __table_args__ = (UniqueConstraint("role_id", "permission_id", name="ux_role_permissions_pair"),)

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    role_id = Column(GUID, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(GUID, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True)

    role = relationship("Role", back_populates="role_permissions")
    permission = relationship("Permission")


class User(SQLAlchemyBaseUserTableUUID, Base):
    __tablename__ = "users"

    role_id = Column(GUID, ForeignKey("roles.id", ondelete="SET NULL"), nullable=True, index=True)
    firstname = Column(String, nullable=True)
    lastname = Column(String, nullable=True)
    job_title = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    role = relationship("Role", lazy="joined")

    @property
    def full_name(self):
        name = " ".join(p for p in ((self.firstname or "").strip(), (self.lastname or "").strip()) if p)
        return name or None

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "email": self.email,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "role_id": self.role_id,
        }


class AccessToken(SQLAlchemyBaseAccessTokenTableUUID, Base):
    """Database-backed session: one row per issued access token."""
    __tablename__ = "access_tokens"

    @declared_attr
    def user_id(cls):
        return Column(GUID, ForeignKey("users.id", ondelete="cascade"), nullable=False, index=True)
