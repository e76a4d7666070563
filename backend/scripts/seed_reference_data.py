import asyncio
import secrets
import sys
from pathlib import Path

"""
Seed reference data: system user, root admin, roles, permissions,
location types, inventory action types and pricing types.

Safe to run repeatedly; existing rows are left untouched.

This script can be run from either:
- backend/: `python scripts/seed_reference_data.py`
- repo root: `python backend/scripts/seed_reference_data.py`
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from fastapi_users.password import PasswordHelper
from sqlalchemy import select

from core.config import settings
from core.constants import (
    ACTION_DAMAGED,
    ACTION_EXPIRED,
    ACTION_FULFILLED,
    ACTION_INITIAL_LOAD,
    ACTION_MANUAL_ADJUSTMENT,
    ACTION_MANUAL_STOCK_INSERT,
    ACTION_RETURN,
)
from core.logging import configure_logging, log_system_info
from core.permissions import PERMISSION_CATALOG, ROLE_DEFINITIONS, ROOT_ROLE_NAME
from db.database import async_session_maker, create_db_and_tables
from db.inventory.activity import InventoryActionType
from db.location import LocationType
from db.pricing import PricingType
from db.users import Permission, Role, RolePermission, User

password_helper = PasswordHelper()

LOCATION_TYPES = [
    ("WAREHOUSE", "Warehouse", "Storage facility holding stock"),
    ("OFFICE", "Office", "Administrative office"),
    ("RETAIL", "Retail Store", "Point of sale"),
    ("FACTORY", "Factory", "Manufacturing site"),
]

# name, category, is_adjustment, affects_financials
ACTION_TYPES = [
    (ACTION_INITIAL_LOAD, "system", False, False),
    (ACTION_MANUAL_STOCK_INSERT, "inbound", False, True),
    (ACTION_MANUAL_ADJUSTMENT, "adjustment", True, True),
    (ACTION_DAMAGED, "adjustment", True, True),
    (ACTION_EXPIRED, "adjustment", True, True),
    (ACTION_RETURN, "adjustment", True, True),
    (ACTION_FULFILLED, "outbound", False, True),
]

PRICING_TYPES = [
    ("Retail", "RETAIL", "Shelf price for end customers"),
    ("Wholesale", "WHOLESALE", "Price for distributors"),
    ("MSRP", "MSRP", "Manufacturer suggested retail price"),
]


async def get_or_create_role(session, name: str) -> Role:
    role = (await session.execute(select(Role).where(Role.name == name))).scalar_one_or_none()
    if role:
        return role
    role = Role(name=name, description=name.replace("_", " ").title(), is_active=True)
    session.add(role)
    await session.flush()
    return role


async def seed_permissions(session) -> dict:
    existing = {p.key: p for p in (await session.execute(select(Permission))).scalars()}
    for key, name in PERMISSION_CATALOG.items():
        if key not in existing:
            perm = Permission(key=key, name=name, is_active=True)
            session.add(perm)
            existing[key] = perm
    await session.flush()
    return existing


async def seed_roles(session, permissions: dict) -> dict:
    roles = {}
    for role_name, keys in ROLE_DEFINITIONS.items():
        role = await get_or_create_role(session, role_name)
        roles[role_name] = role
        res = await session.execute(select(RolePermission.permission_id).where(RolePermission.role_id == role.id))
        linked = set(res.scalars().all())
        for key in keys:
            perm = permissions[key]
            if perm.id not in linked:
                session.add(RolePermission(role_id=role.id, permission_id=perm.id))
    await session.flush()
    return roles


async def get_or_create_user(session, email: str, password: str, role: Role, **fields) -> User:
    user = (await session.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user:
        return user
    user = User(
        email=email,
        hashed_password=password_helper.hash(password),
        role_id=role.id,
        is_verified=True,
        **fields,
    )
    session.add(user)
    await session.flush()
    return user


async def seed_lookup_rows(session, model, key_attr: str, rows, build) -> int:
    key = getattr(model, key_attr)
    existing = set((await session.execute(select(key))).scalars().all())
    created = 0
    for row in rows:
        if row[0] in existing:
            continue
        session.add(build(*row))
        created += 1
    await session.flush()
    return created


async def seed_reference_data(session) -> dict:
    permissions = await seed_permissions(session)
    roles = await seed_roles(session, permissions)

    # owner of seed / system-generated records; cannot log in
    system_user = await get_or_create_user(
        session, settings.system_user_email, secrets.token_urlsafe(32), roles[ROOT_ROLE_NAME],
        firstname="System", is_active=False, is_superuser=False,
    )
    root_admin = await get_or_create_user(
        session, settings.root_admin_email, settings.root_admin_password, roles[ROOT_ROLE_NAME],
        firstname="Root", lastname="Admin", is_active=True, is_superuser=True,
    )

    location_types = await seed_lookup_rows(
        session, LocationType, "code", LOCATION_TYPES,
        lambda code, name, desc: LocationType(code=code, name=name, description=desc),
    )
    action_types = await seed_lookup_rows(
        session, InventoryActionType, "name", ACTION_TYPES,
        lambda name, category, adj, fin: InventoryActionType(
            name=name, category=category, is_adjustment=adj, affects_financials=fin,
            description=name.replace("_", " ").capitalize(),
        ),
    )
    pricing_types = await seed_lookup_rows(
        session, PricingType, "name", PRICING_TYPES,
        lambda name, code, desc: PricingType(name=name, code=code, description=desc),
    )
    await session.commit()

    summary = {
        "systemUserId": str(system_user.id),
        "rootAdminId": str(root_admin.id),
        "roles": len(roles),
        "permissions": len(permissions),
        "locationTypesCreated": location_types,
        "actionTypesCreated": action_types,
        "pricingTypesCreated": pricing_types,
    }
    log_system_info("Reference data seeded", context="scripts/seed-reference", **summary)
    return summary


async def main() -> None:
    configure_logging(settings.log_level, settings.log_format)
    await create_db_and_tables()
    async with async_session_maker() as session:
        summary = await seed_reference_data(session)
    print(f"Seeded reference data: {summary}")


if __name__ == "__main__":
    asyncio.run(main())
