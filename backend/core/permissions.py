"""
Role/permission resolution.

A user's permissions come from their role's active role_permissions rows.
The `root_admin` role, the `root_access` permission and superusers bypass
every check.
"""

from typing import Any, Dict, Iterable, List, Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.errors import AppError
from db.database import get_async_session
from db.users import Permission, Role, RolePermission, User

ROOT_ROLE_NAME = "root_admin"
ROOT_PERMISSION = "root_access"

# key -> human readable name
PERMISSION_CATALOG: Dict[str, str] = {
    ROOT_PERMISSION: "Root access",
    "view_self_profile": "View own profile",
    "view_users": "View users",
    "manage_users": "Manage users",
    "view_products": "View products",
    "manage_products": "Manage products",
    "view_skus": "View SKUs",
    "manage_skus": "Manage SKUs",
    "view_batch_registry": "View batch registry",
    "view_product_batches": "View product batches",
    "view_packaging_batches": "View packaging material batches",
    "manage_batches": "Manage batches",
    "view_locations": "View locations",
    "manage_locations": "Manage locations",
    "view_warehouses": "View warehouses",
    "manage_warehouses": "Manage warehouses",
    "view_inventory": "View inventory",
    "adjust_inventory": "Insert and adjust inventory",
    "view_orders": "View orders",
    "create_orders": "Create orders",
    "update_order_status": "Update order status",
    "view_allocations": "View inventory allocations",
    "allocate_inventory": "Allocate inventory",
    "view_shipments": "View outbound shipments",
    "fulfill_orders": "Fulfill orders",
    "view_prices": "View prices",
    "manage_prices": "Manage prices",
    "export_prices": "Export prices",
    "view_inventory_logs": "View inventory activity logs",
    "export_inventory_logs": "Export inventory activity logs",
    "view_lookups": "Use lookup dropdowns",
    "manage_suppliers": "Manage suppliers and manufacturers",
    "view_boms": "View bills of materials",
    "view_bom_details": "View BOM details and costs",
    "view_bom_production_summary": "View BOM production readiness",
    "view_customers": "View customers and addresses",
    "manage_customers": "Create and update customers and addresses",
}

_BASE = ["view_self_profile", "view_lookups", "view_products", "view_skus"]

ROLE_DEFINITIONS: Dict[str, List[str]] = {
    ROOT_ROLE_NAME: [ROOT_PERMISSION],
    "admin": _BASE + [
        "view_users", "manage_users", "manage_products", "manage_skus",
        "view_locations", "manage_locations", "view_warehouses", "manage_warehouses",
        "view_prices", "manage_prices", "export_prices", "manage_suppliers",
    ],
    "manager": _BASE + [
        "view_users", "view_batch_registry", "view_product_batches", "view_packaging_batches",
        "manage_batches", "view_locations", "view_warehouses", "view_inventory", "adjust_inventory",
        "view_orders", "create_orders", "update_order_status", "view_allocations",
        "allocate_inventory", "view_shipments", "fulfill_orders", "view_prices",
        "view_inventory_logs", "export_inventory_logs", "view_boms", "view_bom_details",
        "view_bom_production_summary", "view_customers", "manage_customers",
    ],
    "sales": _BASE + [
        "view_orders", "create_orders", "view_prices", "view_customers", "manage_customers",
    ],
    "qa": _BASE + [
        "view_batch_registry", "view_product_batches", "view_packaging_batches",
        "view_inventory", "view_inventory_logs", "view_boms", "view_bom_production_summary",
    ],
    "viewer": list(_BASE),
}


def has_root_access(permissions: Optional[Iterable[str]]) -> bool:
    return ROOT_PERMISSION in set(permissions or ())


def has_permission(
    role_name: Optional[str],
    permissions: Optional[Iterable[str]],
    required: Iterable[str],
    require_all: bool = False,
) -> bool:
    if role_name == ROOT_ROLE_NAME:
        return True
    granted = set(permissions or ())
    if ROOT_PERMISSION in granted:
        return True
    required = list(required or ())
    if not required:
        return True
    if require_all:
        return all(p in granted for p in required)
    return any(p in granted for p in required)


def get_effective_permissions(role_name: Optional[str], permissions: Optional[Iterable[str]]) -> List[str]:
    if role_name == ROOT_ROLE_NAME or has_root_access(permissions):
        return [ROOT_PERMISSION] + sorted(k for k in PERMISSION_CATALOG if k != ROOT_PERMISSION)
    return sorted(set(permissions or ()))


async def load_role_permissions(db: AsyncSession, role_id) -> List[str]:
    res = await db.execute(
        select(Permission.key)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .where(RolePermission.role_id == role_id)
        .where(Permission.is_active.is_(True))
    )
    return sorted(set(res.scalars().all()))


async def resolve_permission_context(db: AsyncSession, user: User) -> Dict[str, Any]:
    if user.is_superuser:
        return {"roleName": ROOT_ROLE_NAME, "permissions": [ROOT_PERMISSION], "isRoot": True}

    if not user.role_id:
        raise AppError.authorization("User has no role assigned")

    role = (await db.execute(select(Role).where(Role.id == user.role_id))).scalar_one_or_none()
    if not role or not role.is_active:
        raise AppError.authorization("User role is missing or inactive")

    permissions = await load_role_permissions(db, role.id)
    is_root = role.name == ROOT_ROLE_NAME or has_root_access(permissions)
    if not permissions and not is_root:
        raise AppError.authorization("No permissions assigned to this role")

    return {"roleName": role.name, "permissions": permissions, "isRoot": is_root}


def require_permissions(*keys: str, require_all: bool = False):
    """Dependency: resolves the caller's permission context and enforces `keys`."""

    async def _dependency(
        user: User = Depends(current_active_user),
        db: AsyncSession = Depends(get_async_session),
    ) -> Dict[str, Any]:
        ctx = await resolve_permission_context(db, user)
        if not ctx["isRoot"] and not has_permission(ctx["roleName"], ctx["permissions"], keys, require_all):
            raise AppError.authorization(
                "You do not have permission to perform this action",
                details={"required": list(keys)},
            )
        return ctx

    return _dependency
