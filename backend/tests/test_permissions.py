from core.permissions import (
    PERMISSION_CATALOG,
    ROLE_DEFINITIONS,
    ROOT_PERMISSION,
    get_effective_permissions,
    has_permission,
)


def test_root_admin_always_allowed():
    assert has_permission("root_admin", [], ["manage_users"])
    assert has_permission("root_admin", None, ["anything"], require_all=True)


def test_root_access_permission_bypasses():
    assert has_permission("viewer", [ROOT_PERMISSION], ["allocate_inventory"])


def test_any_vs_all():
    granted = ["view_orders", "create_orders"]
    assert has_permission("sales", granted, ["view_orders", "manage_users"])
    assert not has_permission("sales", granted, ["view_orders", "manage_users"], require_all=True)
    assert has_permission("sales", granted, ["view_orders", "create_orders"], require_all=True)


def test_missing_permission_denied():
    assert not has_permission("viewer", ["view_products"], ["manage_products"])


def test_empty_requirement_allows():
    assert has_permission("viewer", [], [])


def test_effective_permissions_for_root_lists_catalog():
    perms = get_effective_permissions("root_admin", [])
    assert perms[0] == ROOT_PERMISSION
    assert set(perms) == set(PERMISSION_CATALOG)


def test_effective_permissions_deduplicated_and_sorted():
    assert get_effective_permissions("qa", ["view_inventory", "view_batch_registry", "view_inventory"]) == [
        "view_batch_registry",
        "view_inventory",
    ]


def test_role_definitions_only_use_catalog_keys():
    for keys in ROLE_DEFINITIONS.values():
        assert set(keys) <= set(PERMISSION_CATALOG)
