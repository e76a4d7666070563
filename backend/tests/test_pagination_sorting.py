import pytest

from core.errors import AppError
from core.logging import trace_context
from core.pagination import PageParams, build_pagination, ok_response, paginated_response
from core.sorting import SORTABLE_FIELDS, normalize_sort_order, order_clause, resolve_sort, sortable_columns
from db.order import Order


def test_build_pagination():
    assert build_pagination(2, 10, 35) == {"page": 2, "limit": 10, "totalRecords": 35, "totalPages": 4}
    assert build_pagination(1, 10, 0)["totalPages"] == 0
    assert build_pagination(1, 10, None)["totalRecords"] == 0


def test_page_params_validation():
    assert PageParams(page=3, limit=20).offset == 40
    with pytest.raises(AppError):
        PageParams(page=0, limit=10)
    with pytest.raises(AppError):
        PageParams(page=1, limit=0)
    with pytest.raises(AppError):
        PageParams(page=1, limit=10_000)


def test_envelopes():
    assert ok_response({"a": 1}, "done") == {"success": True, "message": "done", "data": {"a": 1}}
    with trace_context("t-1"):
        body = paginated_response([1, 2], build_pagination(1, 2, 2), "listed")
    assert body["pagination"]["totalRecords"] == 2
    assert body["data"] == [1, 2]
    assert body["traceId"] == "t-1"


def test_normalize_sort_order():
    assert normalize_sort_order("desc") == "DESC"
    assert normalize_sort_order("DESC") == "DESC"
    assert normalize_sort_order(None) == "ASC"
    assert normalize_sort_order("sideways") == "ASC"


def test_resolve_sort_whitelists_keys():
    assert resolve_sort("products", "brand", "desc") == ("products.brand", "DESC")
    # unknown keys fall back to the natural sort
    column, _ = resolve_sort("products", "password; drop table", None)
    assert column == SORTABLE_FIELDS["products"]["defaultNaturalSort"]


def test_resolve_sort_unknown_module():
    with pytest.raises(KeyError):
        resolve_sort("nope", "name")


def test_order_clause_against_model_columns():
    columns = sortable_columns(Order)
    clause = order_clause(columns, "orders", "orderNumber", "desc")
    assert "order_number" in str(clause)
    assert "DESC" in str(clause)


def test_every_module_has_natural_sort():
    for module, fields in SORTABLE_FIELDS.items():
        assert "defaultNaturalSort" in fields, module
