from datetime import date, datetime
from decimal import Decimal

from core.formatters import (
    clean_object,
    format_date,
    format_date_time,
    format_label,
    format_nullable,
    make_actor,
    make_status,
    to_number,
)


def test_format_date_time():
    assert format_date_time(datetime(2024, 3, 5, 14, 7, 9)) == "2024-03-05 14:07:09"
    assert format_date_time("2024-03-05T14:07:09Z") == "2024-03-05 14:07:09"
    assert format_date_time(date(2024, 3, 5)) == "2024-03-05 00:00:00"


def test_format_date_time_fallback_for_bad_input():
    assert format_date_time("not a date") == "N/A"
    assert format_date_time(None) == "N/A"
    assert format_date_time("", fallback="-") == "-"
    assert format_date_time(12345) == "N/A"


def test_format_date():
    assert format_date("2024-12-31T23:59:00") == "2024-12-31"
    assert format_date("garbage", fallback="") == ""


def test_format_nullable():
    assert format_nullable(None) == "N/A"
    assert format_nullable("   ") == "N/A"
    assert format_nullable("", empty_fallback="(empty)") == "(empty)"
    assert format_nullable(0) == 0


def test_format_label():
    assert format_label("manual_stock_insert") == "Manual Stock Insert"
    assert format_label("batchRegistry") == "Batch Registry"
    assert format_label("packaging-material") == "Packaging Material"
    assert format_label("") == "Unknown"
    assert format_label(None) == "Unknown"


def test_to_number():
    assert to_number(Decimal("12.50")) == 12.5
    assert to_number("3") == 3.0
    assert to_number("x") is None
    assert to_number(None) is None


def test_clean_object_drops_nones_two_levels():
    assert clean_object({"a": 1, "b": None, "c": {"d": None, "e": 2}}) == {"a": 1, "c": {"e": 2}}
    assert clean_object(None) == {}


def test_make_actor_and_status():
    assert make_actor(None) is None
    assert make_actor("u1", "Ada", "Lovelace") == {"id": "u1", "name": "Ada Lovelace"}
    assert make_actor("u2") == {"id": "u2", "name": "Unknown"}
    assert make_status() is None
    assert make_status(name="in_stock", date_value=date(2024, 1, 2)) == {"name": "in_stock", "date": "2024-01-02"}
