import asyncio
from datetime import datetime

import pytest
from starlette.requests import Request

from core.config import settings
from core.csrf import csrf_protect, issue_csrf_token, verify_csrf_token
from core.errors import AppError
from core.exports import export_headers, export_media_type, export_rows

COLUMNS = [("lot", "Lot Number"), ("qty", "Qty"), ("at", "Performed At")]


def test_export_csv():
    rows = [{"lot": "A,1", "qty": 5, "at": datetime(2024, 1, 2, 3, 4, 5)}, {"lot": None, "qty": 0}]
    content = export_rows(rows, COLUMNS, "csv").decode("utf-8").splitlines()
    assert content[0] == "Lot Number,Qty,Performed At"
    assert content[1] == '"A,1",5,2024-01-02 03:04:05'
    assert content[2] == ",0,"


def test_export_txt_is_tab_separated():
    content = export_rows([{"lot": "A", "qty": 1}], COLUMNS, "TXT").decode("utf-8")
    assert content.splitlines()[1] == "A\t1\t"
    assert export_media_type("txt") == "text/plain"


def test_export_rejects_unknown_format():
    with pytest.raises(AppError):
        export_rows([], COLUMNS, "xlsx")


def test_export_headers():
    assert export_headers("prices", "csv")["Content-Disposition"].startswith('attachment; filename="prices_')


def test_csrf_token_signature():
    token = issue_csrf_token()
    assert verify_csrf_token(token)
    nonce, _ = token.rsplit(".", 1)
    assert not verify_csrf_token(f"{nonce}.deadbeef")
    assert not verify_csrf_token("")
    assert not verify_csrf_token("no-dot")


def _request(method, header=None, cookie=None):
    headers = []
    if header:
        headers.append((settings.csrf_header_name.lower().encode(), header.encode()))
    if cookie:
        headers.append((b"cookie", f"{settings.csrf_cookie_name}={cookie}".encode()))
    return Request({"type": "http", "method": method, "headers": headers, "path": "/", "query_string": b""})


def test_csrf_protect(monkeypatch):
    monkeypatch.setattr(settings, "csrf_enabled", True)
    token = issue_csrf_token()

    asyncio.run(csrf_protect(_request("GET")))
    asyncio.run(csrf_protect(_request("POST", header=token, cookie=token)))

    with pytest.raises(AppError) as exc:
        asyncio.run(csrf_protect(_request("POST", header=token)))
    assert exc.value.status == 403
    with pytest.raises(AppError):
        asyncio.run(csrf_protect(_request("PATCH", header=token, cookie=issue_csrf_token())))


def test_csrf_disabled_skips_checks(monkeypatch):
    monkeypatch.setattr(settings, "csrf_enabled", False)
    asyncio.run(csrf_protect(_request("DELETE")))
