import threading
from datetime import date
from uuid import UUID

import pytest
import requests

from client.api import ErpApiClient
from client.query import ListQueryController, build_query_params
from client.state import ListState, run_list_fetch
from core.errors import AppError, ErrorType


# ---------------------------------------------------------------------------
# query params / debounce
# ---------------------------------------------------------------------------

def test_build_query_params_drops_empty_values():
    params = build_query_params(
        2, 25, "expiryDate", "desc",
        {
            "keyword": "  ",
            "warehouseIds": ["a", "b"],
            "batchIds": [],
            "dateFrom": date(2024, 1, 31),
            "currentlyValid": True,
            "performedBy": UUID("12345678-1234-5678-1234-567812345678"),
            "status": None,
        },
    )
    assert params == {
        "page": 2,
        "limit": 25,
        "sortBy": "expiryDate",
        "sortOrder": "DESC",
        "warehouseIds": "a,b",
        "dateFrom": "2024-01-31",
        "currentlyValid": "true",
        "performedBy": "12345678-1234-5678-1234-567812345678",
    }


class Recorder:
    def __init__(self):
        self.calls = []
        self.event = threading.Event()

    def __call__(self, params):
        self.calls.append(params)
        self.event.set()


def test_empty_filters_still_fetch_once():
    rec = Recorder()
    ctl = ListQueryController(rec, debounce_seconds=0.01)
    ctl.apply_filters_and_sorting({})
    assert rec.event.wait(2)
    assert len(rec.calls) == 1
    assert rec.calls[0]["page"] == 1


def test_burst_collapses_into_one_fetch_with_latest_query():
    rec = Recorder()
    ctl = ListQueryController(rec, page=4, debounce_seconds=5)
    ctl.apply_filters_and_sorting({"keyword": "a"})
    ctl.apply_filters_and_sorting({"keyword": "ab"})
    ctl.set_sort("lotNumber", "desc")
    assert ctl.pending
    assert ctl.flush() is True
    assert ctl.flush() is False
    assert len(rec.calls) == 1
    assert rec.calls[0]["keyword"] == "ab"
    assert rec.calls[0]["sortBy"] == "lotNumber"
    assert rec.calls[0]["page"] == 1
    assert ctl.dispatch_count == 1


def test_page_kept_but_limit_resets_page():
    rec = Recorder()
    ctl = ListQueryController(rec, debounce_seconds=5)
    ctl.set_page(3)
    ctl.flush()
    assert rec.calls[-1]["page"] == 3
    ctl.set_limit(50)
    ctl.flush()
    assert rec.calls[-1] == {"page": 1, "limit": 50}
    ctl.apply_filters_and_sorting({"status": "in_stock"})
    ctl.reset_filters()
    ctl.cancel()
    assert not ctl.pending
    assert len(rec.calls) == 2


# ---------------------------------------------------------------------------
# list state
# ---------------------------------------------------------------------------

def test_run_list_fetch_success():
    state = ListState()
    body = run_list_fetch(state, lambda q: {"data": [{"id": 1}], "pagination": {"page": q["page"]}}, {"page": 2})
    assert body["data"] == [{"id": 1}]
    assert state.data == [{"id": 1}]
    assert state.pagination == {"page": 2}
    assert not state.loading
    assert state.error is None


def test_run_list_fetch_failure_stores_ui_error():
    state = ListState(data=[{"id": "old"}])

    def boom(_):
        raise AppError.authorization("Nope")

    assert run_list_fetch(state, boom, {}) is None
    assert state.error == {"message": "Nope", "type": "Authorization"}
    assert state.data == [{"id": "old"}]
    assert not state.loading
    state.reset()
    assert state.data == [] and state.error is None


# ---------------------------------------------------------------------------
# API client with a stubbed session
# ---------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, status_code, body=None, headers=None):
        self.status_code = status_code
        self._body = body
        self.headers = headers or {}
        self.content = b"" if body is None else b"x"

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


def make_client(responses, **kw):
    return ErpApiClient(base_url="http://erp.test/api/", session=FakeSession(responses), **kw)


def test_login_fetches_csrf_then_posts_form():
    api = make_client([
        FakeResponse(200, {"success": True, "data": {"csrfToken": "tok"}}),
        FakeResponse(200, {"access_token": "acc", "token_type": "bearer"}),
    ])
    assert api.login("a@b.com", "secret") == "acc"
    method, url, kwargs = api.session.requests[1]
    assert (method, url) == ("POST", "http://erp.test/api/auth/login")
    assert kwargs["data"] == {"username": "a@b.com", "password": "secret"}
    assert kwargs["headers"]["X-CSRF-Token"] == "tok"


def test_retry_once_after_refresh_on_401():
    api = make_client(
        [
            FakeResponse(401, {"success": False, "message": "expired", "type": "Authentication"}),
            FakeResponse(200, {"success": True, "data": {"accessToken": "new"}}),
            FakeResponse(200, {"success": True, "data": [], "pagination": {"page": 1}}),
        ],
        access_token="old",
        csrf_token="tok",
    )
    body = api.fetch_orders({"page": 1})
    assert body["pagination"] == {"page": 1}
    assert api.access_token == "new"
    assert api.session.requests[2][2]["headers"]["Authorization"] == "Bearer new"


def test_failed_refresh_clears_tokens():
    api = make_client(
        [
            FakeResponse(401, {"message": "expired"}),
            FakeResponse(401, {"message": "session revoked"}),
        ],
        access_token="old",
        csrf_token="tok",
    )
    with pytest.raises(AppError) as exc:
        api.fetch_products()
    assert exc.value.type == ErrorType.AUTHENTICATION
    assert api.access_token is None


def test_rejected_refresh_logs_in_again_with_stored_credentials():
    api = make_client(
        [
            FakeResponse(401, {"message": "expired"}),
            FakeResponse(401, {"message": "session expired", "type": "Authentication"}),
            FakeResponse(200, {"success": True, "data": {"csrfToken": "tok2"}}),
            FakeResponse(200, {"access_token": "fresh", "token_type": "bearer"}),
            FakeResponse(200, {"success": True, "data": {"email": "svc@erp.test"}}),
        ],
        email="svc@erp.test",
        password="secret",
        access_token="old",
        csrf_token="tok",
    )
    assert api.me()["data"]["email"] == "svc@erp.test"
    assert api.access_token == "fresh"
    assert api.csrf_token == "tok2"
    paths = [url.rsplit("/api", 1)[1] for _, url, _ in api.session.requests]
    assert paths == ["/session/me", "/session/refresh", "/csrf/token", "/auth/login", "/session/me"]


def test_refresh_server_error_is_not_retried_with_login():
    api = make_client(
        [FakeResponse(401, {"message": "expired"}), FakeResponse(503, {"message": "down"})],
        email="svc@erp.test",
        password="secret",
        access_token="old",
        csrf_token="tok",
    )
    with pytest.raises(AppError) as exc:
        api.me()
    assert exc.value.status == 503
    assert api.access_token is None
    assert len(api.session.requests) == 2


def test_error_body_is_normalized():
    api = make_client(
        [FakeResponse(400, {"success": False, "message": "bad", "details": [1], "traceId": "t9"})],
        access_token="a",
    )
    with pytest.raises(AppError) as exc:
        api.fetch_pricing({"validFrom": "2024-01-01"})
    err = exc.value
    assert (err.status, err.type, err.message, err.details, err.trace_id) == (400, ErrorType.VALIDATION, "bad", [1], "t9")


def test_transport_errors_are_mapped():
    api = make_client([requests.Timeout("slow"), requests.ConnectionError("down")], access_token="a")
    with pytest.raises(AppError) as exc:
        api.fetch_skus()
    assert exc.value.type == ErrorType.TIMEOUT
    with pytest.raises(AppError) as exc:
        api.fetch_skus()
    assert exc.value.type == ErrorType.NETWORK


def test_logout_always_clears_tokens():
    api = make_client([FakeResponse(500, {"message": "oops"})], access_token="a", csrf_token="tok")
    payload = api.logout()
    assert payload == {"message": "oops", "type": "Server"}
    assert api.access_token is None and api.csrf_token is None

    ok = make_client([FakeResponse(204)], access_token="a", csrf_token="tok")
    assert ok.logout() is None
    assert ok.access_token is None
