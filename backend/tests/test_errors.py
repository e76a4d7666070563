from fastapi import HTTPException

from core.errors import (
    AppError,
    ErrorSeverity,
    ErrorType,
    categorize_error,
    error_type_for_status,
    extract_ui_error_payload,
    normalize_error,
)
from core.logging import trace_context


def test_factories_map_to_status_and_severity():
    err = AppError.validation("bad input", details={"field": "x"})
    assert err.status == 400
    assert err.type == ErrorType.VALIDATION
    assert err.severity == ErrorSeverity.LOW

    assert AppError.authentication().status == 401
    assert AppError.authorization().status == 403
    assert AppError.not_found().status == 404
    assert AppError.rate_limit().status == 429
    assert AppError.network().status == 503
    assert AppError.timeout().status == 504
    assert AppError.service().status == 502
    assert AppError.server().severity == ErrorSeverity.CRITICAL


def test_to_dict_envelope():
    err = AppError.validation("bad input", details=[{"field": "qty"}])
    err.trace_id = "abc"
    assert err.to_dict() == {
        "success": False,
        "message": "bad input",
        "type": "Validation",
        "details": [{"field": "qty"}],
        "traceId": "abc",
    }
    assert err.to_ui_payload() == {"message": "bad input", "type": "Validation", "traceId": "abc"}


def test_status_lookup():
    assert error_type_for_status(409) == ErrorType.VALIDATION
    assert error_type_for_status(418) == ErrorType.VALIDATION
    assert error_type_for_status(503) == ErrorType.NETWORK
    assert error_type_for_status(500) == ErrorType.SERVER
    assert error_type_for_status(302) == ErrorType.UNKNOWN


def test_normalize_http_exception_keeps_status():
    err = normalize_error(HTTPException(status_code=409, detail="SKU code already exists"))
    assert err.status == 409
    assert err.type == ErrorType.VALIDATION
    assert err.message == "SKU code already exists"


def test_normalize_builtin_errors():
    assert normalize_error(TimeoutError()).type == ErrorType.TIMEOUT
    assert normalize_error(ConnectionError()).type == ErrorType.NETWORK
    unknown = normalize_error(ValueError("boom"))
    assert unknown.type == ErrorType.UNKNOWN
    assert unknown.status == 500


def test_normalize_picks_up_trace_id():
    with trace_context("trace-123"):
        payload = extract_ui_error_payload(RuntimeError("x"))
    assert payload["traceId"] == "trace-123"
    assert payload["type"] == "Unknown"


def test_categorize_error():
    assert categorize_error(AppError.server()) == "critical"
    assert categorize_error(AppError.network()) == "warning"
    assert categorize_error(AppError.validation()) == "info"
