"""Application error taxonomy and the FastAPI handlers that render it."""

from enum import Enum
from typing import Any, Dict, Optional, Union

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from core.logging import get_logger, get_trace_id

logger = get_logger(__name__)


class ErrorType(str, Enum):
    # Client / request
    VALIDATION = "Validation"
    AUTHENTICATION = "Authentication"
    AUTHORIZATION = "Authorization"
    NOT_FOUND = "NotFound"
    RATE_LIMIT = "RateLimit"

    # Transport / infrastructure
    NETWORK = "Network"
    TIMEOUT = "Timeout"

    # Server / domain
    SERVICE = "Service"
    SERVER = "Server"

    UNKNOWN = "Unknown"


class ErrorSeverity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


ERROR_STATUS_MAP: Dict[ErrorType, int] = {
    ErrorType.VALIDATION: 400,
    ErrorType.AUTHENTICATION: 401,
    ErrorType.AUTHORIZATION: 403,
    ErrorType.NOT_FOUND: 404,
    ErrorType.RATE_LIMIT: 429,
    ErrorType.NETWORK: 503,
    ErrorType.TIMEOUT: 504,
    ErrorType.SERVICE: 502,
    ErrorType.SERVER: 500,
    ErrorType.UNKNOWN: 500,
}

ErrorDetails = Union[str, Dict[str, Any], list]


class AppError(Exception):
    def __init__(
        self,
        message: str,
        type: ErrorType,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        details: Optional[ErrorDetails] = None,
        trace_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.type = ErrorType(type)
        self.severity = ErrorSeverity(severity)
        self.status = status if status is not None else ERROR_STATUS_MAP.get(self.type, 500)
        self.details = details
        self.trace_id = trace_id
        self.cause = cause

    def __repr__(self) -> str:
        return f"AppError(type={self.type.value}, status={self.status}, message={self.message!r})"

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def validation(cls, message: str = "Validation failed", details: Optional[ErrorDetails] = None):
        return cls(message, ErrorType.VALIDATION, ErrorSeverity.LOW, details)

    @classmethod
    def authentication(cls, message: str = "Authentication required"):
        return cls(message, ErrorType.AUTHENTICATION, ErrorSeverity.MEDIUM)

    @classmethod
    def authorization(cls, message: str = "Access denied", details: Optional[ErrorDetails] = None):
        return cls(message, ErrorType.AUTHORIZATION, ErrorSeverity.MEDIUM, details)

    @classmethod
    def not_found(cls, message: str = "Resource not found"):
        return cls(message, ErrorType.NOT_FOUND, ErrorSeverity.LOW)

    @classmethod
    def rate_limit(cls, message: str = "Too many requests", details: Optional[ErrorDetails] = None):
        return cls(message, ErrorType.RATE_LIMIT, ErrorSeverity.MEDIUM, details)

    @classmethod
    def network(cls, details: Optional[ErrorDetails] = None, cause: Optional[BaseException] = None):
        return cls("Network error occurred", ErrorType.NETWORK, ErrorSeverity.HIGH, details, cause=cause)

    @classmethod
    def timeout(cls, details: Optional[ErrorDetails] = None, cause: Optional[BaseException] = None):
        return cls("Request timed out", ErrorType.TIMEOUT, ErrorSeverity.HIGH, details, cause=cause)

    @classmethod
    def service(cls, message: str = "Upstream service error", details: Optional[ErrorDetails] = None):
        return cls(message, ErrorType.SERVICE, ErrorSeverity.HIGH, details)

    @classmethod
    def server(cls, message: str = "Internal server error", details: Optional[ErrorDetails] = None):
        return cls(message, ErrorType.SERVER, ErrorSeverity.CRITICAL, details)

    @classmethod
    def unknown(cls, message: str = "Unexpected error occurred", cause: Optional[BaseException] = None):
        return cls(message, ErrorType.UNKNOWN, ErrorSeverity.CRITICAL, cause=cause)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "message": self.message,
            "type": self.type.value,
        }
        if self.details is not None:
            body["details"] = self.details
        if self.trace_id:
            body["traceId"] = self.trace_id
        return body

    def to_ui_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"message": self.message, "type": self.type.value}
        if self.trace_id:
            payload["traceId"] = self.trace_id
        return payload


_STATUS_TO_TYPE = {
    400: ErrorType.VALIDATION,
    401: ErrorType.AUTHENTICATION,
    403: ErrorType.AUTHORIZATION,
    404: ErrorType.NOT_FOUND,
    409: ErrorType.VALIDATION,
    422: ErrorType.VALIDATION,
    429: ErrorType.RATE_LIMIT,
    502: ErrorType.SERVICE,
    503: ErrorType.NETWORK,
    504: ErrorType.TIMEOUT,
}


def error_type_for_status(status_code: int) -> ErrorType:
    if status_code in _STATUS_TO_TYPE:
        return _STATUS_TO_TYPE[status_code]
    if 400 <= status_code < 500:
        return ErrorType.VALIDATION
    if status_code >= 500:
        return ErrorType.SERVER
    return ErrorType.UNKNOWN


def severity_for_type(error_type: ErrorType) -> ErrorSeverity:
    if error_type in (ErrorType.VALIDATION, ErrorType.NOT_FOUND):
        return ErrorSeverity.LOW
    if error_type in (ErrorType.NETWORK, ErrorType.TIMEOUT, ErrorType.SERVICE):
        return ErrorSeverity.HIGH
    if error_type in (ErrorType.SERVER, ErrorType.UNKNOWN):
        return ErrorSeverity.CRITICAL
    return ErrorSeverity.MEDIUM


def normalize_error(exc: BaseException) -> AppError:
    """Convert any raised value into an AppError carrying the current trace id."""
    if isinstance(exc, AppError):
        err = exc
    elif isinstance(exc, (RequestValidationError, ValidationError)):
        err = AppError.validation("Request validation failed", details=_validation_details(exc))
    elif isinstance(exc, HTTPException):
        error_type = error_type_for_status(exc.status_code)
        detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
        err = AppError(
            detail,
            error_type,
            severity_for_type(error_type),
            details=None if isinstance(exc.detail, str) else exc.detail,
            status=exc.status_code,
        )
    elif isinstance(exc, TimeoutError):
        err = AppError.timeout(cause=exc)
    elif isinstance(exc, ConnectionError):
        err = AppError.network(cause=exc)
    elif isinstance(exc, SQLAlchemyError):
        err = AppError.server("A database error occurred")
        err.cause = exc
    else:
        err = AppError.unknown(cause=exc)

    if not err.trace_id:
        err.trace_id = get_trace_id()
    return err


def extract_ui_error_payload(exc: BaseException) -> Dict[str, Any]:
    return normalize_error(exc).to_ui_payload()


def categorize_error(exc: BaseException) -> str:
    """Coarse UI severity bucket: 'critical' | 'warning' | 'info'."""
    err = normalize_error(exc)
    if err.severity == ErrorSeverity.CRITICAL:
        return "critical"
    if err.severity == ErrorSeverity.HIGH:
        return "warning"
    return "info"


def _validation_details(exc: BaseException) -> list:
    out = []
    for e in exc.errors():
        out.append({
            "field": ".".join(str(p) for p in e.get("loc", ()) if p != "body"),
            "message": e.get("msg"),
        })
    return out


def _error_response(err: AppError, request: Optional[Request] = None) -> JSONResponse:
    if not err.trace_id and request is not None:
        err.trace_id = getattr(request.state, "trace_id", None)
    headers = {"X-Trace-Id": err.trace_id} if err.trace_id else None
    return JSONResponse(status_code=err.status, content=err.to_dict(), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error_handler(request: Request, exc: AppError):
        err = normalize_error(exc)
        log = logger.warning if err.status < 500 else logger.error
        log(
            err.message,
            extra={"errorType": err.type.value, "status": err.status, "route": request.url.path, "method": request.method},
        )
        return _error_response(err, request)

    @app.exception_handler(HTTPException)
    async def _http_error_handler(request: Request, exc: HTTPException):
        err = normalize_error(exc)
        response = _error_response(err, request)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(request: Request, exc: RequestValidationError):
        return _error_response(normalize_error(exc), request)

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception):
        err = normalize_error(exc)
        logger.error(
            "Unhandled error",
            exc_info=exc,
            extra={"errorType": err.type.value, "route": request.url.path, "method": request.method},
        )
        # Never leak internal messages for unexpected failures
        safe = AppError(
            "An unexpected error occurred. Please try again or contact support.",
            err.type,
            err.severity,
            trace_id=err.trace_id,
            status=err.status,
        )
        return _error_response(safe, request)
