"""
API client for the inventory ERP backend.

Login, CSRF and token refresh are handled here so callers only deal with
envelopes (`{success, message, data, pagination?}`) and `AppError`s.

Environment variables used by `ErpApiClient.from_env()`:
- ERP_API_URL: e.g. "https://erp.example.com/api"
- ERP_API_EMAIL / ERP_API_PASSWORD: service account credentials
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from core.errors import AppError, ErrorType, error_type_for_status, extract_ui_error_payload, severity_for_type
from core.logging import get_logger

logger = get_logger(__name__)

SAFE_METHODS = ("GET", "HEAD", "OPTIONS")


@dataclass
class ErpApiClient:
    base_url: str
    email: Optional[str] = None
    password: Optional[str] = None
    access_token: Optional[str] = None
    csrf_token: Optional[str] = None
    timeout: float = 30
    session: requests.Session = field(default_factory=requests.Session)

    @classmethod
    def from_env(cls) -> "ErpApiClient":
        return cls(
            base_url=os.environ["ERP_API_URL"],
            email=os.getenv("ERP_API_EMAIL"),
            password=os.getenv("ERP_API_PASSWORD"),
        )

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self, method: str) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        if method.upper() not in SAFE_METHODS and self.csrf_token:
            headers["X-CSRF-Token"] = self.csrf_token
        return headers

    def clear_tokens(self) -> None:
        self.access_token = None
        self.csrf_token = None

    @staticmethod
    def error_from_response(resp: requests.Response) -> AppError:
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        error_type = error_type_for_status(resp.status_code)
        message = body.get("message")
        if not message and isinstance(body.get("detail"), str):
            message = body["detail"]
        return AppError(
            message or f"Request failed with status {resp.status_code}",
            error_type,
            severity_for_type(error_type),
            details=body.get("details"),
            trace_id=body.get("traceId") or resp.headers.get("X-Trace-Id"),
            status=resp.status_code,
        )

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(
                method, self._url(path), headers=self._headers(method), timeout=self.timeout, **kwargs
            )
        except requests.Timeout as e:
            raise AppError.timeout(details=str(e), cause=e)
        except requests.ConnectionError as e:
            raise AppError.network(details=str(e), cause=e)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        data: Any = None,
        raw: bool = False,
        retry_on_401: bool = True,
    ) -> Any:
        if method.upper() not in SAFE_METHODS and not self.csrf_token:
            self.fetch_csrf_token()

        resp = self._send(method, path, params=params, json=json, data=data)

        # Expired session: rotate the token once and replay the request.
        if resp.status_code == 401 and retry_on_401 and self.access_token:
            self.refresh_token()
            resp = self._send(method, path, params=params, json=json, data=data)

        if resp.status_code >= 400:
            raise self.error_from_response(resp)
        if resp.status_code == 204 or not resp.content:
            return None
        if raw:
            return resp.content
        return resp.json()

    # ----------------------------
    # Session
    # ----------------------------

    def fetch_csrf_token(self) -> str:
        resp = self._send("GET", "/csrf/token")
        if resp.status_code >= 400:
            raise self.error_from_response(resp)
        self.csrf_token = resp.json()["data"]["csrfToken"]
        return self.csrf_token

    def login(self, email: Optional[str] = None, password: Optional[str] = None) -> str:
        """fastapi-users login: POST /auth/login with form fields username, password."""
        email = email or self.email
        password = password or self.password
        if not email or not password:
            raise AppError.validation("Email and password are required")

        body = self._request(
            "POST", "/auth/login", data={"username": email, "password": password}, retry_on_401=False
        )
        token = (body or {}).get("access_token")
        if not token:
            raise AppError.authentication("Login response missing access token")
        self.email, self.password = email, password
        self.access_token = token
        logger.info("Logged in", extra={"email": email})
        return token

    def refresh_token(self) -> str:
        """Rotate the session token. Once the server refuses to refresh, fall back to
        a fresh login when credentials are known."""
        try:
            body = self._request("POST", "/session/refresh", retry_on_401=False)
        except AppError as e:
            self.clear_tokens()
            if e.type != ErrorType.AUTHENTICATION or not (self.email and self.password):
                raise
            logger.info("Refresh rejected, logging in again", extra={"email": self.email})
            return self.login()
        self.access_token = body["data"]["accessToken"]
        return self.access_token

    def logout(self) -> Optional[Dict[str, Any]]:
        """
        Revoke the session server-side. Local tokens are cleared whatever the
        outcome; a failed server call is returned as a UI error payload.
        """
        try:
            if self.access_token:
                self._request("POST", "/auth/logout", retry_on_401=False)
            return None
        except AppError as e:
            logger.warning("Logout request failed", extra={"errorType": e.type.value})
            return extract_ui_error_payload(e)
        finally:
            self.clear_tokens()

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/session/me")

    # ----------------------------
    # List fetchers
    # ----------------------------

    def fetch_users(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/users/", params=query)

    def fetch_products(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/products/", params=query)

    def fetch_skus(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/skus/", params=query)

    def fetch_batch_registry(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/batch-registry/", params=query)

    def fetch_product_batches(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/product-batches/", params=query)

    def fetch_packaging_batches(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/packaging-material-batches/", params=query)

    def fetch_locations(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/locations/", params=query)

    def fetch_warehouses(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/warehouses/", params=query)

    def fetch_warehouse_inventory(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/warehouse-inventory/", params=query)

    def fetch_location_inventory(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/location-inventory/", params=query)

    def fetch_orders(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/orders/", params=query)

    def fetch_allocations(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/inventory-allocations/", params=query)

    def fetch_shipments(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/outbound-shipments/", params=query)

    def fetch_pricing(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/pricing/", params=query)

    def fetch_pricing_types(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/pricing-types/", params=query)

    def fetch_inventory_activity(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/reports/inventory-activity", params=query)

    def fetch_boms(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/boms/", params=query)

    def fetch_bom_details(self, bom_id: str):
        return self._request("GET", f"/boms/{bom_id}/details")

    def fetch_bom_production_summary(self, bom_id: str):
        return self._request("GET", f"/boms/{bom_id}/production-summary")

    def fetch_customers(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/customers/", params=query)

    def fetch_addresses(self, query: Optional[Dict[str, Any]] = None):
        return self._request("GET", "/addresses/", params=query)

    def fetch_lookup(self, kind: str, query: Optional[Dict[str, Any]] = None):
        """kind: batches | warehouses | locations | skus | pricing-types"""
        return self._request("GET", f"/lookups/{kind}", params=query)

    # ----------------------------
    # Customers
    # ----------------------------

    def create_customers(self, customers):
        return self._request("POST", "/customers/", json={"customers": list(customers)})

    def create_addresses(self, addresses):
        return self._request("POST", "/addresses/", json={"addresses": list(addresses)})

    # ----------------------------
    # Order workflow
    # ----------------------------

    def create_order(self, payload: Dict[str, Any]):
        return self._request("POST", "/orders/", json=payload)

    def update_order_status(self, order_id: str, status: str):
        return self._request("PATCH", f"/orders/{order_id}/status", json={"status": status})

    def allocate_order(self, order_id: str, strategy: str = "fefo", warehouse_id: Optional[str] = None):
        payload: Dict[str, Any] = {"strategy": strategy}
        if warehouse_id:
            payload["warehouse_id"] = warehouse_id
        return self._request("POST", f"/orders/{order_id}/allocate", json=payload)

    def fetch_allocation_review(self, order_id: str):
        return self._request("GET", f"/orders/{order_id}/allocation-review")

    def fulfill_order(self, order_id: str, payload: Optional[Dict[str, Any]] = None):
        return self._request("POST", f"/orders/{order_id}/fulfill", json=payload or {})

    def confirm_shipment(self, shipment_id: str):
        return self._request("POST", f"/outbound-shipments/{shipment_id}/confirm")

    def complete_shipment(self, shipment_id: str, delivered: bool = False, notes: Optional[str] = None):
        return self._request(
            "POST", f"/outbound-shipments/{shipment_id}/complete", json={"delivered": delivered, "notes": notes}
        )

    def export_inventory_activity(self, query: Optional[Dict[str, Any]] = None, export_format: str = "csv") -> bytes:
        params = dict(query or {})
        params["format"] = export_format
        return self._request("GET", "/reports/inventory-activity/export", params=params, raw=True)
