"""
REST client for the storefront API.

Calls are synchronous with no retry. A `timeout` of None waits as long as the
server takes. Anything other than a 2xx answer raises ApiError (NotFoundError
for 404) with the server's `detail` message.
"""
import mimetypes
import os
from typing import List, Optional

import requests
import structlog

from errors import ApiError, NotFoundError
from models import Product, UserInfo

logger = structlog.get_logger(__name__)


class ApiClient:
    def __init__(self, base_url: str = "", session=None, timeout: Optional[float] = None, token: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.token = token

    def _headers(self, auth: bool) -> dict:
        headers = {"Accept": "application/json"}
        if auth:
            if not self.token:
                raise ApiError(401, "Not authorized, no token")
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, auth: bool = False, **kwargs):
        url = f"{self.base_url}{path}"
        kwargs.setdefault("headers", {}).update(self._headers(auth))
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        try:
            r = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            logger.warning("api.transport_error", method=method, path=path, error=str(e))
            raise ApiError(None, f"Network error: {e}") from e

        if r.status_code >= 300:
            message = _error_message(r)
            logger.info("api.error", method=method, path=path, status=r.status_code, detail=message)
            if r.status_code == 404:
                raise NotFoundError(404, message)
            raise ApiError(r.status_code, message)
        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    # ----------------------- Catalog -----------------------
    def list_products(self, category: Optional[str] = None, q: Optional[str] = None) -> List[Product]:
        params = {k: v for k, v in {"category": category, "q": q}.items() if v}
        return [Product(**p) for p in self._request("GET", "/api/products", params=params)]

    def get_product(self, product_id: str) -> Product:
        return Product(**self._request("GET", f"/api/products/{product_id}"))

    def create_product(self, data: dict) -> Product:
        return Product(**self._request("POST", "/api/products", auth=True, json=data))

    def update_product(self, product_id: str, data: dict) -> Product:
        return Product(**self._request("PUT", f"/api/products/{product_id}", auth=True, json=data))

    def delete_product(self, product_id: str) -> dict:
        return self._request("DELETE", f"/api/products/{product_id}", auth=True)

    # ----------------------- Users -----------------------
    def login(self, email: str, password: str) -> UserInfo:
        data = self._request("POST", "/api/users/login", json={"email": email, "password": password})
        return UserInfo(**data)

    def register(self, name: str, email: str, password: str) -> UserInfo:
        data = self._request("POST", "/api/users/register", json={"name": name, "email": email, "password": password})
        return UserInfo(**data)

    def profile(self) -> dict:
        return self._request("GET", "/api/users/profile", auth=True)

    # ----------------------- Orders -----------------------
    def create_order(self, payload: dict) -> dict:
        return self._request("POST", "/api/orders", auth=True, json=payload)

    def my_orders(self) -> List[dict]:
        return self._request("GET", "/api/orders/myorders", auth=True)

    def get_order(self, order_id: str) -> dict:
        return self._request("GET", f"/api/orders/{order_id}", auth=True)

    def list_orders(self) -> List[dict]:
        return self._request("GET", "/api/orders", auth=True)

    def mark_delivered(self, order_id: str) -> dict:
        return self._request("PUT", f"/api/orders/{order_id}/deliver", auth=True)

    def delete_order(self, order_id: str) -> dict:
        return self._request("DELETE", f"/api/orders/{order_id}", auth=True)

    # ----------------------- Admin -----------------------
    def upload_image(self, path: str) -> str:
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        with open(path, "rb") as fh:
            files = {"image": (os.path.basename(path), fh.read(), content_type)}
        return self._request("POST", "/api/upload", auth=True, files=files)["url"]

    def stats(self) -> dict:
        return self._request("GET", "/api/admin/stats", auth=True)


def _error_message(r) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text or f"HTTP {r.status_code}"
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if isinstance(detail, str):
            return detail
        if detail:
            return str(detail)
    return f"HTTP {r.status_code}"
