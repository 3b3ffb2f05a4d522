"""
JSON client for the storefront backend (catalog, discounts, orders, payments).

- Every request sends/receives JSON
- Non-2xx responses raise ApiError with the server's ``message`` when present
- An unreachable ``localhost`` base URL is retried once on ``127.0.0.1``
"""
import logging
from typing import Any, Optional

import requests

from .logging import log_event


class ApiError(RuntimeError):
    """Remote call failed (transport error or rejected request)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, method: str = "", path: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.method = method
        self.path = path


class ApiClient:
    def __init__(self, base_url: str, *, timeout: float = 10.0, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self.logger = logging.getLogger(__name__)
        self.fallback_base_url = (
            self.base_url.replace("localhost", "127.0.0.1") if "localhost" in self.base_url else None
        )

    def get_json(self, path: str) -> Any:
        return self.request("GET", path)

    def post_json(self, path: str, body: Any) -> Any:
        return self.request("POST", path, body)

    def resolve_file_url(self, path_or_url: Optional[str]) -> str:
        """Turn a backend-relative file path into an absolute URL."""
        value = (path_or_url or "").strip()
        if not value:
            return ""
        lowered = value.lower()
        if lowered.startswith(("http://", "https://", "//", "data:", "blob:")):
            return value
        if not value.startswith("/"):
            value = f"/{value}"
        return f"{self.base_url}{value}"

    def request(self, method: str, path: str, body: Any = None) -> Any:
        try:
            response = self._send(self.base_url, method, path, body)
        except requests.exceptions.RequestException as exc:
            if not self.fallback_base_url:
                log_event("warning", "api.unreachable", method=method, path=path, error=str(exc))
                raise ApiError(
                    f"Cannot reach backend at {self.base_url}. Make sure server is running.",
                    method=method,
                    path=path,
                ) from exc
            try:
                response = self._send(self.fallback_base_url, method, path, body)
            except requests.exceptions.RequestException as fallback_exc:
                log_event("warning", "api.unreachable", method=method, path=path, error=str(fallback_exc))
                raise ApiError(
                    f"Cannot reach backend at {self.base_url} or {self.fallback_base_url}. Make sure server is running.",
                    method=method,
                    path=path,
                ) from fallback_exc

        data = self._parse_json(response)
        if not response.ok:
            message = data.get("message") if isinstance(data, dict) else None
            self.logger.info("%s %s -> HTTP %s", method, path, response.status_code)
            raise ApiError(
                message or f"{method} {path} failed",
                status_code=response.status_code,
                method=method,
                path=path,
            )
        return data

    def _send(self, base_url: str, method: str, path: str, body: Any) -> requests.Response:
        return self._session.request(
            method,
            f"{base_url}{path}",
            json=body,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )

    @staticmethod
    def _parse_json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {}
