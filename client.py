"""
HTTP client for the School Records API.

`ApiClient` wraps one httpx.Client; every non-2xx response and every
transport failure comes back as `ApiError` carrying the server's `error`
text. `Session` is the client's view of "logged in": issued by `login`,
dropped by `logout`. It holds the bearer token the server issued and is
not a security boundary on its own.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from logging_setup import get_logger

logger = get_logger("client")

API_BASE = os.getenv("SCHOOLREC_API_BASE", "http://localhost:8000")
TIMEOUT = float(os.getenv("SCHOOLREC_TIMEOUT", "10"))


class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


@dataclass
class Session:
    user: Optional[Dict[str, Any]] = None
    token: Optional[str] = None
    token_type: str = "bearer"
    _active: bool = field(default=False, repr=False)

    @property
    def is_authenticated(self) -> bool:
        return self._active and bool(self.token)

    @property
    def email(self) -> Optional[str]:
        return (self.user or {}).get("email")

    def issue(self, user: Dict[str, Any], token: str, token_type: str = "bearer") -> None:
        self.user = user
        self.token = token
        self.token_type = token_type
        self._active = True

    def invalidate(self) -> None:
        self.user = None
        self.token = None
        self._active = False

    def auth_headers(self) -> Dict[str, str]:
        if not self.is_authenticated:
            return {}
        return {"Authorization": f"Bearer {self.token}"}


class ApiClient:
    def __init__(
        self,
        base_url: str = API_BASE,
        timeout: float = TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
        session: Optional[Session] = None,
    ):
        self.session = session or Session()
        self._http = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ----------------------- Transport -----------------------
    def _request(self, method: str, path: str, json: Any = None) -> Any:
        try:
            resp = self._http.request(method, path, json=json, headers=self.session.auth_headers())
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ApiError("Could not reach the server", details=str(e)) from e

        if resp.is_success:
            return resp.json()

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("error") or resp.reason_phrase or f"HTTP {resp.status_code}"
        raise ApiError(message, status_code=resp.status_code, details=body.get("details"))

    # ----------------------- Records -----------------------
    def list(self, path: str) -> List[Dict[str, Any]]:
        return self._request("GET", path)

    def get(self, path: str, record_id: str) -> Dict[str, Any]:
        return self._request("GET", f"{path}/{record_id}")

    def create(self, path: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", path, json=data)

    def update(self, path: str, record_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"{path}/{record_id}", json=data)

    def delete(self, path: str, record_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"{path}/{record_id}")

    # ----------------------- Auth -----------------------
    def signup(self, full_name: str, organization_name: str, email: str, mobile_no: str, password: str):
        return self._request(
            "POST",
            "/api/auth/signup",
            json={
                "fullName": full_name,
                "organizationName": organization_name,
                "email": email,
                "mobileNo": mobile_no,
                "password": password,
            },
        )

    def login(self, email: str, password: str) -> Session:
        body = self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        self.session.issue(body["user"], body["access_token"], body.get("token_type", "bearer"))
        return self.session

    def logout(self) -> None:
        self.session.invalidate()

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/api/auth/me")["user"]

    def change_password(self, current: str, new: str, confirm: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/api/auth/change-password",
            json={"currentPassword": current, "newPassword": new, "confirmPassword": confirm},
        )

    def user(self, email: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/users/{email}")["user"]

    # ----------------------- Misc -----------------------
    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/api/health")

    def dashboard(self) -> Dict[str, Any]:
        return self._request("GET", "/api/dashboard")

    def settings(self) -> Dict[str, Any]:
        return self._request("GET", "/api/settings")

    def update_settings(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", "/api/settings", json=data)
