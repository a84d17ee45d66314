"""
Per-request auth handlers for serverless deployments.

Each handler takes one decoded `HandlerRequest` and returns an `AuthResponse`,
with no server loop or framework. `lambda_handler` adapts API Gateway events
(HTTP API v2 and REST v1 payloads) to these handlers. Behaviour matches the
long-running server because both call the same `AuthService`.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from portal.auth.cookies import is_secure_request
from portal.auth.service import AuthResponse, ROUTE_METHODS, get_auth_service, method_not_allowed, not_found

logger = logging.getLogger(__name__)


@dataclass
class HandlerRequest:
    method: str
    path: str = ""
    headers: Dict[str, str] = field(default_factory=dict)  # lower-cased names
    body: Optional[str] = None

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    @property
    def secure(self) -> bool:
        # TLS always terminates upstream of the function; only the forwarding signal counts.
        return is_secure_request(self.header("x-forwarded-proto"))

    def json(self) -> Any:
        if not self.body:
            return {}
        try:
            return json.loads(self.body)
        except ValueError:
            return {}


def _allowed(req: HandlerRequest, operation: str) -> bool:
    return req.method.upper() == ROUTE_METHODS[operation]


def login_handler(req: HandlerRequest) -> AuthResponse:
    if not _allowed(req, "login"):
        return method_not_allowed()
    return get_auth_service().login(req.json(), secure=req.secure)


def session_handler(req: HandlerRequest) -> AuthResponse:
    if not _allowed(req, "session"):
        return method_not_allowed()
    return get_auth_service().session(req.header("cookie"))


def logout_handler(req: HandlerRequest) -> AuthResponse:
    if not _allowed(req, "logout"):
        return method_not_allowed()
    return get_auth_service().logout(secure=req.secure)


def me_handler(req: HandlerRequest) -> AuthResponse:
    if not _allowed(req, "me"):
        return method_not_allowed()
    return get_auth_service().me(req.header("cookie"))


ROUTES: Dict[str, Callable[[HandlerRequest], AuthResponse]] = {
    "/api/auth/login": login_handler,
    "/api/auth/session": session_handler,
    "/api/auth/logout": logout_handler,
    "/api/auth/me": me_handler,
}


def dispatch(req: HandlerRequest) -> AuthResponse:
    # Exact match: "/api/auth/session/" is not an alias of "/api/auth/session".
    handler = ROUTES.get(req.path)
    if handler is None:
        return not_found()
    result = handler(req)
    logger.debug("%s %s - %d", req.method, req.path, result.status_code)
    return result


def request_from_event(event: Dict[str, Any]) -> HandlerRequest:
    """Build a HandlerRequest from an API Gateway proxy event (v1 or v2)."""
    http = (event.get("requestContext") or {}).get("http") or {}
    method = str(http.get("method") or event.get("httpMethod") or "GET")
    path = str(event.get("rawPath") or http.get("path") or event.get("path") or "")

    headers = {str(k).lower(): str(v) for k, v in (event.get("headers") or {}).items() if v is not None}
    # HTTP API v2 moves cookies out of the headers into a list.
    cookies = event.get("cookies")
    if cookies and "cookie" not in headers:
        headers["cookie"] = "; ".join(str(c) for c in cookies)

    body = event.get("body")
    if body is not None and event.get("isBase64Encoded"):
        try:
            body = base64.b64decode(body).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            body = None
    return HandlerRequest(method=method, path=path, headers=headers, body=body)


def response_to_event(result: AuthResponse, *, v2: bool) -> Dict[str, Any]:
    headers = dict(result.headers)
    headers["Content-Type"] = "application/json"
    out: Dict[str, Any] = {
        "statusCode": result.status_code,
        "headers": headers,
        "body": json.dumps(result.body, separators=(",", ":")),
        "isBase64Encoded": False,
    }
    if result.set_cookies:
        if v2:
            out["cookies"] = list(result.set_cookies)
        else:
            out["multiValueHeaders"] = {"Set-Cookie": list(result.set_cookies)}
    return out


def lambda_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    req = request_from_event(event)
    return response_to_event(dispatch(req), v2=str(event.get("version") or "") == "2.0")
