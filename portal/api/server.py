"""
Long-running dashboard auth server.

Serves login / session / logout over FastAPI. All auth decisions live in
`portal.auth`; this module only adapts Starlette requests and responses.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.api.deps import require_identity
from portal.auth.cookies import is_secure_request
from portal.auth.models import Identity
from portal.auth.service import AuthResponse, get_auth_service, me_body, method_not_allowed, not_found

logger = logging.getLogger(__name__)

# Routes match exactly, as in the per-request handlers; no trailing-slash redirects.
app = FastAPI(title="Dashboard auth", redirect_slashes=False)


def _is_secure(request: Request) -> bool:
    return is_secure_request(request.headers.get("x-forwarded-proto"), native_tls=request.url.scheme == "https")


def _to_response(result: AuthResponse) -> JSONResponse:
    resp = JSONResponse(status_code=result.status_code, content=result.body, headers=result.headers)
    for cookie in result.set_cookies:
        resp.headers.append("set-cookie", cookie)
    return resp


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        # Empty or non-JSON body: treated as missing fields.
        return {}


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 405:
        result = method_not_allowed()
    elif exc.status_code == 404:
        result = not_found()
    else:
        result = AuthResponse(status_code=exc.status_code, body={"error": str(exc.detail)})
    resp = _to_response(result)
    for key, value in (exc.headers or {}).items():
        resp.headers[key] = value
    return resp


@app.on_event("startup")
def _startup_load_auth_config() -> None:
    """Fail fast on missing auth configuration."""
    from portal.auth.config import load_auth_config

    cfg = load_auth_config()
    # Never log the secret or password.
    logger.info(
        "Auth config: username=%s cookie=%s ttl_seconds=%d insecure_secret=%s",
        cfg.demo_username,
        cfg.cookie_name,
        cfg.session_ttl_seconds,
        cfg.uses_insecure_secret,
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming HTTP requests."""
    start_time = time.time()
    logger.debug("%s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
        raise


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


@app.post("/api/auth/login")
async def auth_login(request: Request) -> JSONResponse:
    payload = await _read_json(request)
    return _to_response(get_auth_service().login(payload, secure=_is_secure(request)))


@app.get("/api/auth/session")
async def auth_session(request: Request) -> JSONResponse:
    return _to_response(get_auth_service().session(request.headers.get("cookie")))


@app.post("/api/auth/logout")
async def auth_logout(request: Request) -> JSONResponse:
    return _to_response(get_auth_service().logout(secure=_is_secure(request)))


@app.get("/api/auth/me")
async def auth_me(identity: Identity = Depends(require_identity)) -> JSONResponse:
    return _to_response(AuthResponse(status_code=200, body=me_body(identity)))


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    import uvicorn

    level = logging.getLevelName(os.getenv("LOG_LEVEL", "info").upper())
    if not isinstance(level, int) or level == logging.NOTSET:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    level_name = logging.getLevelName(level).lower()
    logger.info("Starting auth server on %s:%d (log_level=%s)", host, port, level_name)
    uvicorn.run(app, host=host, port=port, log_level=level_name)
