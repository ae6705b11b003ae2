"""HTTP request gateway for the Samaya backend."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote
from uuid import uuid4

import httpx

from .config import PUBLIC_ENDPOINTS, ApiPaths, Settings
from .errors import NetworkError, RemoteError, RequestTimeoutError, StaleSessionError
from .session import Session

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

_MESSAGE_KEYS = ("message", "msg", "detail", "error")


def is_public_endpoint(endpoint: str, paths: ApiPaths) -> bool:
    """
    True for the OTP, login and signup endpoints, which never carry a bearer token.

    ``endpoint`` is a path-table key or a literal path. A literal path is public
    only when it equals one of the table's public paths exactly.
    """
    if endpoint in PUBLIC_ENDPOINTS:
        return True
    return endpoint.split("?", 1)[0].rstrip("/") in paths.public_paths()


def _extract_message(data: Any) -> str | None:
    if isinstance(data, str):
        return data.strip() or None
    if not isinstance(data, dict):
        return None
    for key in _MESSAGE_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, dict):
            nested = _extract_message(value)
            if nested:
                return nested
    return None


def _error_from_response(response: httpx.Response, *, sent_token: bool) -> RemoteError:
    status_line = f"HTTP {response.status_code}: {response.reason_phrase}"
    data: Any = None
    text = ""
    try:
        text = response.text
        data = response.json()
    except ValueError:
        data = None

    message = _extract_message(data) or text.strip() or status_line
    code = None
    if isinstance(data, dict) and isinstance(data.get("code"), str):
        code = data["code"]

    details: dict[str, Any] = {"status_code": response.status_code}
    if isinstance(data, dict):
        details["body"] = data

    error_cls = RemoteError
    if response.status_code == 401 and sent_token:
        error_cls = StaleSessionError
    return error_cls(
        message,
        code=code or f"backend_error_{response.status_code}",
        details=details,
        status_code=response.status_code,
    )


class RequestGateway:
    """
    Builds and executes single backend calls.

    Every call gets the default JSON headers, a request id, the session bearer
    token (except on public auth paths) and the configured timeout. Failures
    are normalized into ``RequestTimeoutError``, ``NetworkError`` or
    ``RemoteError``. The gateway reads the session but never writes it.
    """

    def __init__(
        self,
        settings: Settings,
        session: Session,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.session = session
        self.http = http or httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=httpx.Timeout(settings.request_timeout_seconds),
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> "RequestGateway":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def resolve(self, endpoint: str, **path_params: Any) -> str:
        """Resolve a path-table key or literal path, filling ``{placeholders}``."""
        template = getattr(self.settings.paths, endpoint, None)
        if not isinstance(template, str):
            template = endpoint
        if path_params:
            encoded = {k: quote(str(v), safe="") for k, v in path_params.items()}
            template = template.format(**encoded)
        return template

    async def execute(
        self,
        endpoint: str,
        method: str = "GET",
        body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        *,
        params: dict[str, Any] | None = None,
        path_params: dict[str, Any] | None = None,
    ) -> dict:
        path = self.resolve(endpoint, **(path_params or {}))
        request_headers = {**DEFAULT_HEADERS, "X-Request-Id": str(uuid4())}
        if headers:
            request_headers.update(headers)

        sent_token = False
        if not is_public_endpoint(endpoint, self.settings.paths):
            token = await self.session.token()
            if token:
                request_headers["Authorization"] = f"Bearer {token}"
                sent_token = True
        else:
            request_headers.pop("Authorization", None)

        timeout = self.settings.request_timeout_seconds
        logger.debug("backend_request method=%s path=%s", method, path)
        try:
            # httpx times each phase separately; wait_for bounds the whole call.
            response = await asyncio.wait_for(
                self.http.request(
                    method,
                    path,
                    params=params,
                    json=body,
                    headers=request_headers,
                    timeout=timeout,
                ),
                timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            logger.warning("backend_timeout method=%s path=%s timeout=%s", method, path, timeout)
            raise RequestTimeoutError(
                f"Request to {path} timed out after {timeout}s",
                code="backend_timeout",
                details={"path": path, "timeout": timeout},
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("backend_connection_failed method=%s path=%s error=%s", method, path, exc)
            raise NetworkError(
                str(exc) or "Network request failed",
                code="backend_connection_failed",
                details={"path": path},
            ) from exc

        if response.status_code >= 400:
            error = _error_from_response(response, sent_token=sent_token)
            logger.warning(
                "backend_error method=%s path=%s status=%s message=%s",
                method,
                path,
                response.status_code,
                error.message,
            )
            raise error

        try:
            data = response.json()
        except ValueError:
            return {"status_code": response.status_code, "text": response.text}
        if isinstance(data, dict):
            return data
        return {"data": data}

    async def ping(self) -> bool:
        """Reachability check against the health endpoint."""
        try:
            await self.execute("health")
        except (NetworkError, RemoteError) as exc:
            logger.info("backend_unreachable error=%s", exc)
            return False
        return True
