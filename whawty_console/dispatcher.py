"""RequestDispatcher: every call to the credential service goes through here.

- One shared httpx.AsyncClient for the console's lifetime (async context manager)
- Two-layer error defense: transport errors and undecodable bodies both become
  a failed ApiResult, never an exception escaping to the caller
- Authenticated calls get the session token added to their payload
- 401 on an authenticated call logs the user out, keeps their username in the
  login form and posts an "Authentication failure" advisory
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx

from whawty_console.advisories import AdvisoryBoard
from whawty_console.audit_log import AuditLog
from whawty_console.endpoints import Endpoint
from whawty_console.errors import (
    ApiFailure,
    AuthenticationFailure,
    AuthorizationExpired,
    ConsoleError,
)
from whawty_console.forms import LoginForm
from whawty_console.security import scrub_payload, suppress_credential_logging
from whawty_console.session import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiResult:
    """Outcome of one dispatched call: decoded data on success, an error otherwise."""

    endpoint: str
    ok: bool
    data: Any = None
    error: Optional[ConsoleError] = None
    status_code: int = 0
    latency_ms: float = 0.0


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_text(response: httpx.Response, body: Any) -> str:
    """Server-provided error text if there is one, else the HTTP status line."""
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, str) and err:
            return err
    reason = response.reason_phrase or "error"
    return f"HTTP {response.status_code} {reason}"


class RequestDispatcher:
    def __init__(
        self,
        session_store: SessionStore,
        advisories: AdvisoryBoard,
        login_form: LoginForm,
        base_url: str = "",
        *,
        timeout: float = 30.0,
        verify: bool = True,
        client: Optional[httpx.AsyncClient] = None,
        audit_log: Optional[AuditLog] = None,
    ):
        suppress_credential_logging()
        self._session = session_store
        self._advisories = advisories
        self._login_form = login_form
        self._audit = audit_log or AuditLog()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            verify=verify,
            follow_redirects=False,
        )

    async def __aenter__(self) -> "RequestDispatcher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
        self._audit.flush()

    # ── Transport ─────────────────────────────────────────────────────────

    async def _post(self, endpoint: Endpoint, payload: dict) -> ApiResult:
        """Send one request and decode it. No session side effects."""
        logger.debug("POST %s %s", endpoint.path, scrub_payload(payload))
        start = time.monotonic()
        try:
            response = await self._client.post(endpoint.path, json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            latency = (time.monotonic() - start) * 1000
            self._audit.log("api_call", endpoint=endpoint.name, latency_ms=latency,
                            detail=type(exc).__name__)
            error = ApiFailure(f"{type(exc).__name__}: {exc}")
            error.__cause__ = exc
            return ApiResult(endpoint=endpoint.name, ok=False, latency_ms=latency, error=error)
        latency = (time.monotonic() - start) * 1000
        status = response.status_code
        self._audit.log("api_call", endpoint=endpoint.name, username=str(payload.get("username", "")),
                        status=status, latency_ms=latency)

        body = _safe_json(response)
        if status == 401:
            return ApiResult(endpoint=endpoint.name, ok=False, status_code=status, latency_ms=latency,
                             error=AuthorizationExpired(_error_text(response, body), status))
        if not response.is_success:
            return ApiResult(endpoint=endpoint.name, ok=False, status_code=status, latency_ms=latency,
                             error=ApiFailure(_error_text(response, body), status))
        try:
            data = endpoint.decode(body, payload)
        except ApiFailure as exc:
            # A 2xx body with only an error field is still a failure report
            if isinstance(body, dict) and isinstance(body.get("error"), str) and body["error"]:
                exc = ApiFailure(body["error"], status)
            exc.status_code = status
            return ApiResult(endpoint=endpoint.name, ok=False, status_code=status,
                             latency_ms=latency, error=exc)
        return ApiResult(endpoint=endpoint.name, ok=True, data=data, status_code=status, latency_ms=latency)

    # ── Public API ────────────────────────────────────────────────────────

    async def authenticate(self, username: str, password: str) -> ApiResult:
        """Log-in call. No token, no logout-on-401; the caller reports the outcome."""
        endpoint = Endpoint.get("authenticate")
        result = await self._post(endpoint, {"username": username, "password": password})
        if result.ok:
            return result
        if result.status_code == 401:
            error = AuthenticationFailure("username and/or password are wrong!", 401)
        else:
            message = result.error.message if result.error else "unknown error"
            error = AuthenticationFailure(message, result.status_code)
        return ApiResult(endpoint=result.endpoint, ok=False, error=error,
                         status_code=result.status_code, latency_ms=result.latency_ms)

    async def call(self, endpoint: Union[str, Endpoint], payload: Optional[dict] = None) -> ApiResult:
        """Send an authenticated call. Failures are reported before returning.

        Without a session nothing is sent and nothing is reported: the console
        is already logged out, so there is no authorization to lose.
        """
        ep = Endpoint.get(endpoint) if isinstance(endpoint, str) else endpoint
        body = dict(payload or {})
        ep.check_payload(body)

        if ep.requires_session:
            token = self._session.token
            if not token:
                result = ApiResult(endpoint=ep.name, ok=False, status_code=401,
                                   error=AuthorizationExpired("not logged in"))
                self._audit.log("api_call", endpoint=ep.name, detail="no session")
                return result
            body["session"] = token

        result = await self._post(ep, body)
        if not result.ok:
            self.report_failure(result)
        return result

    def report_failure(self, result: ApiResult) -> None:
        """Surface a failed result: 401 forces logout, anything else is an API error banner."""
        error = result.error or ApiFailure("unknown error", result.status_code)
        if isinstance(error, AuthorizationExpired):
            user = self._session.identity
            self._audit.log("auth_expired", endpoint=result.endpoint, username=user or "",
                            status=result.status_code)
            self._session.logout()
            self._login_form.prefill(user)
            self._advisories.clear("main")
            self._advisories.error("login", AuthorizationExpired.heading, error.message)
        else:
            self._advisories.error("main", ApiFailure.heading, error.message)
