"""RETS session management: login handshake, capability URLs, lifetime policy.

Two policies (SessionConfig.policy):
  - ephemeral: every acquire() performs a fresh login; release() logs out.
    No shared state, safe under any concurrency.
  - cached: one session is held by the manager until its TTL expires.
    Refreshes are serialized behind an asyncio.Lock so at most one login
    handshake is in flight; readers of a valid session never wait.
"""

import asyncio
import base64
import logging
import time
from collections.abc import Callable

import httpx
from pydantic import BaseModel, ConfigDict, Field

from rentcomps.core.config import RetsCredentials, SessionConfig, SessionPolicy
from rentcomps.core.errors import AuthError, NetworkError
from rentcomps.rets.codec import REPLY_SUCCESS, parse_capabilities, parse_reply_code

logger = logging.getLogger(__name__)

# Login answers 302 on some Paragon deployments; the body still carries capabilities.
ACCEPTED_LOGIN_REDIRECTS = frozenset({302})


class RetsSession(BaseModel):
    """One logged-in RETS session. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    capabilities: dict[str, str] = Field(default_factory=dict)
    cookie: str = ""
    created_at: float

    def capability(self, name: str) -> str | None:
        return self.capabilities.get(name)

    def is_expired(self, now: float, ttl_s: float) -> bool:
        return now - self.created_at >= ttl_s


class SessionManager:
    """Owns the login handshake and the session lifetime policy.

    Usage::

        manager = SessionManager(credentials, http, SessionConfig())
        session = await manager.acquire()
        try:
            ...  # requests with manager.request_headers(session)
        finally:
            await manager.release(session)
    """

    def __init__(
        self,
        credentials: RetsCredentials,
        http: httpx.AsyncClient,
        config: SessionConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._credentials = credentials
        self._http = http
        self._config = config or SessionConfig()
        self._clock = clock
        self._cached: RetsSession | None = None
        self._refresh_lock = asyncio.Lock()

    @property
    def policy(self) -> SessionPolicy:
        return self._config.policy

    @property
    def timeout_s(self) -> float:
        return self._config.timeout_s

    @property
    def ttl_s(self) -> float:
        return self._config.ttl_minutes * 60.0

    def base_headers(self) -> dict[str, str]:
        """Headers sent on every RETS request."""
        token = f"{self._credentials.username}:{self._credentials.password}"
        return {
            "Authorization": "Basic " + base64.b64encode(token.encode()).decode("ascii"),
            "User-Agent": self._credentials.user_agent,
            "RETS-Version": self._credentials.rets_version,
            "Accept": "*/*",
        }

    def request_headers(self, session: RetsSession) -> dict[str, str]:
        """Base headers plus the session cookie, if the server issued one."""
        headers = self.base_headers()
        if session.cookie:
            headers["Cookie"] = session.cookie
        return headers

    async def acquire(self) -> RetsSession:
        """Return a usable session according to the lifetime policy."""
        if self._config.policy is SessionPolicy.EPHEMERAL:
            return await self._login()

        session = self._cached
        if session is not None and not session.is_expired(self._clock(), self.ttl_s):
            return session

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited.
            session = self._cached
            if session is not None and not session.is_expired(self._clock(), self.ttl_s):
                return session
            if session is not None:
                logger.info("Cached RETS session expired, logging in again")
            self._cached = None
            session = await self._login()
            self._cached = session
            return session

    async def invalidate(self, session: RetsSession) -> None:
        """Discard a session the server no longer accepts."""
        if self._cached is session:
            self._cached = None
            logger.info("Invalidated cached RETS session")

    async def release(self, session: RetsSession) -> None:
        """End-of-request hook: ephemeral sessions are logged out."""
        if self._config.policy is SessionPolicy.EPHEMERAL:
            await self.logout(session)

    async def close(self) -> None:
        """Log out the cached session, if any."""
        session, self._cached = self._cached, None
        if session is not None:
            await self.logout(session)

    async def logout(self, session: RetsSession) -> None:
        """Best-effort logout. Failures are logged, never raised."""
        url = session.capability("Logout")
        if not url:
            return
        try:
            await self._http.get(
                url, headers=self.request_headers(session), timeout=self.timeout_s,
            )
        except httpx.HTTPError as e:
            logger.debug("RETS logout failed (ignored): %s", e)

    async def _login(self) -> RetsSession:
        login_url = self._credentials.login_url
        try:
            response = await self._http.get(
                login_url,
                headers=self.base_headers(),
                follow_redirects=False,
                timeout=self.timeout_s,
            )
        except httpx.TimeoutException as e:
            msg = f"RETS login timed out after {self.timeout_s}s"
            raise NetworkError(msg) from e
        except httpx.HTTPError as e:
            msg = f"RETS login request failed: {e}"
            raise NetworkError(msg) from e

        if not response.is_success and response.status_code not in ACCEPTED_LOGIN_REDIRECTS:
            msg = f"RETS login failed: {response.status_code} {response.reason_phrase}"
            raise NetworkError(msg)

        body = response.text
        code, text = parse_reply_code(body)
        if code != REPLY_SUCCESS:
            msg = f"RETS login error {code}: {text or 'Unknown'}"
            raise AuthError(msg, reply_code=code, reply_text=text)

        capabilities = parse_capabilities(body, login_url)
        cookie = _session_cookie(response)
        logger.info(
            "RETS login OK (%s), capabilities: %s",
            self._config.policy.value, ", ".join(sorted(capabilities)) or "none",
        )
        return RetsSession(capabilities=capabilities, cookie=cookie, created_at=self._clock())


def _session_cookie(response: httpx.Response) -> str:
    """Collapse Set-Cookie headers into a single ``Cookie`` header value."""
    pairs = [
        raw.split(";", 1)[0].strip()
        for raw in response.headers.get_list("set-cookie")
    ]
    return "; ".join(p for p in pairs if p)
