"""Tests for RETS session manager: login handshake and lifetime policies."""

import asyncio
import base64
from pathlib import Path

import httpx
import pytest

from rentcomps.core.config import RetsCredentials, SessionConfig, SessionPolicy
from rentcomps.core.errors import AuthError, NetworkError
from rentcomps.rets.session import RetsSession, SessionManager

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"

LOGIN_URL = "https://rets.example.com/rets/login"
LOGOUT_URL = "https://rets.example.com/rets/logout"


def _login_body() -> str:
    return (FIXTURES_DIR / "login_response.txt").read_text()


def _credentials() -> RetsCredentials:
    return RetsCredentials(login_url=LOGIN_URL, username="agent01", password="s3cret")


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class RetsServer:
    """Minimal RETS login/logout endpoint that records every request."""

    def __init__(
        self,
        *,
        login_status: int = 200,
        login_body: str | None = None,
        cookies: tuple[str, ...] = ("RETS-Session-ID=abc123; Path=/", "JSESSIONID=xyz; HttpOnly"),
    ) -> None:
        self.login_status = login_status
        self.login_body = _login_body() if login_body is None else login_body
        self.cookies = cookies
        self.requests: list[httpx.Request] = []

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/rets/login":
            headers = [("Set-Cookie", c) for c in self.cookies]
            return httpx.Response(self.login_status, text=self.login_body, headers=headers)
        if request.url.path == "/rets/logout":
            return httpx.Response(200, text='<RETS ReplyCode="0" ReplyText="Goodbye"/>')
        return httpx.Response(404)


def _manager(
    server: RetsServer,
    config: SessionConfig | None = None,
    clock: FakeClock | None = None,
) -> tuple[SessionManager, httpx.AsyncClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(server.handler))
    manager = SessionManager(_credentials(), http, config, clock=clock or FakeClock())
    return manager, http


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------


class TestHeaders:
    def test_base_headers(self) -> None:
        manager, _ = _manager(RetsServer())
        headers = manager.base_headers()
        expected = base64.b64encode(b"agent01:s3cret").decode("ascii")
        assert headers["Authorization"] == f"Basic {expected}"
        assert headers["User-Agent"] == "RentComps/1.0"
        assert headers["RETS-Version"] == "RETS/1.8"
        assert headers["Accept"] == "*/*"

    def test_request_headers_add_cookie(self) -> None:
        manager, _ = _manager(RetsServer())
        session = RetsSession(cookie="A=1", created_at=0.0)
        assert manager.request_headers(session)["Cookie"] == "A=1"

    def test_request_headers_without_cookie(self) -> None:
        manager, _ = _manager(RetsServer())
        session = RetsSession(created_at=0.0)
        assert "Cookie" not in manager.request_headers(session)


# ---------------------------------------------------------------------------
# Login handshake
# ---------------------------------------------------------------------------


class TestLogin:
    async def test_capabilities_and_cookie(self) -> None:
        server = RetsServer()
        manager, http = _manager(server)
        async with http:
            session = await manager.acquire()
        assert session.capability("Search") == "https://rets.example.com/rets/search"
        assert session.capability("GetMetadata") == "https://rets.example.com/rets/getmetadata"
        assert session.cookie == "RETS-Session-ID=abc123; JSESSIONID=xyz"

    async def test_login_sends_basic_auth(self) -> None:
        server = RetsServer()
        manager, http = _manager(server)
        async with http:
            await manager.acquire()
        assert server.requests[0].headers["Authorization"].startswith("Basic ")
        assert server.requests[0].headers["RETS-Version"] == "RETS/1.8"

    async def test_redirect_status_accepted(self) -> None:
        server = RetsServer(login_status=302)
        manager, http = _manager(server)
        async with http:
            session = await manager.acquire()
        assert session.capability("Search") is not None

    async def test_http_error_status(self) -> None:
        server = RetsServer(login_status=500)
        manager, http = _manager(server)
        async with http:
            with pytest.raises(NetworkError, match="500"):
                await manager.acquire()

    async def test_unauthorized_status_is_network_error(self) -> None:
        server = RetsServer(login_status=401)
        manager, http = _manager(server)
        async with http:
            with pytest.raises(NetworkError):
                await manager.acquire()

    async def test_nonzero_reply_code_is_auth_error(self) -> None:
        body = '<RETS ReplyCode="20036" ReplyText="Miscellaneous server login error"/>'
        manager, http = _manager(RetsServer(login_body=body))
        async with http:
            with pytest.raises(AuthError) as exc_info:
                await manager.acquire()
        assert exc_info.value.reply_code == 20036
        assert exc_info.value.reply_text == "Miscellaneous server login error"

    async def test_transport_failure_is_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        manager = SessionManager(_credentials(), http)
        async with http:
            with pytest.raises(NetworkError, match="login request failed"):
                await manager.acquire()

    async def test_timeout_is_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        manager = SessionManager(_credentials(), http)
        async with http:
            with pytest.raises(NetworkError, match="timed out"):
                await manager.acquire()

    async def test_no_cookies(self) -> None:
        manager, http = _manager(RetsServer(cookies=()))
        async with http:
            session = await manager.acquire()
        assert session.cookie == ""


# ---------------------------------------------------------------------------
# Ephemeral policy
# ---------------------------------------------------------------------------


class TestEphemeralPolicy:
    async def test_every_acquire_logs_in(self) -> None:
        server = RetsServer()
        manager, http = _manager(server)
        async with http:
            first = await manager.acquire()
            second = await manager.acquire()
        assert first is not second
        assert server.paths() == ["/rets/login", "/rets/login"]

    async def test_release_logs_out(self) -> None:
        server = RetsServer()
        manager, http = _manager(server)
        async with http:
            session = await manager.acquire()
            await manager.release(session)
        assert server.paths() == ["/rets/login", "/rets/logout"]
        assert server.requests[1].headers["Cookie"] == "RETS-Session-ID=abc123; JSESSIONID=xyz"

    async def test_logout_failure_swallowed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/rets/logout":
                raise httpx.ConnectError("reset", request=request)
            return httpx.Response(200, text=_login_body())

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        manager = SessionManager(_credentials(), http)
        async with http:
            session = await manager.acquire()
            await manager.release(session)

    async def test_logout_without_capability_is_noop(self) -> None:
        server = RetsServer()
        manager, http = _manager(server)
        async with http:
            await manager.logout(RetsSession(created_at=0.0))
        assert server.requests == []


# ---------------------------------------------------------------------------
# Cached policy
# ---------------------------------------------------------------------------


class TestCachedPolicy:
    @pytest.fixture
    def config(self) -> SessionConfig:
        return SessionConfig(policy=SessionPolicy.CACHED, ttl_minutes=25)

    async def test_reuses_session_within_ttl(self, config: SessionConfig) -> None:
        server = RetsServer()
        clock = FakeClock()
        manager, http = _manager(server, config, clock)
        async with http:
            first = await manager.acquire()
            clock.now += 24 * 60
            second = await manager.acquire()
        assert first is second
        assert server.paths() == ["/rets/login"]

    async def test_release_keeps_session(self, config: SessionConfig) -> None:
        server = RetsServer()
        manager, http = _manager(server, config)
        async with http:
            session = await manager.acquire()
            await manager.release(session)
        assert server.paths() == ["/rets/login"]

    async def test_relogin_after_ttl(self, config: SessionConfig) -> None:
        server = RetsServer()
        clock = FakeClock()
        manager, http = _manager(server, config, clock)
        async with http:
            first = await manager.acquire()
            clock.now += 25 * 60
            second = await manager.acquire()
        assert first is not second
        assert server.paths() == ["/rets/login", "/rets/login"]

    async def test_concurrent_acquire_single_login(self, config: SessionConfig) -> None:
        server = RetsServer()

        async def slow_handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.01)
            return server.handler(request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(slow_handler))
        manager = SessionManager(_credentials(), http, config, clock=FakeClock())
        async with http:
            sessions = await asyncio.gather(*(manager.acquire() for _ in range(5)))
        assert server.paths() == ["/rets/login"]
        assert all(s is sessions[0] for s in sessions)

    async def test_timed_out_login_not_cached(self, config: SessionConfig) -> None:
        server = RetsServer()
        logins = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/rets/login":
                logins["n"] += 1
                if logins["n"] == 1:
                    raise httpx.ReadTimeout("timed out", request=request)
            return server.handler(request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        manager = SessionManager(_credentials(), http, config, clock=FakeClock())
        async with http:
            with pytest.raises(NetworkError, match="timed out"):
                await manager.acquire()
            session = await manager.acquire()
            again = await manager.acquire()
        assert logins["n"] == 2
        assert session.capability("Search") == "https://rets.example.com/rets/search"
        assert again is session

    async def test_invalidate_forces_relogin(self, config: SessionConfig) -> None:
        server = RetsServer()
        manager, http = _manager(server, config)
        async with http:
            first = await manager.acquire()
            await manager.invalidate(first)
            second = await manager.acquire()
        assert first is not second
        assert server.paths() == ["/rets/login", "/rets/login"]

    async def test_invalidate_stale_session_keeps_current(self, config: SessionConfig) -> None:
        server = RetsServer()
        manager, http = _manager(server, config)
        async with http:
            current = await manager.acquire()
            await manager.invalidate(RetsSession(created_at=0.0))
            again = await manager.acquire()
        assert current is again

    async def test_close_logs_out_cached(self, config: SessionConfig) -> None:
        server = RetsServer()
        manager, http = _manager(server, config)
        async with http:
            await manager.acquire()
            await manager.close()
            await manager.close()
        assert server.paths() == ["/rets/login", "/rets/logout"]


class TestRetsSession:
    def test_is_expired(self) -> None:
        session = RetsSession(created_at=100.0)
        assert not session.is_expired(now=159.0, ttl_s=60.0)
        assert session.is_expired(now=160.0, ttl_s=60.0)

    def test_missing_capability(self) -> None:
        assert RetsSession(created_at=0.0).capability("Search") is None
