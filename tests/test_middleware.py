"""End-to-end tests for Basic Authentication over a running aiohttp server."""

from __future__ import annotations

import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from httpware import (
    BasicAuthConfig,
    BasicAuthOptions,
    basic_auth,
    basic_auth_middleware,
    encode_basic_credentials,
)


def verify(username: str, password: str, request: web.Request) -> bool:
    return username == "user" and password == "pass"


async def handle_ok(request: web.Request) -> web.Response:
    return web.Response(text="ok")


def auth_headers(username: str, password: str) -> dict[str, str]:
    return {"Authorization": encode_basic_credentials(username, password)}


def make_app(options: BasicAuthOptions) -> web.Application:
    app = web.Application(middlewares=[basic_auth_middleware(options)])
    app.router.add_get("/", handle_ok)
    app.router.add_get("/other", handle_ok)
    return app


class TestBasicAuthMiddleware:
    """Tests for basic_auth_middleware."""

    @pytest.mark.asyncio
    async def test_no_credentials(self):
        """Test a request without credentials is challenged."""
        async with TestClient(TestServer(make_app(BasicAuthOptions(verify=verify)))) as client:
            resp = await client.get("/")
            assert resp.status == 401
            assert resp.headers["WWW-Authenticate"] == 'Basic realm="Restricted", charset="utf-8"'
            assert resp.headers["Content-Type"] == "text/plain; charset=utf-8"
            assert (await resp.text()) == "Unauthorized\n"

    @pytest.mark.asyncio
    async def test_valid_credentials(self):
        """Test accepted credentials reach the route."""
        async with TestClient(TestServer(make_app(BasicAuthOptions(verify=verify)))) as client:
            resp = await client.get("/", headers=auth_headers("user", "pass"))
            assert resp.status == 200
            assert (await resp.text()) == "ok"
            assert "WWW-Authenticate" not in resp.headers

    @pytest.mark.asyncio
    async def test_wrong_credentials(self):
        """Test rejected credentials are forbidden."""
        async with TestClient(TestServer(make_app(BasicAuthOptions(verify=verify)))) as client:
            resp = await client.get("/other", headers=auth_headers("user", "wrong"))
            assert resp.status == 403
            assert (await resp.text()) == "Forbidden\n"
            assert "WWW-Authenticate" not in resp.headers

    @pytest.mark.asyncio
    async def test_raw_header(self):
        """Test a hand-built Authorization header."""
        async with TestClient(TestServer(make_app(BasicAuthOptions(verify=verify)))) as client:
            headers = {"Authorization": encode_basic_credentials("user", "pass")}
            resp = await client.get("/", headers=headers)
            assert resp.status == 200

    @pytest.mark.asyncio
    async def test_malformed_header(self):
        """Test malformed credentials never produce a server error."""
        async with TestClient(TestServer(make_app(BasicAuthOptions(verify=verify)))) as client:
            for value in ("Basic", "Basic ###", "Basic dXNlcnBhc3M=", "Token abc"):
                resp = await client.get("/", headers={"Authorization": value})
                assert resp.status == 401

    @pytest.mark.asyncio
    async def test_realm_from_config(self):
        """Test options built from settings drive the challenge."""
        options = BasicAuthConfig(realm="Staff only").to_options(verify=verify)
        async with TestClient(TestServer(make_app(options))) as client:
            resp = await client.get("/")
            assert resp.headers["WWW-Authenticate"] == 'Basic realm="Staff only", charset="utf-8"'

    @pytest.mark.asyncio
    async def test_async_verify_concurrent_requests(self):
        """Test one gate serves concurrent requests independently."""

        async def slow_verify(username, password, request):
            await asyncio.sleep(0.01)
            return verify(username, password, request)

        app = make_app(BasicAuthOptions(verify=slow_verify))
        async with TestClient(TestServer(app)) as client:
            good = auth_headers("user", "pass")
            bad = auth_headers("user", "nope")
            responses = await asyncio.gather(
                *(client.get("/", headers=good if i % 2 == 0 else bad) for i in range(10))
            )
            statuses = [resp.status for resp in responses]
            assert statuses == [200 if i % 2 == 0 else 403 for i in range(10)]


class TestBasicAuthDecorator:
    """Tests for basic_auth on a single route."""

    @pytest.mark.asyncio
    async def test_only_decorated_route_protected(self):
        """Test undecorated routes stay public."""
        app = web.Application()
        app.router.add_get("/public", handle_ok)
        app.router.add_get("/private", basic_auth(BasicAuthOptions(verify=verify))(handle_ok))

        async with TestClient(TestServer(app)) as client:
            assert (await client.get("/public")).status == 200
            assert (await client.get("/private")).status == 401
            resp = await client.get("/private", headers=auth_headers("user", "pass"))
            assert resp.status == 200

    @pytest.mark.asyncio
    async def test_empty_password_policy(self):
        """Test empty passwords over the wire follow the option."""

        def accept_user(username, password, request):
            return username == "user"

        app = web.Application()
        app.router.add_get("/strict", basic_auth(BasicAuthOptions(verify=accept_user))(handle_ok))
        app.router.add_get(
            "/lenient",
            basic_auth(BasicAuthOptions(verify=accept_user, allow_empty_password=True))(handle_ok),
        )

        async with TestClient(TestServer(app)) as client:
            headers = auth_headers("user", "")
            assert (await client.get("/strict", headers=headers)).status == 401
            assert (await client.get("/lenient", headers=headers)).status == 200

    @pytest.mark.asyncio
    async def test_custom_forbidden_responder(self):
        """Test a custom forbidden responder's output is sent unmodified."""

        async def forbidden(request):
            return web.json_response({"error": "nope"}, status=403)

        options = BasicAuthOptions(verify=verify, forbidden=forbidden)
        app = web.Application()
        app.router.add_get("/", basic_auth(options)(handle_ok))

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/", headers=auth_headers("user", "wrong"))
            assert resp.status == 403
            assert resp.content_type == "application/json"
            assert await resp.json() == {"error": "nope"}


async def send_raw_get(server: TestServer, target: str) -> bytes:
    """Send a GET with a raw request target and return the status line."""
    reader, writer = await asyncio.open_connection(server.host, server.port)
    try:
        writer.write(
            f"GET {target} HTTP/1.1\r\nHost: {server.host}\r\nConnection: close\r\n\r\n".encode()
        )
        await writer.drain()
        return await reader.readline()
    finally:
        writer.close()
        await writer.wait_closed()


class TestURLCredentialsOverTheWire:
    """Tests for userinfo sent in an absolute-form request target."""

    @staticmethod
    def make_url_app(**kwargs) -> tuple[web.Application, list[tuple[str, str]]]:
        seen: list[tuple[str, str]] = []

        def record(username, password, request):
            seen.append((username, password))
            return username == "user"

        options = BasicAuthOptions(verify=record, allow_url_credentials=True, **kwargs)
        app = web.Application(middlewares=[basic_auth_middleware(options)])
        app.router.add_get("/x", handle_ok)
        return app, seen

    @pytest.mark.asyncio
    async def test_username_only(self):
        """Test userinfo without a password reaches verify as an empty password."""
        app, seen = self.make_url_app(allow_empty_password=True)
        async with TestServer(app) as server:
            status_line = await send_raw_get(server, f"http://user@{server.host}/x")
        assert status_line.startswith(b"HTTP/1.1 200")
        assert seen == [("user", "")]

    @pytest.mark.asyncio
    async def test_username_only_empty_password_denied(self):
        """Test userinfo without a password is challenged by default."""
        app, seen = self.make_url_app()
        async with TestServer(app) as server:
            status_line = await send_raw_get(server, f"http://user@{server.host}/x")
        assert status_line.startswith(b"HTTP/1.1 401")
        assert seen == []

    @pytest.mark.asyncio
    async def test_username_and_password(self):
        """Test full userinfo is passed to verify."""
        app, seen = self.make_url_app()
        async with TestServer(app) as server:
            status_line = await send_raw_get(server, f"http://user:secret@{server.host}/x")
        assert status_line.startswith(b"HTTP/1.1 200")
        assert seen == [("user", "secret")]

    @pytest.mark.asyncio
    async def test_rejected_by_verify(self):
        """Test URL credentials refused by verify are forbidden."""
        app, seen = self.make_url_app()
        async with TestServer(app) as server:
            status_line = await send_raw_get(server, f"http://other:secret@{server.host}/x")
        assert status_line.startswith(b"HTTP/1.1 403")
        assert seen == [("other", "secret")]
