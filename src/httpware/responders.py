"""Default responders for the Basic Authentication gate.

A responder is an ordinary aiohttp handler that produces the terminal
response for a denied request. The defaults here take their configuration
as explicit parameters so they can be used on their own, for example as the
custom responder of another gate.

Example:
    app.router.add_get("/denied", default_forbidden_responder())
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from http import HTTPStatus

from aiohttp import hdrs, web

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

DEFAULT_REALM = "Restricted"


def resolve_realm(realm: str | None) -> str:
    """Return the realm to advertise, falling back to ``DEFAULT_REALM``."""
    return realm or DEFAULT_REALM


def quote_header_value(value: str) -> str:
    """Quote ``value`` as an RFC 7230 quoted-string."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def basic_challenge(realm: str) -> str:
    """Build the ``WWW-Authenticate`` value for the Basic scheme (RFC 7617)."""
    return f"Basic realm={quote_header_value(realm)}, charset=\"utf-8\""


def error_response(
    status: HTTPStatus | int,
    headers: dict[str, str] | None = None,
) -> web.Response:
    """Plain-text error response whose body is the status reason phrase."""
    status = HTTPStatus(status)
    response = web.Response(
        status=status.value,
        text=f"{status.phrase}\n",
        content_type="text/plain",
        charset="utf-8",
        headers=headers,
    )
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


def default_unauthorized_responder(realm: str | None = None) -> Handler:
    """Responder answering 401 with a Basic challenge for ``realm``."""
    challenge = basic_challenge(resolve_realm(realm))

    async def unauthorized(request: web.Request) -> web.StreamResponse:
        return error_response(
            HTTPStatus.UNAUTHORIZED,
            headers={hdrs.WWW_AUTHENTICATE: challenge},
        )

    return unauthorized


def default_forbidden_responder() -> Handler:
    """Responder answering 403. No challenge is sent."""

    async def forbidden(request: web.Request) -> web.StreamResponse:
        return error_response(HTTPStatus.FORBIDDEN)

    return forbidden
