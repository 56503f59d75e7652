"""HTTP Basic Authentication gate for aiohttp handlers.

Credentials are read from the Authorization header or, when enabled, from
the userinfo part of the request URL. The header always takes precedence:
if it is present, URL credentials are ignored even when the header is
malformed. See https://tools.ietf.org/html/rfc7617 for the scheme.

Every request ends in one of three outcomes:
- authorized: the wrapped handler runs and its response is returned as is
- unauthorized (401): no usable credentials were supplied
- forbidden (403): credentials were supplied but ``verify`` rejected them

Malformed client input never raises; it is answered with a 401.

Example:
    def verify(username, password, request):
        return username == "user" and password == "pass"

    options = BasicAuthOptions(verify=verify, realm="Admin")
    auth = basic_auth(options)

    @auth
    async def handle(request):
        return web.Response(text="secret")

    app = web.Application(middlewares=[basic_auth_middleware(options)])
"""

from __future__ import annotations

import base64
import functools
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

import structlog
from aiohttp import hdrs, web
from yarl import URL

from httpware.responders import (
    Handler,
    default_forbidden_responder,
    default_unauthorized_responder,
    resolve_realm,
)

logger = structlog.get_logger()

BASIC_SCHEME_PREFIX = "basic "

VerifyFunc = Callable[[str, str, web.Request], bool | Awaitable[bool]]


class CredentialSource(Enum):
    """Where a request's credentials were read from."""

    HEADER = "header"
    URL = "url"
    NONE = "none"


class AuthOutcome(Enum):
    """Terminal decision for a request."""

    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class Credentials:
    """Username and password extracted from a single request."""

    username: str = ""
    password: str = field(default="", repr=False)
    present: bool = False
    source: CredentialSource = CredentialSource.NONE


MISSING = Credentials()


@dataclass
class AuthResult:
    """Result of a Basic Authentication check.

    ``reason`` is meant for operators and is never sent to the client.
    """

    outcome: AuthOutcome
    reason: str
    source: CredentialSource = CredentialSource.NONE

    @property
    def allowed(self) -> bool:
        return self.outcome is AuthOutcome.AUTHORIZED


@dataclass(frozen=True)
class BasicAuthOptions:
    """Configurable settings of the Basic Authentication gate.

    Attributes:
        verify: Called as ``verify(username, password, request)``. May return
            a bool or an awaitable resolving to one. Required.
        realm: Name of the protected scope. Empty means "Restricted".
        allow_empty_password: Accept credentials with an empty password.
        allow_url_credentials: Read credentials from the request URL when no
            Authorization header is sent.
        unauthorized: Handler for 401 outcomes. Defaults to a plain-text 401
            carrying a ``WWW-Authenticate`` challenge.
        forbidden: Handler for 403 outcomes. Defaults to a plain-text 403.
    """

    verify: VerifyFunc | None = None
    realm: str = ""
    allow_empty_password: bool = False
    allow_url_credentials: bool = False
    unauthorized: Handler | None = None
    forbidden: Handler | None = None

    def __post_init__(self) -> None:
        """Reject configurations that could never authenticate correctly."""
        if self.verify is None:
            raise ValueError("BasicAuthOptions requires a verify callback")
        if not callable(self.verify):
            raise ValueError("BasicAuthOptions.verify must be callable")
        if any((ord(ch) < 0x20 and ch != "\t") or ord(ch) == 0x7F for ch in self.realm):
            raise ValueError("BasicAuthOptions.realm must not contain control characters")


def encode_basic_credentials(username: str, password: str) -> str:
    """Build an Authorization header value for the Basic scheme."""
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


def parse_authorization_header(value: str | None) -> Credentials:
    """Parse a Basic Authorization header value.

    The username ends at the first colon. Anything that is not a well-formed
    Basic payload is reported as missing credentials.
    """
    if not value or value[: len(BASIC_SCHEME_PREFIX)].lower() != BASIC_SCHEME_PREFIX:
        return MISSING

    try:
        decoded = base64.b64decode(value[len(BASIC_SCHEME_PREFIX) :], validate=True)
        text = decoded.decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return MISSING

    username, sep, password = text.partition(":")
    if not sep:
        return MISSING

    return Credentials(
        username=username,
        password=password,
        present=True,
        source=CredentialSource.HEADER,
    )


def credentials_from_url(url: URL) -> Credentials:
    """Read credentials from the userinfo component of ``url``.

    A username without a password component counts as present with an
    empty password.
    """
    if url.user is None:
        return MISSING

    return Credentials(
        username=url.user,
        password=url.password or "",
        present=True,
        source=CredentialSource.URL,
    )


def extract_credentials(request: web.Request, allow_url_credentials: bool = False) -> Credentials:
    """Extract credentials from ``request``, header first."""
    if hdrs.AUTHORIZATION in request.headers:
        return parse_authorization_header(request.headers[hdrs.AUTHORIZATION])
    if allow_url_credentials:
        return credentials_from_url(request.url)
    return MISSING


class BasicAuthGate:
    """Decision procedure shared by the handler decorator and the middleware.

    Holds only immutable options, so one gate can serve any number of
    concurrent requests.
    """

    def __init__(self, options: BasicAuthOptions) -> None:
        self._options = options
        self._unauthorized = options.unauthorized or default_unauthorized_responder(options.realm)
        self._forbidden = options.forbidden or default_forbidden_responder()

    @property
    def options(self) -> BasicAuthOptions:
        return self._options

    @property
    def realm(self) -> str:
        return resolve_realm(self._options.realm)

    def _policy_failure(self, credentials: Credentials) -> str | None:
        if not credentials.present:
            return "Missing or malformed credentials"
        if not credentials.username:
            return "Empty username"
        if not credentials.password and not self._options.allow_empty_password:
            return "Empty password"
        return None

    async def check(self, request: web.Request) -> AuthResult:
        """Decide the outcome for ``request`` without producing a response."""
        credentials = extract_credentials(request, self._options.allow_url_credentials)

        failure = self._policy_failure(credentials)
        if failure is not None:
            return AuthResult(AuthOutcome.UNAUTHORIZED, failure, credentials.source)

        verified = self._options.verify(credentials.username, credentials.password, request)
        if inspect.isawaitable(verified):
            verified = await verified

        if not verified:
            return AuthResult(AuthOutcome.FORBIDDEN, "Credentials rejected", credentials.source)

        return AuthResult(AuthOutcome.AUTHORIZED, "Authenticated", credentials.source)

    async def handle(self, request: web.Request, handler: Handler) -> web.StreamResponse:
        """Run ``handler`` if the request is authorized, else the matching responder."""
        result = await self.check(request)

        if result.allowed:
            logger.debug(
                "Basic auth accepted",
                source=result.source.value,
                method=request.method,
                path=request.path,
            )
            return await handler(request)

        logger.debug(
            "Basic auth denied",
            outcome=result.outcome.value,
            reason=result.reason,
            source=result.source.value,
            realm=self.realm,
            method=request.method,
            path=request.path,
        )

        if result.outcome is AuthOutcome.FORBIDDEN:
            return await self._forbidden(request)
        return await self._unauthorized(request)


def basic_auth(options: BasicAuthOptions) -> Callable[[Handler], Handler]:
    """Return a decorator enforcing Basic Authentication on a handler."""
    gate = BasicAuthGate(options)

    def wrap(handler: Handler) -> Handler:
        @functools.wraps(handler)
        async def protected(request: web.Request) -> web.StreamResponse:
            return await gate.handle(request, handler)

        return protected

    return wrap


def basic_auth_middleware(options: BasicAuthOptions) -> Callable[..., Awaitable[web.StreamResponse]]:
    """Return an aiohttp middleware enforcing Basic Authentication on every route."""
    gate = BasicAuthGate(options)

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        return await gate.handle(request, handler)

    return middleware
