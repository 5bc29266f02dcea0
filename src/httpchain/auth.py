"""Authorizers that attach credentials to outgoing requests.

The pipeline calls :meth:`Authorizer.apply` on every attempt, retries
included, so implementations that refresh tokens always send a current
credential.

Built-in strategies:

* :class:`NoAuthorizer` -- leaves the request untouched.
* :class:`BearerAuthorizer` -- ``Authorization: Bearer <token>``; the token
  may be a fixed string or a (possibly async) provider called each attempt.
* :class:`BasicAuthorizer` -- ``Authorization: Basic <base64>`` per
  :rfc:`7617`.
* :class:`ApiKeyAuthorizer` -- a key in a custom header or cookie.

:func:`authorizer_from_config` builds one of these from a profile's
:class:`~httpchain.models.AuthConfig`.
"""

from __future__ import annotations

import base64
import inspect
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Union

from httpchain.cancellation import CancellationToken
from httpchain.config import resolve_credential
from httpchain.exceptions import AuthError
from httpchain.models import AuthConfig
from httpchain.request import PendingRequest

TokenProvider = Callable[[], Union[str, Awaitable[str]]]


class Authorizer(ABC):
    """Mutates a request in place to carry credentials."""

    @abstractmethod
    async def apply(self, request: PendingRequest, cancellation: CancellationToken) -> None:
        """Attach credentials to *request*.

        Raises:
            AuthError: If credentials cannot be produced.
        """
        ...


class NoAuthorizer(Authorizer):
    async def apply(self, request: PendingRequest, cancellation: CancellationToken) -> None:
        return None


class BearerAuthorizer(Authorizer):
    """Send a bearer token.

    Args:
        token: A fixed token string, or a zero-argument callable returning
            the token (sync or async). Callables are invoked on every
            attempt.
    """

    def __init__(self, token: Union[str, TokenProvider]) -> None:
        self._token = token

    async def _current_token(self, cancellation: CancellationToken) -> str:
        if isinstance(self._token, str):
            return self._token
        value = self._token()
        if inspect.isawaitable(value):
            value = await cancellation.guard(value)
        return value

    async def apply(self, request: PendingRequest, cancellation: CancellationToken) -> None:
        token = await self._current_token(cancellation)
        if not token:
            raise AuthError("Bearer token is empty")
        request.headers["Authorization"] = f"Bearer {token}"


class BasicAuthorizer(Authorizer):
    """Send ``username:password`` as an HTTP Basic header."""

    def __init__(self, username: str, password: str) -> None:
        if ":" in username:
            raise AuthError("Basic auth username cannot contain ':'")
        self._encoded = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")

    @classmethod
    def from_credential(cls, raw: str) -> BasicAuthorizer:
        """Build from a combined ``"username:password"`` string."""
        if ":" not in raw:
            raise AuthError(
                "Basic auth credential must be in 'username:password' format "
                "(colon separator is required)"
            )
        username, password = raw.split(":", 1)
        return cls(username, password)

    async def apply(self, request: PendingRequest, cancellation: CancellationToken) -> None:
        request.headers["Authorization"] = f"Basic {self._encoded}"


class ApiKeyAuthorizer(Authorizer):
    """Send an API key in a header or a cookie.

    Args:
        key: The API key.
        name: Header or cookie name. Defaults to ``X-API-Key``.
        location: ``"header"`` or ``"cookie"``.
    """

    def __init__(self, key: str, name: str = "X-API-Key", location: str = "header") -> None:
        if location not in ("header", "cookie"):
            raise AuthError(f"Unsupported api_key location '{location}' (use header or cookie)")
        self._key = key
        self._name = name
        self._location = location

    async def apply(self, request: PendingRequest, cancellation: CancellationToken) -> None:
        if self._location == "header":
            request.headers[self._name] = self._key
            return

        # Replace our own cookie on a retry clone, keep everything else.
        cookies = [
            part.strip()
            for part in request.headers.get("Cookie", "").split(";")
            if part.strip() and not part.strip().startswith(f"{self._name}=")
        ]
        cookies.append(f"{self._name}={self._key}")
        request.headers["Cookie"] = "; ".join(cookies)


def authorizer_from_config(auth_config: AuthConfig) -> Authorizer:
    """Create the authorizer described by *auth_config*.

    Raises:
        AuthError: For unknown auth types.
        ConfigError: If the credential source cannot be resolved.
    """
    auth_type = auth_config.type.lower()
    if auth_type == "none":
        return NoAuthorizer()
    if auth_type == "bearer":
        return BearerAuthorizer(resolve_credential(auth_config.source))
    if auth_type == "basic":
        return BasicAuthorizer.from_credential(resolve_credential(auth_config.source))
    if auth_type == "api_key":
        return ApiKeyAuthorizer(
            resolve_credential(auth_config.source),
            name=auth_config.header or "X-API-Key",
            location=auth_config.location,
        )
    raise AuthError(
        f"Unknown auth type '{auth_config.type}'. Available types: api_key, basic, bearer, none"
    )
