"""Dispatch and base-address collaborators.

The pipeline never touches connection state itself. It hands each
:class:`~httpchain.request.PendingRequest` to a :class:`Transport` and asks
a :class:`BaseAddressResolver` where relative targets live.

:class:`HttpxTransport` is the default transport, backed by a shared
:class:`httpx.AsyncClient` whose connection pool it owns (or borrows, when
a client is passed in).
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from httpchain.cancellation import CancellationToken
from httpchain.exceptions import TransportFault
from httpchain.request import PendingRequest


class Transport(ABC):
    """Sends a request and returns the response."""

    @abstractmethod
    async def send(self, request: PendingRequest, cancellation: CancellationToken) -> httpx.Response:
        """Dispatch *request*.

        Raises:
            TransportFault: If no response could be obtained.
        """
        ...


class HttpxTransport(Transport):
    """Transport backed by :class:`httpx.AsyncClient`.

    Args:
        client: An existing client to borrow. It is not closed by
            :meth:`aclose`.
        **client_kwargs: Options for the client created when *client* is
            omitted (``timeout``, ``verify``, ``follow_redirects``,
            ``transport``...).

    Example::

        async with HttpxTransport(timeout=10) as transport:
            pipeline = RequestPipeline(transport)
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, **client_kwargs: Any) -> None:
        self._client = client
        self._owns_client = client is None
        self._client_kwargs = client_kwargs

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(**self._client_kwargs)
        return self._client

    async def send(self, request: PendingRequest, cancellation: CancellationToken) -> httpx.Response:
        try:
            return await self.client.send(request.to_httpx())
        except httpx.RequestError as exc:
            raise TransportFault(
                f"{request.method} {request.url} failed: {exc}", cause=exc
            ) from exc

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


# ---------------------------------------------------------------------- #
# Base address resolution
# ---------------------------------------------------------------------- #

AddressLoader = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]


class BaseAddressResolver(ABC):
    """Supplies the base address that relative request targets are joined to."""

    @abstractmethod
    async def resolve(self, cancellation: CancellationToken) -> Optional[str]:
        """Return the base address, or ``None`` to send targets as-is."""
        ...


class StaticBaseAddress(BaseAddressResolver):
    """A fixed base address (or none at all)."""

    def __init__(self, base_url: Optional[str] = None) -> None:
        self.base_url = base_url

    async def resolve(self, cancellation: CancellationToken) -> Optional[str]:
        return self.base_url


class CachedBaseAddress(BaseAddressResolver):
    """Look the base address up once, then reuse it.

    Args:
        loader: Zero-argument callable, sync or async, returning the
            address (for example from service discovery). A failed lookup
            is not cached.
    """

    def __init__(self, loader: AddressLoader) -> None:
        self._loader = loader
        self._cached: Optional[str] = None
        self._loaded = False

    async def resolve(self, cancellation: CancellationToken) -> Optional[str]:
        if self._loaded:
            return self._cached
        value = self._loader()
        if inspect.isawaitable(value):
            value = await cancellation.guard(value)
        self._cached = value
        self._loaded = True
        return value

    def invalidate(self) -> None:
        """Forget the cached address so the next call looks it up again."""
        self._cached = None
        self._loaded = False
