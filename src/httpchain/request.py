"""The unsent request that flows through the pipeline.

:class:`PendingRequest` is created once per logical call, mutated by the
registered request mutators and the authorizer, and handed to the
transport. Each retry attempt resends a :meth:`~PendingRequest.clone`
rather than the original object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

import httpx


def append_query(target: str, params: Mapping[str, Optional[str]]) -> str:
    """Append *params* to *target* using standard query-string encoding.

    Parameters keep their insertion order and are joined with ``&``.
    Entries whose value is ``None`` are skipped. An existing query string
    on *target* is extended, and a ``#fragment`` stays last. A mapping
    with nothing left to send returns *target* unchanged.

    Example::

        >>> append_query("/items", {"a": "1", "b": None, "c": "2"})
        '/items?a=1&c=2'
    """
    pairs = [(key, value) for key, value in params.items() if value is not None]
    if not pairs:
        return target

    path, sep, fragment = target.partition("#")
    encoded = urlencode(pairs)
    if "?" in path:
        joiner = "" if path.endswith(("?", "&")) else "&"
    else:
        joiner = "?"
    result = f"{path}{joiner}{encoded}"
    if sep:
        result = f"{result}#{fragment}"
    return result


def join_url(base: Optional[str], target: str) -> str:
    """Combine a base address and a request target the way ``httpx`` does.

    Absolute targets win over the base address. Relative targets are
    appended to the base path, so ``https://h/v1`` + ``/users`` becomes
    ``https://h/v1/users``.
    """
    if "://" in target or not base:
        return target
    if not target:
        return base
    return f"{base.rstrip('/')}/{target.lstrip('/')}"


@dataclass
class PendingRequest:
    """A request that has not been dispatched yet.

    Attributes:
        method: HTTP method, upper-cased.
        target: Relative path (optionally with a query string) or an
            absolute URL.
        headers: Request headers. Repeated header names are preserved.
        content: Raw body bytes, or ``None`` for no body.
        content_type: Media type sent with *content*.
        http_version: Protocol version label carried across retries.
        options: Transport-specific per-request options, forwarded to
            ``httpx`` as request extensions.
        base_address: Base address resolved for the current attempt.
    """

    method: str = "GET"
    target: str = ""
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    content: Optional[bytes] = None
    content_type: Optional[str] = None
    http_version: str = "HTTP/1.1"
    options: dict[str, Any] = field(default_factory=dict)
    base_address: Optional[str] = None

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        if not isinstance(self.headers, httpx.Headers):
            self.headers = httpx.Headers(self.headers)

    @property
    def url(self) -> str:
        """The full URL for the current attempt."""
        return join_url(self.base_address, self.target)

    def set_body(self, content: bytes, content_type: str) -> None:
        self.content = content
        self.content_type = content_type

    def clone(self) -> PendingRequest:
        """Return a copy that can be resent without touching the original.

        Method, target, body, protocol version, every header (including
        repeated ones) and the per-request options are copied verbatim.
        """
        return PendingRequest(
            method=self.method,
            target=self.target,
            headers=httpx.Headers(self.headers.multi_items()),
            content=self.content,
            content_type=self.content_type,
            http_version=self.http_version,
            options=dict(self.options),
            base_address=self.base_address,
        )

    def to_httpx(self) -> httpx.Request:
        """Build the :class:`httpx.Request` that the transport dispatches."""
        headers = httpx.Headers(self.headers.multi_items())
        if self.content is not None and self.content_type and "content-type" not in headers:
            headers["Content-Type"] = self.content_type
        return httpx.Request(
            self.method,
            self.url,
            headers=headers,
            content=self.content,
            extensions=dict(self.options),
        )
