"""Per-call builder state applied to a request right before dispatch.

:class:`ClientConfig` accumulates what the builder surface records for the
next call: request mutators, client mutators, query parameters, the URL
path, and the enforce-success policy. The pipeline applies it once per
logical call (never again on a retry clone, where the changes are already
baked into the request) and clears it when the call reaches a terminal
outcome, so a reused client starts the next call cold.

A ``ClientConfig`` is not safe for concurrent use: keep at most one
in-flight call per instance.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Union

import httpx

from httpchain.exceptions import QueryParameterError
from httpchain.request import PendingRequest, append_query
from httpchain.serialization import NamingStrategy

if TYPE_CHECKING:
    from httpchain.pipeline import RequestPipeline

RequestMutator = Callable[[PendingRequest], None]
ClientMutator = Callable[["RequestPipeline", "ClientConfig"], None]
SuccessViolationCallback = Callable[[httpx.Response], Union[None, Awaitable[None]]]


class ClientConfig:
    """Mutable configuration for a single logical call.

    Attributes:
        enforce_success: Raise when the final status is outside [200, 299].
        naming_strategy: Field casing used for request and response bodies.
            Survives :meth:`clear`.
        request_mutators: Callables receiving the :class:`PendingRequest`.
        client_mutators: Callables receiving ``(pipeline, config)``.
        query_parameters: Ordered ``key -> value`` map flattened onto the
            request target.
        url_path: Target used when a request is created without one.
        on_success_violation: Optional callback that replaces the
            enforce-success fault; when it returns normally, the non-2xx
            response is returned to the caller.
    """

    def __init__(self, naming_strategy: NamingStrategy = NamingStrategy.CAMEL) -> None:
        self.naming_strategy = naming_strategy
        self.enforce_success = False
        self.on_success_violation: Optional[SuccessViolationCallback] = None
        self.request_mutators: list[RequestMutator] = []
        self.client_mutators: list[ClientMutator] = []
        self.query_parameters: dict[str, Optional[str]] = {}
        self.url_path = ""

    # ------------------------------------------------------------------ #
    # Query parameters
    # ------------------------------------------------------------------ #

    def add_query(self, key: str, value: Any) -> None:
        """Add a query parameter.

        Raises:
            QueryParameterError: If *key* or *value* is empty, or *key* is
                already present. Remove it first, or use :meth:`set_query`.
        """
        if not key:
            raise QueryParameterError("Query parameter key cannot be empty")
        text = None if value is None else str(value)
        if not text:
            raise QueryParameterError(f"Query parameter '{key}' cannot have an empty value")
        if key in self.query_parameters:
            raise QueryParameterError(
                f"Query parameter '{key}' is already set; remove it before adding it again"
            )
        self.query_parameters[key] = text

    def set_query(self, key: str, value: Any) -> None:
        """Add or replace a query parameter (last write wins)."""
        if not key:
            raise QueryParameterError("Query parameter key cannot be empty")
        self.query_parameters.pop(key, None)
        self.query_parameters[key] = None if value is None else str(value)

    def remove_query(self, key: str) -> bool:
        """Remove *key*; return ``True`` if it was present."""
        if key not in self.query_parameters:
            return False
        del self.query_parameters[key]
        return True

    def has_query(self, key: str) -> bool:
        return key in self.query_parameters

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    @property
    def is_empty(self) -> bool:
        return not (
            self.request_mutators
            or self.client_mutators
            or self.query_parameters
            or self.url_path
            or self.enforce_success
        )

    def apply_to(self, request: PendingRequest, pipeline: RequestPipeline) -> None:
        """Run client mutators, request mutators, then flatten the query map."""
        for client_mutator in list(self.client_mutators):
            client_mutator(pipeline, self)

        if not request.target:
            request.target = self.url_path

        for request_mutator in list(self.request_mutators):
            request_mutator(request)

        if self.query_parameters:
            request.target = append_query(request.target, self.query_parameters)

    def clear(self) -> None:
        """Reset every per-call field to its zero value."""
        self.request_mutators = []
        self.client_mutators = []
        self.query_parameters = {}
        self.url_path = ""
        self.enforce_success = False
        self.on_success_violation = None
