"""Exception hierarchy for httpchain.

All exceptions inherit from :class:`HttpChainError`, which carries the
response that was available when the fault happened (if any), the
underlying cause, and an ``exit_code`` mapped to a constant from
:mod:`httpchain.exit_codes`. The command line catches ``HttpChainError``
and exits with the matching code.

Subclass hierarchy::

    HttpChainError (exit 1)
    +-- InvalidUsageError        (exit 2)
    |   +-- QueryParameterError  (exit 2)
    +-- ConfigError              (exit 1)
    +-- AuthError                (exit 3)
    +-- InHandlerFault           (exit 4)
    +-- StatusEnforcementFault   (exit 5)
    +-- TransportFault           (exit 6)
    +-- DeserializationFault     (exit 7)
    +-- CancellationFault        (exit 130)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from httpchain.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CANCELLED,
    EXIT_CONNECTION_ERROR,
    EXIT_DECODE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_HANDLER_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_STATUS_FAILURE,
)

if TYPE_CHECKING:
    import httpx


class HttpChainError(Exception):
    """Base exception for all httpchain errors.

    Args:
        message: Human-readable error description.
        response: The response available when the error was raised, or
            ``None`` when no response was obtained.
        cause: The underlying exception, if this error wraps one.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(
        self,
        message: str,
        *,
        response: Optional[httpx.Response] = None,
        cause: Optional[BaseException] = None,
        exit_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.response = response
        self.cause = cause
        if exit_code is not None:
            self.exit_code = exit_code

    @property
    def status_code(self) -> Optional[int]:
        """Raw status code of the attached response, if there is one."""
        if self.response is None:
            return None
        return self.response.status_code


class InvalidUsageError(HttpChainError):
    """Raised for invalid arguments passed to the builder or the CLI."""

    exit_code = EXIT_INVALID_USAGE


class QueryParameterError(InvalidUsageError):
    """Raised when a query parameter is empty or added twice without removal."""


class ConfigError(HttpChainError):
    """Raised for configuration problems (missing profiles, invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


class AuthError(HttpChainError):
    """Raised when credentials cannot be resolved or are malformed."""

    exit_code = EXIT_AUTH_FAILURE


class TransportFault(HttpChainError):
    """Raised when dispatch failed before any response was obtained.

    Network errors, timeouts and protocol errors raised by the underlying
    HTTP library are translated into this type at the transport boundary.
    """

    exit_code = EXIT_CONNECTION_ERROR


class InHandlerFault(HttpChainError):
    """Raised when a registered status or exception handler itself failed.

    Attributes:
        chain: Name of the chain the handler belongs to (``"status"`` or
            ``"exception"``).
        handler: Qualified name of the callback that raised.
    """

    exit_code = EXIT_HANDLER_FAILURE

    def __init__(
        self,
        message: str,
        *,
        chain: str,
        handler: str,
        response: Optional[httpx.Response] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, response=response, cause=cause)
        self.chain = chain
        self.handler = handler


class StatusEnforcementFault(HttpChainError):
    """Raised when enforce-success is active and the final status is not 2xx."""

    exit_code = EXIT_STATUS_FAILURE


class DeserializationFault(HttpChainError):
    """Raised when a response body cannot be converted into the target type."""

    exit_code = EXIT_DECODE_ERROR


class CancellationFault(HttpChainError):
    """Raised when the cancellation signal fires during a suspension point.

    Always fatal: never retried and never absorbed by handler chains.
    """

    exit_code = EXIT_CANCELLED
