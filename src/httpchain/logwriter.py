"""Per-response log writers.

The pipeline hands every response (and the time it took) to a
:class:`LogWriter`. Writers are best-effort: a failing writer is reported
and ignored, never fatal to the call.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from httpchain.cancellation import CancellationToken
from httpchain.output import get_output

logger = logging.getLogger(__name__)


def describe(response: Optional[httpx.Response]) -> str:
    """One-line summary of *response*; tolerates ``None``."""
    if response is None:
        return "<no response>"
    try:
        request = response.request
    except RuntimeError:
        return f"HTTP {response.status_code}"
    return f"{request.method} {request.url} -> HTTP {response.status_code}"


class LogWriter(ABC):
    @abstractmethod
    async def write(
        self,
        response: Optional[httpx.Response],
        elapsed_ms: float,
        cancellation: CancellationToken,
    ) -> None:
        ...


class NullLogWriter(LogWriter):
    async def write(
        self,
        response: Optional[httpx.Response],
        elapsed_ms: float,
        cancellation: CancellationToken,
    ) -> None:
        return None


class LoggingLogWriter(LogWriter):
    """Write one line per response through :mod:`logging`.

    Args:
        log: Logger to write to. Defaults to this module's logger.
        level: Level for 2xx/3xx responses; 4xx and 5xx use WARNING.
    """

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO) -> None:
        self._log = log or logger
        self._level = level

    async def write(
        self,
        response: Optional[httpx.Response],
        elapsed_ms: float,
        cancellation: CancellationToken,
    ) -> None:
        level = self._level
        if response is not None and response.status_code >= 400:
            level = logging.WARNING
        self._log.log(level, "%s (%.0f ms)", describe(response), elapsed_ms)


class OutputLogWriter(LogWriter):
    """Write response lines to the CLI's stderr via :mod:`httpchain.output`.

    Lines are debug output, shown only when the CLI runs with ``--verbose``.
    """

    async def write(
        self,
        response: Optional[httpx.Response],
        elapsed_ms: float,
        cancellation: CancellationToken,
    ) -> None:
        get_output().debug(f"{describe(response)} ({elapsed_ms:.0f} ms)")
