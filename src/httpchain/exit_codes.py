"""Numeric process exit codes used by the ``httpchain`` command line.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~httpchain.exceptions.HttpChainError` subclass.
Shell wrappers can inspect the exit code to tell a refused connection
from a rejected status without parsing stderr.

Example::

    $ httpchain send GET /health --ensure-success
    $ echo $?
    5   # EXIT_STATUS_FAILURE -- the final status was outside 2xx
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""Credentials could not be resolved or applied."""

EXIT_HANDLER_FAILURE = 4
"""A registered status or exception handler raised."""

EXIT_STATUS_FAILURE = 5
"""Enforce-success was set and the final response was not 2xx."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_DECODE_ERROR = 7
"""The response body could not be decoded into the requested type."""

EXIT_CANCELLED = 130
"""The call was cancelled before it completed."""
