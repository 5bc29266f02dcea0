"""httpchain -- a configurable outbound HTTP request pipeline.

A :class:`~httpchain.client.Client` records what the next call should look
like (path, query string, verb, body, success policy) and sends it through
a :class:`~httpchain.pipeline.RequestPipeline`, which applies the recorded
configuration, resolves the base address, authorizes, dispatches through a
:class:`~httpchain.transport.Transport`, runs status and exception handler
chains, and resends while the :class:`~httpchain.retry.RetryPolicy` asks
for it. Every step honours a :class:`~httpchain.cancellation.CancellationToken`.

Typical use::

    from httpchain import load_profile, build_client

    async with build_client(load_profile("github")) as client:
        repos = await client.url("/user/repos").ensure_success().send_for_value(list)

Modules:
    app: Typer application and CLI entry point.
    client: Builder surface and send entry points.
    pipeline: Request orchestration and retry loop.
    handlers: Status and exception handler chains.
    snapshot: Per-call configuration snapshot.
    serialization: JSON encoding with naming strategies.
    models: Pydantic profile models.
    config: XDG-aware profile storage and credential sources.
    exceptions: Exception hierarchy with exit-code mapping.
"""

__version__ = "0.1.0"

from httpchain.cancellation import CancellationToken  # noqa: E402
from httpchain.client import Client  # noqa: E402
from httpchain.config import load_profile  # noqa: E402
from httpchain.exceptions import (  # noqa: E402
    CancellationFault,
    DeserializationFault,
    HttpChainError,
    InHandlerFault,
    StatusEnforcementFault,
    TransportFault,
)
from httpchain.factory import build_client  # noqa: E402
from httpchain.pipeline import RequestPipeline  # noqa: E402
from httpchain.request import PendingRequest  # noqa: E402
from httpchain.serialization import NamingStrategy  # noqa: E402
from httpchain.snapshot import ClientConfig  # noqa: E402

__all__ = [
    "__version__",
    "CancellationFault",
    "CancellationToken",
    "Client",
    "ClientConfig",
    "DeserializationFault",
    "HttpChainError",
    "InHandlerFault",
    "NamingStrategy",
    "PendingRequest",
    "RequestPipeline",
    "StatusEnforcementFault",
    "TransportFault",
    "build_client",
    "load_profile",
]
