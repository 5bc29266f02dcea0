"""Build a ready-to-use :class:`~httpchain.client.Client` from a profile."""

from __future__ import annotations

import logging
from typing import Optional

from httpchain.auth import authorizer_from_config
from httpchain.client import Client
from httpchain.logwriter import LogWriter
from httpchain.models import Profile
from httpchain.pipeline import RequestPipeline
from httpchain.retry import NeverRetry, RetryPolicy, StatusCodeRetryPolicy
from httpchain.snapshot import ClientConfig
from httpchain.transport import HttpxTransport, StaticBaseAddress, Transport

logger = logging.getLogger(__name__)


def retry_policy_from_profile(profile: Profile) -> RetryPolicy:
    if not profile.retry.enabled:
        return NeverRetry()
    return StatusCodeRetryPolicy(
        status_codes=profile.retry.status_codes,
        backoff_base=profile.retry.backoff_base,
    )


def build_client(
    profile: Profile,
    transport: Optional[Transport] = None,
    log_writer: Optional[LogWriter] = None,
) -> Client:
    """Wire transport, base address, auth and retry settings from *profile*.

    Args:
        profile: The profile to build from.
        transport: Overrides the :class:`HttpxTransport` created from
            ``profile.request`` (tests pass one backed by
            :class:`httpx.MockTransport`).
        log_writer: Overrides the default logging writer.

    Raises:
        ConfigError: If the profile's credential source cannot be resolved.
        AuthError: If the profile names an unknown auth type.
    """
    if transport is None:
        transport = HttpxTransport(
            timeout=profile.request.timeout,
            verify=profile.request.verify_ssl,
            follow_redirects=profile.request.follow_redirects,
            headers=profile.request.headers,
        )

    pipeline = RequestPipeline(
        transport,
        base_address=StaticBaseAddress(profile.base_url),
        authorizer=authorizer_from_config(profile.auth),
        log_writer=log_writer,
        retry_policy=retry_policy_from_profile(profile),
        retry_budget=profile.retry.budget,
    )
    config = ClientConfig(naming_strategy=profile.naming_strategy)
    logger.debug(
        "Built client for profile '%s' (base_url=%s, auth=%s, retry=%s)",
        profile.name, profile.base_url, profile.auth.type, profile.retry.enabled,
    )
    return Client(pipeline, config, enforce_success=profile.enforce_success)
