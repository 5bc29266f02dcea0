"""Pydantic models for persisted client profiles.

A :class:`Profile` describes one remote API: where it lives, how to
authenticate, how requests are sent and when they are retried. Profiles are
stored as JSON in the user's config directory (see :mod:`httpchain.config`)
and turned into a ready :class:`~httpchain.client.Client` by
:func:`httpchain.factory.build_client`.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from httpchain.retry import DEFAULT_RETRY_BUDGET, RETRYABLE_STATUS_CODES
from httpchain.serialization import NamingStrategy


class AuthConfig(BaseModel):
    """Authentication section of a :class:`Profile`.

    Example::

        AuthConfig(type="api_key", header="X-API-Key", source="env:MY_API_KEY")
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(default="none", description="Auth type: none, bearer, basic, api_key")
    header: Optional[str] = Field(
        default=None, description="Header (or cookie) name for api_key auth"
    )
    location: str = Field(default="header", description="Where api_key goes: header, cookie")
    source: Optional[str] = Field(
        default=None,
        description="Credential source: env:VAR, file:/path, value:LITERAL",
    )


class RequestConfig(BaseModel):
    """Transport settings applied to every call made with a profile."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    follow_redirects: bool = Field(default=True, description="Follow 3xx redirects")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Default headers sent with every request"
    )


class RetryConfig(BaseModel):
    """When and how often a call is resent."""

    budget: int = Field(default=DEFAULT_RETRY_BUDGET, ge=0, description="Max resend attempts")
    status_codes: list[int] = Field(
        default_factory=lambda: sorted(RETRYABLE_STATUS_CODES),
        description="Status codes that trigger a resend",
    )
    backoff_base: float = Field(
        default=0.0, ge=0.0, description="Initial delay between attempts in seconds"
    )
    enabled: bool = Field(default=False, description="Retry is opt-in")


class Profile(BaseModel):
    """Per-API profile stored as ``<name>.json`` under the profiles directory."""

    model_config = ConfigDict(extra="allow")

    name: str
    base_url: Optional[str] = Field(default=None, description="Base address for relative paths")
    naming_strategy: NamingStrategy = Field(
        default=NamingStrategy.CAMEL, description="Field casing for JSON bodies"
    )
    enforce_success: bool = Field(
        default=False, description="Fail calls whose final status is not 2xx"
    )
    auth: AuthConfig = Field(default_factory=AuthConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
