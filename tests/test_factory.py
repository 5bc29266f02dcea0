"""Tests for httpchain.factory and the transport/base-address collaborators."""

from __future__ import annotations

import httpx
import pytest

from httpchain.auth import ApiKeyAuthorizer
from httpchain.cancellation import CancellationToken
from httpchain.exceptions import StatusEnforcementFault
from httpchain.factory import build_client, retry_policy_from_profile
from httpchain.logwriter import NullLogWriter
from httpchain.models import AuthConfig, Profile, RetryConfig
from httpchain.retry import NeverRetry, StatusCodeRetryPolicy
from httpchain.serialization import NamingStrategy
from httpchain.transport import CachedBaseAddress, HttpxTransport, StaticBaseAddress


class TestBuildClient:
    @pytest.mark.asyncio
    async def test_wires_profile_settings(self, make_transport) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(503 if len(seen) < 3 else 200, json={"user_id": 1})

        profile = Profile(
            name="svc",
            base_url="https://svc.example.com/v2",
            naming_strategy=NamingStrategy.SNAKE,
            auth=AuthConfig(type="api_key", header="X-Key", source="value:k-123"),
            retry=RetryConfig(enabled=True, budget=5, status_codes=[503]),
        )
        client = build_client(profile, transport=make_transport(handler), log_writer=NullLogWriter())

        assert isinstance(client.pipeline.authorizer, ApiKeyAuthorizer)
        assert client.config.naming_strategy == NamingStrategy.SNAKE

        body = await client.url("/users/1").send_for_value()

        assert body == {"user_id": 1}
        assert len(seen) == 3
        assert all(str(r.url) == "https://svc.example.com/v2/users/1" for r in seen)
        assert all(r.headers["X-Key"] == "k-123" for r in seen)

    @pytest.mark.asyncio
    async def test_enforce_success_from_profile(self, make_transport) -> None:
        profile = Profile(name="strict", base_url="https://x.example.com", enforce_success=True)
        client = build_client(profile, transport=make_transport(lambda r: httpx.Response(404)))

        with pytest.raises(StatusEnforcementFault):
            await client.url("/missing").send()

        # The profile's policy applies to every call, not just the first.
        with pytest.raises(StatusEnforcementFault):
            await client.url("/missing").send()

    def test_default_transport_is_httpx(self) -> None:
        client = build_client(Profile(name="p", base_url="https://x.example.com"))
        assert isinstance(client.pipeline.transport, HttpxTransport)
        assert isinstance(client.pipeline.base_address, StaticBaseAddress)


class TestRetryPolicyFromProfile:
    def test_disabled(self) -> None:
        assert isinstance(retry_policy_from_profile(Profile(name="p")), NeverRetry)

    def test_enabled(self) -> None:
        policy = retry_policy_from_profile(
            Profile(name="p", retry=RetryConfig(enabled=True, status_codes=[500], backoff_base=0.1))
        )
        assert isinstance(policy, StatusCodeRetryPolicy)
        assert policy.status_codes == frozenset({500})
        assert policy.backoff_base == 0.1


class TestBaseAddress:
    @pytest.mark.asyncio
    async def test_cached_loader_runs_once(self) -> None:
        calls: list[int] = []

        async def discover() -> str:
            calls.append(1)
            return "https://discovered.example.com"

        resolver = CachedBaseAddress(discover)
        token = CancellationToken()

        assert await resolver.resolve(token) == "https://discovered.example.com"
        assert await resolver.resolve(token) == "https://discovered.example.com"
        assert calls == [1]

        resolver.invalidate()
        await resolver.resolve(token)
        assert calls == [1, 1]

    @pytest.mark.asyncio
    async def test_failed_lookup_is_not_cached(self) -> None:
        attempts: list[int] = []

        def flaky() -> str:
            attempts.append(1)
            if len(attempts) == 1:
                raise LookupError("registry down")
            return "https://ok.example.com"

        resolver = CachedBaseAddress(flaky)
        with pytest.raises(LookupError):
            await resolver.resolve(CancellationToken())
        assert await resolver.resolve(CancellationToken()) == "https://ok.example.com"


class TestHttpxTransport:
    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self) -> None:
        transport = HttpxTransport(timeout=1.0)
        client = transport.client
        await transport.aclose()
        assert client.is_closed
