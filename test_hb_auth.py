"""
Hillebrand Token Manager Tests

Validates the OAuth2 token lifecycle:
1. Cached tokens are reused without network calls
2. Tokens within 5 minutes of expiry are refreshed
3. Failed refreshes fall back to the password grant
4. Missing credentials fail before any network call
5. Concurrent callers share one authentication
"""

import asyncio
import json
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import aiohttp
import pytest

from connectors.hillebrand.hb_auth import HBAuthConfig, HBAuthProvider, HBToken
from connectors.hillebrand.hb_errors import AuthConfigurationError, AuthenticationError


T0 = datetime(2025, 1, 1, 12, 0, 0)


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def token_body(access_token: str, expires_in: int = 3600, refresh_token: str = None) -> str:
    body = {"access_token": access_token, "token_type": "Bearer", "expires_in": expires_in, "scope": "offline_access"}
    if refresh_token:
        body["refresh_token"] = refresh_token
    return json.dumps(body)


def make_config(**overrides) -> HBAuthConfig:
    values = dict(
        token_url="https://auth.test/oauth2/v1/token",
        client_id="client-id",
        client_secret="client-secret",
        username="ops@example.com",
        password="s3cret",
    )
    values.update(overrides)
    return HBAuthConfig(**values)


@pytest.fixture
def clock():
    return Clock(T0)


def make_provider(clock, responses, **config_overrides) -> HBAuthProvider:
    provider = HBAuthProvider(make_config(**config_overrides), clock=clock)
    provider._post_token = AsyncMock(side_effect=responses)
    return provider


def grant_types(provider):
    return [call.args[0]["grant_type"] for call in provider._post_token.call_args_list]


class TestTokenCache:
    """Cache hits never touch the authorization server."""

    async def test_second_call_reuses_cached_token(self, clock):
        provider = make_provider(clock, [(200, token_body("tok-1"))])

        first = await provider.get_access_token()
        clock.advance(minutes=30)
        second = await provider.get_access_token()

        assert first == second == "tok-1"
        assert provider._post_token.await_count == 1

    async def test_token_inside_expiry_buffer_is_not_used(self, clock):
        provider = make_provider(clock, [
            (200, token_body("tok-1", expires_in=3600, refresh_token="r-1")),
            (200, token_body("tok-2", expires_in=3600, refresh_token="r-2")),
        ])

        await provider.get_access_token()
        # 4 minutes before expiry: inside the 5 minute buffer
        clock.advance(minutes=56)
        token = await provider.get_access_token()

        assert token == "tok-2"
        assert provider._post_token.await_count == 2
        assert grant_types(provider) == ["password", "refresh_token"]

    async def test_token_just_outside_buffer_is_reused(self, clock):
        provider = make_provider(clock, [(200, token_body("tok-1", expires_in=3600))])

        await provider.get_access_token()
        clock.advance(minutes=54)
        assert await provider.get_access_token() == "tok-1"
        assert provider._post_token.await_count == 1

    def test_is_usable_boundary(self):
        token = HBToken(access_token="t", expires_at=T0 + timedelta(minutes=5))
        assert not token.is_usable(T0)
        assert token.is_usable(T0 - timedelta(seconds=1))

    async def test_invalidate_forces_reauthentication(self, clock):
        provider = make_provider(clock, [
            (200, token_body("tok-1")),
            (200, token_body("tok-2")),
        ])

        await provider.get_access_token()
        provider.invalidate()
        assert provider.token is None
        assert await provider.get_access_token() == "tok-2"
        assert grant_types(provider) == ["password", "password"]

    async def test_concurrent_callers_share_one_authentication(self, clock):
        async def slow_post(form, client_id, client_secret):
            await asyncio.sleep(0.01)
            return 200, token_body("tok-shared")

        provider = HBAuthProvider(make_config(), clock=clock)
        provider._post_token = AsyncMock(side_effect=slow_post)

        tokens = await asyncio.gather(*[provider.get_access_token() for _ in range(5)])

        assert set(tokens) == {"tok-shared"}
        assert provider._post_token.await_count == 1


class TestRefreshGrant:
    """Refresh failures are swallowed and escalate to the password grant."""

    async def test_refresh_rejected_falls_back_to_password(self, clock):
        provider = make_provider(clock, [
            (200, token_body("tok-1", refresh_token="r-1")),
            (400, '{"error": "invalid_grant"}'),
            (200, token_body("tok-3", refresh_token="r-3")),
        ])

        await provider.get_access_token()
        clock.advance(hours=2)
        token = await provider.get_access_token()

        assert token == "tok-3"
        assert grant_types(provider) == ["password", "refresh_token", "password"]

    async def test_refresh_network_error_falls_back_to_password(self, clock):
        provider = make_provider(clock, [
            (200, token_body("tok-1", refresh_token="r-1")),
            aiohttp.ClientConnectionError("connection reset"),
            (200, token_body("tok-3")),
        ])

        await provider.get_access_token()
        clock.advance(hours=2)

        assert await provider.get_access_token() == "tok-3"

    @pytest.mark.parametrize("expires_in", [None, "soon"])
    async def test_malformed_refresh_response_falls_back_to_password(self, clock, expires_in):
        provider = make_provider(clock, [
            (200, token_body("tok-1", expires_in=60, refresh_token="r-1")),
            (200, json.dumps({"access_token": "tok-2", "expires_in": expires_in})),
            (200, token_body("tok-3")),
        ])

        await provider.get_access_token()
        token = await provider.get_access_token()

        assert token == "tok-3"
        assert grant_types(provider) == ["password", "refresh_token", "password"]

    async def test_refresh_keeps_old_refresh_token_when_none_returned(self, clock):
        provider = make_provider(clock, [
            (200, token_body("tok-1", refresh_token="r-1")),
            (200, token_body("tok-2")),
        ])

        await provider.get_access_token()
        clock.advance(hours=2)
        await provider.get_access_token()

        assert provider.token.refresh_token == "r-1"

    async def test_refresh_form_carries_refresh_token_and_scope(self, clock):
        provider = make_provider(clock, [
            (200, token_body("tok-1", refresh_token="r-1")),
            (200, token_body("tok-2")),
        ])

        await provider.get_access_token()
        clock.advance(hours=2)
        await provider.get_access_token()

        form = provider._post_token.call_args_list[1].args[0]
        assert form == {"grant_type": "refresh_token", "refresh_token": "r-1", "scope": "offline_access"}


class TestPasswordGrant:

    async def test_credentials_are_trimmed(self, clock):
        provider = make_provider(
            clock,
            [(200, token_body("tok-1"))],
            client_id="  client-id\n",
            client_secret=" client-secret ",
            username=" ops@example.com ",
            password="s3cret\t",
        )

        await provider.get_access_token()

        form, client_id, client_secret = provider._post_token.call_args.args
        assert form == {
            "grant_type": "password",
            "username": "ops@example.com",
            "password": "s3cret",
            "scope": "offline_access",
        }
        assert (client_id, client_secret) == ("client-id", "client-secret")

    async def test_expiry_computed_from_expires_in(self, clock):
        provider = make_provider(clock, [(200, token_body("tok-1", expires_in=1800))])

        await provider.get_access_token()

        assert provider.token.expires_at == T0 + timedelta(seconds=1800)

    async def test_rejected_password_grant_raises(self, clock):
        provider = make_provider(clock, [(401, '{"error": "invalid_client"}')])

        with pytest.raises(AuthenticationError) as exc_info:
            await provider.get_access_token()

        assert exc_info.value.status_code == 401
        assert provider.token is None

    async def test_malformed_token_response_raises(self, clock):
        provider = make_provider(clock, [(200, "<html>oops</html>")])

        with pytest.raises(AuthenticationError):
            await provider.get_access_token()

    async def test_non_numeric_expires_in_raises_authentication_error(self, clock):
        provider = make_provider(clock, [(200, json.dumps({"access_token": "tok-1", "expires_in": None}))])

        with pytest.raises(AuthenticationError):
            await provider.get_access_token()

        assert provider.token is None

    @pytest.mark.parametrize("missing", ["client_id", "client_secret", "username", "password"])
    async def test_missing_credential_fails_without_network(self, clock, missing):
        provider = make_provider(clock, [], **{missing: None})

        with pytest.raises(AuthConfigurationError) as exc_info:
            await provider.get_access_token()

        assert missing in str(exc_info.value)
        provider._post_token.assert_not_awaited()

    async def test_blank_credential_counts_as_missing(self, clock):
        provider = make_provider(clock, [], password="   ")

        with pytest.raises(AuthConfigurationError):
            await provider.get_access_token()

    async def test_authorization_header(self, clock):
        provider = make_provider(clock, [(200, token_body("tok-1"))])
        assert await provider.get_authorization_header() == "Bearer tok-1"


def test_describe_never_exposes_secrets():
    described = make_config(password=" hunter2 ").describe()

    assert "hunter2" not in json.dumps(described)
    assert described["has_password"] is True
    assert described["password_length"] == 9
    assert described["password_trimmed_length"] == 7
