"""Hillebrand Authentication Provider.

Obtains, caches and refreshes OAuth2 bearer tokens against the Hillebrand
authorization server using the resource-owner password grant.

Token lifecycle:
1. Cached token valid for more than 5 minutes -> returned as-is (no network)
2. Refresh token cached -> refresh grant; failure is logged, never raised
3. Otherwise -> password grant; failure raises AuthenticationError

The cache is a single in-memory cell per provider. It is a non-durable,
rebuildable cache: a process restart always re-authenticates, and every
process/instance holds its own token.
"""

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

import aiohttp

from connectors.hillebrand.hb_errors import (
    AuthConfigurationError,
    AuthenticationError,
    TokenRefreshError,
)
from core.config import HillebrandSettings
from core.observability.logging import get_logger
from core.observability.metrics import record_token_event

logger = get_logger(__name__)

EXPIRY_BUFFER = timedelta(minutes=5)


@dataclass
class HBAuthConfig:
    """Configuration for Hillebrand authentication.

    Attributes:
        token_url: OAuth2 token endpoint
        client_id: Client ID (HTTP Basic user)
        client_secret: Client secret (HTTP Basic password)
        username: Resource-owner username
        password: Resource-owner password
        scope: Requested scope (offline_access for refresh tokens)
        timeout_seconds: Total timeout for a token request
    """
    token_url: str
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    scope: str = "offline_access"
    timeout_seconds: int = 30

    @classmethod
    def from_settings(cls, settings: HillebrandSettings) -> "HBAuthConfig":
        return cls(
            token_url=settings.token_url,
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            username=settings.username,
            password=settings.password,
            scope=settings.scope,
            timeout_seconds=settings.timeout_seconds,
        )

    def require_credentials(self) -> Tuple[str, str, str, str]:
        """Return trimmed (client_id, client_secret, username, password).

        Raises:
            AuthConfigurationError: If any credential is missing or blank
        """
        values = {
            "client_id": (self.client_id or "").strip(),
            "client_secret": (self.client_secret or "").strip(),
            "username": (self.username or "").strip(),
            "password": (self.password or "").strip(),
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise AuthConfigurationError(
                f"Hillebrand credentials not configured: missing {', '.join(missing)}"
            )
        return values["client_id"], values["client_secret"], values["username"], values["password"]

    def describe(self) -> Dict[str, Any]:
        """Credential presence and lengths for diagnostics (never the values)."""
        described: Dict[str, Any] = {"token_url": self.token_url}
        for name in ("client_id", "client_secret", "username", "password"):
            raw = getattr(self, name)
            described[f"has_{name}"] = bool(raw)
            described[f"{name}_length"] = len(raw) if raw else 0
            described[f"{name}_trimmed_length"] = len(raw.strip()) if raw else 0
        return described


@dataclass
class HBToken:
    """OAuth2 access token with absolute expiry."""
    access_token: str
    expires_at: datetime
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"

    def is_usable(self, now: datetime) -> bool:
        """Usable only while more than 5 minutes remain before expiry."""
        return self.expires_at > now + EXPIRY_BUFFER

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.access_token}"


class HBAuthProvider:
    """Credential provider for the Hillebrand API.

    Handles:
    - Password grant with HTTP Basic client authentication
    - Refresh grant with silent fallback to the password grant
    - In-memory token caching with a 5-minute expiry buffer

    Concurrent callers on the slow path are serialized by an asyncio.Lock;
    a caller that waited re-checks the cache and reuses the fresh token.

    Usage:
        config = HBAuthConfig.from_settings(HillebrandSettings.from_env())
        auth = HBAuthProvider(config)
        token = await auth.get_access_token()
    """

    def __init__(self, config: HBAuthConfig, clock: Optional[Callable[[], datetime]] = None):
        """Initialize auth provider.

        Args:
            config: Authentication configuration
            clock: Returns the current UTC time; injectable for tests
        """
        self.config = config
        self._clock = clock or datetime.utcnow
        self._token: Optional[HBToken] = None
        self._lock = asyncio.Lock()

    @property
    def token(self) -> Optional[HBToken]:
        """The currently cached token, if any."""
        return self._token

    def invalidate(self) -> None:
        """Drop the cached token so the next call re-authenticates."""
        self._token = None

    async def get_access_token(self) -> str:
        """Get a valid access token, refreshing or re-authenticating if needed.

        Raises:
            AuthConfigurationError: Credentials missing
            AuthenticationError: Password grant rejected
        """
        cached = self._token
        if cached and cached.is_usable(self._clock()):
            record_token_event("cache_hit")
            return cached.access_token

        async with self._lock:
            # Another caller may have replaced the token while we waited
            cached = self._token
            if cached and cached.is_usable(self._clock()):
                record_token_event("cache_hit")
                return cached.access_token

            credentials = self.config.require_credentials()

            if cached and cached.refresh_token:
                try:
                    self._token = await self._refresh(cached.refresh_token, credentials)
                    record_token_event("refresh")
                    return self._token.access_token
                except (TokenRefreshError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                    record_token_event("refresh_failed")
                    logger.warning(
                        "Failed to refresh Hillebrand token, re-authenticating",
                        extra_fields={"error": str(e)},
                    )

            self._token = await self._authenticate(credentials)
            record_token_event("password_grant")
            return self._token.access_token

    async def get_authorization_header(self) -> str:
        """Get the Authorization header value ("Bearer <token>")."""
        return f"Bearer {await self.get_access_token()}"

    async def _authenticate(self, credentials: Tuple[str, str, str, str]) -> HBToken:
        """Password grant."""
        client_id, client_secret, username, password = credentials
        logger.debug("Hillebrand auth request", extra_fields=self.config.describe())

        form = {
            "grant_type": "password",
            "username": username,
            "password": password,
            "scope": self.config.scope,
        }
        status, body = await self._post_token(form, client_id, client_secret)

        if status < 200 or status >= 300:
            logger.error(
                "Failed to get Hillebrand token",
                extra_fields={"status": status, "error": body[:500], "token_url": self.config.token_url},
            )
            raise AuthenticationError(
                f"Failed to authenticate with Hillebrand: {status}",
                status,
                body,
            )

        token = self._token_from_response(body, fallback_refresh_token=None, error_cls=AuthenticationError)
        logger.info(
            "Hillebrand token obtained",
            extra_fields={"expires_at": token.expires_at.isoformat(), "has_refresh_token": bool(token.refresh_token)},
        )
        return token

    async def _refresh(self, refresh_token: str, credentials: Tuple[str, str, str, str]) -> HBToken:
        """Refresh grant. Keeps the old refresh token if none is returned."""
        client_id, client_secret, _, _ = credentials
        form = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "scope": self.config.scope,
        }
        status, body = await self._post_token(form, client_id, client_secret)

        if status < 200 or status >= 300:
            raise TokenRefreshError(f"Token refresh failed: {status}", status, body)

        return self._token_from_response(body, fallback_refresh_token=refresh_token, error_cls=TokenRefreshError)

    def _token_from_response(self, body: str, fallback_refresh_token: Optional[str], error_cls) -> HBToken:
        try:
            data = json.loads(body)
            access_token = data["access_token"]
            expires_in = int(data.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as e:
            raise error_cls(f"Malformed token response: {e}", 200, body) from e

        return HBToken(
            access_token=access_token,
            expires_at=self._clock() + timedelta(seconds=expires_in),
            refresh_token=data.get("refresh_token") or fallback_refresh_token,
            token_type=data.get("token_type", "Bearer"),
        )

    async def _post_token(self, form: Dict[str, str], client_id: str, client_secret: str) -> Tuple[int, str]:
        """POST a form to the token endpoint with HTTP Basic client auth.

        Returns:
            Tuple of (status code, response text)
        """
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(
                self.config.token_url,
                data=form,
                auth=aiohttp.BasicAuth(client_id, client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            ) as response:
                return response.status, await response.text()


# =============================================================================
# Process-wide provider
# =============================================================================

_default_provider: Optional[HBAuthProvider] = None


def get_auth_provider(settings: Optional[HillebrandSettings] = None) -> HBAuthProvider:
    """Get the process-wide auth provider, creating it on first use."""
    global _default_provider
    if _default_provider is None:
        settings = settings or HillebrandSettings.from_env()
        _default_provider = HBAuthProvider(HBAuthConfig.from_settings(settings))
    return _default_provider


def reset_auth_provider() -> None:
    """Discard the process-wide provider (and its cached token)."""
    global _default_provider
    _default_provider = None
