"""Runtime configuration for the logistics sync engine.

Reads settings from the environment, loading a `.env` file at the repo root
first if one exists. Credentials are NOT validated here: a missing
credential surfaces as AuthConfigurationError on the first token request,
so the API server and worker can start without them.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]

env_path = REPO_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)


DEFAULT_TOKEN_URL = "https://login.hillebrand.com/oauth2/aus95hq7r8iIqp14M0i7/v1/token"
DEFAULT_API_URL = "https://api.hillebrandgori.com"
DEFAULT_DB_PATH = REPO_ROOT / "logistics.db"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


@dataclass
class HillebrandSettings:
    """Settings for the Hillebrand connector and reconcilers.

    Attributes:
        token_url: OAuth2 token endpoint of the authorization server
        api_url: Base URL of the logistics API (no trailing slash)
        client_id: OAuth2 client ID (sent via HTTP Basic)
        client_secret: OAuth2 client secret (sent via HTTP Basic)
        username: Resource-owner username for the password grant
        password: Resource-owner password for the password grant
        scope: Requested scope; offline_access yields a refresh token
        timeout_seconds: Total timeout applied to each HTTP call
        max_pages: Upper bound on pages fetched by one paginated listing
        link_policy: "per_invoice" or "per_shipment" (see LinkPolicy)
        db_path: SQLite file holding the logistics tables
    """
    token_url: str = DEFAULT_TOKEN_URL
    api_url: str = DEFAULT_API_URL
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    scope: str = "offline_access"
    timeout_seconds: int = 30
    max_pages: int = 100
    link_policy: str = "per_invoice"
    db_path: Path = DEFAULT_DB_PATH
    default_destination_country: str = "UAE"
    default_destination_city: str = "Ras Al Khaimah"
    default_destination_warehouse: str = "RAK Port"

    @classmethod
    def from_env(cls) -> "HillebrandSettings":
        """Build settings from HILLEBRAND_* / LOGISTICS_* environment variables."""
        return cls(
            token_url=os.getenv("HILLEBRAND_TOKEN_URL", DEFAULT_TOKEN_URL),
            api_url=os.getenv("HILLEBRAND_API_URL", DEFAULT_API_URL).rstrip("/"),
            client_id=os.getenv("HILLEBRAND_CLIENT_ID"),
            client_secret=os.getenv("HILLEBRAND_CLIENT_SECRET"),
            username=os.getenv("HILLEBRAND_USERNAME"),
            password=os.getenv("HILLEBRAND_PASSWORD"),
            scope=os.getenv("HILLEBRAND_SCOPE", "offline_access"),
            timeout_seconds=_env_int("HILLEBRAND_TIMEOUT_SECONDS", 30),
            max_pages=_env_int("HILLEBRAND_MAX_PAGES", 100),
            link_policy=os.getenv("HILLEBRAND_LINK_POLICY", "per_invoice"),
            db_path=Path(os.getenv("LOGISTICS_DB_PATH", str(DEFAULT_DB_PATH))),
            default_destination_country=os.getenv("HILLEBRAND_DEFAULT_DESTINATION_COUNTRY", "UAE"),
            default_destination_city=os.getenv("HILLEBRAND_DEFAULT_DESTINATION_CITY", "Ras Al Khaimah"),
            default_destination_warehouse=os.getenv("HILLEBRAND_DEFAULT_DESTINATION_WAREHOUSE", "RAK Port"),
        )
