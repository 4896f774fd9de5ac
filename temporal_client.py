"""Temporal client factory.

Creates connections to Temporal using settings from the environment.
Without TEMPORAL_API_KEY the client connects to a local dev server
(`temporal server start-dev`) without TLS.
"""

import os
from pathlib import Path
from typing import Optional, Union

# Load .env file if it exists
from dotenv import load_dotenv
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

from temporalio.client import Client
from temporalio.service import TLSConfig

DEFAULT_LOCAL_ENDPOINT = "localhost:7233"


def _tls_config(cert_path: Optional[str], key_path: Optional[str]) -> Union[bool, TLSConfig]:
    """TLS for Temporal Cloud: mTLS when a client cert is configured, else system roots."""
    if not cert_path:
        return True
    return TLSConfig(
        client_cert=Path(cert_path).read_bytes(),
        client_private_key=Path(key_path).read_bytes() if key_path else None,
    )


async def get_temporal_client() -> Client:
    """Create and return a Temporal client.

    Reads configuration from environment variables:
    - TEMPORAL_ENDPOINT: host:port (default: localhost:7233)
    - TEMPORAL_NAMESPACE: Namespace (default: "default")
    - TEMPORAL_API_KEY: API key for Temporal Cloud; enables TLS
    - TEMPORAL_CERT_PATH / TEMPORAL_KEY_PATH: Client certificate and key (optional, for mTLS)

    Returns:
        Connected Temporal client

    Raises:
        ValueError: If an API key is set without an endpoint
    """
    endpoint = os.getenv("TEMPORAL_ENDPOINT")
    namespace = os.getenv("TEMPORAL_NAMESPACE", "default")
    api_key = os.getenv("TEMPORAL_API_KEY")

    if not api_key:
        return await Client.connect(endpoint or DEFAULT_LOCAL_ENDPOINT, namespace=namespace)

    if not endpoint:
        raise ValueError(
            "TEMPORAL_ENDPOINT environment variable not set. "
            "Set to your Temporal Cloud endpoint (e.g., 'my-ns.a1b2c.tmprl.cloud:7233')"
        )

    return await Client.connect(
        target_host=endpoint,
        namespace=namespace,
        tls=_tls_config(os.getenv("TEMPORAL_CERT_PATH"), os.getenv("TEMPORAL_KEY_PATH")),
        api_key=api_key,
    )
