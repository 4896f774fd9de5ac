"""Hillebrand logistics API connector.

- hb_auth: OAuth2 password/refresh grants with an in-memory token cache
- hb_client: authenticated HTTP client, envelope decoding, pagination
- hb_models: Hillebrand wire models
- hb_mapping: vocabulary mappers and record mapping
- hb_errors: exception hierarchy
"""

from connectors.hillebrand.hb_auth import (
    HBAuthConfig,
    HBAuthProvider,
    HBToken,
    get_auth_provider,
    reset_auth_provider,
)
from connectors.hillebrand.hb_client import (
    EnvelopeShape,
    HBApiClient,
    HBApiConfig,
    create_client,
    decode_envelope,
)
from connectors.hillebrand.hb_errors import (
    AuthConfigurationError,
    AuthenticationError,
    ExternalApiError,
    HillebrandError,
    PersistenceError,
    RecordMappingError,
    ResponseShapeError,
    TokenRefreshError,
)
from connectors.hillebrand.hb_mapping import (
    map_document_type,
    map_invoice_status,
    map_shipment_status,
    map_transport_mode,
)

__all__ = [
    "HBAuthConfig",
    "HBAuthProvider",
    "HBToken",
    "get_auth_provider",
    "reset_auth_provider",
    "EnvelopeShape",
    "HBApiClient",
    "HBApiConfig",
    "create_client",
    "decode_envelope",
    "AuthConfigurationError",
    "AuthenticationError",
    "ExternalApiError",
    "HillebrandError",
    "PersistenceError",
    "RecordMappingError",
    "ResponseShapeError",
    "TokenRefreshError",
    "map_document_type",
    "map_invoice_status",
    "map_shipment_status",
    "map_transport_mode",
]
