"""Exception hierarchy for the Hillebrand sync engine.

Batch-level errors (auth, listing failures) propagate and abort a run.
Record-level errors (mapping, persistence) are caught per record by the
reconcilers and reported in the run summary.
"""


class HillebrandError(Exception):
    """Base exception for all Hillebrand sync errors."""
    pass


class AuthConfigurationError(HillebrandError):
    """Required OAuth credentials are not configured."""
    pass


class AuthenticationError(HillebrandError):
    """The authorization server rejected a password grant."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class TokenRefreshError(AuthenticationError):
    """The authorization server rejected a refresh grant."""
    pass


class ExternalApiError(HillebrandError):
    """Non-2xx response from the logistics API."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class ResponseShapeError(ExternalApiError):
    """A list response matched none of the known envelope shapes."""
    pass


class RecordMappingError(HillebrandError):
    """An external record could not be mapped to a local record."""
    pass


class PersistenceError(HillebrandError):
    """A local record could not be written to the store."""
    pass
