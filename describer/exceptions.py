from typing import Optional


class ConfigurationError(Exception):
    """Missing or malformed API credentials; raised before any network call."""


class TransportError(Exception):
    """Non-2xx HTTP response, timeout or connection failure talking to the provider."""

    def __init__(self, status_code: Optional[int], body: str):
        self.status_code = status_code
        self.body = body
        if status_code is None:
            message = f"API request failed: {body}"
        else:
            message = f"API request failed: {status_code} {body}"
        super().__init__(message)


class EmptyResultSet(Exception):
    """An export was requested but no result is in the completed state."""


class BatchInProgress(Exception):
    """A batch action was requested while another one is still running."""
