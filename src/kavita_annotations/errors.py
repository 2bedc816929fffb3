"""Exception types for Kavita Annotations.

The formatting pipeline never raises; everything here belongs to the
collaborators around it (the Kavita HTTP client, the vault storage and
configuration loading).
"""

from typing import Optional


class KavitaAnnotationsError(Exception):
    """Base exception for all Kavita Annotations errors."""


class ConfigError(KavitaAnnotationsError):
    """Raised when configuration is missing or invalid."""


class KavitaError(KavitaAnnotationsError):
    """Base exception for Kavita API errors."""


class KavitaNetworkError(KavitaError):
    """The Kavita server could not be reached or answered with an error status."""

    def __init__(self, url: str, status_code: Optional[int] = None, message: str = ""):
        self.url = url
        self.status_code = status_code
        detail = message or "request failed"
        if status_code is not None:
            detail = f"{detail} (HTTP {status_code})"
        super().__init__(f"{url}: {detail}")


class KavitaAuthError(KavitaError):
    """Authentication with the Kavita server failed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class KavitaParseError(KavitaError):
    """A Kavita response did not have the expected shape."""

    def __init__(self, expected: str, actual: object = None):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Unexpected response, expected {expected}")


class VaultError(KavitaAnnotationsError):
    """Base exception for vault storage errors."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class VaultWriteError(VaultError):
    """Writing to the vault failed."""


class VaultFileNotFoundError(VaultError):
    """A file expected in the vault does not exist."""
