"""
Custody Gateway Exception Classes

Every error that can reach a caller carries a stable ``kind`` and the HTTP
status it maps to. ``public_message`` is what the caller sees; for
persistence and decryption failures it is fixed text so that internal
exception details never leave the process.
"""

from typing import Optional


class CustodyError(Exception):
    """Base exception for credential custody operations"""

    kind = "internal_error"
    status_code = 500
    expose_message = True
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    @property
    def public_message(self) -> str:
        if self.expose_message:
            return str(self)
        return self.default_message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.public_message}


class ConfigurationError(CustodyError):
    """Raised at startup when required process configuration is missing or invalid"""

    kind = "configuration_error"


class ValidationError(CustodyError):
    """Raised when a request is missing required fields"""

    kind = "validation"
    status_code = 422
    default_message = "Invalid request"


class CredentialsNotFound(CustodyError):
    """Raised when no credential bundle (or no required slot) exists for a user"""

    kind = "missing_credentials"
    status_code = 400
    default_message = "No credentials found"

    def __init__(self, user_id: str, slot: Optional[str] = None):
        self.user_id = user_id
        self.slot = slot
        if slot:
            message = f"No '{slot}' credential stored for this user"
        else:
            message = "No credentials found for this user"
        super().__init__(message)


class DecryptionError(CustodyError):
    """Raised when stored ciphertext is malformed or the key does not match"""

    kind = "decryption_failed"
    status_code = 500
    expose_message = False
    default_message = "Stored credentials could not be decrypted"


class ProviderError(CustodyError):
    """Raised when an external provider call fails.

    ``credential_rejected`` separates the user's own credentials being
    refused by the provider from a transient provider outage.
    """

    status_code = 502
    default_message = "Provider request failed"

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        credential_rejected: bool = False,
        upstream_status: Optional[int] = None,
    ):
        self.provider = provider
        self.credential_rejected = credential_rejected
        self.upstream_status = upstream_status
        super().__init__(message)

    @property
    def kind(self) -> str:
        if self.credential_rejected:
            return "provider_credentials_rejected"
        return "provider_unavailable"


class ProviderTimeout(ProviderError):
    """Raised when an external provider call exceeds its time bound"""

    status_code = 504

    def __init__(self, provider: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"{provider} did not respond within {timeout:g}s",
            provider=provider,
        )

    @property
    def kind(self) -> str:
        return "provider_timeout"


class PersistenceError(CustodyError):
    """Raised when the credential store or case ledger is unreachable"""

    kind = "persistence_unavailable"
    status_code = 500
    expose_message = False
    default_message = "Storage is temporarily unavailable"
