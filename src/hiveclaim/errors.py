"""
hiveclaim.errors — Error taxonomy for the provisioning workflow.

Workflow errors carry the HTTP status and the human-readable message the
API returns as ``{"error": message}``. Collaborator errors (storage,
ledger, ownership lookup, config) are raised by the lower layers and
wrapped into ``ExternalServiceError`` at the workflow boundary.
"""


class ProvisioningError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(ProvisioningError):
    status_code = 400
    default_message = "Username, address, message, and signature are required"


class SignatureInvalid(ProvisioningError):
    status_code = 400
    default_message = "Invalid signature"


class AddressAlreadyUsed(ProvisioningError):
    status_code = 400
    default_message = "This BTC address has already been used to create an account"


class OwnershipRequired(ProvisioningError):
    status_code = 400
    default_message = "No Bitcoin Machine"


class ExternalServiceError(ProvisioningError):
    status_code = 500
    default_message = "External service failure"


# ─── Collaborator errors ───────────────────────────────────────────

class StorageError(Exception):
    """Durable address store could not be read or written."""


class LedgerError(Exception):
    """Hive RPC call failed (transport or JSON-RPC error)."""

    def __init__(self, message: str, *, code: int | None = None, data=None):
        super().__init__(message)
        self.code = code
        self.data = data


class OwnershipLookupError(Exception):
    """Ownership lookup service failed or answered garbage."""


class ConfigError(Exception):
    """Required configuration is missing or invalid."""


__all__ = [
    "ProvisioningError",
    "InvalidRequest",
    "SignatureInvalid",
    "AddressAlreadyUsed",
    "OwnershipRequired",
    "ExternalServiceError",
    "StorageError",
    "LedgerError",
    "OwnershipLookupError",
    "ConfigError",
]
