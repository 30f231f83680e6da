"""hiveclaim — Hive account creation gated on Bitcoin address ownership."""

__version__ = "0.1.0"

from hiveclaim.errors import (
    ProvisioningError, InvalidRequest, SignatureInvalid,
    AddressAlreadyUsed, OwnershipRequired, ExternalServiceError,
    StorageError, LedgerError, OwnershipLookupError, ConfigError,
)
from hiveclaim.signatures import SignatureVerifier
from hiveclaim.storage import (
    Reservation, UsedAddressLedger,
    MemoryAddressLedger, JsonFileAddressLedger, SQLiteAddressLedger,
    open_ledger,
)
from hiveclaim.keys import (
    PrivateKey, PublicKey, KeyPair, AccountCredentials,
    CredentialGenerator, generate_credentials,
)
from hiveclaim.ledger import HiveClient
from hiveclaim.ownership import OwnershipLookup, HttpOwnershipLookup
from hiveclaim.workflow import ProvisioningRequest, ProvisioningResult, ProvisioningWorkflow

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
    "SignatureVerifier",
    "Reservation",
    "UsedAddressLedger",
    "MemoryAddressLedger",
    "JsonFileAddressLedger",
    "SQLiteAddressLedger",
    "open_ledger",
    "PrivateKey",
    "PublicKey",
    "KeyPair",
    "AccountCredentials",
    "CredentialGenerator",
    "generate_credentials",
    "HiveClient",
    "OwnershipLookup",
    "HttpOwnershipLookup",
    "ProvisioningRequest",
    "ProvisioningResult",
    "ProvisioningWorkflow",
]
