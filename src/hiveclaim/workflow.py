"""
hiveclaim.workflow — Signature-gated, one-shot account provisioning.

Order of steps (each short-circuits):
    1. all request fields present
    2. Bitcoin signature valid for the claimed address
    3. address reserved in the used-address ledger (durable before step 6)
    4. ownership lookup (informational unless enforce_ownership)
    5. credentials derived from the username
    6. create_claimed_account broadcast on Hive

Once step 3 has granted the address, steps 4–6 run in a shielded task so
a client disconnect cannot leave the address burned without an account.
A failure after step 3 leaves the address reserved.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from hiveclaim.errors import (
    AddressAlreadyUsed,
    ExternalServiceError,
    InvalidRequest,
    LedgerError,
    OwnershipLookupError,
    OwnershipRequired,
    SignatureInvalid,
    StorageError,
)
from hiveclaim.keys import AccountCredentials, CredentialGenerator, PrivateKey
from hiveclaim.ledger import HiveClient
from hiveclaim.ownership import OwnershipLookup
from hiveclaim.signatures import SignatureVerifier
from hiveclaim.storage import UsedAddressLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisioningRequest:
    username: Optional[str] = None
    address: Optional[str] = None
    message: Optional[str] = None
    signature: Optional[str] = None

    def missing_fields(self) -> list[str]:
        return [name for name in ("username", "address", "message", "signature")
                if getattr(self, name) is None]


@dataclass(frozen=True)
class ProvisioningResult:
    success: bool
    receipt: Any
    credentials: AccountCredentials

    def to_response(self) -> dict:
        return {
            "success": self.success,
            "result": self.receipt,
            "keys": self.credentials.private_keys(),
        }


class ProvisioningWorkflow:
    """Wires verifier, ledger, key derivation and the Hive client together.

    ``accounts`` is anything with HiveClient's ``create_claimed_account``
    coroutine; ``ownership`` may be None when no lookup service is configured.
    """

    def __init__(self, *, verifier: SignatureVerifier, ledger: UsedAddressLedger,
                 credentials: CredentialGenerator, accounts: HiveClient,
                 creator: str, creator_key: PrivateKey,
                 ownership: Optional[OwnershipLookup] = None,
                 enforce_ownership: bool = False):
        if enforce_ownership and ownership is None:
            raise ValueError("enforce_ownership requires an ownership lookup")
        self.verifier = verifier
        self.ledger = ledger
        self.credentials = credentials
        self.accounts = accounts
        self.creator = creator
        self.creator_key = creator_key
        self.ownership = ownership
        self.enforce_ownership = enforce_ownership
        self._pending: set[asyncio.Task] = set()

    async def provision(self, request: ProvisioningRequest) -> ProvisioningResult:
        if request.missing_fields():
            raise InvalidRequest()

        if not self.verifier.verify(request.address, request.message, request.signature):
            logger.info("Invalid signature for %s", request.address)
            raise SignatureInvalid()

        try:
            reservation = await asyncio.to_thread(self.ledger.reserve, request.address)
        except StorageError as e:
            logger.error("Reservation failed for %s: %s", request.address, e)
            raise ExternalServiceError(str(e)) from e
        if not reservation.granted:
            logger.info("Address %s already used", request.address)
            raise AddressAlreadyUsed()
        logger.info("Reserved %s for account %r", request.address, request.username)

        task = asyncio.ensure_future(self._create_account(request))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                logger.warning("Caller went away after reserving %s; finishing account creation",
                               request.address)
                task.add_done_callback(_log_detached_outcome)
            raise

    @property
    def pending(self) -> int:
        """Account creations still running, including ones whose caller left."""
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight account creations; call before closing the Hive client."""
        if self._pending:
            logger.info("Waiting for %d in-flight account creation(s)", len(self._pending))
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def _create_account(self, request: ProvisioningRequest) -> ProvisioningResult:
        await self._check_ownership(request.address)

        credentials = self.credentials.generate(request.username)
        try:
            receipt = await self.accounts.create_claimed_account(
                self.creator, request.username, credentials.public_keys(), self.creator_key,
            )
        except LedgerError as e:
            logger.error("Account creation failed for %r (address %s stays reserved): %s",
                         request.username, request.address, e)
            raise ExternalServiceError(str(e)) from e

        logger.info("Created account %r for %s", request.username, request.address,
                    extra={"receipt": receipt})
        return ProvisioningResult(success=True, receipt=receipt, credentials=credentials)

    async def _check_ownership(self, address: str) -> None:
        if self.ownership is None:
            return
        try:
            owns = await self.ownership.owns_machine(address)
        except OwnershipLookupError as e:
            if self.enforce_ownership:
                raise ExternalServiceError(str(e)) from e
            logger.warning("Ignoring ownership lookup failure for %s: %s", address, e)
            return
        logger.info("Ownership lookup for %s: %s", address, owns)
        if self.enforce_ownership and not owns:
            raise OwnershipRequired()


def _log_detached_outcome(task: asyncio.Task) -> None:
    if task.cancelled():
        logger.error("Detached account creation was cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Detached account creation failed: %s", exc)
    else:
        logger.info("Detached account creation finished")
