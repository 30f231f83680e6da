"""
hiveclaim.keys — Hive key pairs and deterministic account credentials.

Private keys are secp256k1 secrets encoded as WIF; public keys are the
compressed point with a RIPEMD160 checksum, base58-encoded behind the
chain's address prefix (``STM`` on Hive mainnet).

Account credentials use the ledger's "login" derivation: the secret is
``sha256(username + role + password)``. Anyone who knows the inputs can
recompute the keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import base58
from coincurve import PrivateKey as _Secp256k1PrivateKey
from coincurve import PublicKey as _Secp256k1PublicKey

from hiveclaim.hashing import ripemd160, sha256

DEFAULT_ADDRESS_PREFIX = "STM"
WIF_VERSION = 0x80

ROLES = ("owner", "active", "posting", "memo")

# Role used for every credential; the role label itself goes in as the password.
DERIVATION_ROLE = "posting"


# ─── Public keys ───────────────────────────────────────────────────

class PublicKey:
    """Compressed secp256k1 public key with Hive string encoding."""

    def __init__(self, key: bytes, prefix: str = DEFAULT_ADDRESS_PREFIX):
        if len(key) != 33:
            raise ValueError("Public key must be 33 bytes (compressed)")
        self.key = key
        self.prefix = prefix

    @classmethod
    def from_string(cls, value: str, prefix: str = DEFAULT_ADDRESS_PREFIX) -> "PublicKey":
        """Decode ``STM…`` strings. Raises ValueError on bad prefix or checksum."""
        if not value.startswith(prefix):
            raise ValueError(f"Public key must start with {prefix!r}")
        raw = base58.b58decode(value[len(prefix):])
        if len(raw) != 37:
            raise ValueError("Invalid public key length")
        key, checksum = raw[:33], raw[33:]
        if ripemd160(key)[:4] != checksum:
            raise ValueError("Public key checksum mismatch")
        return cls(key, prefix)

    def verify_digest(self, digest: bytes, signature: bytes) -> bool:
        """Check a 65-byte Hive compact signature over a 32-byte digest."""
        if len(signature) != 65:
            return False
        recovery = signature[0] - 31
        if recovery not in range(4):
            return False
        try:
            recovered = _Secp256k1PublicKey.from_signature_and_message(
                signature[1:] + bytes([recovery]), digest, hasher=None
            )
        except ValueError:
            return False
        return recovered.format(compressed=True) == self.key

    def __str__(self) -> str:
        checksum = ripemd160(self.key)[:4]
        return self.prefix + base58.b58encode(self.key + checksum).decode("ascii")

    def __repr__(self) -> str:
        return f"PublicKey({self})"

    def __eq__(self, other) -> bool:
        return isinstance(other, PublicKey) and other.key == self.key

    def __hash__(self) -> int:
        return hash(self.key)


# ─── Private keys ──────────────────────────────────────────────────

class PrivateKey:
    """secp256k1 private key in Hive's WIF encoding."""

    def __init__(self, secret: bytes):
        self._key = _Secp256k1PrivateKey(secret)

    @property
    def secret(self) -> bytes:
        return self._key.secret

    @classmethod
    def from_seed(cls, seed: str) -> "PrivateKey":
        return cls(sha256(seed.encode("utf-8")))

    @classmethod
    def from_login(cls, username: str, password: str, role: str = "active") -> "PrivateKey":
        return cls.from_seed(username + role + password)

    @classmethod
    def from_wif(cls, wif: str) -> "PrivateKey":
        """Decode a WIF string. Raises ValueError on bad checksum or version."""
        payload = base58.b58decode_check(wif)
        if len(payload) != 33 or payload[0] != WIF_VERSION:
            raise ValueError("Invalid WIF private key")
        return cls(payload[1:])

    def public_key(self, prefix: str = DEFAULT_ADDRESS_PREFIX) -> PublicKey:
        return PublicKey(self._key.public_key.format(compressed=True), prefix)

    def sign_digest(self, digest: bytes) -> bytes:
        """Sign a 32-byte digest; returns header || r || s with header 31 + recovery id."""
        rsv = self._key.sign_recoverable(digest, hasher=None)
        return bytes([31 + rsv[64]]) + rsv[:64]

    def wif(self) -> str:
        return base58.b58encode_check(bytes([WIF_VERSION]) + self.secret).decode("ascii")

    def __str__(self) -> str:
        return self.wif()

    def __repr__(self) -> str:
        return "PrivateKey(<redacted>)"

    def __eq__(self, other) -> bool:
        return isinstance(other, PrivateKey) and other.secret == self.secret

    def __hash__(self) -> int:
        return hash(self.secret)


# ─── Credentials ───────────────────────────────────────────────────

@dataclass(frozen=True)
class KeyPair:
    role: str
    private_key: PrivateKey
    public_key: PublicKey


@dataclass(frozen=True)
class AccountCredentials:
    """The four role-scoped key pairs of a freshly provisioned account."""

    username: str
    owner: KeyPair
    active: KeyPair
    posting: KeyPair
    memo: KeyPair

    def pairs(self) -> list[KeyPair]:
        return [self.owner, self.active, self.posting, self.memo]

    def private_keys(self) -> dict[str, str]:
        return {p.role: p.private_key.wif() for p in self.pairs()}

    def public_keys(self) -> dict[str, str]:
        return {p.role: str(p.public_key) for p in self.pairs()}

    def __repr__(self) -> str:
        return f"AccountCredentials(username={self.username!r}, public_keys={self.public_keys()})"


class CredentialGenerator:
    """Derives account credentials from a username. Pure and deterministic."""

    def __init__(self, address_prefix: str = DEFAULT_ADDRESS_PREFIX):
        self.address_prefix = address_prefix

    def derive(self, username: str, role: str) -> KeyPair:
        private_key = PrivateKey.from_login(username, password=role, role=DERIVATION_ROLE)
        return KeyPair(role, private_key, private_key.public_key(self.address_prefix))

    def generate(self, username: str) -> AccountCredentials:
        return AccountCredentials(
            username=username,
            **{role: self.derive(username, role) for role in ROLES},
        )


def generate_credentials(username: str, prefix: Optional[str] = None) -> AccountCredentials:
    return CredentialGenerator(prefix or DEFAULT_ADDRESS_PREFIX).generate(username)


__all__ = [
    "ROLES",
    "PublicKey",
    "PrivateKey",
    "KeyPair",
    "AccountCredentials",
    "CredentialGenerator",
    "generate_credentials",
]
