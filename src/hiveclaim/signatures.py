"""
hiveclaim.signatures — Bitcoin signed-message verification.

Wallets answer a "sign this message" prompt with a base64 compact
recoverable signature: one header byte followed by r || s. The header
encodes the recovery id, whether the key is compressed, and (for segwit
wallets) the address type. Verification recovers the public key and
checks that the claimed address commits to it.

Supported addresses: P2PKH (1…), P2SH-P2WPKH (3…), P2WPKH (bc1q…) and
their testnet forms.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Optional, Union

import base58
import bech32
from coincurve import PrivateKey, PublicKey

from hiveclaim.hashing import double_sha256, hash160

logger = logging.getLogger(__name__)

MESSAGE_MAGIC = b"\x18Bitcoin Signed Message:\n"

P2PKH = "p2pkh"
P2SH = "p2sh"
P2SH_P2WPKH = "p2sh-p2wpkh"
P2WPKH = "p2wpkh"
ADDRESS_TYPES = (P2PKH, P2SH_P2WPKH, P2WPKH)


# ─── Networks ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class Network:
    name: str
    pubkey_hash: int
    script_hash: int
    bech32_hrp: str
    wif: int


MAINNET = Network("mainnet", 0x00, 0x05, "bc", 0x80)
TESTNET = Network("testnet", 0x6F, 0xC4, "tb", 0xEF)
NETWORKS = (MAINNET, TESTNET)


# ─── Message digest ────────────────────────────────────────────────

def _varint(n: int) -> bytes:
    if n < 0xFD:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + n.to_bytes(2, "little")
    if n <= 0xFFFFFFFF:
        return b"\xfe" + n.to_bytes(4, "little")
    return b"\xff" + n.to_bytes(8, "little")


def message_digest(message: str) -> bytes:
    """Double-SHA256 of the magic-prefixed, length-prefixed UTF-8 message."""
    data = message.encode("utf-8")
    return double_sha256(MESSAGE_MAGIC + _varint(len(data)) + data)


# ─── Addresses ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class DecodedAddress:
    kind: str           # p2pkh | p2sh | p2wpkh
    digest: bytes       # 20-byte hash the address commits to
    network: Network


def decode_address(address: str) -> Optional[DecodedAddress]:
    """Decode a Bitcoin address, or return None if it is not one we accept."""
    lowered = address.lower()
    for net in NETWORKS:
        if lowered.startswith(net.bech32_hrp + "1"):
            witver, witprog = bech32.decode(net.bech32_hrp, address)
            if witver != 0 or witprog is None or len(witprog) != 20:
                return None
            return DecodedAddress(P2WPKH, bytes(witprog), net)

    try:
        payload = base58.b58decode_check(address)
    except ValueError:
        return None
    if len(payload) != 21:
        return None
    version, digest = payload[0], payload[1:]
    for net in NETWORKS:
        if version == net.pubkey_hash:
            return DecodedAddress(P2PKH, digest, net)
        if version == net.script_hash:
            return DecodedAddress(P2SH, digest, net)
    return None


def _p2wpkh_script_hash(pubkey: bytes) -> bytes:
    # redeem script: OP_0 PUSH20 <hash160(pubkey)>
    return hash160(b"\x00\x14" + hash160(pubkey))


def address_for(public_key: Union[PublicKey, bytes], kind: str = P2PKH,
                network: Network = MAINNET, compressed: bool = True) -> str:
    """Derive the address of ``kind`` for a public key."""
    if isinstance(public_key, PublicKey):
        pub = public_key.format(compressed=compressed)
    else:
        pub = public_key
    if kind == P2PKH:
        return base58.b58encode_check(bytes([network.pubkey_hash]) + hash160(pub)).decode("ascii")
    if len(pub) != 33:
        raise ValueError("segwit addresses require a compressed public key")
    if kind == P2SH_P2WPKH:
        return base58.b58encode_check(
            bytes([network.script_hash]) + _p2wpkh_script_hash(pub)
        ).decode("ascii")
    if kind == P2WPKH:
        return bech32.encode(network.bech32_hrp, 0, hash160(pub))
    raise ValueError(f"Unknown address type: {kind}")


# ─── Compact signatures ────────────────────────────────────────────

@dataclass(frozen=True)
class CompactSignature:
    recovery: int
    compressed: bool
    segwit_type: Optional[str]
    rs: bytes

    @classmethod
    def decode(cls, signature: str) -> "CompactSignature":
        """Parse a base64 compact signature. Raises ValueError when malformed."""
        raw = base64.b64decode(signature, validate=True)
        if len(raw) != 65:
            raise ValueError("Signature must decode to 65 bytes")
        flag = raw[0] - 27
        if flag < 0 or flag > 15:
            raise ValueError("Invalid signature header byte")
        segwit_type = None
        if flag & 8:
            segwit_type = P2WPKH if flag & 4 else P2SH_P2WPKH
        return cls(
            recovery=flag & 3,
            compressed=bool(flag & 12),
            segwit_type=segwit_type,
            rs=raw[1:],
        )

    def recover(self, digest: bytes) -> bytes:
        """Recover the serialized public key that produced this signature."""
        key = PublicKey.from_signature_and_message(
            self.rs + bytes([self.recovery]), digest, hasher=None
        )
        return key.format(compressed=self.compressed)


def _commits_to(decoded: DecodedAddress, sig: CompactSignature, pubkey: bytes) -> bool:
    if sig.segwit_type == P2WPKH and decoded.kind != P2WPKH:
        return False
    if sig.segwit_type == P2SH_P2WPKH and decoded.kind != P2SH:
        return False
    if decoded.kind == P2PKH:
        return hash160(pubkey) == decoded.digest
    if not sig.compressed:
        return False
    if decoded.kind == P2SH:
        return _p2wpkh_script_hash(pubkey) == decoded.digest
    return hash160(pubkey) == decoded.digest


def verify(address: str, message: str, signature: str) -> bool:
    """True iff ``signature`` over ``message`` was made by ``address``'s key.

    Malformed input of any kind is a failed verification, never an exception.
    """
    if not all(isinstance(v, str) for v in (address, message, signature)):
        return False
    decoded = decode_address(address)
    if decoded is None:
        return False
    try:
        sig = CompactSignature.decode(signature)
        pubkey = sig.recover(message_digest(message))
    except ValueError as e:
        logger.debug("Signature rejected for %s: %s", address, e)
        return False
    return _commits_to(decoded, sig, pubkey)


def sign(private_key: PrivateKey, message: str, *, compressed: bool = True,
         segwit_type: Optional[str] = None) -> str:
    """Produce a base64 compact signature over ``message``."""
    if segwit_type == P2PKH:
        segwit_type = None
    if segwit_type is not None and not compressed:
        raise ValueError("Segwit signatures require a compressed key")
    rsv = private_key.sign_recoverable(message_digest(message), hasher=None)
    recovery = rsv[64]
    if segwit_type == P2SH_P2WPKH:
        header = 27 + recovery + 8
    elif segwit_type == P2WPKH:
        header = 27 + recovery + 12
    elif segwit_type is None:
        header = 27 + recovery + (4 if compressed else 0)
    else:
        raise ValueError(f"Unknown segwit type: {segwit_type}")
    return base64.b64encode(bytes([header]) + rsv[:64]).decode("ascii")


# ─── WIF ───────────────────────────────────────────────────────────

def private_key_from_wif(wif: str) -> tuple[PrivateKey, bool, Network]:
    """Decode a Bitcoin WIF key into (key, compressed, network)."""
    payload = base58.b58decode_check(wif)
    version, body = payload[0], payload[1:]
    network = next((n for n in NETWORKS if n.wif == version), None)
    if network is None:
        raise ValueError(f"Unknown WIF version byte 0x{version:02x}")
    if len(body) == 33 and body[-1] == 0x01:
        return PrivateKey(body[:32]), True, network
    if len(body) == 32:
        return PrivateKey(body), False, network
    raise ValueError("Invalid WIF payload length")


def private_key_to_wif(private_key: PrivateKey, compressed: bool = True,
                       network: Network = MAINNET) -> str:
    payload = bytes([network.wif]) + private_key.secret
    if compressed:
        payload += b"\x01"
    return base58.b58encode_check(payload).decode("ascii")


class SignatureVerifier:
    """Injectable wrapper around :func:`verify`."""

    def verify(self, address: str, message: str, signature: str) -> bool:
        return verify(address, message, signature)


__all__ = [
    "MAINNET",
    "TESTNET",
    "P2PKH",
    "P2SH_P2WPKH",
    "P2WPKH",
    "ADDRESS_TYPES",
    "CompactSignature",
    "SignatureVerifier",
    "address_for",
    "decode_address",
    "message_digest",
    "private_key_from_wif",
    "private_key_to_wif",
    "sign",
    "verify",
]
