"""Hash primitives shared by the Bitcoin and Hive key code."""

import hashlib

from Crypto.Hash import RIPEMD160


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def ripemd160(data: bytes) -> bytes:
    # hashlib only exposes ripemd160 when OpenSSL's legacy provider is loaded
    return RIPEMD160.new(data).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data)), the Bitcoin public key hash."""
    return ripemd160(sha256(data))
