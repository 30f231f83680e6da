"""
hiveclaim.serializer — Hive binary wire format for transaction signing.

Only what account creation needs: integers, strings, public keys,
authorities, the ``create_claimed_account`` operation, and the
transaction envelope. Transactions are signed over
``sha256(chain_id || serialize_transaction(tx))``.
"""

from __future__ import annotations

import struct
from datetime import datetime, timezone

from hiveclaim.keys import DEFAULT_ADDRESS_PREFIX, PublicKey

TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


# ─── Primitives ────────────────────────────────────────────────────

def varint32(n: int) -> bytes:
    """Unsigned LEB128."""
    if n < 0:
        raise ValueError("varint32 must be non-negative")
    out = bytearray()
    while True:
        byte = n & 0x7F
        n >>= 7
        if n:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def uint16(n: int) -> bytes:
    return struct.pack("<H", n)


def uint32(n: int) -> bytes:
    return struct.pack("<I", n)


def string(value: str) -> bytes:
    data = value.encode("utf-8")
    return varint32(len(data)) + data


def public_key(value: str, prefix: str = DEFAULT_ADDRESS_PREFIX) -> bytes:
    return PublicKey.from_string(value, prefix).key


def parse_time(value: str) -> datetime:
    """Parse ledger timestamps (``2024-01-01T00:00:00``, always UTC)."""
    return datetime.strptime(value.rstrip("Z"), TIME_FORMAT).replace(tzinfo=timezone.utc)


def format_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(TIME_FORMAT)


def time_point(value: str) -> bytes:
    return uint32(int(parse_time(value).timestamp()))


# ─── Composite types ───────────────────────────────────────────────

def authority(auth: dict, prefix: str = DEFAULT_ADDRESS_PREFIX) -> bytes:
    out = uint32(auth["weight_threshold"])
    out += varint32(len(auth["account_auths"]))
    for name, weight in auth["account_auths"]:
        out += string(name) + uint16(weight)
    out += varint32(len(auth["key_auths"]))
    for key, weight in auth["key_auths"]:
        out += public_key(key, prefix) + uint16(weight)
    return out


def _create_claimed_account(op: dict, prefix: str) -> bytes:
    if op.get("extensions"):
        raise ValueError("create_claimed_account extensions are not supported")
    return (
        string(op["creator"])
        + string(op["new_account_name"])
        + authority(op["owner"], prefix)
        + authority(op["active"], prefix)
        + authority(op["posting"], prefix)
        + public_key(op["memo_key"], prefix)
        + string(op["json_metadata"])
        + varint32(0)
    )


OPERATIONS = {
    "create_claimed_account": (23, _create_claimed_account),
}


def operation(op: list, prefix: str = DEFAULT_ADDRESS_PREFIX) -> bytes:
    name, payload = op
    try:
        op_id, encode = OPERATIONS[name]
    except KeyError:
        raise ValueError(f"Unsupported operation: {name}") from None
    return varint32(op_id) + encode(payload, prefix)


def serialize_transaction(tx: dict, prefix: str = DEFAULT_ADDRESS_PREFIX) -> bytes:
    """Serialize the unsigned part of a transaction."""
    if tx.get("extensions"):
        raise ValueError("Transaction extensions are not supported")
    out = uint16(tx["ref_block_num"])
    out += uint32(tx["ref_block_prefix"])
    out += time_point(tx["expiration"])
    out += varint32(len(tx["operations"]))
    for op in tx["operations"]:
        out += operation(op, prefix)
    out += varint32(0)
    return out


__all__ = [
    "varint32",
    "uint16",
    "uint32",
    "string",
    "authority",
    "operation",
    "serialize_transaction",
    "parse_time",
    "format_time",
]
