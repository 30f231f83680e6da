"""
hiveclaim.ledger — Hive JSON-RPC client for claimed-account creation.

Builds a transaction referencing the current head block, signs it with
the creator's active key and broadcasts it synchronously. Nodes are tried
in order; transport failures fail over to the next node, JSON-RPC errors
are raised immediately.
"""

from __future__ import annotations

import itertools
import logging
from datetime import timedelta
from typing import Iterable, Optional, Sequence

import httpx

from hiveclaim.errors import LedgerError
from hiveclaim.hashing import sha256
from hiveclaim.keys import DEFAULT_ADDRESS_PREFIX, PrivateKey
from hiveclaim.serializer import format_time, parse_time, serialize_transaction

logger = logging.getLogger(__name__)

HIVE_CHAIN_ID = "beeab0de00000000000000000000000000000000000000000000000000000000"
DEFAULT_NODES = ("https://api.hive.blog",)
DEFAULT_TIMEOUT = 30.0
EXPIRE_SECONDS = 60


# ─── Operation builders ────────────────────────────────────────────

def key_authority(public_key: str) -> dict:
    """Single-key authority: threshold 1, one key of weight 1, no account auths."""
    return {
        "weight_threshold": 1,
        "account_auths": [],
        "key_auths": [[public_key, 1]],
    }


def create_claimed_account_operation(creator: str, new_account_name: str,
                                     public_keys: dict[str, str],
                                     json_metadata: str = "") -> list:
    return [
        "create_claimed_account",
        {
            "creator": creator,
            "new_account_name": new_account_name,
            "owner": key_authority(public_keys["owner"]),
            "active": key_authority(public_keys["active"]),
            "posting": key_authority(public_keys["posting"]),
            "memo_key": public_keys["memo"],
            "json_metadata": json_metadata,
            "extensions": [],
        },
    ]


# ─── Client ────────────────────────────────────────────────────────

class HiveClient:
    """Long-lived Hive RPC client. Call :meth:`aclose` on shutdown."""

    def __init__(self, nodes: Sequence[str] = DEFAULT_NODES, *,
                 chain_id: str = HIVE_CHAIN_ID,
                 address_prefix: str = DEFAULT_ADDRESS_PREFIX,
                 timeout: float = DEFAULT_TIMEOUT,
                 expire_seconds: int = EXPIRE_SECONDS,
                 http_client: Optional[httpx.AsyncClient] = None):
        if not nodes:
            raise ValueError("At least one Hive node is required")
        self.nodes = list(nodes)
        self.chain_id = bytes.fromhex(chain_id)
        self.address_prefix = address_prefix
        self.expire_seconds = expire_seconds
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def call(self, api: str, method: str, params: Optional[list] = None):
        payload = {
            "jsonrpc": "2.0",
            "method": f"{api}.{method}",
            "params": params if params is not None else [],
            "id": next(self._ids),
        }
        last_error: Exception | None = None
        for node in self.nodes:
            try:
                resp = await self._http.post(node, json=payload)
                resp.raise_for_status()
                body = resp.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Hive node %s failed on %s: %s", node, payload["method"], e)
                last_error = e
                continue
            if not isinstance(body, dict):
                last_error = ValueError("non-object JSON-RPC response")
                logger.warning("Hive node %s returned garbage on %s", node, payload["method"])
                continue
            if body.get("error"):
                err = body["error"]
                message = err.get("message", "RPC error") if isinstance(err, dict) else str(err)
                raise LedgerError(message,
                                  code=err.get("code") if isinstance(err, dict) else None,
                                  data=err.get("data") if isinstance(err, dict) else None)
            return body.get("result")
        raise LedgerError(f"All Hive nodes failed on {payload['method']}: {last_error}")

    async def get_dynamic_global_properties(self) -> dict:
        return await self.call("condenser_api", "get_dynamic_global_properties")

    async def prepare_transaction(self, operations: list) -> dict:
        """Unsigned transaction referencing the current head block."""
        props = await self.get_dynamic_global_properties()
        try:
            head_block_id = bytes.fromhex(props["head_block_id"])
            expiration = parse_time(props["time"]) + timedelta(seconds=self.expire_seconds)
            ref_block_num = props["head_block_number"] & 0xFFFF
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerError(f"Malformed dynamic global properties: {e}") from e
        return {
            "ref_block_num": ref_block_num,
            "ref_block_prefix": int.from_bytes(head_block_id[4:8], "little"),
            "expiration": format_time(expiration),
            "operations": operations,
            "extensions": [],
        }

    def transaction_digest(self, tx: dict) -> bytes:
        return sha256(self.chain_id + serialize_transaction(tx, self.address_prefix))

    def sign_transaction(self, tx: dict, keys: Iterable[PrivateKey]) -> dict:
        digest = self.transaction_digest(tx)
        signed = dict(tx)
        signed["signatures"] = [key.sign_digest(digest).hex() for key in keys]
        return signed

    async def broadcast(self, signed_tx: dict) -> dict:
        return await self.call("condenser_api", "broadcast_transaction_synchronous", [signed_tx])

    async def send_operations(self, operations: list, key: PrivateKey) -> dict:
        tx = await self.prepare_transaction(operations)
        return await self.broadcast(self.sign_transaction(tx, [key]))

    async def create_claimed_account(self, creator: str, new_account_name: str,
                                     public_keys: dict[str, str], key: PrivateKey,
                                     json_metadata: str = "") -> dict:
        """Spend one of ``creator``'s claimed-account tokens on ``new_account_name``."""
        op = create_claimed_account_operation(creator, new_account_name, public_keys, json_metadata)
        return await self.send_operations([op], key)


__all__ = [
    "HIVE_CHAIN_ID",
    "DEFAULT_NODES",
    "HiveClient",
    "key_authority",
    "create_claimed_account_operation",
]
