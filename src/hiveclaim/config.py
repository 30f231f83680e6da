"""
hiveclaim.config — Environment-driven settings.

Variable names for the creator account match existing deployments
(``HIVE_ACCOUNT_CREATOR`` / ``HIVE_ACCOUNT_CREATOR_ACTIVE_KEY``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from hiveclaim.errors import ConfigError
from hiveclaim.keys import DEFAULT_ADDRESS_PREFIX, PrivateKey
from hiveclaim.ledger import DEFAULT_NODES, DEFAULT_TIMEOUT, HIVE_CHAIN_ID
from hiveclaim.storage import DEFAULT_JSON_PATH

_TRUE = {"1", "true", "yes", "on"}


def _split(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


@dataclass
class Settings:
    account_creator: str = ""
    account_creator_active_key: str = field(default="", repr=False)
    hive_nodes: list[str] = field(default_factory=lambda: list(DEFAULT_NODES))
    chain_id: str = HIVE_CHAIN_ID
    address_prefix: str = DEFAULT_ADDRESS_PREFIX
    rpc_timeout: float = DEFAULT_TIMEOUT
    used_addresses_store: str = DEFAULT_JSON_PATH
    ownership_lookup_url: Optional[str] = None
    enforce_ownership: bool = False
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])
    create_account_rate_limit: str = "10/minute"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000
    production: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        try:
            return cls(
                account_creator=env.get("HIVE_ACCOUNT_CREATOR", "").strip(),
                account_creator_active_key=env.get("HIVE_ACCOUNT_CREATOR_ACTIVE_KEY", "").strip(),
                hive_nodes=_split(env.get("HIVE_NODES", "")) or list(DEFAULT_NODES),
                chain_id=env.get("HIVE_CHAIN_ID", HIVE_CHAIN_ID),
                address_prefix=env.get("HIVE_ADDRESS_PREFIX", DEFAULT_ADDRESS_PREFIX),
                rpc_timeout=float(env.get("HIVE_RPC_TIMEOUT", DEFAULT_TIMEOUT)),
                used_addresses_store=env.get("USED_ADDRESSES_STORE", DEFAULT_JSON_PATH),
                ownership_lookup_url=env.get("OWNERSHIP_LOOKUP_URL") or None,
                enforce_ownership=env.get("ENFORCE_OWNERSHIP", "").lower() in _TRUE,
                allowed_origins=_split(env.get("ALLOWED_ORIGINS", "")) or ["*"],
                create_account_rate_limit=env.get("CREATE_ACCOUNT_RATE_LIMIT", "10/minute"),
                log_level=env.get("LOG_LEVEL", "INFO"),
                host=env.get("HOST", "0.0.0.0"),
                port=int(env.get("PORT", "3000")),
                production=bool(env.get("HIVECLAIM_PRODUCTION")),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

    def creator_key(self) -> PrivateKey:
        """Parse the creator's active key; raises ConfigError if absent or invalid."""
        if not self.account_creator:
            raise ConfigError("HIVE_ACCOUNT_CREATOR is not set")
        if not self.account_creator_active_key:
            raise ConfigError("HIVE_ACCOUNT_CREATOR_ACTIVE_KEY is not set")
        try:
            return PrivateKey.from_wif(self.account_creator_active_key)
        except ValueError as e:
            raise ConfigError("HIVE_ACCOUNT_CREATOR_ACTIVE_KEY is not a valid WIF key") from e

    def validate(self) -> None:
        self.creator_key()
        try:
            bytes.fromhex(self.chain_id)
        except ValueError as e:
            raise ConfigError("HIVE_CHAIN_ID must be hex") from e
        if self.enforce_ownership and not self.ownership_lookup_url:
            raise ConfigError("ENFORCE_OWNERSHIP requires OWNERSHIP_LOOKUP_URL")
