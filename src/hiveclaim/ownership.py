"""Bitcoin Machine ownership lookup — HTTP collaborator."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from hiveclaim.errors import OwnershipLookupError

logger = logging.getLogger(__name__)


class OwnershipLookup(ABC):
    """Answers whether an address owns a Bitcoin Machine."""

    @abstractmethod
    async def owns_machine(self, address: str) -> bool: ...

    async def aclose(self) -> None:
        pass


class HttpOwnershipLookup(OwnershipLookup):
    """``GET <url>?address=…`` → ``{"ownsBTCMachine": bool}``."""

    def __init__(self, url: str, *, timeout: float = 15.0,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def owns_machine(self, address: str) -> bool:
        try:
            resp = await self._http.get(self.url, params={"address": address})
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Ownership lookup failed for %s: %s", address, e)
            raise OwnershipLookupError(f"Ownership lookup failed: {e}") from e

        owns = body.get("ownsBTCMachine") if isinstance(body, dict) else None
        if not isinstance(owns, bool):
            raise OwnershipLookupError("Ownership lookup returned an unexpected payload")
        return owns

    async def aclose(self) -> None:
        await self._http.aclose()
