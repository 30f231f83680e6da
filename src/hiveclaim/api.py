#!/usr/bin/env python3
"""
hiveclaim API — Hive account creation gated on Bitcoin address ownership.

Endpoints:
  POST /check-btc-machine  — does this address own a Bitcoin Machine?
  POST /create-account     — prove an address with a signed message, get a new Hive account
  GET  /health             — liveness
"""

import asyncio
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from pydantic import BaseModel

from hiveclaim import __version__
from hiveclaim.config import Settings
from hiveclaim.errors import ExternalServiceError, InvalidRequest, OwnershipLookupError
from hiveclaim.keys import CredentialGenerator
from hiveclaim.ledger import HiveClient
from hiveclaim.ownership import HttpOwnershipLookup, OwnershipLookup
from hiveclaim.security import apply_security, limiter, logger, setup_structured_logging
from hiveclaim.signatures import SignatureVerifier
from hiveclaim.storage import UsedAddressLedger, open_ledger
from hiveclaim.workflow import ProvisioningRequest, ProvisioningWorkflow


# ─── Models ────────────────────────────────────────────────────────

class CheckMachineRequest(BaseModel):
    address: Optional[str] = None


class CreateAccountRequest(BaseModel):
    username: Optional[str] = None
    address: Optional[str] = None
    message: Optional[str] = None
    signature: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = __version__


# ─── Services ──────────────────────────────────────────────────────

@dataclass
class Services:
    """Long-lived collaborators, built once at startup."""
    workflow: ProvisioningWorkflow
    ledger: UsedAddressLedger
    hive: Optional[HiveClient] = None
    ownership: Optional[OwnershipLookup] = None


def build_services(settings: Settings) -> Services:
    """Construct ledger, Hive client and workflow. Raises ConfigError/StorageError."""
    settings.validate()
    ledger = open_ledger(settings.used_addresses_store)
    hive = HiveClient(
        settings.hive_nodes,
        chain_id=settings.chain_id,
        address_prefix=settings.address_prefix,
        timeout=settings.rpc_timeout,
    )
    ownership = None
    if settings.ownership_lookup_url:
        ownership = HttpOwnershipLookup(settings.ownership_lookup_url)
    workflow = ProvisioningWorkflow(
        verifier=SignatureVerifier(),
        ledger=ledger,
        credentials=CredentialGenerator(settings.address_prefix),
        accounts=hive,
        creator=settings.account_creator,
        creator_key=settings.creator_key(),
        ownership=ownership,
        enforce_ownership=settings.enforce_ownership,
    )
    logger.info("Services ready", extra={
        "creator": settings.account_creator,
        "nodes": settings.hive_nodes,
        "store": settings.used_addresses_store,
        "enforce_ownership": settings.enforce_ownership,
    })
    return Services(workflow=workflow, ledger=ledger, hive=hive, ownership=ownership)


async def close_services(services: Services) -> None:
    await services.workflow.drain()
    if services.hive is not None:
        await services.hive.aclose()
    if services.ownership is not None:
        await services.ownership.aclose()
    await asyncio.to_thread(services.ledger.close)


def get_services(request: Request) -> Services:
    return request.app.state.services


# ─── Rate limit ────────────────────────────────────────────────────

# Set per request from the serving app's settings; slowapi evaluates
# callable limits without arguments.
_create_account_limit: ContextVar[str] = ContextVar("create_account_limit", default="10/minute")


async def use_app_rate_limit(request: Request) -> None:
    _create_account_limit.set(request.app.state.settings.create_account_rate_limit)


def create_account_limit() -> str:
    return _create_account_limit.get()


# ─── Router ────────────────────────────────────────────────────────

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse()


@router.post("/check-btc-machine")
async def check_btc_machine(body: Optional[CheckMachineRequest] = None,
                            services: Services = Depends(get_services)):
    """Ask the ownership service whether ``address`` owns a Bitcoin Machine."""
    if body is None or not body.address:
        raise InvalidRequest("Address is required")
    if services.ownership is None:
        raise ExternalServiceError("Ownership lookup is not configured")
    try:
        owns = await services.ownership.owns_machine(body.address)
    except OwnershipLookupError as e:
        raise ExternalServiceError(str(e)) from e
    return {"ownsBTCMachine": owns}


@router.post("/create-account", dependencies=[Depends(use_app_rate_limit)])
@limiter.limit(create_account_limit)
async def create_account(request: Request, body: Optional[CreateAccountRequest] = None,
                         services: Services = Depends(get_services)):
    """Create a Hive account for a signed, never-before-used Bitcoin address.

    The response carries the new account's private keys; it is the only
    place they ever exist.
    """
    req = ProvisioningRequest(**body.model_dump()) if body else ProvisioningRequest()
    result = await services.workflow.provision(req)
    return result.to_response()


# ─── App factory ───────────────────────────────────────────────────

def create_app(settings: Optional[Settings] = None, *,
               services: Optional[Services] = None) -> FastAPI:
    """Create the app. Without ``services``, they are built from ``settings`` at startup."""
    settings = settings or Settings.from_env()
    setup_structured_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.services is None
        if owned:
            app.state.services = build_services(settings)
        yield
        if owned:
            await close_services(app.state.services)
            app.state.services = None

    app = FastAPI(
        title="hiveclaim",
        description="Hive account creation gated on Bitcoin address ownership",
        version=__version__,
        lifespan=lifespan,
        docs_url=None if settings.production else "/docs",
        redoc_url=None if settings.production else "/redoc",
    )
    app.state.settings = settings
    app.state.services = services
    apply_security(app, allowed_origins=settings.allowed_origins)
    app.include_router(router)
    return app
