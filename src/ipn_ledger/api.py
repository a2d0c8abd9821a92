"""HTTP routes: PayPal IPN listener, public total, diagnostics."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from ipn_ledger.config import LedgerConfig
from ipn_ledger.ipn_client import IPNClient
from ipn_ledger.ledger_store import LedgerStore
from ipn_ledger.tools.notifications import handle_notification
from ipn_ledger.tools.totals import get_total_tool, ledger_status_tool

logger = logging.getLogger(__name__)

router = APIRouter()


class DonationTotalResponse(BaseModel):
    raised: float
    raised_cents: int


def get_store(request: Request) -> LedgerStore:
    return request.app.state.store


def get_ipn_client(request: Request) -> IPNClient:
    return request.app.state.ipn_client


def get_config(request: Request) -> LedgerConfig:
    return request.app.state.config


StoreDep = Annotated[LedgerStore, Depends(get_store)]
IPNClientDep = Annotated[IPNClient, Depends(get_ipn_client)]
ConfigDep = Annotated[LedgerConfig, Depends(get_config)]


@router.post("/paypal/ipn")
async def receive_ipn(
    request: Request,
    store: StoreDep,
    client: IPNClientDep,
    config: ConfigDep,
) -> Response:
    raw_body = await request.body()
    result = await handle_notification(
        client, store, raw_body, accepted_currency=config.accepted_currency,
    )
    logger.debug("IPN handled: %s", result)
    return Response(status_code=200)


@router.get("/donations/total", response_model=DonationTotalResponse)
async def get_donation_total(store: StoreDep):
    return get_total_tool(store)


@router.get("/health")
async def get_health(store: StoreDep, config: ConfigDep) -> dict[str, Any]:
    return ledger_status_tool(config, store)
