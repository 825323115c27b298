"""JSON endpoints for price writes, price reads and paid K queries.

Amounts are unsigned 256-bit integers and are returned as decimal strings;
request bodies accept them as JSON integers or decimal strings.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from koracle.gateway import OracleGateway
from koracle.logging import query_context
from koracle.models import KInfo, K_BASE
from koracle.seed import seed_rising_prices

router = APIRouter()

_SEED_OPTIONS = ("eth_amount", "token_amount", "numerator", "denominator")


def _gateway(request: Request) -> OracleGateway:
    return request.app.state.gateway


def _parse_int(body: dict, field: str, required: bool = True) -> int | None:
    """Read an integer field given as a JSON int or a decimal string."""
    if field not in body or body[field] is None:
        if required:
            raise ValueError(f"Missing required field: {field}")
        return None
    value = body[field]
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"Field {field} must be an integer or a decimal string")
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Field {field} is not a valid integer: {value!r}") from None


async def _json_body(request: Request) -> dict[str, Any]:
    body = await request.json()
    if not isinstance(body, dict):
        raise ValueError("JSON body must be an object")
    return body


def _k_info_payload(token: str, k_info: KInfo) -> dict:
    return {
        "token": token,
        "k": str(k_info.k),
        "k_base": K_BASE,
        "sigma": str(k_info.sigma),
        "t": k_info.t,
        "updated_at": k_info.updated_at,
    }


@router.post("/tokens/{token}/prices")
async def add_observation(token: str, request: Request) -> JSONResponse:
    """Append a price observation. Body: eth_amount, token_amount, optional timestamp."""
    try:
        body = await _json_body(request)
        eth_amount = _parse_int(body, "eth_amount")
        token_amount = _parse_int(body, "token_amount")
        timestamp = _parse_int(body, "timestamp", required=False)
    except ValueError as e:
        return JSONResponse(content={"error": str(e)}, status_code=400)

    observation = await _gateway(request).add_observation(
        token, eth_amount, token_amount, timestamp
    )
    return JSONResponse(
        content={
            "token": token,
            "sequence_index": observation.sequence_index,
            "eth_amount": str(observation.eth_amount),
            "token_amount": str(observation.token_amount),
            "timestamp": observation.timestamp,
        },
        status_code=201,
    )


@router.post("/tokens/{token}/prices/seed")
async def seed_prices(token: str, request: Request) -> JSONResponse:
    """Append a run of rising prices.

    Body: count, plus optional eth_amount, token_amount, numerator and
    denominator (defaults: 10 ETH, 3255 * 10**6 tokens, growth 101/100).
    """
    gateway = _gateway(request)
    try:
        body = await _json_body(request)
        count = _parse_int(body, "count")
        if count > gateway.max_seed_count:
            raise ValueError(f"count must not exceed {gateway.max_seed_count}")
        options = {}
        for field in _SEED_OPTIONS:
            value = _parse_int(body, field, required=False)
            if value is not None:
                options[field] = value
        observations, next_token_amount = await seed_rising_prices(
            gateway, token, count=count, **options
        )
    except ValueError as e:
        return JSONResponse(content={"error": str(e)}, status_code=400)

    return JSONResponse(
        content={
            "token": token,
            "appended": len(observations),
            "price_length": await gateway.get_price_length(token),
            "observations": [
                {
                    "sequence_index": observation.sequence_index,
                    "eth_amount": str(observation.eth_amount),
                    "token_amount": str(observation.token_amount),
                    "timestamp": observation.timestamp,
                }
                for observation in observations
            ],
            "next_token_amount": str(next_token_amount),
        },
        status_code=201,
    )


@router.get("/tokens/{token}/length")
async def get_price_length(token: str, request: Request) -> JSONResponse:
    length = await _gateway(request).get_price_length(token)
    return JSONResponse(content={"token": token, "price_length": length})


@router.get("/tokens/{token}/price")
async def check_price_now(token: str, request: Request) -> JSONResponse:
    """Latest price pair. Free and read-only."""
    gateway = _gateway(request)
    view = await gateway.check_price_now(token)
    return JSONResponse(content={
        "token": token,
        "eth_amount": str(view.eth_amount),
        "erc20_amount": str(view.erc20_amount),
    })


@router.get("/tokens/{token}/price/display")
async def price_display(token: str, request: Request) -> JSONResponse:
    summary = await _gateway(request).price_display(token)
    return JSONResponse(content={
        **summary,
        "eth_amount": str(summary["eth_amount"]),
        "erc20_amount": str(summary["erc20_amount"]),
        "price": str(summary["price"]),
    })


@router.post("/tokens/{token}/query")
async def query_oracle(token: str, request: Request) -> JSONResponse:
    """Paid K query. Body: account, payment (wei).

    The account is checked by the gateway after the payment, so an
    underpaid request is rejected as such whatever its account field holds.
    """
    try:
        body = await _json_body(request)
        payment = _parse_int(body, "payment")
    except ValueError as e:
        return JSONResponse(content={"error": str(e)}, status_code=400)

    account = body.get("account")
    with query_context(token, account if isinstance(account, str) else None):
        result = await _gateway(request).query_oracle(token, account, payment)

    return JSONResponse(content={
        "token": token,
        "k": str(result.k),
        "sigma": str(result.sigma),
        "t": result.t,
        "eth_amount": str(result.eth_amount),
        "erc20_amount": str(result.erc20_amount),
    })


@router.get("/tokens/{token}/k-info")
async def get_k_info(token: str, request: Request) -> JSONResponse:
    k_info = await _gateway(request).get_k_info(token)
    return JSONResponse(content=_k_info_payload(token, k_info))


@router.get("/status")
async def get_status(request: Request) -> JSONResponse:
    status = await _gateway(request).status()
    for entry in status["tokens"]:
        entry["k"] = str(entry["k"])
    status["minimum_fee"] = str(status["minimum_fee"])
    return JSONResponse(content=status)
