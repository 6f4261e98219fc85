"""HTTP service: Xaman payload proxy plus ladder preview/build endpoints.

The proxy keeps the Xaman API key and secret on the server. Browsers and the
CLI's ProxyClient only ever see payload uuids and QR links.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, PositiveFloat, PositiveInt

import offer_ladder.constants as C
from offer_ladder.builder import BuildError, build_offers
from offer_ladder.config import cfg, order_bounds
from offer_ladder.distribution import calculate, summarize
from offer_ladder.logging_config import setup_logging
from offer_ladder.models import DistributionRequest, OrderSpec
from offer_ladder.validation import ValidationError, validate_ladder
from offer_ladder.xaman import XamanClient, XamanError

log = logging.getLogger("offer_ladder.app")


class PayloadReq(BaseModel):
    txjson: dict[str, Any]
    options: dict[str, Any] = Field(default_factory=dict)


class LadderReq(BaseModel):
    # Plain floats, not PositiveFloat: the validation layer reports these with
    # its own error kinds
    bottom_market_cap: float
    top_market_cap: float
    order_count: int
    total_tokens: float
    token_supply: float
    use_logarithmic: bool = False
    spread: C.Spread | None = None
    available_balance: float | None = None

    def to_request(self) -> DistributionRequest:
        return DistributionRequest(**self.model_dump())


class TransactionsReq(LadderReq):
    account: str
    currency: str
    issuer: str
    sequence: PositiveInt | None = None
    last_ledger_sequence: PositiveInt | None = None


class OrderIn(BaseModel):
    price: float
    amount: float


class BuildReq(BaseModel):
    orders: list[OrderIn]
    account: str
    currency: str
    issuer: str
    token_supply: PositiveFloat | None = None
    sequence: PositiveInt | None = None
    last_ledger_sequence: PositiveInt | None = None

    def to_orders(self) -> list[OrderSpec]:
        ranked = sorted(self.orders, key=lambda o: o.price)
        supply = self.token_supply or 0.0
        return [
            OrderSpec(index=i, price=o.price, amount=o.amount, market_cap=o.price * supply)
            for i, o in enumerate(ranked, start=1)
        ]


class OrderOut(BaseModel):
    index: int
    price: PositiveFloat
    amount: PositiveFloat
    market_cap: PositiveFloat
    total_xrp: PositiveFloat

    @classmethod
    def from_spec(cls, o: OrderSpec) -> "OrderOut":
        return cls(index=o.index, price=o.price, amount=o.amount, market_cap=o.market_cap, total_xrp=o.total_xrp)


def _xaman(request: Request) -> XamanClient:
    client: XamanClient = request.app.state.xaman
    if not client.has_credentials:
        raise HTTPException(status_code=503, detail="Xaman API credentials are not configured")
    return client


def _ladder(req: LadderReq) -> list[OrderSpec]:
    try:
        return calculate(req.to_request())
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())
    except ValueError as e:
        raise HTTPException(status_code=422, detail={"kind": "InvalidLadder", "message": str(e)})


def _transactions(orders: list[OrderSpec], req: TransactionsReq | BuildReq) -> dict:
    try:
        descriptors = build_offers(
            orders,
            req.account,
            req.currency,
            req.issuer,
            sequence=req.sequence,
            last_ledger_sequence=req.last_ledger_sequence,
            fee_drops=cfg["fees"]["base_fee_drops"],
        )
    except BuildError as e:
        raise HTTPException(status_code=422, detail={"kind": "BuildError", "message": str(e)})
    return {"transactions": [d.to_xrpl() for d in descriptors]}


r_payload = APIRouter(tags=["Xaman"])
r_ladder = APIRouter(prefix="/ladder", tags=["Ladder"])


@r_payload.post("/create-payload")
async def create_payload(req: PayloadReq, request: Request):
    client = _xaman(request)
    log.info("Creating Xaman payload for %s", req.txjson.get("TransactionType"))
    try:
        return await client.create_payload(req.txjson, req.options)
    except XamanError as e:
        log.error("Xaman API error: %s", e.detail)
        raise HTTPException(status_code=e.status_code, detail={"error": "Xaman API error", "details": e.detail})


@r_payload.get("/payload-status/{uuid}")
async def payload_status(uuid: str, request: Request):
    client = _xaman(request)
    try:
        return await client.get_payload(uuid)
    except XamanError as e:
        raise HTTPException(status_code=e.status_code, detail={"error": "Xaman API error", "details": e.detail})


@r_payload.delete("/payload/{uuid}")
async def cancel_payload(uuid: str, request: Request):
    client = _xaman(request)
    try:
        return await client.cancel_payload(uuid)
    except XamanError as e:
        raise HTTPException(status_code=e.status_code, detail={"error": "Xaman API error", "details": e.detail})


@r_ladder.post("/preview")
async def ladder_preview(req: LadderReq):
    orders = _ladder(req)
    summary = summarize(orders, cfg["fees"]["base_fee_drops"])
    return {
        "spread": req.to_request().effective_spread,
        "orders": [OrderOut.from_spec(o) for o in orders],
        "summary": summary,
    }


@r_ladder.post("/transactions")
async def ladder_transactions(req: TransactionsReq):
    orders = _ladder(req)
    return _transactions(orders, req)


@r_ladder.post("/build")
async def ladder_build(req: BuildReq):
    """Build offers for a ladder edited or composed by the client."""
    orders = req.to_orders()
    try:
        validate_ladder(
            orders,
            max_orders=order_bounds()[1],
            minimum_order_size=cfg["ladder"]["minimum_order_size"],
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())
    return _transactions(orders, req)


def create_app(xaman: XamanClient | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        xm = cfg["xaman"]
        app.state.xaman = xaman or XamanClient(
            xm["api_url"], api_key=xm["api_key"], api_secret=xm["api_secret"]
        )
        if not app.state.xaman.has_credentials:
            log.warning("XAMAN_API_KEY / XAMAN_API_SECRET not set; payload routes will answer 503")
        try:
            yield
        finally:
            await app.state.xaman.aclose()

    app = FastAPI(title="offer-ladder", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.get("/health")
    def health(request: Request):
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "has_credentials": request.app.state.xaman.has_credentials,
        }

    app.include_router(r_payload)
    app.include_router(r_ladder)
    return app


setup_logging()
app = create_app()
