"""FastAPI server — local control surface for a running pile.

Run together with the WebSocket client by setting ``[api] enabled = true``
in the config file, or standalone (no remote peer) with:
    python -m pile_simulator.api.server config.toml

Endpoints:
    GET    /health              — liveness
    GET    /pile                — pile status: active session, waiting queue, simulated now
    POST   /pile/requests       — submit a charge request
    DELETE /pile/requests/{id}  — cancel a waiting request / stop the charging one
    POST   /pile/interrupt      — trigger a simulated hardware fault
    POST   /pile/close          — take the pile out of service
    POST   /pile/open           — put it back in service
    GET    /tariff/price        — unit price + service fee at an instant
    GET    /tariff/quote        — total price of charging for a duration

Every mutation is routed through the driver inbox, so the API never races
the periodic driver.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

from pile_simulator.engine.billing import BillingEngine
from pile_simulator.engine.pile import Pile, PileStatus
from pile_simulator.engine.session import ChargeRequest, SessionSnapshot
from pile_simulator.engine.tariff import TariffTable
from pile_simulator.errors import AdmissionRejected, InvalidTransition, SessionNotFound
from pile_simulator.protocol.transport import PileDriver


# ═══════════════════════════════════════════════════════════════════════════
# Response models
# ═══════════════════════════════════════════════════════════════════════════

class PriceResponse(BaseModel):
    at: datetime
    price: float
    service_fee: float


class QuoteResponse(BaseModel):
    start: datetime
    end: datetime
    power_kw: float
    energy_kwh: float
    total_price: float


# ═══════════════════════════════════════════════════════════════════════════
# App factory
# ═══════════════════════════════════════════════════════════════════════════

def create_app(driver: PileDriver, tariff: TariffTable, manage_driver: bool = True) -> FastAPI:
    """Build the control API around one driver.

    With ``manage_driver`` the app's lifespan runs the driver loop itself
    (standalone / tests); otherwise the caller already runs it on the same loop.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(driver.run()) if manage_driver else None
        yield
        if task is not None:
            driver.stop()
            await task

    app = FastAPI(
        title="EV Charging Pile Simulator",
        version="0.1",
        description="Control surface of one simulated charging pile.",
        lifespan=lifespan,
    )
    pile = driver.pile
    billing = BillingEngine(tariff)

    def _localize(at: datetime | None) -> datetime:
        if at is None:
            return pile.clock.now()
        if at.utcoffset() is None:
            return at.replace(tzinfo=tariff.zone)
        return at

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    @app.get("/pile", response_model=PileStatus)
    async def pile_status():
        return await driver.execute(Pile.status)

    @app.post("/pile/requests", response_model=SessionSnapshot, status_code=201)
    async def submit_request(request: ChargeRequest):
        try:
            return await driver.execute(lambda p: p.submit(request).to_snapshot())
        except AdmissionRejected as exc:
            raise HTTPException(status_code=409, detail={"id": exc.request_id, "reason": exc.reason})

    @app.delete("/pile/requests/{request_id}", response_model=SessionSnapshot)
    async def cancel_request(request_id: int):
        try:
            return await driver.execute(lambda p: p.cancel(request_id).to_snapshot())
        except SessionNotFound as exc:
            raise HTTPException(status_code=404, detail=str(exc))

    @app.post("/pile/interrupt", response_model=SessionSnapshot)
    async def interrupt_session():
        if not pile.allows_interruption:
            raise HTTPException(status_code=409, detail="interruption is disabled on this pile")
        try:
            return await driver.execute(lambda p: p.interrupt().to_snapshot())
        except InvalidTransition as exc:
            raise HTTPException(status_code=404, detail=str(exc))

    @app.post("/pile/close", response_model=list[SessionSnapshot])
    async def close_pile():
        try:
            return await driver.execute(lambda p: [s.to_snapshot() for s in p.close()])
        except InvalidTransition as exc:
            raise HTTPException(status_code=409, detail=str(exc))

    @app.post("/pile/open")
    async def open_pile():
        try:
            await driver.execute(Pile.open)
        except InvalidTransition as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        return {"closed": False}

    @app.get("/tariff/price", response_model=PriceResponse)
    async def tariff_price(at: datetime | None = Query(default=None, description="Instant; default = simulated now")):
        instant = _localize(at)
        return PriceResponse(at=instant, price=tariff.price_at(instant), service_fee=tariff.service_fee)

    @app.get("/tariff/quote", response_model=QuoteResponse)
    async def tariff_quote(
        minutes: float = Query(gt=0, description="Charging duration in simulated minutes"),
        power_kw: float | None = Query(default=None, gt=0, description="Default = pile rated power"),
        start: datetime | None = Query(default=None, description="Default = simulated now"),
    ):
        instant = _localize(start)
        power = power_kw if power_kw is not None else pile.config.rated_power_kw
        duration = timedelta(minutes=minutes)
        return QuoteResponse(
            start=instant,
            end=instant + duration,
            power_kw=power,
            energy_kwh=round(power * minutes / 60, 3),
            total_price=round(billing.quote(instant, duration, power), 2),
        )

    return app


if __name__ == "__main__":
    import sys

    import uvicorn

    from pile_simulator.config.loader import load_config, load_prices
    from pile_simulator.runner import build_driver, configure_logging

    configure_logging()
    config = load_config(sys.argv[1] if len(sys.argv) > 1 else "config.toml")
    driver, tariff = build_driver(config, load_prices(config.price.path))
    uvicorn.run(create_app(driver, tariff), host=config.api.host, port=config.api.port)
