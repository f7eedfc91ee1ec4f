"""JSON API endpoints under /api/v1: health, signal generation, batch control, schedule."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from signalbot.api.schemas import APIResponse, SignalRequest, signal_to_dict
from signalbot.exceptions import SignalBotError
from signalbot.models import normalize_symbol, utc_now

log = structlog.get_logger(__name__)

router = APIRouter()


def _respond(status_code: int, **fields) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=APIResponse(**fields).model_dump())


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    settings = request.app.state.settings
    return _respond(
        200,
        success=True,
        message="Trading Signal Bot is running",
        data={
            "status": "healthy",
            "timestamp": utc_now().isoformat(),
            "environment": settings.server.environment,
        },
    )


async def _generate(request: Request, raw_symbol: str) -> JSONResponse:
    settings = request.app.state.settings
    orchestrator = request.app.state.orchestrator
    symbol = normalize_symbol(
        raw_symbol or settings.signal.default_stock_symbol,
        settings.quote.market_suffix,
    )

    try:
        signal = await orchestrator.generate_signal(symbol)
    except SignalBotError as e:
        log.error("api_signal_failed", symbol=symbol, error=str(e))
        return _respond(
            500,
            success=False,
            message="Failed to generate trading signal",
            error=str(e),
        )

    return _respond(
        200,
        success=True,
        message="Trading signal generated successfully",
        data=signal_to_dict(signal),
    )


@router.get("/signal")
async def get_signal(request: Request, symbol: str = "") -> JSONResponse:
    """Generate a signal synchronously; ``symbol`` defaults to the configured default."""
    return await _generate(request, symbol)


@router.post("/signal")
async def post_signal(request: Request) -> JSONResponse:
    """Generate a signal for ``{"stock_symbol": ...}``. An empty body uses the default."""
    body = await request.body()
    try:
        payload = SignalRequest.model_validate(json.loads(body)) if body else SignalRequest()
    except (ValueError, ValidationError) as e:
        return _respond(400, success=False, message="Invalid request body", error=str(e))
    return await _generate(request, payload.stock_symbol)


def _start(request: Request, *, deliver_each: bool, announce: bool, label: str) -> JSONResponse:
    orchestrator = request.app.state.orchestrator
    total = len(orchestrator.configured_symbols())

    if not orchestrator.start_batch(deliver_each=deliver_each, announce=announce):
        return _respond(
            409,
            success=False,
            message="A batch analysis is already running",
            error="batch_already_running",
        )

    log.info("batch_started_via_api", mode=label, total_symbols=total)
    return _respond(
        200,
        success=True,
        message=f"{label} started in background",
        data={"status": "started", "total_symbols": total},
    )


@router.get("/signal-all")
async def signal_all(request: Request) -> JSONResponse:
    """Start a batch that pushes each confident signal, then a summary."""
    return _start(request, deliver_each=True, announce=False, label="Bulk signal analysis")


@router.get("/signal-all-summary")
async def signal_all_summary(request: Request) -> JSONResponse:
    """Start a batch that reports only the announcement and the summary."""
    return _start(request, deliver_each=False, announce=True, label="Bulk summary analysis")


@router.get("/cron-status")
async def cron_status(request: Request) -> JSONResponse:
    scheduler = request.app.state.scheduler
    info = scheduler.get_schedule_info()
    if not info.configured_times:
        return _respond(
            200,
            success=True,
            message="Scheduler is disabled",
            data={"enabled": False, "timezone": info.timezone},
        )
    return _respond(
        200,
        success=True,
        message="Scheduler status retrieved",
        data={"enabled": scheduler.is_running, **info.to_dict()},
    )


@router.get("/stocks")
async def stocks(request: Request) -> JSONResponse:
    symbols = request.app.state.orchestrator.configured_symbols()
    return _respond(
        200,
        success=True,
        message="Configured stock symbols",
        data={"total": len(symbols), "symbols": symbols},
    )
