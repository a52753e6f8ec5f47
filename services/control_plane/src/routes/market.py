"""Market data proxy endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from libs.common.errors import DataUnavailableError
from services.control_plane.src.clients.binance_client import SUPPORTED_INTERVALS
from services.control_plane.src.runtime import DashboardRuntime, get_runtime

router = APIRouter(prefix="/market", tags=["market"])


@router.get("/last")
async def get_last_price(
    symbol: str = Query(..., description="Trading symbol, e.g. BTCUSDT"),
    runtime: DashboardRuntime = Depends(get_runtime),
) -> dict:
    try:
        prices = await runtime.binance.get_prices([symbol])
    except DataUnavailableError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    normalized = symbol.replace("/", "").upper()
    if normalized not in prices:
        raise HTTPException(status_code=404, detail="No price data")
    return {"symbol": normalized, "price": prices[normalized]}


@router.get("/candles")
async def get_candles(
    symbol: str = Query(..., description="Trading symbol, e.g. BTCUSDT"),
    interval: str = Query("1d", description="Binance interval, e.g. 1h, 4h, 1d"),
    limit: int = Query(150, ge=1, le=1000),
    start_time: Optional[int] = Query(None, description="Start time in ms"),
    end_time: Optional[int] = Query(None, description="End time in ms"),
    runtime: DashboardRuntime = Depends(get_runtime),
) -> dict:
    if interval not in SUPPORTED_INTERVALS:
        raise HTTPException(status_code=400, detail=f"Unsupported interval: {interval}")

    try:
        candles = await runtime.binance.get_candles(
            symbol=symbol,
            interval=interval,
            limit=limit,
            start_time=start_time,
            end_time=end_time,
        )
    except DataUnavailableError as exc:
        return {
            "symbol": symbol.upper(),
            "interval": interval,
            "candles": [],
            "data_unavailable": True,
            "error": str(exc),
        }

    return {
        "symbol": symbol.upper(),
        "interval": interval,
        "limit": limit,
        "candles": [c.to_dict() for c in candles],
        "data_unavailable": False,
    }


__all__ = ["router"]
