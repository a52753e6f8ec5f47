"""Symbol session endpoints: open a symbol/interval, read candles and overlay."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from libs.common.market_types import INTERVAL_SECONDS
from services.control_plane.src.runtime import DashboardRuntime, get_runtime
from services.control_plane.src.session.symbol_session import SymbolSession

router = APIRouter(prefix="/session", tags=["session"])


class OpenSessionRequest(BaseModel):
    symbol: str = Field(..., min_length=1)
    interval: str = "1d"


def _require_session(runtime: DashboardRuntime) -> SymbolSession:
    session = runtime.sessions.current
    if session is None:
        raise HTTPException(status_code=404, detail="No open session. POST /session/open first.")
    return session


@router.post("/open")
async def open_session(
    request: OpenSessionRequest,
    runtime: DashboardRuntime = Depends(get_runtime),
) -> dict:
    if request.interval not in INTERVAL_SECONDS:
        raise HTTPException(status_code=400, detail=f"Unsupported interval: {request.interval}")
    runtime.last_analysis = None
    session = await runtime.sessions.open_session(request.symbol, request.interval)
    return session.status()


@router.get("")
def get_session(runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    session = _require_session(runtime)
    runtime.sessions.check_feed()
    return session.status()


@router.get("/candles")
def get_session_candles(runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    session = _require_session(runtime)
    return {
        "symbol": session.symbol,
        "interval": session.interval,
        "data_unavailable": session.data_unavailable,
        "candles": [c.to_dict() for c in session.store.candles],
    }


@router.get("/overlay")
def get_session_overlay(runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    session = _require_session(runtime)
    return {
        "symbol": session.symbol,
        "interval": session.interval,
        "trigger": session.engine.state.to_dict(),
        "overlay": session.renderer.snapshot(),
        "series": session.surface.snapshot(),
    }


__all__ = ["router"]
