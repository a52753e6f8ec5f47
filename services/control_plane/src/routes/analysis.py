"""AI analysis endpoints."""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from libs.common.errors import AnalysisServiceError
from libs.common.repositories import AnalysisHistoryEntry
from services.control_plane.src.routes.repo_errors import exec_repo
from services.control_plane.src.runtime import DashboardRuntime, get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])


class AnalyzeRequest(BaseModel):
    mode: Literal["normal", "ultra"] = "normal"


@router.post("")
async def analyze(
    request: AnalyzeRequest,
    runtime: DashboardRuntime = Depends(get_runtime),
) -> dict:
    """Run the analysis service on the current session's candles.

    A successful run replaces the previous result and disarms any armed
    hypothesis; a failed run leaves both untouched.
    """
    session = runtime.sessions.current
    if session is None or not session.ready or not len(session.store):
        raise HTTPException(status_code=409, detail="Chart data is not available for analysis.")

    try:
        result = await runtime.analysis.analyze(session.symbol, session.store.candles, request.mode)
    except AnalysisServiceError as exc:
        logger.error("Analysis failed for %s: %s", session.symbol, exc)
        raise HTTPException(status_code=502, detail=f"An error occurred during analysis: {exc}")

    runtime.last_analysis = result
    runtime.sessions.disarm()

    history_saved = True
    try:
        runtime.history.save(AnalysisHistoryEntry(
            user_id=runtime.settings.user_id,
            symbol=session.symbol,
            mode=request.mode,
            result=result.to_payload(),
        ))
    except Exception as exc:
        history_saved = False
        logger.error("Failed to save analysis history: %s", exc)
        runtime.sink.show("Failed to save analysis history.", level="error")

    return {
        "symbol": session.symbol,
        "mode": request.mode,
        "result": result.to_payload(),
        "history_saved": history_saved,
    }


@router.get("/history")
def recent_history(limit: int = 5, runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    entries = exec_repo(
        "list_recent",
        lambda: runtime.history.list_recent(runtime.settings.user_id, limit=limit),
    )
    return {"entries": [entry.to_dict() for entry in entries]}


__all__ = ["router"]
