"""Price alert endpoints: arm the live engine and manage persisted alerts."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError

from libs.common.analysis_result import AnalysisResult
from libs.common.repositories import PriceAlertRecord
from services.control_plane.src.routes.repo_errors import exec_repo
from services.control_plane.src.runtime import DashboardRuntime, get_runtime

router = APIRouter(prefix="/alerts", tags=["alerts"])


class ArmRequest(BaseModel):
    """Arm from the last analysis result, or from explicit levels in ``result``."""
    result: Optional[Dict[str, Any]] = None
    persist: bool = True


@router.post("/arm")
def arm_alerts(
    request: ArmRequest,
    runtime: DashboardRuntime = Depends(get_runtime),
) -> dict:
    if request.result is not None:
        try:
            result = AnalysisResult.model_validate(request.result)
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
    elif runtime.last_analysis is not None:
        result = runtime.last_analysis
    else:
        raise HTTPException(status_code=409, detail="Run an analysis before arming alerts.")

    try:
        hypothesis = runtime.sessions.arm(result)
    except RuntimeError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    alert_id = None
    if request.persist:
        record = PriceAlertRecord.from_hypothesis(runtime.settings.user_id, hypothesis)
        exec_repo("save", lambda: runtime.alerts.save(record))
        runtime.sessions.track_alert(record)
        alert_id = record.id

    runtime.sink.show(f"Price alerts armed for {hypothesis.symbol}.")
    return {
        "alert_id": alert_id,
        "hypothesis": hypothesis.to_dict(),
        "direction_resolved": hypothesis.direction is not None,
        "trigger": runtime.sessions.current.engine.state.to_dict(),
    }


@router.delete("/arm")
def disarm_alerts(runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    return {"disarmed": runtime.sessions.disarm()}


@router.get("")
def list_alerts(runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    records = exec_repo(
        "list_for_user",
        lambda: runtime.alerts.list_for_user(runtime.settings.user_id),
    )
    return {"alerts": [record.to_dict() for record in records]}


@router.delete("/{alert_id}")
def deactivate_alert(alert_id: str, runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    if alert_id in runtime.sessions.owned_alert_ids():
        runtime.sessions.disarm()
        return {"alert_id": alert_id, "is_active": False}
    if not exec_repo("deactivate", lambda: runtime.alerts.deactivate(alert_id)):
        raise HTTPException(status_code=404, detail=f"Alert not found: {alert_id}")
    return {"alert_id": alert_id, "is_active": False}


@router.post("/monitor/run")
async def run_monitor(runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    return await runtime.monitor.run_once()


@router.get("/monitor")
def monitor_status(runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    return runtime.monitor.status()


__all__ = ["router"]
