"""Notification center endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from services.control_plane.src.routes.repo_errors import exec_repo
from services.control_plane.src.runtime import DashboardRuntime, get_runtime

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    runtime: DashboardRuntime = Depends(get_runtime),
) -> dict:
    records = exec_repo(
        "list_recent",
        lambda: runtime.notifications.list_recent(runtime.settings.user_id, limit=limit),
    )
    return {
        "notifications": [record.to_dict() for record in records],
        "unread": sum(1 for record in records if not record.is_read),
    }


@router.get("/toasts")
def drain_toasts(runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    return {"toasts": runtime.sink.drain_toasts()}


@router.post("/read")
def mark_read(runtime: DashboardRuntime = Depends(get_runtime)) -> dict:
    updated = exec_repo(
        "mark_all_read",
        lambda: runtime.notifications.mark_all_read(runtime.settings.user_id),
    )
    return {"updated": updated}


__all__ = ["router"]
