"""Unified repository error handling for routers."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from fastapi import HTTPException

logger = logging.getLogger(__name__)

T = TypeVar("T")


def exec_repo(action: str, func: Callable[[], T]) -> T:
    """Execute repository call with unified error handling."""
    try:
        return func()
    except HTTPException:
        raise
    except Exception as exc:
        logger.error("Repository error during %s: %s", action, exc)
        raise HTTPException(
            status_code=502,
            detail=f"Repository error during {action}: {exc}",
        ) from exc


__all__ = ["exec_repo"]
