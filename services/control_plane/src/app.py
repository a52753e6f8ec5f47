from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict

from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from libs.common.config.schema import load_env_file

REPO_ROOT = Path(__file__).resolve().parents[3]

# Load environment as early as possible so the runtime sees the values
ENV_NAME = os.getenv("APP_ENV") or os.getenv("ENV") or "dev"
ENV_FILE = REPO_ROOT / ".env" / f".env.{ENV_NAME}"
ENV_LOADED = load_env_file(ENV_FILE)

from services.control_plane.src.routes import alerts, analysis, market, notifications, session
from services.control_plane.src.runtime import get_runtime
from services.control_plane.src.ui.dashboard import render_dashboard

logging.basicConfig(
    level=os.getenv("SIGNAL_DESK_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the default symbol session and start the alert monitor if enabled."""
    runtime = get_runtime()
    settings = runtime.settings
    logging.getLogger().setLevel(settings.log_level)
    logger.info("Environment %s (env file loaded: %s)", ENV_NAME, ENV_LOADED)

    session_state = await runtime.sessions.open_session(settings.default_symbol, settings.default_interval)
    if session_state.error:
        logger.warning("Default session opened without data: %s", session_state.error)

    if settings.monitor.enabled:
        await runtime.monitor.start(settings.monitor.interval_seconds)

    yield

    await runtime.monitor.stop()
    if runtime.sessions.current is not None:
        # Persisted alerts stay active across restarts; the monitor takes them over.
        runtime.sessions.close_session(runtime.sessions.current, release_alert=False)
    if runtime.feed is not None:
        await runtime.feed.close()


app = FastAPI(title="Signal Desk Control Plane", lifespan=lifespan)

app.include_router(market.router)
app.include_router(session.router)
app.include_router(analysis.router)
app.include_router(alerts.router)
app.include_router(notifications.router)


@app.get("/", tags=["health"])
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/dashboard", response_class=HTMLResponse, tags=["ui"])
def dashboard() -> HTMLResponse:
    runtime = get_runtime()
    current = runtime.sessions.current
    symbol = current.symbol if current else runtime.settings.default_symbol
    interval = current.interval if current else runtime.settings.default_interval
    return HTMLResponse(render_dashboard(symbol, interval))


def main() -> None:
    import uvicorn

    uvicorn.run(
        "services.control_plane.src.app:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
