import httpx
import pytest
from fastapi.testclient import TestClient

from libs.common.config.schema import DashboardSettings
from libs.common.errors import DataUnavailableError
from libs.common.market_types import Candle, Direction
from libs.common.repositories import (
    InMemoryAlertRepository,
    InMemoryHistoryRepository,
    InMemoryNotificationRepository,
    PriceAlertRecord,
)
from services.control_plane.src.app import app
from services.control_plane.src.clients.analysis_client import AnalysisClient
from services.control_plane.src.runtime import DashboardRuntime, set_runtime
from services.control_plane.src.session.symbol_session import SessionManager
from services.control_plane.src.trading.price_monitor import PriceMonitor
from services.signal_engine.src.pipeline.notification_sink import NotificationSink

DAY = 86400
HISTORY = [Candle(DAY * i, 90.0, 99.0, 89.0, 95.0 + i) for i in range(1, 3)]

ANALYSIS = {
    "description": "Breakout retest",
    "entryPrice": "$100",
    "takeProfit": "$110",
    "stopLoss": "$95",
    "sentiment": "Bullish",
}


class FakeBinance:
    def __init__(self):
        self.prices = {"BTCUSDT": 98.0}

    async def get_candles(self, symbol, interval="1d", limit=150, start_time=None, end_time=None):
        if symbol != "BTCUSDT":
            raise DataUnavailableError(symbol, interval, "Binance API Error: Invalid symbol.")
        return list(HISTORY)

    async def get_prices(self, symbols):
        return {s: self.prices[s] for s in symbols if s in self.prices}


class FakeFeed:
    def __init__(self):
        self.subscriptions = []

    def subscribe(self, symbol, interval, on_tick, on_fault=None):
        sub = {"symbol": symbol, "on_tick": on_tick, "on_fault": on_fault}
        self.subscriptions.append(sub)
        return sub

    def unsubscribe(self, subscription):
        pass

    def tick(self, t, close):
        self.subscriptions[-1]["on_tick"](Candle(t, close, close, close, close))


class AnalysisStub:
    def __init__(self):
        self.status = 200
        self.body = ANALYSIS

    def __call__(self, request):
        return httpx.Response(self.status, json=self.body)


@pytest.fixture
def env():
    settings = DashboardSettings(default_symbol="BTCUSDT", default_interval="1d", user_id="tester")
    notifications = InMemoryNotificationRepository()
    alerts = InMemoryAlertRepository()
    binance = FakeBinance()
    feed = FakeFeed()
    stub = AnalysisStub()
    sink = NotificationSink(notifications, settings.user_id)
    sessions = SessionManager(binance, feed, sink, settings, alerts=alerts)
    runtime = DashboardRuntime(
        settings=settings,
        notifications=notifications,
        alerts=alerts,
        history=InMemoryHistoryRepository(),
        binance=binance,
        analysis=AnalysisClient("https://functions.test", transport=httpx.MockTransport(stub)),
        sink=sink,
        sessions=sessions,
        monitor=PriceMonitor(alerts, notifications, binance, owned_ids=sessions.owned_alert_ids),
    )
    set_runtime(runtime)
    with TestClient(app) as client:
        yield client, runtime, feed, stub
    set_runtime(None)


def test_health_and_dashboard_page(env):
    client, _, _, _ = env

    assert client.get("/").json() == {"status": "ok"}
    page = client.get("/dashboard")
    assert page.status_code == 200
    assert "lightweight-charts" in page.text
    assert 'value="BTCUSDT"' in page.text


def test_startup_opens_default_session(env):
    client, _, feed, _ = env

    status = client.get("/session").json()
    assert status["symbol"] == "BTCUSDT"
    assert status["ready"] is True
    assert status["candles"] == 2
    assert len(feed.subscriptions) == 1


def test_analyze_arm_and_trigger_alerts(env):
    client, runtime, feed, _ = env

    analysis = client.post("/analysis", json={"mode": "normal"})
    assert analysis.status_code == 200
    assert analysis.json()["history_saved"] is True
    assert len(client.get("/analysis/history").json()["entries"]) == 1

    armed = client.post("/alerts/arm", json={})
    assert armed.status_code == 200
    body = armed.json()
    assert body["direction_resolved"] is True
    assert body["hypothesis"]["anchor_time"] == 2 * DAY
    assert body["alert_id"] is not None

    feed.tick(2 * DAY, 98.0)
    feed.tick(2 * DAY, 101.0)
    feed.tick(3 * DAY, 111.0)

    overlay = client.get("/session/overlay").json()
    assert overlay["trigger"]["phase"] == "CLOSED"
    assert overlay["trigger"]["fired_events"] == ["entry", "tp"]
    assert overlay["overlay"]["right_edge"] == 3 * DAY
    assert {s["name"] for s in overlay["series"]} >= {"entryLine", "tpBandFill", "slBandErase"}

    notifications = client.get("/notifications").json()
    assert notifications["unread"] == 2
    assert client.post("/notifications/read").json() == {"updated": 2}

    toasts = [t["message"] for t in client.get("/notifications/toasts").json()["toasts"]]
    assert "BTC/USDT has reached the Take Profit level at 110." in toasts


def test_arm_requires_analysis(env):
    client, _, _, _ = env

    response = client.post("/alerts/arm", json={})
    assert response.status_code == 409


def test_arm_with_explicit_levels_and_neutral_sentiment(env):
    client, _, _, _ = env

    response = client.post("/alerts/arm", json={
        "result": {"entryPrice": "100", "takeProfit": "N/A", "stopLoss": "95", "sentiment": "Neutral"},
        "persist": False,
    })

    body = response.json()
    assert response.status_code == 200
    assert body["direction_resolved"] is False
    assert body["hypothesis"]["take_profit"] is None
    assert body["alert_id"] is None


def test_failed_analysis_keeps_previous_state(env):
    client, runtime, _, stub = env
    client.post("/analysis", json={"mode": "normal"})
    client.post("/alerts/arm", json={"persist": False})

    stub.status = 500
    stub.body = {"error": "quota exceeded"}
    response = client.post("/analysis", json={"mode": "ultra"})

    assert response.status_code == 502
    assert "quota exceeded" in response.json()["detail"]
    assert runtime.last_analysis is not None
    assert runtime.sessions.current.hypothesis is not None


def test_successful_reanalysis_disarms(env):
    client, runtime, _, _ = env
    client.post("/analysis", json={"mode": "normal"})
    client.post("/alerts/arm", json={"persist": False})

    client.post("/analysis", json={"mode": "normal"})

    assert runtime.sessions.current.hypothesis is None
    assert client.get("/session/overlay").json()["series"] == []


def test_unknown_symbol_reports_data_unavailable(env):
    client, _, _, _ = env

    opened = client.post("/session/open", json={"symbol": "NOPEUSDT", "interval": "1h"}).json()
    assert opened["data_unavailable"] is True
    assert "Invalid symbol" in opened["error"]

    candles = client.get("/session/candles").json()
    assert candles["candles"] == []
    assert client.post("/analysis", json={"mode": "normal"}).status_code == 409


def test_open_session_rejects_bad_interval(env):
    client, _, _, _ = env

    assert client.post("/session/open", json={"symbol": "BTCUSDT", "interval": "7m"}).status_code == 400


def test_market_endpoints(env):
    client, _, _, _ = env

    assert client.get("/market/last", params={"symbol": "BTCUSDT"}).json() == {"symbol": "BTCUSDT", "price": 98.0}
    assert client.get("/market/last", params={"symbol": "ETHUSDT"}).status_code == 404

    missing = client.get("/market/candles", params={"symbol": "NOPEUSDT"}).json()
    assert missing["data_unavailable"] is True
    assert len(client.get("/market/candles", params={"symbol": "BTCUSDT"}).json()["candles"]) == 2


def test_persisted_alert_is_swept_by_monitor(env):
    client, runtime, _, _ = env
    record = PriceAlertRecord(
        user_id="tester",
        symbol="BTCUSDT",
        entry_price=100.0,
        take_profit=110.0,
        stop_loss=95.0,
        direction=Direction.LONG,
    )
    runtime.alerts.save(record)

    runtime.binance.prices["BTCUSDT"] = 98.0
    assert client.post("/alerts/monitor/run").json()["processed"] == 1
    runtime.binance.prices["BTCUSDT"] = 100.5
    assert client.post("/alerts/monitor/run").json()["notifications"] == 1

    alerts = client.get("/alerts").json()["alerts"]
    assert alerts[0]["id"] == record.id
    assert alerts[0]["is_entered"] is True

    assert client.delete(f"/alerts/{record.id}").json() == {"alert_id": record.id, "is_active": False}
    assert client.delete("/alerts/unknown").status_code == 404
    assert client.get("/alerts/monitor").json()["is_running"] is False


def test_live_session_and_monitor_notify_once(env):
    client, runtime, feed, _ = env
    client.post("/analysis", json={"mode": "normal"})
    alert_id = client.post("/alerts/arm", json={}).json()["alert_id"]

    feed.tick(2 * DAY, 98.0)
    feed.tick(2 * DAY, 101.0)
    runtime.binance.prices["BTCUSDT"] = 98.0
    assert client.post("/alerts/monitor/run").json()["processed"] == 0
    runtime.binance.prices["BTCUSDT"] = 101.0
    assert client.post("/alerts/monitor/run").json()["notifications"] == 0

    assert client.get("/notifications").json()["unread"] == 1
    record = runtime.alerts.get(alert_id)
    assert record.is_active is True
    assert record.is_entered is True
    assert record.last_price == 101.0


def test_closed_live_trade_deactivates_persisted_alert(env):
    client, runtime, feed, _ = env
    client.post("/analysis", json={"mode": "normal"})
    alert_id = client.post("/alerts/arm", json={}).json()["alert_id"]

    feed.tick(2 * DAY, 98.0)
    feed.tick(2 * DAY, 101.0)
    feed.tick(3 * DAY, 94.0)

    record = runtime.alerts.get(alert_id)
    assert record.is_active is False
    assert record.state.closed is True
    assert runtime.sessions.owned_alert_ids() == set()


def test_reanalysis_deactivates_persisted_alert(env):
    client, runtime, _, _ = env
    client.post("/analysis", json={"mode": "normal"})
    alert_id = client.post("/alerts/arm", json={}).json()["alert_id"]

    client.post("/analysis", json={"mode": "normal"})

    assert runtime.alerts.get(alert_id).is_active is False
    assert client.post("/alerts/monitor/run").json()["processed"] == 0


def test_rearm_replaces_persisted_alert(env):
    client, runtime, _, _ = env
    client.post("/analysis", json={"mode": "normal"})
    first = client.post("/alerts/arm", json={}).json()["alert_id"]
    second = client.post("/alerts/arm", json={}).json()["alert_id"]

    assert runtime.alerts.get(first).is_active is False
    assert runtime.alerts.get(second).is_active is True
    assert runtime.sessions.owned_alert_ids() == {second}


def test_disarm_deactivates_persisted_alert(env):
    client, runtime, _, _ = env
    client.post("/analysis", json={"mode": "normal"})
    alert_id = client.post("/alerts/arm", json={}).json()["alert_id"]

    assert client.delete("/alerts/arm").json() == {"disarmed": True}
    assert runtime.alerts.get(alert_id).is_active is False


def test_deleting_owned_alert_disarms_session(env):
    client, runtime, _, _ = env
    client.post("/analysis", json={"mode": "normal"})
    alert_id = client.post("/alerts/arm", json={}).json()["alert_id"]

    assert client.delete(f"/alerts/{alert_id}").json() == {"alert_id": alert_id, "is_active": False}
    assert runtime.sessions.current.hypothesis is None
    assert runtime.alerts.get(alert_id).is_active is False


def test_symbol_switch_deactivates_persisted_alert(env):
    client, runtime, _, _ = env
    client.post("/analysis", json={"mode": "normal"})
    alert_id = client.post("/alerts/arm", json={}).json()["alert_id"]

    client.post("/session/open", json={"symbol": "BTCUSDT", "interval": "4h"})

    assert runtime.alerts.get(alert_id).is_active is False
    assert runtime.sessions.owned_alert_ids() == set()
