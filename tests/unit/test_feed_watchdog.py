from services.signal_engine.src.ingestion.feed_watchdog import FeedWatchdog


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def test_watchdog_alerts_once_per_gap():
    clock = FakeClock()
    alerts = []
    watchdog = FeedWatchdog(max_gap_seconds=30, alert_fn=alerts.append, clock=clock)

    assert watchdog.check() is False
    clock.now = 31
    assert watchdog.check() is True
    assert watchdog.check() is True
    assert alerts == ["feed_gap_detected"]


def test_heartbeat_resets_gap():
    clock = FakeClock()
    alerts = []
    watchdog = FeedWatchdog(max_gap_seconds=30, alert_fn=alerts.append, clock=clock)

    clock.now = 31
    watchdog.check()
    watchdog.heartbeat()
    assert watchdog.is_stale is False

    clock.now = 62
    watchdog.check()
    assert len(alerts) == 2
