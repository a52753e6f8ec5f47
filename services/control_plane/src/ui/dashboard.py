"""Dashboard page: candlestick chart plus the server-computed signal overlay.

The page only replays what the API returns. Candles come from
``/session/candles`` and overlay series from ``/session/overlay``; each series
carries its kind (line/area), options and data, so the browser never decides
what to draw.
"""

from __future__ import annotations

from html import escape

from services.control_plane.src.ui.layout import render_page

INTERVAL_CHOICES = ["15m", "1h", "4h", "1d", "1w"]

DASHBOARD_STYLE = """
  .chart-card { background: #131722; border-radius: 16px; padding: 1.5rem; }
  .chart-header { display: flex; align-items: center; justify-content: space-between; gap: 1rem; margin-bottom: 1rem; }
  .chart-header input, .chart-header select, .chart-header button {
    padding: 0.5rem 1rem; border-radius: 8px; border: 1px solid #334155; background: #1e293b; color: #e2e8f0;
  }
  .status { font-size: 0.9rem; color: #94a3b8; margin-top: 0.75rem; }
  #no-data { display: none; height: 500px; align-items: center; justify-content: center; color: #94a3b8; }
  #toasts { position: fixed; right: 1rem; bottom: 1rem; display: flex; flex-direction: column; gap: 0.5rem; }
  .toast { background: #1e293b; border-left: 4px solid #2962ff; padding: 0.75rem 1rem; border-radius: 8px; }
"""

DASHBOARD_SCRIPT = """
<script src="https://unpkg.com/lightweight-charts@4.1.3/dist/lightweight-charts.standalone.production.js"></script>
<script>
  const container = document.getElementById("tv-chart");
  const noData = document.getElementById("no-data");
  const statusEl = document.getElementById("session-status");
  const chart = LightweightCharts.createChart(container, {
    layout: { background: { type: "solid", color: "#131722" }, textColor: "#d1d4dc" },
    grid: { vertLines: { color: "#1e222d" }, horzLines: { color: "#1e222d" } },
    width: container.clientWidth,
    height: 500,
  });
  const candles = chart.addCandlestickSeries({
    upColor: "#26a69a", downColor: "#ef5350",
    borderUpColor: "#26a69a", borderDownColor: "#ef5350",
    wickUpColor: "#26a69a", wickDownColor: "#ef5350",
  });
  let overlaySeries = new Map();

  function syncOverlay(series) {
    const wanted = new Set(series.map((s) => s.id));
    for (const [id, handle] of overlaySeries) {
      if (!wanted.has(id)) { chart.removeSeries(handle); overlaySeries.delete(id); }
    }
    for (const s of series) {
      let handle = overlaySeries.get(s.id);
      if (!handle) {
        handle = s.kind === "area" ? chart.addAreaSeries(s.options) : chart.addLineSeries(s.options);
        overlaySeries.set(s.id, handle);
      }
      handle.setData(s.data);
    }
  }

  async function refresh() {
    const sessionResp = await fetch("/session");
    if (!sessionResp.ok) return;
    const session = await sessionResp.json();
    statusEl.textContent = `${session.symbol} ${session.interval} | ${session.trigger.phase}` +
      (session.error ? ` | ${session.error}` : "");
    const candleResp = await fetch("/session/candles");
    const candleData = await candleResp.json();
    const empty = candleData.candles.length === 0;
    noData.style.display = empty ? "flex" : "none";
    container.style.display = empty ? "none" : "block";
    candles.setData(candleData.candles);
    const overlayResp = await fetch("/session/overlay");
    syncOverlay((await overlayResp.json()).series);
    const toastResp = await fetch("/notifications/toasts");
    for (const toast of (await toastResp.json()).toasts) {
      const el = document.createElement("div");
      el.className = "toast";
      el.textContent = toast.message;
      document.getElementById("toasts").appendChild(el);
      setTimeout(() => el.remove(), 6000);
    }
  }

  async function post(url, body) {
    const resp = await fetch(url, { method: "POST", headers: { "Content-Type": "application/json" }, body: JSON.stringify(body || {}) });
    const data = await resp.json();
    if (!resp.ok) alert(data.detail || "Request failed");
    return data;
  }

  document.getElementById("open-btn").onclick = async () => {
    overlaySeries.forEach((handle) => chart.removeSeries(handle));
    overlaySeries = new Map();
    await post("/session/open", {
      symbol: document.getElementById("symbol-input").value,
      interval: document.getElementById("interval-select").value,
    });
    chart.timeScale().fitContent();
    refresh();
  };
  document.getElementById("analyze-btn").onclick = async () => {
    const data = await post("/analysis", { mode: document.getElementById("mode-select").value });
    if (data.result) document.getElementById("analysis").textContent = JSON.stringify(data.result, null, 2);
    refresh();
  };
  document.getElementById("arm-btn").onclick = async () => { await post("/alerts/arm", {}); refresh(); };
  window.addEventListener("resize", () => chart.applyOptions({ width: container.clientWidth }));
  setInterval(refresh, 3000);
  document.getElementById("open-btn").click();
</script>
"""


def render_dashboard(symbol: str, interval: str) -> str:
    interval_options = "".join(
        f'<option value="{choice}"{" selected" if choice == interval else ""}>{choice}</option>'
        for choice in INTERVAL_CHOICES
    )
    body_html = f"""
    <div class="chart-card">
      <div class="chart-header">
        <input id="symbol-input" value="{escape(symbol)}" placeholder="e.g., BTCUSDT" />
        <select id="interval-select">{interval_options}</select>
        <button id="open-btn">Load</button>
        <select id="mode-select">
          <option value="normal">Normal (Flash)</option>
          <option value="ultra">Ultra (Pro)</option>
        </select>
        <button id="analyze-btn">Analyze Chart</button>
        <button id="arm-btn">Arm Alerts</button>
      </div>
      <div id="tv-chart" style="width: 100%; height: 500px;"></div>
      <div id="no-data">No chart data available. Please check the symbol and try again.</div>
      <div class="status" id="session-status"></div>
      <pre class="status" id="analysis"></pre>
    </div>
    <div id="toasts"></div>
    {DASHBOARD_SCRIPT}
    """
    return render_page(body_html, title="Signal Desk Dashboard", extra_style=DASHBOARD_STYLE)


__all__ = ["render_dashboard"]
