"""Page shell shared by the Signal Desk HTML views."""

from __future__ import annotations

from html import escape

NAV_LINKS = [
    ("/dashboard", "📊 Chart"),
    ("/notifications", "🔔 Notifications"),
    ("/analysis/history", "🕘 History"),
    ("/docs", "📘 API"),
]

# "panel" must match OverlaySettings.background_color or erase bands show through.
THEME = {
    "page": "#0b0f19",
    "panel": "#131722",
    "text": "#e2e8f0",
    "muted": "#94a3b8",
    "accent": "#2962ff",
}

BASE_STYLE = """
  * {{ box-sizing: border-box; }}
  body {{ margin: 0; font-family: "Inter", system-ui, sans-serif; background: {page}; color: {text}; }}
  header.topbar {{
    display: flex; align-items: baseline; gap: 2rem;
    padding: 0.75rem 1.5rem; background: {panel}; border-bottom: 2px solid {accent};
  }}
  header.topbar .brand {{ font-weight: 700; letter-spacing: 0.04em; }}
  header.topbar nav a {{ color: {muted}; margin-right: 1.25rem; text-decoration: none; }}
  header.topbar nav a:hover {{ color: {text}; }}
  main {{ max-width: 1280px; margin: 0 auto; padding: 1.5rem; }}
"""


def render_page(content_html: str, title: str = "Signal Desk", extra_style: str = "") -> str:
    links = " ".join(f'<a href="{href}">{label}</a>' for href, label in NAV_LINKS)
    style = BASE_STYLE.format(**THEME) + extra_style
    return (
        "<!DOCTYPE html>\n"
        f"<html><head><meta charset=\"utf-8\"><title>{escape(title)}</title>"
        f"<style>{style}</style></head>"
        f"<body><header class=\"topbar\"><span class=\"brand\">SIGNAL DESK</span><nav>{links}</nav></header>"
        f"<main>{content_html}</main></body></html>"
    )


__all__ = ["render_page", "THEME"]
