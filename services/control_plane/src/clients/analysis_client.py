"""Client for the remote AI analysis functions."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional, Sequence

import httpx
from pydantic import ValidationError

from libs.common.analysis_result import AnalysisMode, AnalysisResult
from libs.common.errors import AnalysisServiceError
from libs.common.market_types import Candle

logger = logging.getLogger(__name__)

FUNCTION_NAMES = {
    "normal": "analyze-symbol",
    "ultra": "analyze-symbol-ultra",
}

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences wrapped around a JSON document."""
    return _FENCE_RE.sub("", text).strip()


def parse_analysis_payload(payload: Any) -> AnalysisResult:
    """Lenient parse of the service response (dict, JSON text or fenced JSON)."""
    if isinstance(payload, (str, bytes)):
        text = payload.decode() if isinstance(payload, bytes) else payload
        try:
            payload = json.loads(strip_code_fences(text))
        except ValueError as exc:
            raise AnalysisServiceError(f"Analysis response is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise AnalysisServiceError("Analysis response must be a JSON object")
    if payload.get("error"):
        raise AnalysisServiceError(str(payload["error"]))

    try:
        return AnalysisResult.model_validate(payload)
    except ValidationError as exc:
        raise AnalysisServiceError(f"Analysis response failed validation: {exc}") from exc


class AnalysisClient:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        window: int = 150,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.window = window
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}", "apikey": self.api_key}
        return {}

    async def analyze(
        self,
        symbol: str,
        candles: Sequence[Candle],
        mode: AnalysisMode = "normal",
    ) -> AnalysisResult:
        """Request a trade signal for the most recent candles.

        Raises:
            AnalysisServiceError: missing data, transport/HTTP failure, error
                payload or unparsable response. No retries are attempted.
        """
        if mode not in FUNCTION_NAMES:
            raise AnalysisServiceError(f"Unknown analysis mode: {mode}")
        if not candles:
            raise AnalysisServiceError("Chart data is not available for analysis.")

        body = {
            "symbol": symbol.upper(),
            "chartData": [c.to_dict() for c in list(candles)[-self.window:]],
        }
        url = f"{self.base_url}/{FUNCTION_NAMES[mode]}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(url, json=body, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.error("Analysis request for %s failed: %s", symbol, exc)
            raise AnalysisServiceError(f"Analysis request failed: {exc}") from exc

        if resp.status_code >= 400:
            detail = resp.text
            try:
                detail = resp.json().get("error", detail)
            except (ValueError, AttributeError):
                pass
            logger.error("Analysis service returned %s for %s: %s", resp.status_code, symbol, detail)
            raise AnalysisServiceError(f"Analysis service error ({resp.status_code}): {detail}")

        return parse_analysis_payload(resp.text)


__all__ = ["AnalysisClient", "parse_analysis_payload", "strip_code_fences"]
