"""Schema of the analysis service response (normal and ultra modes)."""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

AnalysisMode = Literal["normal", "ultra"]


class DrawingPointModel(BaseModel):
    time: int
    price: float


class DrawingModel(BaseModel):
    type: str = "trendline"
    label: str = ""
    points: List[DrawingPointModel] = Field(default_factory=list)


def _valid_point(raw: Any) -> bool:
    try:
        DrawingPointModel.model_validate(raw)
    except ValidationError:
        return False
    return True


class AnalysisResult(BaseModel):
    """Trade signal returned by the analysis service.

    Price levels stay strings (``"$27,345.10"``, ``"N/A"``) exactly as the
    service sent them; they are parsed when a hypothesis is armed.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    description: str = ""
    entry_price: Any = Field(default=None, alias="entryPrice")
    take_profit: Any = Field(default=None, alias="takeProfit")
    stop_loss: Any = Field(default=None, alias="stopLoss")
    sentiment: Optional[str] = None
    drawings: List[DrawingModel] = Field(default_factory=list)

    # Ultra mode only
    summary: Optional[str] = None
    confidence: Optional[str] = None
    volatility: Optional[str] = None
    risk_reward_ratio: Optional[str] = Field(default=None, alias="riskRewardRatio")
    trade_management: Optional[str] = Field(default=None, alias="tradeManagement")
    alternative_scenario: Optional[str] = Field(default=None, alias="alternativeScenario")

    @field_validator("drawings", mode="before")
    @classmethod
    def drop_unusable_drawings(cls, value: Any) -> Any:
        """Drawings are optional: bad points and bad drawings are dropped, never fatal."""
        if not isinstance(value, list):
            return []
        drawings = []
        for item in value:
            if not isinstance(item, dict):
                continue
            points = item.get("points")
            usable = [p for p in points if _valid_point(p)] if isinstance(points, list) else []
            try:
                drawings.append(DrawingModel.model_validate({**item, "points": usable}))
            except ValidationError:
                continue
        return drawings

    @property
    def is_ultra(self) -> bool:
        return self.confidence is not None

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


__all__ = ["AnalysisMode", "AnalysisResult", "DrawingModel", "DrawingPointModel"]
