from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from .types import Plan, PlanItem


class PlanRequest(BaseModel):
    objective: str = Field(
        min_length=1,
        description="What the attendee wants to get out of the conference",
    )

    @field_validator("objective")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("objective must not be blank")
        return stripped


class PlanItemOut(BaseModel):
    rank: int = Field(ge=1, le=10)
    title: str
    time: str | None = None
    location: str | None = None
    rationale: str = Field(min_length=1)
    urgency: Literal["immediate", "soon", "normal", "past", "unknown"]
    source_id: str

    @classmethod
    def from_item(cls, item: PlanItem) -> PlanItemOut:
        when = item.start_time.isoformat() if item.start_time else item.time_text
        return cls(
            rank=item.rank,
            title=item.title,
            time=when,
            location=item.location,
            rationale=item.rationale,
            urgency=item.urgency.value,
            source_id=item.source_id,
        )


class PlanResponse(BaseModel):
    items: list[PlanItemOut] = Field(default_factory=list, max_length=10)
    count: int = 0
    summary: str = ""
    degraded: bool = False

    @classmethod
    def from_plan(cls, plan: Plan) -> PlanResponse:
        items = [PlanItemOut.from_item(item) for item in plan.items]
        return cls(items=items, count=len(items), summary=plan.summary, degraded=plan.degraded)


class HealthCheck(BaseModel):
    status: Literal["ok", "missing"]
    detail: str | None = None


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    service: str
    version: str
    checks: dict[str, HealthCheck]
