from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class UrgencyLabel(str, Enum):
    IMMEDIATE = "immediate"
    SOON = "soon"
    NORMAL = "normal"
    PAST = "past"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class CandidateItem:
    title: str
    description: str
    source_id: str
    start_time: datetime | None = None
    location: str | None = None
    relevance: float | None = None
    source_table: str | None = None
    time_text: str | None = None


@dataclass(slots=True)
class PlanItem:
    rank: int
    title: str
    rationale: str
    source_id: str
    urgency: UrgencyLabel
    start_time: datetime | None = None
    location: str | None = None
    time_text: str | None = None


@dataclass(slots=True)
class Plan:
    items: list[PlanItem] = field(default_factory=list)
    summary: str = ""
    failed_retrievals: int = 0

    @property
    def degraded(self) -> bool:
        return self.failed_retrievals > 0

    def __len__(self) -> int:
        return len(self.items)
