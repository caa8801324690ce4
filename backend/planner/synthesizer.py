"""Plan synthesis: the tool-calling loop that turns an objective into a plan."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from contextvars import ContextVar
from datetime import date, datetime
from typing import Any

from .errors import InputError, RetrievalError, ToolError
from .json_utils import parse_final_answer
from .logging_config import get_logger
from .metrics import plans_total
from .prompts import FINAL_ANSWER_REMINDER, build_system_prompt
from .ranking import MAX_PLAN_ITEMS, rank_candidates
from .reasoning import OpenAIReasoner, Reasoner, ToolCall
from .retrieval import RetrievalClient
from .settings import Settings
from .tools import (
    AssessTimelinessArgs,
    QueryConferenceArgs,
    ToolRegistry,
    assess_timeliness_tool,
    query_conference_tool,
)
from .types import CandidateItem, Plan, PlanItem, UrgencyLabel
from .urgency import UrgencyAssessment, assess

logger = get_logger(__name__)

RETRIEVAL_ATTEMPTS = 2
DESCRIPTION_PREVIEW_CHARS = 400
OBJECTIVE_PREVIEW_CHARS = 80
# Longer objectives are accepted but only this much reaches the prompt
MAX_PROMPT_OBJECTIVE_CHARS = 4000

# Candidates found by the tool call running in the current task
_call_candidates: ContextVar[list[CandidateItem] | None] = ContextVar("call_candidates", default=None)

_URGENCY_PHRASES: dict[UrgencyLabel, str] = {
    UrgencyLabel.IMMEDIATE: "It starts within the next two hours.",
    UrgencyLabel.SOON: "It is coming up within the next day.",
    UrgencyLabel.NORMAL: "It is scheduled later in the conference.",
    UrgencyLabel.PAST: "It may already be under way or finished.",
    UrgencyLabel.UNKNOWN: "",
}


def _local_now() -> datetime:
    return datetime.now().astimezone()


def fallback_rationale(objective: str, candidate: CandidateItem, label: UrgencyLabel) -> str:
    focus = " ".join(objective.split())
    if len(focus) > OBJECTIVE_PREVIEW_CHARS:
        focus = focus[: OBJECTIVE_PREVIEW_CHARS - 3].rstrip() + "..."
    parts = [f'Matches your objective "{focus}".']
    if candidate.location:
        parts.append(f"Held at {candidate.location}.")
    phrase = _URGENCY_PHRASES[label]
    if phrase:
        parts.append(phrase)
    return " ".join(parts)


class PlanSynthesizer:
    """Turns an attendee objective into a ranked :class:`Plan`.

    Tool selection is delegated to a :class:`Reasoner`; retrieval retries,
    annotation, ranking and truncation are decided here so the plan shape does
    not depend on the model.
    """

    def __init__(
        self,
        reasoner: Reasoner,
        retrieval: RetrievalClient,
        *,
        conference_name: str = "the conference",
        conference_date: date | None = None,
        max_tool_rounds: int = 5,
        max_retrieval_calls: int = 3,
        retrieval_timeout: float | None = None,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self.reasoner = reasoner
        self.retrieval = retrieval
        self.conference_name = conference_name
        self.conference_date = conference_date
        self.max_tool_rounds = max_tool_rounds
        self.max_retrieval_calls = max_retrieval_calls
        self.retrieval_timeout = retrieval_timeout
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> PlanSynthesizer:
        reasoner = OpenAIReasoner(
            settings.OPENAI_API_KEY or "",
            model=settings.PLANNER_MODEL,
            base_url=settings.OPENAI_API_BASE,
            timeout=settings.OPENAI_TIMEOUT_SECONDS,
            max_tokens=settings.PLANNER_MAX_TOKENS,
            temperature=settings.PLANNER_TEMPERATURE,
        )
        retrieval = RetrievalClient(
            settings.RETRIEVAL_API_URL or "",
            timeout=settings.API_TIMEOUT_SECONDS,
            max_results=settings.RETRIEVAL_MAX_RESULTS,
        )
        return cls(
            reasoner,
            retrieval,
            conference_name=settings.CONFERENCE_NAME,
            conference_date=settings.CONFERENCE_DATE,
            max_tool_rounds=settings.MAX_TOOL_ROUNDS,
            max_retrieval_calls=settings.MAX_RETRIEVAL_CALLS,
            retrieval_timeout=settings.API_TIMEOUT_SECONDS,
        )

    async def synthesize(self, objective: str) -> Plan:
        if not isinstance(objective, str) or not objective.strip():
            raise InputError("Objective must be a non-empty string")
        run = PlanningRun(self, objective.strip(), self.clock())
        plan = await run.execute()
        if plan.degraded:
            outcome = "degraded"
        elif plan.items:
            outcome = "ok"
        else:
            outcome = "empty"
        plans_total.labels(outcome=outcome).inc()
        logger.info(
            "plan_completed",
            items=len(plan.items),
            retrieval_calls=run.retrieval_calls,
            failed_retrievals=plan.failed_retrievals,
            rounds=run.rounds,
        )
        return plan

    async def aclose(self) -> None:
        await self.retrieval.aclose()
        await self.reasoner.aclose()


class PlanningRun:
    """State for one ``synthesize`` call; never shared between requests."""

    def __init__(self, synthesizer: PlanSynthesizer, objective: str, reference_now: datetime):
        self.synthesizer = synthesizer
        self.objective = objective
        self.reference_now = reference_now
        self.candidates: list[CandidateItem] = []
        self.retrieval_calls = 0
        self.failed_retrievals = 0
        self.rounds = 0
        self._by_id: dict[str, CandidateItem] = {}
        self._assessments: dict[str, UrgencyAssessment] = {}
        self.registry = ToolRegistry(
            [
                query_conference_tool(self._query_conference),
                assess_timeliness_tool(self._assess_timeliness),
            ]
        )

    async def execute(self) -> Plan:
        synth = self.synthesizer
        messages: list[dict[str, Any]] = [
            {
                "role": "system",
                "content": build_system_prompt(
                    synth.conference_name, self.reference_now, synth.conference_date
                ),
            },
            {"role": "user", "content": self._prompt_objective()},
        ]
        tools = self.registry.definitions()

        final_text: str | None = None
        while self.rounds < synth.max_tool_rounds:
            self.rounds += 1
            turn = await synth.reasoner.complete(messages, tools)
            messages.append(turn.to_message())
            if not turn.tool_calls:
                final_text = turn.content
                break
            outcomes = await asyncio.gather(*(self._dispatch(call) for call in turn.tool_calls))
            for call, (result, found) in zip(turn.tool_calls, outcomes):
                self._collect(found)
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.id,
                        "content": json.dumps(result, ensure_ascii=False, default=str),
                    }
                )
        else:
            logger.info("tool_rounds_exhausted", rounds=self.rounds)
            messages.append({"role": "user", "content": FINAL_ANSWER_REMINDER})
            turn = await synth.reasoner.complete(messages, None)
            final_text = turn.content

        return self._build_plan(final_text)

    def _prompt_objective(self) -> str:
        if len(self.objective) <= MAX_PROMPT_OBJECTIVE_CHARS:
            return self.objective
        logger.info(
            "objective_truncated",
            objective_chars=len(self.objective),
            kept_chars=MAX_PROMPT_OBJECTIVE_CHARS,
        )
        return self.objective[:MAX_PROMPT_OBJECTIVE_CHARS]

    async def _dispatch(self, call: ToolCall) -> tuple[dict[str, Any], list[CandidateItem]]:
        # Runs in its own task under gather, so the context var is per call
        found: list[CandidateItem] = []
        _call_candidates.set(found)
        logger.info("tool_invoked", tool=call.name)
        try:
            result = await self.registry.invoke(call.name, call.arguments)
        except ToolError as exc:
            logger.warning("tool_rejected", tool=call.name, reason=str(exc))
            result = {"error": str(exc)}
        return result, found

    def _collect(self, found: list[CandidateItem]) -> None:
        """Merge one call's candidates; called in tool-call order after the round."""
        for candidate in found:
            self.candidates.append(candidate)
            self._by_id.setdefault(candidate.source_id, candidate)

    # ------------------------------------------------------------------ tools

    async def _query_conference(self, args: QueryConferenceArgs) -> dict[str, Any]:
        if self.retrieval_calls >= self.synthesizer.max_retrieval_calls:
            raise ToolError("Search budget for this request is exhausted; answer with what you have")
        self.retrieval_calls += 1

        found = await self._search_with_retry(args.query)
        if found is None:
            self.failed_retrievals += 1
            return {
                "results": [],
                "error": "The conference search service is unavailable. Continue without these results.",
            }
        sink = _call_candidates.get()
        if sink is not None:
            sink.extend(found)
        return {"results": [self._candidate_payload(candidate) for candidate in found]}

    async def _search_with_retry(self, query: str) -> list[CandidateItem] | None:
        for attempt in range(1, RETRIEVAL_ATTEMPTS + 1):
            try:
                return await self.synthesizer.retrieval.search(
                    query, timeout=self.synthesizer.retrieval_timeout
                )
            except RetrievalError as exc:
                logger.warning(
                    "retrieval_failed",
                    attempt=attempt,
                    kind=exc.kind.value,
                    detail=exc.detail,
                )
        return None

    async def _assess_timeliness(self, args: AssessTimelinessArgs) -> dict[str, Any]:
        assessments = []
        for event in args.events:
            candidate = self._by_id.get(event.source_id)
            if candidate is not None:
                result = self.assessment_for(candidate)
            else:
                result = assess(
                    self.reference_now, event.text, self.synthesizer.conference_date
                )
            assessments.append(
                {
                    "source_id": event.source_id,
                    "urgency": result.label.value,
                    "starts_at": result.event_at.isoformat() if result.event_at else None,
                    "note": result.note,
                }
            )
        return {"reference_time": self.reference_now.isoformat(), "assessments": assessments}

    # --------------------------------------------------------------- shaping

    def assessment_for(self, candidate: CandidateItem) -> UrgencyAssessment:
        cached = self._assessments.get(candidate.source_id)
        if cached is not None:
            return cached
        conference_date = self.synthesizer.conference_date
        if candidate.start_time is not None:
            result = assess(self.reference_now, None, event_at=candidate.start_time)
        else:
            result = assess(self.reference_now, candidate.time_text, conference_date)
            if result.label is UrgencyLabel.UNKNOWN:
                result = assess(
                    self.reference_now,
                    f"{candidate.title}\n{candidate.description}",
                    conference_date,
                )
        self._assessments[candidate.source_id] = result
        return result

    def _candidate_payload(self, candidate: CandidateItem) -> dict[str, Any]:
        description = candidate.description
        if len(description) > DESCRIPTION_PREVIEW_CHARS:
            description = description[:DESCRIPTION_PREVIEW_CHARS].rstrip() + "..."
        return {
            "source_id": candidate.source_id,
            "title": candidate.title,
            "start_time": candidate.start_time.isoformat() if candidate.start_time else None,
            "time": candidate.time_text,
            "location": candidate.location,
            "relevance": candidate.relevance,
            "type": candidate.source_table,
            "description": description,
        }

    def _build_plan(self, final_text: str | None) -> Plan:
        answer = parse_final_answer(final_text, MAX_PLAN_ITEMS)
        annotated = [
            (candidate, self.assessment_for(candidate).label) for candidate in self.candidates
        ]
        items: list[PlanItem] = []
        for rank, (candidate, label) in enumerate(rank_candidates(annotated), start=1):
            rationale = answer.rationales.get(candidate.source_id) or fallback_rationale(
                self.objective, candidate, label
            )
            items.append(
                PlanItem(
                    rank=rank,
                    title=candidate.title,
                    rationale=rationale,
                    source_id=candidate.source_id,
                    urgency=label,
                    start_time=candidate.start_time,
                    location=candidate.location,
                    time_text=candidate.time_text,
                )
            )
        return Plan(items=items, summary=answer.summary, failed_retrievals=self.failed_retrievals)


__all__ = ["PlanSynthesizer", "PlanningRun", "fallback_rationale"]
