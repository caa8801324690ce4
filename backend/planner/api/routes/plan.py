from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ...errors import InputError, ReasoningUnavailable
from ...logging_config import get_logger
from ...schemas import PlanRequest, PlanResponse
from ...synthesizer import PlanSynthesizer

router = APIRouter(tags=["planner"])
logger = get_logger(__name__)


def get_synthesizer(request: Request) -> PlanSynthesizer:
    synthesizer = getattr(request.app.state, "synthesizer", None)
    if synthesizer is None:
        raise HTTPException(status_code=503, detail="Planner is not ready")
    return synthesizer


@router.post("/generate-plan", response_model=PlanResponse)
async def generate_plan(
    payload: PlanRequest,
    synthesizer: PlanSynthesizer = Depends(get_synthesizer),
) -> PlanResponse:
    logger.info("plan_request_received", objective_chars=len(payload.objective))
    try:
        plan = await synthesizer.synthesize(payload.objective)
    except InputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ReasoningUnavailable as exc:
        logger.error("reasoning_unavailable", error=str(exc))
        raise HTTPException(
            status_code=503, detail="Planning service is temporarily unavailable"
        ) from exc
    return PlanResponse.from_plan(plan)
