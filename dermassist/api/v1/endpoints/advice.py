"""Advice generation and follow-up chat endpoints."""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
import structlog

from dermassist.api.deps import get_orchestrator
from dermassist.api.responses import failure_response
from dermassist.prompts.advice import ChatTurn
from dermassist.schemas import (
    AdviceRequestBody,
    AdviceResponse,
    ChatRequestBody,
    ChatResponse,
    GenerationMetadata,
)
from dermassist.services.orchestrator import (
    AdviceOutcome,
    AdviceRequest,
    AdviceResult,
    ChatRequest,
    RequestOrchestrator,
)

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Advice"])

_FAILURE_RESPONSES = {
    400: {"description": "Missing condition or message"},
    503: {"description": "No generation backend available"},
}


def _metadata(result: AdviceResult) -> GenerationMetadata:
    return GenerationMetadata(
        provider_used=result.provider_used.value,
        provider_id=result.provider_id,
        model=result.model or None,
        generation_time_ms=result.generation_time_ms,
        generated_at=result.generated_at,
    )


async def _advise(orchestrator: RequestOrchestrator, request: AdviceRequest):
    outcome: AdviceOutcome = await orchestrator.advise(request)
    if not outcome.success:
        return failure_response(outcome)
    return AdviceResponse(advice=outcome.result.text, metadata=_metadata(outcome.result))


@router.post(
    "/advice",
    response_model=AdviceResponse,
    summary="Generate Condition Advice",
    description=(
        "Generate plain-language information about a diagnosed condition. "
        "Backends are tried in configured order until one answers."
    ),
    responses=_FAILURE_RESPONSES,
)
async def post_advice(
    payload: AdviceRequestBody,
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> AdviceResponse | JSONResponse:
    logger.info("Advice request received", condition=payload.condition)
    return await _advise(
        orchestrator,
        AdviceRequest(
            condition=payload.condition,
            symptoms=payload.symptoms,
            severity=payload.severity,
            duration=payload.duration,
            confidence=payload.confidence,
        ),
    )


@router.get(
    "/advice",
    response_model=AdviceResponse,
    summary="Generate Condition Advice (query string)",
    responses=_FAILURE_RESPONSES,
)
async def get_advice(
    condition: str | None = Query(default=None, max_length=200),
    disease: str | None = Query(default=None, max_length=200),
    symptoms: str | None = Query(default=None, max_length=2000),
    severity: str | None = Query(default=None, max_length=50),
    duration: str | None = Query(default=None, max_length=100),
    confidence: float | None = Query(default=None, ge=0.0, le=100.0),
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> AdviceResponse | JSONResponse:
    return await _advise(
        orchestrator,
        AdviceRequest(
            condition=condition or disease or "",
            symptoms=symptoms,
            severity=severity,
            duration=duration,
            confidence=confidence,
        ),
    )


@router.post(
    "/chat",
    response_model=ChatResponse,
    summary="Ask a Follow-up Question",
    responses=_FAILURE_RESPONSES,
)
async def chat(
    payload: ChatRequestBody,
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
) -> ChatResponse | JSONResponse:
    outcome = await orchestrator.chat(
        ChatRequest(
            message=payload.message,
            condition=payload.condition,
            history=tuple(ChatTurn(role=m.role, content=m.content) for m in payload.history),
        )
    )
    if not outcome.success:
        return failure_response(outcome)
    return ChatResponse(response=outcome.result.text, metadata=_metadata(outcome.result))
