"""Top-level request orchestration for classification, advice and chat."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
import time

import structlog

from dermassist.prompts.advice import (
    ADVICE_TEMPLATE,
    CHAT_TEMPLATE,
    ChatTurn,
    build_advice_prompt,
    build_chat_prompt,
)
from dermassist.prompts.template import PromptTemplate
from dermassist.providers.base import (
    ClassificationRequest,
    GenerationResult,
    ProviderKind,
    RawPrediction,
    RequestKind,
)
from dermassist.providers.errors import (
    ErrorKind,
    NoProviderAvailable,
    ProviderAttempt,
    SkippedProvider,
    suggestion_for,
)
from dermassist.services.router import FallbackRouter, RoutedResult
from dermassist.services.validation import (
    ClassificationResult,
    RejectionReason,
    ResponseValidator,
)

logger = structlog.get_logger(__name__)

DEFAULT_RECOMMENDATIONS = (
    "Consult a dermatologist for proper diagnosis",
    "Monitor the condition closely",
    "Keep the affected area clean and dry",
    "Avoid scratching or touching the area",
)

REJECTION_MESSAGES = {
    RejectionReason.BELOW_THRESHOLD: "Confidence too low",
    RejectionReason.UNRECOGNIZED_LABEL: "Condition not in trained database",
}


class RequestState(str, Enum):
    RECEIVED = "received"
    VALIDATING_INPUT = "validating_input"
    BUILDING_PROMPT = "building_prompt"
    ROUTING = "routing"
    VALIDATING_RESPONSE = "validating_response"
    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"


TERMINAL_STATES = frozenset({RequestState.COMPLETED, RequestState.REJECTED, RequestState.FAILED})

TRANSITIONS: dict[RequestState, frozenset[RequestState]] = {
    RequestState.RECEIVED: frozenset(
        {RequestState.VALIDATING_INPUT, RequestState.BUILDING_PROMPT}
    ),
    RequestState.VALIDATING_INPUT: frozenset({RequestState.ROUTING, RequestState.FAILED}),
    RequestState.BUILDING_PROMPT: frozenset({RequestState.ROUTING, RequestState.FAILED}),
    RequestState.ROUTING: frozenset(
        {RequestState.VALIDATING_RESPONSE, RequestState.COMPLETED, RequestState.FAILED}
    ),
    RequestState.VALIDATING_RESPONSE: frozenset(
        {RequestState.COMPLETED, RequestState.REJECTED}
    ),
}


class InvalidTransition(RuntimeError):
    """Raised when a request flow is driven into a state it cannot reach."""


class RequestFlow:
    """Per-request state machine. Not persisted; one instance per in-flight call."""

    def __init__(self, request_kind: str) -> None:
        self.request_kind = request_kind
        self.state = RequestState.RECEIVED
        self.history: list[RequestState] = [RequestState.RECEIVED]

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, state: RequestState) -> None:
        if state not in TRANSITIONS.get(self.state, frozenset()):
            raise InvalidTransition(f"{self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)
        if self.finished:
            logger.debug(
                "Request flow finished",
                request_kind=self.request_kind,
                states=[s.value for s in self.history],
            )


@dataclass(frozen=True)
class AdviceRequest:
    condition: str
    symptoms: str | None = None
    severity: str | None = None
    duration: str | None = None
    confidence: float | None = None


@dataclass(frozen=True)
class ChatRequest:
    message: str
    condition: str | None = None
    history: tuple[ChatTurn, ...] = ()


@dataclass(frozen=True)
class AdviceResult:
    text: str
    provider_used: ProviderKind
    provider_id: str
    model: str
    generation_time_ms: float
    generated_at: datetime


@dataclass(frozen=True)
class Outcome:
    """Fields shared by every orchestration outcome."""

    state: RequestState
    message: str = ""
    error: ErrorKind | None = None
    attempts: tuple[ProviderAttempt, ...] = ()
    skipped: tuple[SkippedProvider, ...] = ()

    @property
    def success(self) -> bool:
        return self.state is RequestState.COMPLETED

    @property
    def suggestion(self) -> str | None:
        return suggestion_for(self.error) if self.error else None


@dataclass(frozen=True)
class ClassificationOutcome(Outcome):
    result: ClassificationResult | None = None
    rejection: RejectionReason | None = None
    label: str | None = None
    confidence: float | None = None
    provider: str | None = None


@dataclass(frozen=True)
class AdviceOutcome(Outcome):
    result: AdviceResult | None = None
    prompt_length: int = 0


@dataclass
class RequestOrchestrator:
    """Composes prompt building, routing and validation into typed outcomes.

    Backend failures never raise out of ``classify``, ``advise`` or ``chat``;
    they come back as a ``failed`` outcome carrying the per-provider attempts.
    """

    router: FallbackRouter
    validator: ResponseValidator
    max_image_bytes: int = 10 * 1024 * 1024
    clock: Callable[[], float] = field(default=time.perf_counter)

    def _input_error(self, request: ClassificationRequest) -> str | None:
        if not request.image:
            return "No image uploaded"
        if request.size > self.max_image_bytes:
            return f"Image exceeds {self.max_image_bytes} bytes"
        if not request.content_type.lower().startswith("image/"):
            return f"Unsupported content type: {request.content_type}"
        return None

    async def classify(self, request: ClassificationRequest) -> ClassificationOutcome:
        flow = RequestFlow(RequestKind.CLASSIFICATION.value)
        flow.advance(RequestState.VALIDATING_INPUT)

        problem = self._input_error(request)
        if problem:
            flow.advance(RequestState.FAILED)
            logger.info("Rejected classification input", reason=problem)
            return ClassificationOutcome(
                state=flow.state, error=ErrorKind.INVALID_REQUEST, message=problem
            )

        flow.advance(RequestState.ROUTING)
        try:
            routed = await self.router.route(RequestKind.CLASSIFICATION, request)
        except NoProviderAvailable as e:
            flow.advance(RequestState.FAILED)
            return ClassificationOutcome(
                state=flow.state,
                error=e.kind,
                message="Classification service unavailable",
                attempts=tuple(e.attempts),
                skipped=tuple(e.skipped),
            )

        flow.advance(RequestState.VALIDATING_RESPONSE)
        prediction: RawPrediction = routed.value
        verdict = self.validator.validate(prediction)

        if verdict.rejection is not None:
            flow.advance(RequestState.REJECTED)
            return ClassificationOutcome(
                state=flow.state,
                rejection=verdict.rejection,
                message=REJECTION_MESSAGES[verdict.rejection],
                label=verdict.label,
                confidence=verdict.confidence,
                provider=routed.provider,
                attempts=routed.attempts,
                skipped=routed.skipped,
            )

        flow.advance(RequestState.COMPLETED)
        result = verdict.result
        logger.info(
            "Classification completed",
            label=result.label,
            confidence=round(result.confidence, 4),
            severity=result.severity.value,
            provider=routed.provider,
        )
        return ClassificationOutcome(
            state=flow.state,
            result=result,
            message="Prediction successful",
            label=result.label,
            confidence=result.confidence,
            provider=routed.provider,
            attempts=routed.attempts,
            skipped=routed.skipped,
        )

    async def advise(self, request: AdviceRequest) -> AdviceOutcome:
        flow = RequestFlow("advice")
        flow.advance(RequestState.BUILDING_PROMPT)
        if not request.condition or not request.condition.strip():
            flow.advance(RequestState.FAILED)
            return AdviceOutcome(
                state=flow.state,
                error=ErrorKind.INVALID_REQUEST,
                message="Condition is required",
            )

        prompt = build_advice_prompt(
            request.condition,
            symptoms=request.symptoms,
            severity=request.severity,
            duration=request.duration,
            confidence=request.confidence,
        )
        logger.info(
            "Generating advice",
            condition=request.condition.strip(),
            prompt_length=len(prompt),
        )
        return await self._generate(flow, ADVICE_TEMPLATE, prompt)

    async def chat(self, request: ChatRequest) -> AdviceOutcome:
        flow = RequestFlow("chat")
        flow.advance(RequestState.BUILDING_PROMPT)
        if not request.message or not request.message.strip():
            flow.advance(RequestState.FAILED)
            return AdviceOutcome(
                state=flow.state,
                error=ErrorKind.INVALID_REQUEST,
                message="Message is required",
            )

        prompt = build_chat_prompt(request.message, request.condition, request.history)
        return await self._generate(flow, CHAT_TEMPLATE, prompt)

    async def _generate(
        self, flow: RequestFlow, template: PromptTemplate, prompt: str
    ) -> AdviceOutcome:
        flow.advance(RequestState.ROUTING)
        started = self.clock()
        try:
            routed: RoutedResult = await self.router.route(
                RequestKind.GENERATION, template.to_request(prompt)
            )
        except NoProviderAvailable as e:
            flow.advance(RequestState.FAILED)
            return AdviceOutcome(
                state=flow.state,
                error=e.kind,
                message="No LLM service available",
                attempts=tuple(e.attempts),
                skipped=tuple(e.skipped),
                prompt_length=len(prompt),
            )

        flow.advance(RequestState.COMPLETED)
        generated: GenerationResult = routed.value
        elapsed_ms = (self.clock() - started) * 1000
        result = AdviceResult(
            text=generated.text,
            provider_used=generated.provider,
            provider_id=routed.provider,
            model=generated.model,
            generation_time_ms=round(elapsed_ms, 2),
            generated_at=datetime.now(UTC),
        )
        logger.info(
            "Generation completed",
            prompt_id=template.id,
            provider=routed.provider,
            generation_time_ms=result.generation_time_ms,
            response_length=len(result.text),
        )
        return AdviceOutcome(
            state=flow.state,
            result=result,
            message="Advice generated",
            attempts=routed.attempts,
            skipped=routed.skipped,
            prompt_length=len(prompt),
        )


__all__ = [
    "DEFAULT_RECOMMENDATIONS",
    "AdviceOutcome",
    "AdviceRequest",
    "AdviceResult",
    "ChatRequest",
    "ClassificationOutcome",
    "InvalidTransition",
    "Outcome",
    "RequestFlow",
    "RequestOrchestrator",
    "RequestState",
]
