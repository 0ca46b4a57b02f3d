"""Tests for request orchestration outcomes and the per-request state machine."""

import pytest

from dermassist.prompts.advice import ChatTurn
from dermassist.providers.base import (
    ClassificationRequest,
    GenerationRequest,
    GenerationResult,
    ProviderConfig,
    ProviderKind,
    RawPrediction,
)
from dermassist.providers.errors import ErrorKind
from dermassist.services.health_cache import HealthCache
from dermassist.services.orchestrator import (
    AdviceRequest,
    ChatRequest,
    InvalidTransition,
    RequestFlow,
    RequestOrchestrator,
    RequestState,
)
from dermassist.services.router import FallbackRouter
from dermassist.services.validation import RejectionReason, ResponseValidator, Severity

IMAGE = b"\x89PNG\r\n\x1a\nfake"


def build_orchestrator(adapters, clock, max_image_bytes: int = 1024) -> RequestOrchestrator:
    mapping = {adapter.provider_id: adapter for adapter in adapters}
    config = ProviderConfig(providers=tuple(adapter.descriptor for adapter in adapters))
    health = HealthCache(mapping, clock=clock)
    return RequestOrchestrator(
        router=FallbackRouter(config=config, adapters=mapping, health=health),
        validator=ResponseValidator(threshold=0.15, valid_labels=["acne", "melanoma"]),
        max_image_bytes=max_image_bytes,
    )


@pytest.fixture
def classifier_a(make_adapter, make_descriptor):
    return make_adapter(make_descriptor("classifier-1", ProviderKind.CLASSIFIER))


@pytest.fixture
def classifier_b(make_adapter, make_descriptor):
    return make_adapter(make_descriptor("classifier-2", ProviderKind.CLASSIFIER))


@pytest.fixture
def generator(make_adapter):
    return make_adapter(
        "ollama", [GenerationResult(text="Advice text", provider=ProviderKind.OLLAMA, model="m")]
    )


class TestClassify:
    @pytest.mark.asyncio
    async def test_completed_from_second_classifier_when_first_down(
        self, classifier_a, classifier_b, fake_clock
    ) -> None:
        classifier_a.outcomes = [classifier_a.fail(ErrorKind.CONNECTION_REFUSED)]
        classifier_b.outcomes = [RawPrediction(label="Acne", confidence=0.5)]
        orchestrator = build_orchestrator([classifier_a, classifier_b], fake_clock)

        outcome = await orchestrator.classify(ClassificationRequest(image=IMAGE))

        assert outcome.state is RequestState.COMPLETED
        assert outcome.success
        assert outcome.provider == "classifier-2"
        assert outcome.result.label == "acne"
        assert outcome.result.severity is Severity.MODERATE
        assert [a.provider for a in outcome.attempts] == ["classifier-1"]

    @pytest.mark.asyncio
    async def test_below_threshold_is_rejected_not_failed(self, classifier_a, fake_clock) -> None:
        classifier_a.outcomes = [RawPrediction(label="Eczema", confidence=0.05)]
        orchestrator = build_orchestrator([classifier_a], fake_clock)

        outcome = await orchestrator.classify(ClassificationRequest(image=IMAGE))

        assert outcome.state is RequestState.REJECTED
        assert not outcome.success
        assert outcome.error is None
        assert outcome.rejection is RejectionReason.BELOW_THRESHOLD
        assert outcome.label == "Eczema"
        assert outcome.message == "Confidence too low"

    @pytest.mark.asyncio
    async def test_unrecognized_label_is_rejected(self, classifier_a, fake_clock) -> None:
        classifier_a.outcomes = [RawPrediction(label="rosacea", confidence=0.9)]
        orchestrator = build_orchestrator([classifier_a], fake_clock)

        outcome = await orchestrator.classify(ClassificationRequest(image=IMAGE))

        assert outcome.state is RequestState.REJECTED
        assert outcome.rejection is RejectionReason.UNRECOGNIZED_LABEL

    @pytest.mark.asyncio
    async def test_all_classifiers_failing(self, classifier_a, classifier_b, fake_clock) -> None:
        classifier_a.outcomes = [classifier_a.fail(ErrorKind.TIMEOUT)]
        classifier_b.outcomes = [classifier_b.fail(ErrorKind.INVALID_RESPONSE_SHAPE)]
        orchestrator = build_orchestrator([classifier_a, classifier_b], fake_clock)

        outcome = await orchestrator.classify(ClassificationRequest(image=IMAGE))

        assert outcome.state is RequestState.FAILED
        assert outcome.error is ErrorKind.NO_PROVIDER_AVAILABLE
        assert [a.kind for a in outcome.attempts] == [
            ErrorKind.TIMEOUT,
            ErrorKind.INVALID_RESPONSE_SHAPE,
        ]
        assert outcome.suggestion

    @pytest.mark.parametrize(
        ("request_kwargs", "fragment"),
        [
            ({"image": b""}, "No image"),
            ({"image": b"x" * 2048}, "exceeds"),
            ({"image": IMAGE, "content_type": "application/pdf"}, "Unsupported content type"),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_input_fails_before_routing(
        self, classifier_a, fake_clock, request_kwargs, fragment
    ) -> None:
        orchestrator = build_orchestrator([classifier_a], fake_clock)

        outcome = await orchestrator.classify(ClassificationRequest(**request_kwargs))

        assert outcome.state is RequestState.FAILED
        assert outcome.error is ErrorKind.INVALID_REQUEST
        assert fragment in outcome.message
        assert classifier_a.calls == []


class TestAdvise:
    @pytest.mark.asyncio
    async def test_completed_with_provider_tag(self, generator, fake_clock) -> None:
        orchestrator = build_orchestrator([generator], fake_clock)

        outcome = await orchestrator.advise(AdviceRequest(condition="acne", confidence=0.8))

        assert outcome.state is RequestState.COMPLETED
        assert outcome.result.text == "Advice text"
        assert outcome.result.provider_used is ProviderKind.OLLAMA
        assert outcome.result.provider_id == "ollama"
        assert outcome.result.generation_time_ms >= 0

        sent: GenerationRequest = generator.calls[0]
        assert "Condition: acne" in sent.prompt
        assert "Confidence: 80%" in sent.prompt
        assert sent.max_tokens == 600

    @pytest.mark.asyncio
    async def test_blank_condition_is_invalid(self, generator, fake_clock) -> None:
        orchestrator = build_orchestrator([generator], fake_clock)

        outcome = await orchestrator.advise(AdviceRequest(condition="   "))

        assert outcome.state is RequestState.FAILED
        assert outcome.error is ErrorKind.INVALID_REQUEST
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_exhausted_chain_is_failed_outcome(self, generator, fake_clock) -> None:
        generator.outcomes = [generator.fail(ErrorKind.BACKEND_OVERLOADED)]
        orchestrator = build_orchestrator([generator], fake_clock)

        outcome = await orchestrator.advise(AdviceRequest(condition="acne"))

        assert outcome.state is RequestState.FAILED
        assert outcome.error is ErrorKind.NO_PROVIDER_AVAILABLE
        assert outcome.attempts[0].kind is ErrorKind.BACKEND_OVERLOADED
        assert outcome.prompt_length > 0


class TestChat:
    @pytest.mark.asyncio
    async def test_uses_short_sampling(self, generator, fake_clock) -> None:
        orchestrator = build_orchestrator([generator], fake_clock)

        outcome = await orchestrator.chat(
            ChatRequest(
                message="Does it spread?",
                condition="ringworm",
                history=(ChatTurn(role="user", content="hi"),),
            )
        )

        assert outcome.success
        sent: GenerationRequest = generator.calls[0]
        assert sent.max_tokens == 300
        assert "Question: Does it spread?" in sent.prompt

    @pytest.mark.asyncio
    async def test_blank_message_is_invalid(self, generator, fake_clock) -> None:
        orchestrator = build_orchestrator([generator], fake_clock)

        outcome = await orchestrator.chat(ChatRequest(message=" "))

        assert outcome.error is ErrorKind.INVALID_REQUEST


class TestRequestFlow:
    def test_classification_path(self) -> None:
        flow = RequestFlow("classification")
        for state in (
            RequestState.VALIDATING_INPUT,
            RequestState.ROUTING,
            RequestState.VALIDATING_RESPONSE,
            RequestState.REJECTED,
        ):
            flow.advance(state)

        assert flow.finished
        assert flow.history[0] is RequestState.RECEIVED
        assert flow.history[-1] is RequestState.REJECTED

    def test_advice_path_cannot_be_rejected(self) -> None:
        flow = RequestFlow("advice")
        flow.advance(RequestState.BUILDING_PROMPT)
        flow.advance(RequestState.ROUTING)

        with pytest.raises(InvalidTransition):
            flow.advance(RequestState.REJECTED)

    def test_terminal_state_is_final(self) -> None:
        flow = RequestFlow("advice")
        flow.advance(RequestState.BUILDING_PROMPT)
        flow.advance(RequestState.FAILED)

        with pytest.raises(InvalidTransition):
            flow.advance(RequestState.ROUTING)
