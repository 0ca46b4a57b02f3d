"""Pytest configuration and shared fixtures."""

import asyncio
from collections.abc import Callable, Generator, Sequence
from typing import Any

from fastapi.testclient import TestClient
import pytest

from dermassist.core import Settings
from dermassist.factory import create_app
from dermassist.providers.base import (
    GenerationResult,
    ProbeResult,
    ProviderAdapter,
    ProviderDescriptor,
    ProviderKind,
    RawPrediction,
)
from dermassist.providers.errors import ErrorKind, ProviderError


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAdapter(ProviderAdapter[Any, Any]):
    """Scripted adapter: returns or raises its outcomes in order, repeating the last one."""

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        outcomes: Sequence[Any] = (),
        *,
        probe_ok: bool | Exception = True,
        delay: float = 0.0,
        probe_delay: float = 0.0,
    ) -> None:
        super().__init__(descriptor)
        self.outcomes = list(outcomes)
        self.probe_ok = probe_ok
        self.delay = delay
        self.probe_delay = probe_delay
        self.calls: list[Any] = []
        self.probes = 0
        self.closed = False

    def fail(self, kind: ErrorKind, message: str = "scripted failure") -> ProviderError:
        return self.error(kind, message)

    async def invoke(self, request: Any, timeout: float) -> Any:
        self.calls.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.outcomes:
            raise self.fail(ErrorKind.CONNECTION_REFUSED, "no scripted outcome")
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def probe(self, timeout: float) -> ProbeResult:
        self.probes += 1
        if self.probe_delay:
            await asyncio.sleep(self.probe_delay)
        if isinstance(self.probe_ok, Exception):
            raise self.probe_ok
        return ProbeResult(ok=self.probe_ok, detail="fake probe")

    async def aclose(self) -> None:
        self.closed = True


def descriptor(
    provider_id: str,
    kind: ProviderKind = ProviderKind.OLLAMA,
    timeout: float = 1.0,
    **kwargs: Any,
) -> ProviderDescriptor:
    return ProviderDescriptor(
        id=provider_id,
        kind=kind,
        endpoint=f"http://{provider_id}.test",
        timeout=timeout,
        **kwargs,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_descriptor() -> Callable[..., ProviderDescriptor]:
    return descriptor


@pytest.fixture
def make_adapter() -> Callable[..., FakeAdapter]:
    """Build a FakeAdapter from a provider id (or descriptor) and scripted outcomes."""

    def factory(
        provider: str | ProviderDescriptor,
        outcomes: Sequence[Any] = (),
        **kwargs: Any,
    ) -> FakeAdapter:
        desc = provider if isinstance(provider, ProviderDescriptor) else descriptor(provider)
        return FakeAdapter(desc, outcomes, **kwargs)

    return factory


@pytest.fixture
def test_settings() -> Settings:
    """Settings for a classifier, OpenAI and Ollama; no hosted endpoint."""
    return Settings(
        environment="development",
        debug=True,
        classifier_urls="http://classifier.test",
        openai_api_key="sk-test-12345",  # type: ignore[arg-type]
        openai_model="gpt-4o-mini",
        hosted_llm_url="",
        ollama_url="http://ollama.test",
        advice_provider_order="openai,hosted,ollama",
        min_confidence_threshold=0.15,
        max_image_bytes=1024,
        health_warmup_attempts=1,
    )


@pytest.fixture
def fake_adapters(test_settings: Settings) -> dict[str, FakeAdapter]:
    """Adapters keyed like the provider config built from ``test_settings``."""
    return {
        "classifier-1": FakeAdapter(
            descriptor("classifier-1", ProviderKind.CLASSIFIER, requires_health=True),
            [RawPrediction(label="Acne", confidence=82.0, payload={"prediction": "Acne"})],
        ),
        "openai": FakeAdapter(
            descriptor(
                "openai",
                ProviderKind.OPENAI,
                model="gpt-4o-mini",
                has_credentials=True,
                requires_credentials=True,
            ),
            [
                GenerationResult(
                    text="Acne is common.", provider=ProviderKind.OPENAI, model="gpt-4o-mini"
                )
            ],
        ),
        "ollama": FakeAdapter(
            descriptor("ollama", ProviderKind.OLLAMA, model="phi3:mini", requires_health=True),
            [
                GenerationResult(
                    text="Ollama advice.", provider=ProviderKind.OLLAMA, model="phi3:mini"
                )
            ],
        ),
    }


@pytest.fixture
def client(
    test_settings: Settings, fake_adapters: dict[str, FakeAdapter]
) -> Generator[TestClient, None, None]:
    """Test client running the full app against fake backends."""
    app = create_app(test_settings, adapters=fake_adapters)
    with TestClient(app) as test_client:
        yield test_client


# Sample test data
@pytest.fixture
def png_bytes() -> bytes:
    """A tiny payload with a PNG signature; backends are faked so content is opaque."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
