"""Tests for the sequential fallback router."""

import pytest

from dermassist.providers.base import (
    GenerationRequest,
    GenerationResult,
    ProviderConfig,
    ProviderKind,
    RequestKind,
)
from dermassist.providers.errors import ErrorKind, NoProviderAvailable
from dermassist.services.health_cache import HealthCache
from dermassist.services.router import MISSING_CREDENTIALS, UNHEALTHY, FallbackRouter

REQUEST = GenerationRequest(prompt="hello")


def text(value: str, kind: ProviderKind = ProviderKind.OLLAMA) -> GenerationResult:
    return GenerationResult(text=value, provider=kind)


def build_router(adapters, clock) -> FallbackRouter:
    mapping = {adapter.provider_id: adapter for adapter in adapters}
    config = ProviderConfig(providers=tuple(adapter.descriptor for adapter in adapters))
    health = HealthCache(mapping, stale_after=30.0, probe_timeout=0.5, clock=clock)
    return FallbackRouter(config=config, adapters=mapping, health=health)


@pytest.mark.asyncio
async def test_first_success_wins_and_later_providers_idle(make_adapter, fake_clock) -> None:
    a = make_adapter("a", [text("from a")])
    b = make_adapter("b", [text("from b")])
    router = build_router([a, b], fake_clock)

    routed = await router.route(RequestKind.GENERATION, REQUEST)

    assert routed.value.text == "from a"
    assert routed.provider == "a"
    assert routed.attempts == ()
    assert b.calls == []


@pytest.mark.asyncio
async def test_down_provider_falls_through_to_next(make_adapter, fake_clock) -> None:
    a = make_adapter("a")
    a.outcomes = [a.fail(ErrorKind.CONNECTION_REFUSED)]
    b = make_adapter("b", [text("from b")])
    c = make_adapter("c", [text("from c")])
    router = build_router([a, b, c], fake_clock)

    routed = await router.route(RequestKind.GENERATION, REQUEST)

    assert routed.provider == "b"
    assert [attempt.provider for attempt in routed.attempts] == ["a"]
    assert routed.attempts[0].kind is ErrorKind.CONNECTION_REFUSED
    assert c.calls == []


@pytest.mark.asyncio
async def test_all_failing_records_one_error_per_attempt_in_order(
    make_adapter, fake_clock
) -> None:
    adapters = [make_adapter(pid) for pid in ("a", "b", "c")]
    kinds = [ErrorKind.TIMEOUT, ErrorKind.BACKEND_OVERLOADED, ErrorKind.INVALID_RESPONSE_SHAPE]
    for adapter, kind in zip(adapters, kinds, strict=True):
        adapter.outcomes = [adapter.fail(kind)]
    router = build_router(adapters, fake_clock)

    with pytest.raises(NoProviderAvailable) as exc_info:
        await router.route(RequestKind.GENERATION, REQUEST)

    error = exc_info.value
    assert error.kind is ErrorKind.NO_PROVIDER_AVAILABLE
    assert [a.provider for a in error.attempts] == ["a", "b", "c"]
    assert [a.kind for a in error.attempts] == kinds
    assert all(len(adapter.calls) == 1 for adapter in adapters)


@pytest.mark.asyncio
async def test_missing_credentials_skipped_without_health_check(
    make_adapter, make_descriptor, fake_clock
) -> None:
    gated = make_adapter(
        make_descriptor("openai", ProviderKind.OPENAI, requires_credentials=True),
        [text("never")],
    )
    local = make_adapter("ollama", [text("local")])
    router = build_router([gated, local], fake_clock)

    routed = await router.route(RequestKind.GENERATION, REQUEST)

    assert routed.provider == "ollama"
    assert gated.calls == []
    assert gated.probes == 0
    assert [(s.provider, s.reason) for s in routed.skipped] == [("openai", MISSING_CREDENTIALS)]


@pytest.mark.asyncio
async def test_unhealthy_provider_requiring_health_is_skipped(
    make_adapter, make_descriptor, fake_clock
) -> None:
    sick = make_adapter(
        make_descriptor("ollama", requires_health=True), [text("never")], probe_ok=False
    )
    hosted = make_adapter(make_descriptor("hosted", ProviderKind.HOSTED), [text("hosted")])
    router = build_router([sick, hosted], fake_clock)

    routed = await router.route(RequestKind.GENERATION, REQUEST)

    assert routed.provider == "hosted"
    assert sick.calls == []
    assert routed.skipped[0].reason == UNHEALTHY
    assert routed.attempts == ()


@pytest.mark.asyncio
async def test_health_ignored_when_provider_does_not_require_it(
    make_adapter, fake_clock
) -> None:
    adapter = make_adapter("hosted", [text("ok")], probe_ok=False)
    router = build_router([adapter], fake_clock)

    routed = await router.route(RequestKind.GENERATION, REQUEST)

    assert routed.provider == "hosted"
    assert adapter.probes == 0


@pytest.mark.asyncio
async def test_everything_skipped_raises_with_no_attempts(
    make_adapter, make_descriptor, fake_clock
) -> None:
    gated = make_adapter(make_descriptor("openai", ProviderKind.OPENAI, requires_credentials=True))
    router = build_router([gated], fake_clock)

    with pytest.raises(NoProviderAvailable) as exc_info:
        await router.route(RequestKind.GENERATION, REQUEST)

    assert exc_info.value.attempts == []
    assert exc_info.value.skipped[0].provider == "openai"


@pytest.mark.asyncio
async def test_timeout_does_not_consume_next_provider_budget(
    make_adapter, make_descriptor, fake_clock
) -> None:
    slow = make_adapter(make_descriptor("slow", timeout=0.05), [text("late")], delay=1.0)
    fast = make_adapter(make_descriptor("fast", timeout=0.5), [text("fast")], delay=0.1)
    router = build_router([slow, fast], fake_clock)

    routed = await router.route(RequestKind.GENERATION, REQUEST)

    assert routed.provider == "fast"
    assert routed.attempts[0].provider == "slow"
    assert routed.attempts[0].kind is ErrorKind.TIMEOUT


@pytest.mark.asyncio
async def test_only_providers_of_requested_kind(
    make_adapter, make_descriptor, fake_clock
) -> None:
    classifier = make_adapter(make_descriptor("classifier-1", ProviderKind.CLASSIFIER))
    generator = make_adapter("ollama", [text("ok")])
    router = build_router([classifier, generator], fake_clock)

    await router.route(RequestKind.GENERATION, REQUEST)

    assert classifier.calls == []
