"""Build the immutable provider configuration and its adapters from settings."""

from collections.abc import Mapping

import structlog

from dermassist.core.config import Settings
from dermassist.providers.base import (
    ProviderAdapter,
    ProviderConfig,
    ProviderDescriptor,
    ProviderKind,
)
from dermassist.providers.classifier import ClassifierAdapter, predict_url
from dermassist.providers.hosted import HostedInferenceAdapter
from dermassist.providers.ollama import OllamaAdapter
from dermassist.providers.openai_chat import OpenAIChatAdapter

logger = structlog.get_logger(__name__)


def _generation_descriptor(kind: ProviderKind, settings: Settings) -> ProviderDescriptor | None:
    if kind is ProviderKind.OPENAI:
        return ProviderDescriptor(
            id="openai",
            kind=kind,
            endpoint=settings.openai_base_url or "https://api.openai.com/v1",
            timeout=settings.openai_timeout,
            model=settings.openai_model,
            has_credentials=bool(settings.openai_api_key.get_secret_value()),
            requires_credentials=True,
        )
    if kind is ProviderKind.HOSTED:
        if not settings.hosted_llm_url:
            return None
        return ProviderDescriptor(
            id="hosted",
            kind=kind,
            endpoint=settings.hosted_llm_url.rstrip("/"),
            timeout=settings.hosted_llm_timeout,
            has_credentials=bool(settings.hosted_llm_token.get_secret_value()),
        )
    if kind is ProviderKind.OLLAMA:
        if not settings.ollama_url:
            return None
        return ProviderDescriptor(
            id="ollama",
            kind=kind,
            endpoint=settings.ollama_url.rstrip("/"),
            timeout=settings.ollama_timeout,
            model=settings.ollama_model,
            requires_health=True,
        )
    return None


def build_provider_config(settings: Settings) -> ProviderConfig:
    """Ordered descriptors: classifiers first, then generation providers by precedence."""
    providers: list[ProviderDescriptor] = []

    for index, url in enumerate(settings.classifier_urls, start=1):
        providers.append(
            ProviderDescriptor(
                id=f"classifier-{index}",
                kind=ProviderKind.CLASSIFIER,
                endpoint=predict_url(url),
                timeout=settings.classifier_timeout,
                requires_health=True,
            )
        )

    seen: set[ProviderKind] = set()
    for name in settings.advice_provider_order:
        try:
            kind = ProviderKind(name)
        except ValueError:
            logger.warning("Ignoring unknown provider kind", provider_kind=name)
            continue
        if kind is ProviderKind.CLASSIFIER or kind in seen:
            continue
        seen.add(kind)
        descriptor = _generation_descriptor(kind, settings)
        if descriptor is not None:
            providers.append(descriptor)

    config = ProviderConfig(providers=tuple(providers))
    logger.info(
        "Provider configuration built",
        providers=[p.id for p in config],
        classifiers=len(settings.classifier_urls),
    )
    return config


def build_adapters(config: ProviderConfig, settings: Settings) -> dict[str, ProviderAdapter]:
    """One adapter per descriptor, keyed by provider id."""
    adapters: dict[str, ProviderAdapter] = {}
    for descriptor in config:
        if descriptor.kind is ProviderKind.CLASSIFIER:
            adapters[descriptor.id] = ClassifierAdapter(descriptor)
        elif descriptor.kind is ProviderKind.OPENAI:
            adapters[descriptor.id] = OpenAIChatAdapter(
                descriptor,
                api_key=settings.openai_api_key.get_secret_value(),
                base_url=settings.openai_base_url,
            )
        elif descriptor.kind is ProviderKind.HOSTED:
            adapters[descriptor.id] = HostedInferenceAdapter(
                descriptor, token=settings.hosted_llm_token.get_secret_value()
            )
        elif descriptor.kind is ProviderKind.OLLAMA:
            adapters[descriptor.id] = OllamaAdapter(descriptor)
    return adapters


async def close_adapters(adapters: Mapping[str, ProviderAdapter]) -> None:
    for adapter in adapters.values():
        await adapter.aclose()


__all__ = ["build_adapters", "build_provider_config", "close_adapters"]
