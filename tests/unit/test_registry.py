"""Tests for building the provider configuration from settings."""

import pytest

from dermassist.core import Settings
from dermassist.providers import build_adapters, build_provider_config, close_adapters
from dermassist.providers.base import ProviderKind, RequestKind
from dermassist.providers.classifier import ClassifierAdapter
from dermassist.providers.hosted import HostedInferenceAdapter
from dermassist.providers.ollama import OllamaAdapter
from dermassist.providers.openai_chat import OpenAIChatAdapter


def make_settings(**kwargs) -> Settings:
    defaults = {
        "classifier_urls": "http://ml-a.test,http://ml-b.test/predict",
        "openai_api_key": "",
        "hosted_llm_url": "",
        "ollama_url": "http://ollama.test/",
    }
    return Settings(_env_file=None, **{**defaults, **kwargs})


def test_classifiers_come_first_in_order() -> None:
    config = build_provider_config(make_settings())
    classifiers = config.for_kind(RequestKind.CLASSIFICATION)

    assert [p.id for p in classifiers] == ["classifier-1", "classifier-2"]
    assert classifiers[0].endpoint == "http://ml-a.test/predict"
    assert classifiers[1].endpoint == "http://ml-b.test/predict"
    assert all(p.requires_health for p in classifiers)


def test_generation_order_follows_precedence() -> None:
    settings = make_settings(
        openai_api_key="sk-abc",
        hosted_llm_url="https://space.test/generate",
        advice_provider_order="ollama,openai,hosted",
    )
    generation = build_provider_config(settings).for_kind(RequestKind.GENERATION)

    assert [p.id for p in generation] == ["ollama", "openai", "hosted"]
    assert generation[0].endpoint == "http://ollama.test"


def test_openai_listed_without_key_but_gated() -> None:
    config = build_provider_config(make_settings())
    openai = config.get("openai")

    assert openai.requires_credentials
    assert not openai.has_credentials
    assert not openai.requires_health


def test_hosted_omitted_without_url() -> None:
    config = build_provider_config(make_settings())

    with pytest.raises(KeyError):
        config.get("hosted")


def test_unknown_and_duplicate_kinds_ignored() -> None:
    settings = make_settings(advice_provider_order="ollama,llamacpp,ollama,classifier")
    generation = build_provider_config(settings).for_kind(RequestKind.GENERATION)

    assert [p.id for p in generation] == ["ollama"]


def test_public_view_has_no_secrets() -> None:
    settings = make_settings(openai_api_key="sk-secret-value", hosted_llm_token="hf_secret")
    settings = settings.model_copy(update={"hosted_llm_url": "https://space.test"})
    config = build_provider_config(settings)

    dumped = repr([p.to_public_dict() for p in config])
    assert "sk-secret-value" not in dumped
    assert "hf_secret" not in dumped
    assert config.get("openai").to_public_dict()["credentials_present"] is True
    assert config.get("hosted").to_public_dict()["credentials_present"] is True


@pytest.mark.asyncio
async def test_build_adapters_matches_descriptors() -> None:
    settings = make_settings(openai_api_key="sk-abc", hosted_llm_url="https://space.test")
    config = build_provider_config(settings)
    adapters = build_adapters(config, settings)

    assert set(adapters) == {p.id for p in config}
    assert isinstance(adapters["classifier-1"], ClassifierAdapter)
    assert isinstance(adapters["openai"], OpenAIChatAdapter)
    assert isinstance(adapters["hosted"], HostedInferenceAdapter)
    assert isinstance(adapters["ollama"], OllamaAdapter)
    assert adapters["ollama"].descriptor.kind is ProviderKind.OLLAMA

    await close_adapters(adapters)
