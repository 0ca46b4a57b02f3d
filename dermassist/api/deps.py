"""Shared API dependencies.

Long-lived components are built once in the application lifespan and kept on
``app.state``; endpoints reach them through these functions so tests can swap
them with ``app.dependency_overrides``.
"""

from fastapi import Request

from dermassist.core.config import Settings
from dermassist.providers.base import ProviderConfig
from dermassist.services.health_cache import HealthCache
from dermassist.services.orchestrator import RequestOrchestrator

__all__ = [
    "get_app_settings",
    "get_health_cache",
    "get_orchestrator",
    "get_provider_config",
    "request_id",
]


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_orchestrator(request: Request) -> RequestOrchestrator:
    return request.app.state.orchestrator


def get_health_cache(request: Request) -> HealthCache:
    return request.app.state.health_cache


def get_provider_config(request: Request) -> ProviderConfig:
    return request.app.state.provider_config


def request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)
