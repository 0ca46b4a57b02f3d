"""Sequential provider fallback: first success wins."""

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
import time
from typing import Any

import structlog

from dermassist.providers.base import ProviderAdapter, ProviderConfig, RequestKind
from dermassist.providers.errors import (
    ErrorKind,
    NoProviderAvailable,
    ProviderAttempt,
    ProviderError,
    SkippedProvider,
)
from dermassist.services.health_cache import HealthCache

logger = structlog.get_logger(__name__)

MISSING_CREDENTIALS = "missing_credentials"
UNHEALTHY = "unhealthy"


@dataclass(frozen=True)
class RoutedResult:
    """A provider's result plus the failures that preceded it."""

    value: Any
    provider: str
    attempts: tuple[ProviderAttempt, ...] = ()
    skipped: tuple[SkippedProvider, ...] = ()
    elapsed_ms: float = 0.0


@dataclass
class FallbackRouter:
    """Tries eligible providers in configured order, never in parallel.

    Provider order is fixed configuration. A failed provider is never retried
    within the same request; its error is recorded and the next one gets its own
    full timeout budget.
    """

    config: ProviderConfig
    adapters: Mapping[str, ProviderAdapter]
    health: HealthCache
    clock: Callable[[], float] = field(default=time.perf_counter)

    async def route(self, kind: RequestKind, request: Any) -> RoutedResult:
        """Return the first successful result for ``kind``.

        Raises:
            NoProviderAvailable: every provider for the kind failed or was skipped.
        """
        attempts: list[ProviderAttempt] = []
        skipped: list[SkippedProvider] = []
        started = self.clock()

        for descriptor in self.config.for_kind(kind):
            if descriptor.requires_credentials and not descriptor.has_credentials:
                skipped.append(SkippedProvider(descriptor.id, MISSING_CREDENTIALS))
                logger.debug(
                    "Skipping provider", provider=descriptor.id, reason=MISSING_CREDENTIALS
                )
                continue
            if descriptor.requires_health and not await self.health.is_available(descriptor.id):
                skipped.append(SkippedProvider(descriptor.id, UNHEALTHY))
                logger.debug("Skipping provider", provider=descriptor.id, reason=UNHEALTHY)
                continue

            adapter = self.adapters[descriptor.id]
            attempt_started = self.clock()
            try:
                value = await asyncio.wait_for(
                    adapter.invoke(request, descriptor.timeout), timeout=descriptor.timeout
                )
            except TimeoutError:
                error = ProviderError(
                    ErrorKind.TIMEOUT,
                    descriptor.id,
                    f"No response within {descriptor.timeout:.0f}s",
                )
            except ProviderError as e:
                error = e
            else:
                elapsed_ms = (self.clock() - started) * 1000
                logger.info(
                    "Provider succeeded",
                    request_kind=kind.value,
                    provider=descriptor.id,
                    failed_before=len(attempts),
                    elapsed_ms=round(elapsed_ms, 2),
                )
                return RoutedResult(
                    value=value,
                    provider=descriptor.id,
                    attempts=tuple(attempts),
                    skipped=tuple(skipped),
                    elapsed_ms=elapsed_ms,
                )

            attempt = ProviderAttempt.from_error(
                error, elapsed_ms=(self.clock() - attempt_started) * 1000
            )
            attempts.append(attempt)
            logger.warning(
                "Provider failed, falling back",
                request_kind=kind.value,
                provider=descriptor.id,
                error_kind=attempt.kind.value,
                error=attempt.message,
            )

        logger.error(
            "No provider available",
            request_kind=kind.value,
            attempted=[a.provider for a in attempts],
            skipped=[s.provider for s in skipped],
        )
        raise NoProviderAvailable(kind.value, attempts, skipped)


__all__ = ["MISSING_CREDENTIALS", "UNHEALTHY", "FallbackRouter", "RoutedResult"]
