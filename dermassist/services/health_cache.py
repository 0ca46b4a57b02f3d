"""Time-bounded provider availability cache with per-provider probe serialization."""

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
import time
from typing import Any

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from dermassist.providers.base import ProviderAdapter
from dermassist.providers.errors import ProviderError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProviderHealth:
    """Cached availability of one provider.

    ``last_checked_at`` is on the cache's monotonic clock and drives staleness;
    ``checked_at`` is wall-clock time for display only.
    """

    provider: str
    available: bool = False
    last_checked_at: float | None = None
    checked_at: datetime | None = None
    detail: str = "not checked"
    models: tuple[str, ...] = ()

    def is_fresh(self, now: float, stale_after: float) -> bool:
        return self.last_checked_at is not None and now - self.last_checked_at < stale_after

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "last_checked": self.checked_at.isoformat() if self.checked_at else None,
            "detail": self.detail,
            "models": list(self.models),
        }


def _is_down(record: ProviderHealth) -> bool:
    return not record.available


def _last_record(retry_state: RetryCallState) -> ProviderHealth:
    return retry_state.outcome.result()


@dataclass
class HealthCache:
    """Serves cached availability inside the staleness window, probes otherwise.

    Failed probes are cached exactly like successful ones. Each provider has its
    own lock, so concurrent callers hitting the same stale record share a single
    probe while probes for different providers run independently.

    Example:
        ```python
        cache = HealthCache(adapters, stale_after=30.0, probe_timeout=5.0)
        if await cache.is_available("ollama"):
            ...
        ```
    """

    adapters: Mapping[str, ProviderAdapter]
    stale_after: float = 30.0
    probe_timeout: float = 5.0
    clock: Callable[[], float] = time.monotonic
    warmup_wait: float = 1.0  # exponential backoff multiplier between warm-up probes

    _records: dict[str, ProviderHealth] = field(default_factory=dict, init=False)
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict, init=False)

    def __post_init__(self) -> None:
        for provider_id in self.adapters:
            self._records[provider_id] = ProviderHealth(provider=provider_id)
            self._locks[provider_id] = asyncio.Lock()

    def _adapter(self, provider_id: str) -> ProviderAdapter:
        try:
            return self.adapters[provider_id]
        except KeyError:
            raise KeyError(f"Unknown provider: {provider_id}") from None

    async def is_available(self, provider_id: str) -> bool:
        """Cached flag when fresh, otherwise the result of a bounded probe."""
        self._adapter(provider_id)
        record = self._records[provider_id]
        if record.is_fresh(self.clock(), self.stale_after):
            return record.available

        async with self._locks[provider_id]:
            # Another caller may have probed while this one waited on the lock.
            record = self._records[provider_id]
            if record.is_fresh(self.clock(), self.stale_after):
                return record.available
            record = await self._probe(provider_id)
        return record.available

    async def refresh(self, provider_id: str) -> ProviderHealth:
        """Force a probe regardless of freshness."""
        self._adapter(provider_id)
        async with self._locks[provider_id]:
            return await self._probe(provider_id)

    async def refresh_all(self) -> dict[str, ProviderHealth]:
        records = await asyncio.gather(*(self.refresh(pid) for pid in self.adapters))
        return {record.provider: record for record in records}

    def snapshot(self) -> dict[str, ProviderHealth]:
        """Current records without probing."""
        return dict(self._records)

    async def _probe(self, provider_id: str) -> ProviderHealth:
        adapter = self._adapter(provider_id)
        started = self.clock()
        models: tuple[str, ...] = ()
        try:
            result = await asyncio.wait_for(
                adapter.probe(self.probe_timeout), timeout=self.probe_timeout
            )
            available, detail, models = result.ok, result.detail, result.models
        except TimeoutError:
            available, detail = False, f"probe timed out after {self.probe_timeout:.0f}s"
        except ProviderError as e:
            available, detail = False, f"{e.kind.value}: {e.message}"
        except Exception as e:
            logger.warning(
                "Health probe raised unexpectedly",
                provider=provider_id,
                error=str(e),
                exc_info=True,
            )
            available, detail = False, f"probe error: {type(e).__name__}"

        previous = self._records[provider_id]
        record = replace(
            previous,
            available=available,
            last_checked_at=self.clock(),
            checked_at=datetime.now(UTC),
            detail=detail,
            models=models,
        )
        self._records[provider_id] = record

        log = logger.info if available != previous.available else logger.debug
        log(
            "Provider health checked",
            provider=provider_id,
            available=available,
            detail=detail,
            probe_ms=round((self.clock() - started) * 1000, 2),
        )
        return record

    async def warm_up(self, attempts: int = 3) -> dict[str, ProviderHealth]:
        """Probe every provider, retrying unavailable ones with exponential backoff.

        Meant to run as a background task at startup; a sleeping hosted endpoint
        often needs a couple of requests before it answers.
        """

        async def warm(provider_id: str) -> ProviderHealth:
            retrying = AsyncRetrying(
                stop=stop_after_attempt(attempts),
                wait=wait_exponential(
                    multiplier=self.warmup_wait, min=0, max=10 * self.warmup_wait
                ),
                retry=retry_if_result(_is_down),
                retry_error_callback=_last_record,
            )
            return await retrying(self.refresh, provider_id)

        logger.info("Warming up providers", providers=list(self.adapters), attempts=attempts)
        records = await asyncio.gather(*(warm(pid) for pid in self.adapters))
        logger.info(
            "Provider warm-up finished",
            available=[r.provider for r in records if r.available],
            unavailable=[r.provider for r in records if not r.available],
        )
        return {record.provider: record for record in records}


__all__ = ["HealthCache", "ProviderHealth"]
