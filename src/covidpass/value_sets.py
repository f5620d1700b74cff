"""
Value-set resolver — process-scoped, append-only catalog cache.

Lifetime: one ValueSetResolver per process (the CLI run or the ASGI app
lifespan). Catalogs are fetched on first request and kept until the
resolver is discarded; entries are never invalidated. Tests create a fresh
resolver per case.

Concurrency (claim-or-wait):
  - the first caller for an uncached name starts the fetch and records it
    as in flight;
  - later callers for the same name await that same fetch;
  - fetches for different names never wait on each other;
  - a catalog is committed only when its fetch succeeds; a failed fetch
    leaves nothing behind, so the next request starts a new one;
  - if every caller waiting on a fetch is cancelled, the fetch itself is
    cancelled; a request arriving before that cancellation settles starts
    a new fetch instead of joining the dying one.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass

import structlog
from railway.result import Result

from covidpass.domain.models import ValueSetCatalog, ValueSets
from covidpass.domain.ports import ValueSetSource

log = structlog.get_logger()


@dataclass(slots=True)
class _InFlight:
    task: asyncio.Task[Result[ValueSetCatalog]]
    waiters: int = 0
    abandoned: bool = False


class ValueSetResolver:
    """Resolve value-set catalogs by name, fetching each at most once at a time."""

    def __init__(self, source: ValueSetSource) -> None:
        self._source = source
        self._catalogs: dict[str, ValueSetCatalog] = {}
        self._in_flight: dict[str, _InFlight] = {}

    @property
    def cached_names(self) -> frozenset[str]:
        return frozenset(self._catalogs)

    async def resolve(self, name: str) -> Result[ValueSetCatalog]:
        """
        Return the catalog for `name`, fetching it if needed.

        Returns Result.failure(FETCH_ERROR) when the source fails; that
        failure is shared by every caller that joined the same fetch.
        """
        cached = self._catalogs.get(name)
        if cached is not None:
            return Result.success(cached)

        flight = self._in_flight.get(name)
        if flight is None or flight.abandoned:
            flight = _InFlight(task=asyncio.create_task(self._fetch(name)))
            self._in_flight[name] = flight
            flight.task.add_done_callback(lambda _t, n=name, f=flight: self._forget(n, f))
        else:
            log.debug("value_sets.fetch_joined", catalog=name)

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            if flight.waiters == 1 and not flight.task.done():
                log.info("value_sets.fetch_abandoned", catalog=name)
                flight.abandoned = True
                flight.task.cancel()
            raise
        finally:
            flight.waiters -= 1

    async def resolve_all(self, names: Iterable[str]) -> Result[ValueSets]:
        """Resolve several catalogs concurrently into one ValueSets bundle."""
        unique = list(dict.fromkeys(names))
        resolved = await Result.gather(self.resolve(name) for name in unique)
        return resolved.map(lambda catalogs: ValueSets.of(*catalogs))

    async def _fetch(self, name: str) -> Result[ValueSetCatalog]:
        log.info("value_sets.fetching", catalog=name)
        result = await self._source.fetch(name)
        if result.is_success():
            catalog = result.value()
            self._catalogs[name] = catalog
            log.info("value_sets.fetched", catalog=name, codes=len(catalog))
        else:
            log.warning("value_sets.fetch_failed", catalog=name, reason=result.error().message)
        return result

    def _forget(self, name: str, flight: _InFlight) -> None:
        if self._in_flight.get(name) is flight:
            del self._in_flight[name]
