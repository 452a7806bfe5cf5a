from __future__ import annotations

import asyncio
from typing import Callable

from autojob.log import get_logger
from autojob.models import DiscoveredJob, Preferences
from autojob.sources.adzuna import AdzunaSource
from autojob.sources.base import JobSource
from autojob.sources.mock import MockSource
from autojob.sources.remotive import RemotiveSource
from autojob.sources.serpapi import SerpApiSource

log = get_logger(__name__)

__all__ = [
    "JobSource", "AdzunaSource", "SerpApiSource", "RemotiveSource", "MockSource",
    "JobDiscovery", "get_sources", "merge_unique",
]

DISCOVERY_LIMIT = 15


def get_sources(env_getter: Callable[[str], str], *, include_remotive: bool = True) -> list[JobSource]:
    sources: list[JobSource] = []

    if env_getter("ADZUNA_APP_ID") and env_getter("ADZUNA_APP_KEY"):
        sources.append(AdzunaSource(env_getter))
        log.info("Registered source: Adzuna")

    if env_getter("SERPAPI_KEY"):
        sources.append(SerpApiSource(env_getter))
        log.info("Registered source: SerpAPI (Google Jobs)")

    if not sources:
        sources.append(MockSource())
        log.info("No API keys found, using MockSource")

    if include_remotive:
        sources.append(RemotiveSource())
        log.info("Registered source: Remotive (free, remote jobs)")

    return sources


def merge_unique(batches: list[list[DiscoveredJob]], limit: int) -> list[DiscoveredJob]:
    """Flatten in source order, keep the first listing per URL, cap at *limit*."""
    seen: set[str] = set()
    merged: list[DiscoveredJob] = []
    for batch in batches:
        for job in batch:
            if not job.url or job.url in seen:
                continue
            seen.add(job.url)
            merged.append(job)
            if len(merged) >= limit:
                return merged
    return merged


class JobDiscovery:
    """Searches every source concurrently and merges the results."""

    def __init__(self, sources: list[JobSource], limit: int = DISCOVERY_LIMIT) -> None:
        self.sources = sources
        self.limit = limit

    async def _search_one(self, source: JobSource, prefs: Preferences) -> list[DiscoveredJob]:
        # Remotive only lists remote roles
        if isinstance(source, RemotiveSource) and not (
            prefs.remote_only or any(loc.lower() == "remote" for loc in prefs.locations)
        ):
            return []
        try:
            jobs = await asyncio.to_thread(source.search, prefs, self.limit)
        except Exception as exc:
            log.warning("Source %s failed: %s", source.name, exc)
            return []
        log.info("Source %s returned %d listing(s)", source.name, len(jobs))
        return jobs

    async def discover_jobs(self, preferences: Preferences) -> list[DiscoveredJob]:
        batches = await asyncio.gather(*(self._search_one(s, preferences) for s in self.sources))
        jobs = merge_unique(list(batches), self.limit)
        log.info("Discovery: %d unique listing(s) from %d source(s)", len(jobs), len(self.sources))
        return jobs
