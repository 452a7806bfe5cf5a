"""SerpAPI Google Jobs search."""
from __future__ import annotations

from typing import Callable

import requests

from autojob.log import get_logger
from autojob.models import DiscoveredJob, Preferences
from autojob.retry import retry
from autojob.sources.base import JobSource

log = get_logger(__name__)


def _best_apply_link(hit: dict) -> str:
    for opts_key in ("apply_options", "related_links"):
        opts = hit.get(opts_key, [])
        if opts and isinstance(opts, list):
            for opt in opts:
                link = opt.get("link", "")
                if link:
                    return link
    return hit.get("share_link", "") or hit.get("link", "")


class SerpApiSource(JobSource):
    name = "Google Jobs"

    def __init__(self, env_getter: Callable[[str], str]) -> None:
        self.api_key: str = env_getter("SERPAPI_KEY")

    @retry(max_attempts=3, base_delay=2.0, retryable=(requests.RequestException, OSError))
    def _fetch(self, query: str, location: str, limit: int) -> list[DiscoveredJob]:
        r = requests.get(
            "https://serpapi.com/search",
            params={
                "engine": "google_jobs",
                "q": query,
                "location": location,
                "api_key": self.api_key,
            },
            timeout=20,
        )
        r.raise_for_status()
        data = r.json()
        jobs: list[DiscoveredJob] = []
        for hit in data.get("jobs_results", [])[:limit]:
            link = _best_apply_link(hit)
            if not link:
                continue
            jobs.append(
                DiscoveredJob(
                    title=hit.get("title", ""),
                    company=hit.get("company_name", "") or "Unknown Company",
                    location=hit.get("location", "") or location,
                    url=link,
                    source=self.name,
                )
            )
        return jobs

    def search(self, prefs: Preferences, limit: int = 15) -> list[DiscoveredJob]:
        location = "Remote" if prefs.remote_only else (prefs.locations[0] if prefs.locations else "United States")
        queries = prefs.target_roles[:3] or ["software engineer"]

        all_jobs: list[DiscoveredJob] = []
        for q in queries:
            if len(all_jobs) >= limit:
                break
            try:
                batch = self._fetch(q, location, limit=limit)
                all_jobs.extend(batch)
                log.debug("SerpAPI query=%r returned %d jobs", q, len(batch))
            except Exception as exc:
                log.warning("SerpAPI query=%r error: %s", q, exc)
                continue

        return all_jobs[:limit]
