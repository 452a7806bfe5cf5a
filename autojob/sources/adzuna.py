"""Adzuna job search aggregator.

Free tier: 250 requests/day.  Sign up at https://developer.adzuna.com/
"""
from __future__ import annotations

from typing import Callable

import requests

from autojob.log import get_logger
from autojob.models import DiscoveredJob, Preferences
from autojob.retry import retry
from autojob.sources.base import JobSource, search_keywords

log = get_logger(__name__)

BASE_URL = "https://api.adzuna.com/v1/api/jobs"

COUNTRY_CODES: dict[str, str] = {
    "US": "us", "United States": "us", "USA": "us",
    "UK": "gb", "United Kingdom": "gb",
    "Canada": "ca",
    "Australia": "au",
    "Germany": "de",
    "France": "fr",
    "India": "in",
}


def country_code(location: str) -> str:
    for key, code in COUNTRY_CODES.items():
        if key in location:
            return code
    return "us"


class AdzunaSource(JobSource):
    name = "Adzuna"

    def __init__(self, env_getter: Callable[[str], str]) -> None:
        self.app_id: str = env_getter("ADZUNA_APP_ID")
        self.app_key: str = env_getter("ADZUNA_APP_KEY")

    @retry(max_attempts=3, base_delay=2.0, retryable=(requests.RequestException, OSError))
    def _fetch(self, keywords: str, where: str, country: str, per_page: int) -> list[DiscoveredJob]:
        params: dict = {
            "app_id": self.app_id,
            "app_key": self.app_key,
            "what": keywords,
            "results_per_page": per_page,
            "content-type": "application/json",
            "sort_by": "date",
        }
        if where:
            params["where"] = where

        r = requests.get(f"{BASE_URL}/{country}/search/1", params=params, timeout=15)
        r.raise_for_status()
        data = r.json()

        jobs: list[DiscoveredJob] = []
        for hit in data.get("results", []):
            url = hit.get("redirect_url", "")
            if not url:
                continue
            jobs.append(
                DiscoveredJob(
                    title=hit.get("title", ""),
                    company=(hit.get("company") or {}).get("display_name", "") or "Unknown Company",
                    location=(hit.get("location") or {}).get("display_name", "") or where,
                    url=url,
                    source=self.name,
                )
            )
        return jobs

    def search(self, prefs: Preferences, limit: int = 15) -> list[DiscoveredJob]:
        location = prefs.locations[0] if prefs.locations else "US"
        where = "remote" if prefs.remote_only else location
        country = "us" if location.lower() == "remote" else country_code(location)
        try:
            jobs = self._fetch(search_keywords(prefs), where, country, per_page=min(limit, 20))
        except Exception as exc:
            log.warning("Adzuna search error: %s", exc)
            return []
        log.debug("Adzuna where=%r returned %d jobs", where, len(jobs))
        return jobs[:limit]
