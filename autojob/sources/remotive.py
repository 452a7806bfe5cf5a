"""Remotive: free API for remote tech jobs (no API key required).

Docs: https://remotive.com/api/remote-jobs
"""
from __future__ import annotations

import requests

from autojob.log import get_logger
from autojob.models import DiscoveredJob, Preferences
from autojob.retry import retry
from autojob.sources.base import JobSource

log = get_logger(__name__)

API_URL = "https://remotive.com/api/remote-jobs"

_GENERIC_WORDS = {
    "senior", "junior", "lead", "staff", "principal", "manager",
    "engineer", "specialist", "consultant", "ii", "iii", "iv",
}


def search_terms(roles: list[str]) -> list[str]:
    """Remotive matches short distinctive words better than full titles."""
    terms: list[str] = []
    for role in roles[:2]:
        distinctive = [w for w in role.lower().split() if w not in _GENERIC_WORDS]
        if distinctive and distinctive[0] not in terms:
            terms.append(distinctive[0])
    return terms or ["engineer"]


class RemotiveSource(JobSource):
    name = "Remotive"

    @retry(max_attempts=2, base_delay=1.5, retryable=(requests.RequestException, OSError))
    def _fetch(self, search: str, limit: int) -> list[DiscoveredJob]:
        r = requests.get(API_URL, params={"search": search, "limit": limit}, timeout=15)
        r.raise_for_status()
        data = r.json()

        jobs: list[DiscoveredJob] = []
        for hit in data.get("jobs", []):
            if not hit.get("url"):
                continue
            jobs.append(
                DiscoveredJob(
                    title=hit.get("title", ""),
                    company=hit.get("company_name", "") or "Unknown Company",
                    location=hit.get("candidate_required_location", "") or "Remote",
                    url=hit["url"],
                    source=self.name,
                )
            )
        return jobs

    def search(self, prefs: Preferences, limit: int = 15) -> list[DiscoveredJob]:
        all_jobs: list[DiscoveredJob] = []
        for term in search_terms(prefs.target_roles):
            try:
                batch = self._fetch(term, limit=limit)
                all_jobs.extend(batch)
                log.debug("Remotive search=%r returned %d jobs", term, len(batch))
            except Exception as exc:
                log.warning("Remotive search=%r error: %s", term, exc)
        return all_jobs[:limit]
