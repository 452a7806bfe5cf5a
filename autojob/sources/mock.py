"""Sample listings used when no job board API is configured."""
from __future__ import annotations

from autojob.log import get_logger
from autojob.models import DiscoveredJob, Preferences
from autojob.sources.base import JobSource

log = get_logger(__name__)


class MockSource(JobSource):
    name = "Sample"

    def search(self, prefs: Preferences, limit: int = 15) -> list[DiscoveredJob]:
        role = prefs.target_roles[0] if prefs.target_roles else "Software Engineer"
        location = "Remote" if prefs.remote_only else (prefs.locations[0] if prefs.locations else "Remote")
        log.info("MockSource generating sample jobs")
        mock_jobs = [
            DiscoveredJob(
                title=role,
                company="TechCorp",
                location=location,
                url="https://example.com/jobs/1",
                source=self.name,
            ),
            DiscoveredJob(
                title=f"Senior {role}",
                company="CloudScale SaaS",
                location="Remote",
                url="https://example.com/jobs/2",
                source=self.name,
            ),
            DiscoveredJob(
                title="Platform Engineer",
                company="Enterprise Platform Inc",
                location=location,
                url="https://example.com/jobs/3",
                source=self.name,
            ),
        ]
        return mock_jobs[:limit]
