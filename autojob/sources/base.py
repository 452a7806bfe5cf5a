from __future__ import annotations

from abc import ABC, abstractmethod

from autojob.models import DiscoveredJob, Preferences

DEFAULT_QUERY = "software engineer"


def search_keywords(prefs: Preferences) -> str:
    return " ".join(prefs.target_roles[:3]) or DEFAULT_QUERY


class JobSource(ABC):
    name: str = "unknown"

    @abstractmethod
    def search(self, prefs: Preferences, limit: int = 15) -> list[DiscoveredJob]:
        pass
