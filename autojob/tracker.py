"""Application history in a CSV table with advisory file locking."""
from __future__ import annotations

import csv
import fcntl
import json
from dataclasses import asdict
from pathlib import Path

from autojob.config import DATA_DIR
from autojob.log import get_logger
from autojob.models import ApplicationLogEntry

log = get_logger(__name__)

APPLICATIONS_CSV: Path = DATA_DIR / "applications.csv"
HEADERS: list[str] = [
    "id", "job_id", "title", "company", "url", "applied_at",
    "status", "platform", "location", "track", "cover_letter_style", "materials",
]


def _lock(f, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    try:
        op = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(f.fileno(), op)
    except (OSError, AttributeError):
        pass


def _unlock(f) -> None:
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except (OSError, AttributeError):
        pass


def entry_row(entry: ApplicationLogEntry) -> dict[str, str]:
    materials = entry.materials
    return {
        "id": entry.id,
        "job_id": entry.job_id,
        "title": entry.job_title,
        "company": entry.company,
        "url": entry.url,
        "applied_at": entry.timestamp,
        "status": entry.status.value,
        "platform": entry.platform,
        "location": entry.location,
        "track": materials.report.selected_track_name if materials else "",
        "cover_letter_style": materials.cover_letter_style.value if materials else "",
        "materials": json.dumps(asdict(materials), default=str) if materials else "",
    }


class CsvApplicationStore:
    def __init__(self, path: Path | None = None) -> None:
        self.path = path or APPLICATIONS_CSV

    def ensure(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            with open(self.path, "w", newline="", encoding="utf-8") as f:
                _lock(f)
                csv.writer(f).writerow(HEADERS)
                _unlock(f)
            log.info("Created application tracker → %s", self.path.name)

    def record(self, entry: ApplicationLogEntry) -> None:
        self.ensure()
        with open(self.path, "a", newline="", encoding="utf-8") as f:
            _lock(f)
            csv.DictWriter(f, fieldnames=HEADERS).writerow(entry_row(entry))
            _unlock(f)
        log.debug("Tracked: %s @ %s [%s]", entry.job_title, entry.company, entry.status.value)

    def entries(self) -> list[dict[str, str]]:
        self.ensure()
        with open(self.path, "r", encoding="utf-8") as f:
            _lock(f, exclusive=False)
            rows = list(csv.DictReader(f))
            _unlock(f)
        return rows
