"""Load profile and env configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from autojob.log import get_logger
from autojob.models import Profile

# Before the first get_logger call so LOG_LEVEL from .env applies
load_dotenv()

log = get_logger(__name__)

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = PROJECT_ROOT / "config"
PROFILE_PATH: Path = CONFIG_DIR / "profile.yaml"
EXAMPLE_PROFILE_PATH: Path = CONFIG_DIR / "profile.example.yaml"
REPORTS_DIR: Path = PROJECT_ROOT / "reports"
DATA_DIR: Path = PROJECT_ROOT / "data"
PACKAGES_DIR: Path = DATA_DIR / "packages"


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _env_flag(key: str, default: bool) -> bool:
    raw = get_env(key)
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _env_float(key: str, default: float | None) -> float | None:
    raw = get_env(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("Ignoring non-numeric %s=%r", key, raw)
        return default


def _env_range(key: str, default: tuple[float, float]) -> tuple[float, float]:
    """Parse "low,high" seconds; falls back to *default* when malformed."""
    raw = get_env(key)
    if not raw:
        return default
    try:
        low, high = (float(p) for p in raw.split(",", 1))
    except ValueError:
        log.warning("Ignoring malformed range %s=%r", key, raw)
        return default
    if low < 0 or high < low:
        log.warning("Ignoring inverted range %s=%r", key, raw)
        return default
    return low, high


@dataclass(frozen=True)
class Settings:
    groq_api_key: str = ""
    groq_model: str = "llama-3.3-70b-versatile"
    dispatch_mode: str = "package"
    headless: bool = True
    call_timeout: float | None = None
    auto_lock_on_high: bool = False
    risk_threshold: float = 0.96
    risk_pacing: tuple[float, float] = (1.0, 2.0)
    human_delay: tuple[float, float] = (1.5, 4.5)
    bulk_delay: tuple[float, float] = (1.5, 3.0)
    discovery_limit: int = 15

    @classmethod
    def from_env(cls) -> Settings:
        timeout = _env_float("AUTOJOB_CALL_TIMEOUT", None)
        return cls(
            groq_api_key=get_env("GROQ_API_KEY"),
            groq_model=get_env("GROQ_LLM_MODEL", "llama-3.3-70b-versatile"),
            dispatch_mode=get_env("AUTOJOB_DISPATCH", "package").lower(),
            headless=_env_flag("RUN_HEADLESS", True),
            call_timeout=timeout if timeout and timeout > 0 else None,
            auto_lock_on_high=_env_flag("AUTOJOB_AUTO_LOCK_ON_HIGH", False),
            risk_threshold=_env_float("AUTOJOB_RISK_THRESHOLD", 0.96) or 0.96,
            risk_pacing=_env_range("AUTOJOB_RISK_PACING", (1.0, 2.0)),
            human_delay=_env_range("AUTOJOB_HUMAN_DELAY", (1.5, 4.5)),
            bulk_delay=_env_range("AUTOJOB_BULK_DELAY", (1.5, 3.0)),
            discovery_limit=int(_env_float("AUTOJOB_DISCOVERY_LIMIT", 15) or 15),
        )


def ensure_dirs() -> None:
    for d in (CONFIG_DIR, REPORTS_DIR, DATA_DIR, PACKAGES_DIR):
        d.mkdir(parents=True, exist_ok=True)


def load_profile_data(path: Path | None = None) -> dict[str, Any]:
    path = path or PROFILE_PATH
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    # Backward compat: flat top-level preferred_roles from older profiles
    prefs = data.setdefault("preferences", {}) or {}
    if "preferred_roles" in data and not prefs.get("target_roles"):
        prefs["target_roles"] = data.pop("preferred_roles")
    if "locations" in data and not prefs.get("locations"):
        prefs["locations"] = data.pop("locations")
    data["preferences"] = prefs
    return data


def load_profile(path: Path | None = None) -> Profile:
    profile = Profile.from_dict(load_profile_data(path))
    if not profile.resume_tracks:
        log.warning("Profile has no resume tracks; tailoring will fail")
    return profile


def save_profile(profile: Profile, path: Path | None = None) -> Path:
    """Write profile to YAML, keeping a short header for hand edits."""
    path = path or PROFILE_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    header = (
        "# ============================================================\n"
        "# Candidate Profile: resume tracks and search preferences\n"
        "# Edit freely; the agent rewrites this file after augmentation\n"
        "# ============================================================\n\n"
    )

    yaml_str = yaml.safe_dump(profile.to_dict(), default_flow_style=False, sort_keys=False, allow_unicode=True)
    path.write_text(header + yaml_str, encoding="utf-8")
    log.info("Profile written → %s", path)
    return path
