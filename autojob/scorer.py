"""Offline, role-aware match scoring and resume track selection."""
from __future__ import annotations

import re

from autojob.log import get_logger
from autojob.models import JobRecord, MatchResult, Profile, ResumeTrack

log = get_logger(__name__)


def _normalize(s: str) -> str:
    return (s or "").lower().strip()


LOCATION_ALIASES: dict[str, list[str]] = {
    "new york": ["new york", "nyc", "brooklyn", "manhattan"],
    "san francisco": ["san francisco", "sf", "bay area"],
    "london": ["london"],
    "bangalore": ["bangalore", "bengaluru"],
    "remote": ["remote", "anywhere", "work from home", "wfh", "distributed"],
}

# Titles that signal a level well above a senior individual contributor
OVER_LEVEL_TITLES: list[str] = [
    "director", "vice president", "vp ", "vp,", "chief ",
    "head of", "cto", "managing director", "general manager",
]

SENIORITY_TERMS: list[str] = [
    "senior", "lead", "principal", "staff", "10+", "8+", "5+",
    "experienced", "mid-level", "mid level",
]

# Minimum token length when expanding compound skills to avoid
# tiny tokens like "ai", "api" that match everything.
_MIN_SKILL_TOKEN_LEN = 4


def _expand_locations(locations: list[str]) -> list[str]:
    expanded: list[str] = []
    for loc in locations:
        key = loc.lower().strip()
        expanded.extend(LOCATION_ALIASES.get(key, [key]))
    return expanded


def _expand_skills(raw_skills: list[str]) -> list[str]:
    """Break compound skills into matchable tokens, filtering short noise."""
    tokens: list[str] = []
    for s in raw_skills:
        low = s.lower()
        tokens.append(low)
        for part in re.findall(r"[a-z0-9]+(?:[\s-][a-z0-9]+)*", low):
            part = part.strip()
            if part and part != low and len(part) >= _MIN_SKILL_TOKEN_LEN:
                tokens.append(part)
    return list(dict.fromkeys(tokens))


def _word_overlap_ratio(role: str, text: str) -> float:
    """Fraction of words in *role* that appear in *text*.

    Requires at least 2 overlapping words to be non-zero, preventing
    single-word false positives like "engineer" matching everything.
    """
    role_words = set(role.lower().split())
    text_words = set(text.lower().split())
    if not role_words:
        return 0.0
    overlap = role_words & text_words
    if len(overlap) < 2 and len(role_words) > 1:
        return 0.0
    return len(overlap) / len(role_words)


def _role_points(title: str, desc: str, roles: list[str]) -> tuple[float, str]:
    """Best role match: title substring 40, title overlap 35, description 15."""
    title_norm = _normalize(title)
    desc_norm = _normalize(desc)
    best, best_role = 0.0, ""
    for role_raw in roles:
        role = role_raw.lower()
        if role in title_norm:
            points = 40.0
        elif _word_overlap_ratio(role, title_norm) >= 0.6:
            points = 35.0
        elif role in desc_norm:
            points = 15.0
        else:
            continue
        if points > best:
            best, best_role = points, role_raw
    return best, best_role


def candidate_skills(profile: Profile) -> list[str]:
    skills: list[str] = []
    for track in profile.resume_tracks:
        skills.extend(track.content.skills)
        for project in track.content.projects:
            skills.extend(project.technologies)
    return list(dict.fromkeys(skills))


def _track_keywords(track: ResumeTrack) -> list[str]:
    words = list(track.content.skills)
    for project in track.content.projects:
        words.extend(project.technologies)
    return _expand_skills(words)


def select_track(job: JobRecord, profile: Profile) -> tuple[ResumeTrack | None, list[str]]:
    """Pick the track sharing the most keywords with the job; ties keep order."""
    text = _normalize(f"{job.title} {job.description} {' '.join(job.skills)}")
    best: ResumeTrack | None = None
    best_hits: list[str] = []
    for track in profile.resume_tracks:
        hits = [k for k in _track_keywords(track) if k in text]
        if _normalize(track.name) and _normalize(track.name) in text:
            hits.append(track.name.lower())
        if best is None or len(hits) > len(best_hits):
            best, best_hits = track, hits
    return best, best_hits


def score_job(job: JobRecord, profile: Profile) -> MatchResult:
    reasons: list[str] = []
    desc = _normalize(job.description)
    title_norm = _normalize(job.title)
    full_text = f"{desc} {title_norm} {' '.join(job.skills).lower()}"

    mine = candidate_skills(profile)
    my_tokens = _expand_skills(mine)
    missing = [s for s in job.skills if s.lower() not in my_tokens]

    if any(tag in title_norm for tag in OVER_LEVEL_TITLES):
        return MatchResult(
            score=0,
            reasoning="Filtered: seniority above profile level",
            missing_skills=missing,
        )

    roles = list(profile.preferences.target_roles) + [t.name for t in profile.resume_tracks]
    role_points, matched_role = _role_points(job.title, job.description, roles)
    if matched_role:
        reasons.append(f"Role match: {matched_role}")

    matched = [s for s in my_tokens if s in full_text]
    if job.skills:
        covered = len(job.skills) - len(missing)
        skill_points = 30.0 * covered / len(job.skills)
    else:
        skill_points = min(5.0 * len(matched), 30.0)
    if matched:
        reasons.append("Skills: " + ", ".join(matched[:5]))

    seniority_points = 0.0
    for term in SENIORITY_TERMS:
        if term in full_text:
            seniority_points = 10.0
            reasons.append("Seniority level fit")
            break

    location_points = 0.0
    aliases = _expand_locations(profile.preferences.locations)
    job_loc = _normalize(job.location)
    if any(alias in job_loc for alias in aliases):
        location_points = 15.0
        reasons.append("Location match")
    elif profile.preferences.remote_only and "remote" in full_text:
        location_points = 15.0
        reasons.append("Remote role")

    score = role_points + skill_points + seniority_points + location_points
    if len(matched) >= 3 and role_points >= 35:
        score += 5.0
    score = round(min(score, 100.0), 1)

    return MatchResult(
        score=score,
        reasoning="; ".join(reasons) or "No overlapping signals",
        missing_skills=missing,
    )
