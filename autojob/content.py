"""Job extraction, match scoring and tailored materials via Groq (or offline fallbacks).

With ``GROQ_API_KEY`` set every call goes to the model; without it the
service degrades to deterministic local behaviour: page-title extraction,
the heuristic scorer, a template cover letter and keyword-based track
selection.
"""
from __future__ import annotations

import asyncio
import copy
import html
import json
import re
from typing import Any, Callable
from urllib.parse import urlparse

import requests

from autojob.errors import ExtractionError, GenerationError
from autojob.llm import GroqClient, MalformedResponse
from autojob.log import get_logger
from autojob.models import (
    CoverLetterStyle,
    IntentAssessment,
    InterviewQuestion,
    JobIntent,
    JobRecord,
    MatchResult,
    MirroredPhrase,
    MutationReport,
    Profile,
    Project,
    ResumeDocument,
    ResumeTrack,
    new_id,
    utc_now,
)
from autojob.scorer import score_job, select_track

log = get_logger(__name__)

STYLE_PROMPTS: dict[CoverLetterStyle, str] = {
    CoverLetterStyle.ULTRA_CONCISE: "Be brutally brief. 1-2 punchy sentences max. High signal, zero noise.",
    CoverLetterStyle.RESULTS_DRIVEN: "Focus entirely on metrics and ROI. Tie concrete achievements from the profile to the job.",
    CoverLetterStyle.FOUNDER_FRIENDLY: "Use a high-agency, 'let's build' tone. Focus on grit, ownership, and mission alignment.",
    CoverLetterStyle.TECHNICAL_DEEP_CUT: "Get into the weeds of the tech stack. Mention specific frameworks, architecture choices, and trade-offs.",
    CoverLetterStyle.CHILL_PROFESSIONAL: "Relaxed, modern tone. Still extremely competent. Avoid corporate jargon.",
}

NOT_SPECIFIED = "Not Specified"
INTERVIEW_QUESTIONS = 5
_URL_RE = re.compile(r"https?://[^\s\"'<>]+")
_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_META_RE = re.compile(
    r"<meta[^>]+(?:property|name)=[\"'](og:site_name|og:title|description)[\"'][^>]+content=[\"']([^\"']*)[\"']",
    re.IGNORECASE,
)
_TAG_RE = re.compile(r"<(script|style)[^>]*>.*?</\1>|<[^>]+>", re.IGNORECASE | re.DOTALL)
_PAGE_TEXT_LIMIT = 6000

HttpGet = Callable[..., Any]


def source_platform(url: str) -> str:
    u = (url or "").lower()
    if "linkedin.com" in u:
        return "LinkedIn"
    if "indeed." in u:
        return "Indeed"
    if "wellfound.com" in u or "angel.co" in u:
        return "Wellfound"
    return "Other"


def resolve_apply_url(candidate: str | None, reference: str) -> str:
    """Model URL if usable, else the reference itself, else the first URL in it."""
    if candidate and candidate.strip() and candidate.strip() != NOT_SPECIFIED:
        return candidate.strip()
    trimmed = reference.strip()
    if trimmed.startswith("http"):
        return trimmed
    found = _URL_RE.search(trimmed)
    return found.group(0) if found else "#"


def _page_to_text(raw_html: str) -> tuple[str, dict[str, str]]:
    meta = {k.lower(): html.unescape(v).strip() for k, v in _META_RE.findall(raw_html)}
    title = _TITLE_RE.search(raw_html)
    if title:
        meta.setdefault("title", html.unescape(title.group(1)).strip())
    text = html.unescape(_TAG_RE.sub(" ", raw_html))
    text = re.sub(r"\s+", " ", text).strip()
    return text[:_PAGE_TEXT_LIMIT], meta


def _split_title(raw_title: str) -> tuple[str, str]:
    """'Senior Engineer - Acme | Careers' → ('Senior Engineer', 'Acme')."""
    parts = [p.strip() for p in re.split(r"\s[-|–@]\s|\sat\s", raw_title) if p.strip()]
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


def _candidate_name(profile: Profile) -> str:
    return profile.full_name.strip() or "Candidate"


def _profile_digest(profile: Profile) -> str:
    tracks = [
        {"id": t.id, "name": t.name, "content": t.content.to_dict()}
        for t in profile.resume_tracks
    ]
    return json.dumps(
        {
            "name": profile.full_name,
            "target_roles": profile.preferences.target_roles,
            "locations": profile.preferences.locations,
            "remote_only": profile.preferences.remote_only,
            "resume_tracks": tracks,
        }
    )


def _job_digest(job: JobRecord) -> str:
    return json.dumps(
        {
            "title": job.title,
            "company": job.company,
            "location": job.location,
            "skills": list(job.skills),
            "description": job.description[:3000],
        }
    )


class GroqContentService:
    def __init__(self, client: GroqClient | None = None, *, http_get: HttpGet = requests.get) -> None:
        self.client = client
        self._http_get = http_get

    @property
    def online(self) -> bool:
        return self.client is not None

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def _fetch_page(self, url: str) -> tuple[str, dict[str, str]]:
        r = self._http_get(url, timeout=15, headers={"User-Agent": "Mozilla/5.0 (AutoJob agent)"})
        r.raise_for_status()
        return _page_to_text(r.text)

    async def extract_job(self, reference: str) -> JobRecord:
        reference = (reference or "").strip()
        if not reference:
            raise ExtractionError("empty job reference")

        page_text, meta = "", {}
        if reference.startswith("http"):
            try:
                page_text, meta = await asyncio.to_thread(self._fetch_page, reference)
            except requests.RequestException as exc:
                if not self.online:
                    raise ExtractionError(f"could not fetch {reference}: {exc}") from exc
                log.warning("Page fetch failed for %s (%s); extracting from URL only", reference, exc)

        if self.online:
            return await self._extract_with_model(reference, page_text)
        return self._extract_offline(reference, page_text, meta)

    async def _extract_with_model(self, reference: str, page_text: str) -> JobRecord:
        assert self.client is not None
        intents = ", ".join(i.value for i in JobIntent)
        prompt = f"""Analyze the following unstructured input (text, URL, or page dump) and extract the job listing.
Return JSON with keys: title, company, location, skills (list), description (summary),
applyUrl, platform (LinkedIn | Indeed | Wellfound | Other),
intent {{type ({intents}), confidence (0-1), reasoning}}.
If a field is missing give your most logical deduction or "{NOT_SPECIFIED}".
If the input is a URL, assume it is the apply URL unless a better one is present.

INPUT_REFERENCE: {reference[:2000]}
PAGE_TEXT: {page_text[:_PAGE_TEXT_LIMIT]}"""
        try:
            data = await self.client.acomplete_json(
                prompt,
                system="You are a high-precision Job Intelligence Extractor. Classify job intent honestly.",
            )
        except Exception as exc:
            raise ExtractionError(str(exc)) from exc
        if not isinstance(data, dict):
            raise ExtractionError("extractor returned a non-object")

        intent = data.get("intent") or {}
        apply_url = resolve_apply_url(data.get("applyUrl"), reference)
        platform = data.get("platform") or source_platform(apply_url)
        log.info("Extracted %s @ %s via model", data.get("title"), data.get("company"))
        return JobRecord(
            id=new_id(),
            title=data.get("title") or "Untitled Role",
            company=data.get("company") or "Unknown Company",
            location=data.get("location") or "Location Not Specified",
            description=data.get("description") or page_text[:1500],
            apply_url=apply_url,
            platform=platform if platform in ("LinkedIn", "Indeed", "Wellfound") else "Other",
            skills=tuple(str(s) for s in data.get("skills") or []),
            scraped_at=utc_now().isoformat(timespec="seconds"),
            intent=IntentAssessment(
                type=JobIntent.parse(intent.get("type")),
                confidence=float(intent.get("confidence", 0.5) or 0.0),
                reasoning=str(intent.get("reasoning") or "Automated extraction fallback."),
            ),
        )

    def _extract_offline(self, reference: str, page_text: str, meta: dict[str, str]) -> JobRecord:
        if reference.startswith("http"):
            title, company = _split_title(meta.get("og:title") or meta.get("title", ""))
            company = meta.get("og:site_name") or company or (urlparse(reference).hostname or "").replace("www.", "")
            description = meta.get("description") or page_text
            if not title:
                raise ExtractionError(f"no job title found at {reference}")
        else:
            lines = [ln.strip() for ln in reference.splitlines() if ln.strip()]
            title, company = _split_title(lines[0])
            description = "\n".join(lines[1:]) or reference
        apply_url = resolve_apply_url(None, reference)
        return JobRecord(
            id=new_id(),
            title=title or "Untitled Role",
            company=company or "Unknown Company",
            location="Location Not Specified",
            description=description[:_PAGE_TEXT_LIMIT],
            apply_url=apply_url,
            platform=source_platform(apply_url),
            scraped_at=utc_now().isoformat(timespec="seconds"),
            intent=IntentAssessment(JobIntent.REAL_HIRE, 0.5, "Automated extraction fallback."),
        )

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    async def score_match(self, job: JobRecord, profile: Profile) -> MatchResult:
        if not self.online:
            return score_job(job, profile)
        assert self.client is not None
        try:
            data = await self.client.acomplete_json(
                f"Compare job: {_job_digest(job)} with profile: {_profile_digest(profile)}.\n"
                "Return JSON with keys: score (0-100), reasoning, missingSkills (list).",
                system="Calculate an honest match score (0-100), reasoning, and missing skills.",
            )
            score = max(0.0, min(float(data.get("score", 0)), 100.0))
            return MatchResult(
                score=score,
                reasoning=str(data.get("reasoning", "")),
                missing_skills=[str(s) for s in data.get("missingSkills") or []],
            )
        except Exception as exc:
            log.warning("Match scoring failed for %s: %s", job.id, exc)
            return MatchResult(score=0, reasoning="Error", error=str(exc))

    # ------------------------------------------------------------------
    # Materials
    # ------------------------------------------------------------------

    async def generate_cover_letter(self, job: JobRecord, profile: Profile, style: CoverLetterStyle) -> str:
        if not self.online:
            log.debug("No GROQ_API_KEY, using template cover letter")
            return _template_letter(job, profile, style)
        assert self.client is not None
        name = _candidate_name(profile)
        track, _ = select_track(job, profile)
        summary = track.content.summary if track else ""
        skills = ", ".join((track.content.skills if track else [])[:8])
        prompt = f"""Write a cover letter for this role.
Candidate name: {name}
Candidate summary: {summary}
Key skills: {skills}
Job title: {job.title}
Company: {job.company}
Job description (excerpt): {job.description[:1500]}

Style: {STYLE_PROMPTS[style]}
Use "I" and "my" for the candidate. End with "Best regards," followed by {name}.
Do not use placeholders like [Your Name]."""
        try:
            letter = await self.client.acomplete(prompt, system="Write a compelling cover letter. No placeholders.", max_tokens=600)
        except Exception as exc:
            raise GenerationError(f"cover letter: {exc}") from exc
        log.info("Cover letter generated for %s @ %s", job.title, job.company)
        return letter

    async def tailor_resume(self, job: JobRecord, profile: Profile) -> tuple[ResumeDocument, MutationReport]:
        if not profile.resume_tracks:
            raise GenerationError("profile has no resume tracks")
        if not self.online:
            return _offline_mutation(job, profile)
        assert self.client is not None
        prompt = f"""JOB DESCRIPTION: {_job_digest(job)}

GOLDEN BASE RESUME TRACKS: {_profile_digest(profile)}

1. ROLE SELECTION: select the SINGLE most relevant base resume track.
2. RESUME MUTATION: rewrite bullets, summary and skills to MIRROR the JD language while preserving chronology.
3. FACTUAL INTEGRITY: never invent experience.
4. ATS OPTIMIZATION: use exact keyword matching where applicable.

Return JSON: {{"mutatedResume": {{summary, skills, experience, projects}},
"report": {{selectedTrackId, selectedTrackName, keywordsInjected, mirroredPhrases: [{{original, mirrored}}],
reorderingJustification, atsScoreEstimate, iterationCount}}}}"""
        try:
            data = await self.client.acomplete_json(
                prompt,
                system="You are the Senior Resume Mutation Engine. Maximize ATS score with 100% factual accuracy.",
                max_tokens=3000,
            )
            return _parse_mutation(data, profile)
        except (MalformedResponse, KeyError, TypeError, ValueError) as exc:
            log.warning("Resume mutation response unusable (%s); falling back to first track", exc)
            return _fallback_mutation(profile)
        except Exception as exc:
            raise GenerationError(f"resume mutation: {exc}") from exc

    async def augment_resume(self, track: ResumeTrack, skill: str, job: JobRecord) -> ResumeDocument:
        if not self.online:
            return _offline_augment(track, skill, job)
        assert self.client is not None
        try:
            data = await self.client.acomplete_json(
                f"Resume: {json.dumps(track.content.to_dict())}\n"
                f"Augment this resume with skill: {skill} for job context: {job.title} at {job.company}.\n"
                "Return the full resume JSON with keys summary, skills, experience, projects.",
                system="Update skills and summary, and add one project or experience entry that substantiates the skill.",
                max_tokens=2500,
            )
        except Exception as exc:
            raise GenerationError(f"augmentation: {exc}") from exc
        resume = ResumeDocument.from_dict(data if isinstance(data, dict) else None)
        if skill.lower() not in (s.lower() for s in resume.skills):
            raise GenerationError(f"augmented resume does not list {skill!r}")
        return resume

    # ------------------------------------------------------------------
    # Interview prep
    # ------------------------------------------------------------------

    async def generate_interview_questions(self, job: JobRecord, resume: ResumeDocument) -> list[InterviewQuestion]:
        if not self.online:
            return _offline_interview(job, resume)
        assert self.client is not None
        try:
            data = await self.client.acomplete_json(
                f"Job: {_job_digest(job)}\nResume: {json.dumps(resume.to_dict())}\n"
                f"Generate {INTERVIEW_QUESTIONS} interview questions. Return JSON: "
                '{"questions": [{"question", "context", "suggestedAnswer"}]}',
                system="Generate probable questions, context, and suggested strategic answers.",
                max_tokens=2000,
            )
            questions = [
                InterviewQuestion(
                    question=str(q["question"]),
                    context=str(q.get("context", "")),
                    suggested_answer=str(q.get("suggestedAnswer", "")),
                )
                for q in data.get("questions") or []
                if isinstance(q, dict) and q.get("question")
            ]
        except Exception as exc:
            raise GenerationError(f"interview questions: {exc}") from exc
        if not questions:
            raise GenerationError("interview questions: model returned none")
        log.info("Interview brief: %d question(s) for %s @ %s", len(questions), job.title, job.company)
        return questions


def _template_letter(job: JobRecord, profile: Profile, style: CoverLetterStyle) -> str:
    name = _candidate_name(profile)
    track, _ = select_track(job, profile)
    summary = track.content.summary if track else ""
    skills = ", ".join((track.content.skills if track else [])[:5])
    if style == CoverLetterStyle.ULTRA_CONCISE:
        return (
            f"Hi {job.company} team, I'd like to be your next {job.title}. "
            f"I bring {skills or 'relevant experience'} and can start contributing quickly.\n\n"
            f"Best regards,\n{name}"
        )
    opener = "Hey team," if style == CoverLetterStyle.CHILL_PROFESSIONAL else "Dear Hiring Team,"
    return f"""{opener}

I am writing to apply for the {job.title} position at {job.company}.

{summary}

My experience aligns with your requirements, including: {skills}. I am particularly interested in contributing to your team's success.

I would welcome the opportunity to discuss how my background can contribute to your team.

Best regards,
{name}"""


def _ats_estimate(skills: list[str], job: JobRecord) -> float:
    if not job.skills:
        return 50.0
    mine = {s.lower() for s in skills}
    hits = sum(1 for s in job.skills if s.lower() in mine)
    return round(100.0 * hits / len(job.skills), 1)


def _offline_mutation(job: JobRecord, profile: Profile) -> tuple[ResumeDocument, MutationReport]:
    track, hits = select_track(job, profile)
    assert track is not None
    resume = copy.deepcopy(track.content)
    # Surface job-relevant skills first; nothing is added that the track lacks.
    text = f"{job.title} {job.description} {' '.join(job.skills)}".lower()
    resume.skills.sort(key=lambda s: s.lower() not in text)
    report = MutationReport(
        selected_track_id=track.id,
        selected_track_name=track.name,
        keywords_injected=[],
        reordering_justification=f"Skills matching the posting moved first ({len(hits)} overlap(s)).",
        ats_score_estimate=_ats_estimate(resume.skills, job),
        iteration_count=1,
    )
    return resume, report


def _fallback_mutation(profile: Profile) -> tuple[ResumeDocument, MutationReport]:
    track = profile.resume_tracks[0]
    report = MutationReport(
        selected_track_id=track.id,
        selected_track_name=track.name,
        reordering_justification="System fallback",
        ats_score_estimate=50.0,
        iteration_count=1,
        fallback=True,
    )
    return copy.deepcopy(track.content), report


def _parse_mutation(data: Any, profile: Profile) -> tuple[ResumeDocument, MutationReport]:
    resume = ResumeDocument.from_dict(data["mutatedResume"])
    raw = data["report"]
    track = profile.track(str(raw.get("selectedTrackId"))) or profile.resume_tracks[0]
    report = MutationReport(
        selected_track_id=track.id,
        selected_track_name=str(raw.get("selectedTrackName") or track.name),
        keywords_injected=[str(k) for k in raw.get("keywordsInjected") or []],
        mirrored_phrases=[
            MirroredPhrase(str(p.get("original", "")), str(p.get("mirrored", "")))
            for p in raw.get("mirroredPhrases") or []
            if isinstance(p, dict)
        ],
        reordering_justification=str(raw.get("reorderingJustification", "")),
        ats_score_estimate=float(raw.get("atsScoreEstimate", 0) or 0),
        iteration_count=int(raw.get("iterationCount", 1) or 1),
    )
    return resume, report


def _offline_augment(track: ResumeTrack, skill: str, job: JobRecord) -> ResumeDocument:
    resume = copy.deepcopy(track.content)
    if skill.lower() not in (s.lower() for s in resume.skills):
        resume.skills.append(skill)
    resume.summary = f"{resume.summary} Hands-on with {skill}.".strip()
    resume.projects.append(
        Project(
            name=f"{skill} Prototype",
            description=f"Built a working prototype with {skill} targeting problems like those of a {job.title} at {job.company}.",
            technologies=[skill],
        )
    )
    return resume


def _offline_interview(job: JobRecord, resume: ResumeDocument) -> list[InterviewQuestion]:
    have = {s.lower() for s in resume.skills}
    lead = resume.experience[0] if resume.experience else None
    background = f"my work as {lead.role} at {lead.company}" if lead else "my recent work"
    questions = [
        InterviewQuestion(
            f"Walk me through the experience most relevant to the {job.title} role.",
            "Opening fit question; keep it under two minutes.",
            resume.summary or f"Lead with {background} and tie it to {job.company}'s needs.",
        )
    ]
    for skill in job.skills:
        if len(questions) >= INTERVIEW_QUESTIONS - 2:
            break
        if skill.lower() in have:
            questions.append(InterviewQuestion(
                f"How have you used {skill} in production?",
                f"{skill} is listed in the posting and on your resume.",
                f"Pick one concrete result from {background} where {skill} mattered, with numbers.",
            ))
        else:
            questions.append(InterviewQuestion(
                f"This role relies on {skill}. How would you get up to speed?",
                f"{skill} is in the posting but not on your resume.",
                f"Name the closest tool you know, how you learned it, and a two-week plan for {skill}.",
            ))
    project = resume.projects[0] if resume.projects else None
    questions.append(InterviewQuestion(
        "Tell me about a project you are proud of.",
        "Tests ownership and depth.",
        f"{project.name}: {project.description}" if project else f"Choose a project from {background}.",
    ))
    questions.append(InterviewQuestion(
        f"Why {job.company}?",
        "Motivation and culture fit.",
        f"Connect the {job.title} scope to what you want to build next.",
    ))
    return questions
