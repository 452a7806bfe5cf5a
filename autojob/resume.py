"""Import a resume file (PDF, DOCX or TXT) as a new profile track.

Text is pulled from the file locally. With a Groq client the text is sent to
the model for structured extraction; without one (or when the model answers
badly) a heuristic parser recovers contact details, the summary and skills.
"""
from __future__ import annotations

import dataclasses
import re
import shutil
import subprocess
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from xml.etree import ElementTree

from pypdf import PdfReader

from autojob.llm import GroqClient
from autojob.log import get_logger
from autojob.models import Profile, ResumeDocument, ResumeTrack, new_id

log = get_logger(__name__)

_TEXT_LIMIT = 6000

# ── Text extraction ──────────────────────────────────────────────────────


def extract_text(path: Path) -> str:
    """Return plain text from a PDF, DOCX, or TXT file."""
    suffix = path.suffix.lower()
    if suffix in (".txt", ".md"):
        return path.read_text(encoding="utf-8", errors="ignore")
    if suffix == ".docx":
        return _extract_docx(path)
    if suffix == ".pdf":
        return _extract_pdf(path)
    raise ValueError(f"Unsupported resume format: {suffix or path.name}")


def _fix_spacing(text: str) -> str:
    """Re-insert spaces where PDF extraction ran words together."""
    if not text or len(text) < 50 or text.count(" ") / len(text) > 0.08:
        return text
    fixed = re.sub(r"([a-z])([A-Z])", r"\1 \2", text)
    fixed = re.sub(r"([a-zA-Z])(\d)", r"\1 \2", fixed)
    fixed = re.sub(r"(\d)([a-zA-Z])", r"\1 \2", fixed)
    return re.sub(r"([.!?,;:])([A-Za-z])", r"\1 \2", fixed)


def _extract_pdf(path: Path) -> str:
    # pdftotext keeps layout spacing better than pypdf when it is installed
    if shutil.which("pdftotext"):
        result = subprocess.run(
            ["pdftotext", "-layout", str(path), "-"],
            capture_output=True,
            text=True,
            timeout=30,
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout
    reader = PdfReader(str(path))
    return "\n".join(_fix_spacing(page.extract_text() or "") for page in reader.pages)


def _extract_docx(path: Path) -> str:
    ns = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"
    texts: list[str] = []
    with zipfile.ZipFile(path) as zf:
        with zf.open("word/document.xml") as f:
            tree = ElementTree.parse(f)
    for para in tree.iter(f"{ns}p"):
        parts = [node.text for node in para.iter(f"{ns}t") if node.text]
        if parts:
            texts.append("".join(parts))
    return "\n".join(texts)


# ── Parsed result ────────────────────────────────────────────────────────


@dataclass
class ResumeImport:
    full_name: str = ""
    email: str = ""
    phone: str = ""
    linkedin: str = ""
    portfolio: str = ""
    resume: ResumeDocument = field(default_factory=ResumeDocument)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResumeImport:
        return cls(
            full_name=str(data.get("fullName") or ""),
            email=str(data.get("email") or ""),
            phone=str(data.get("phone") or ""),
            linkedin=str(data.get("linkedin") or ""),
            portfolio=str(data.get("portfolio") or ""),
            resume=ResumeDocument.from_dict(data.get("resumeJson")),
        )


# ── Heuristic fallback ──────────────────────────────────────────────────

_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
_PHONE_RE = re.compile(r"\+?\d[\d\s\-().]{7,15}\d")
_LINKEDIN_RE = re.compile(r"(?:https?://)?(?:www\.)?linkedin\.com/in/[\w\-%]+/?", re.IGNORECASE)
_URL_RE = re.compile(r"https?://[^\s,;|]+")
_HEADER_RE = re.compile(
    r"^(summary|profile|about|objective|skills|technical skills|core competencies|experience"
    r"|work experience|employment|education|projects|certifications?)\s*(?::\s*(.*))?$",
    re.IGNORECASE,
)

_COMMON_SKILLS = [
    "Python", "Java", "JavaScript", "TypeScript", "Go", "Rust", "C++", "C#", "Ruby", "PHP",
    "React", "Node.js", "Angular", "Vue", "Django", "Flask", "FastAPI", "Spring",
    "SQL", "PostgreSQL", "MySQL", "MongoDB", "Redis", "Elasticsearch", "Kafka", "Spark",
    "Docker", "Kubernetes", "Terraform", "Ansible", "AWS", "GCP", "Azure", "Linux", "Git",
    "CI/CD", "REST", "GraphQL", "Microservices", "Pandas", "TensorFlow", "PyTorch",
    "Machine Learning", "Figma", "Agile", "Scrum",
]


def _has_skill(skill: str, low: str) -> bool:
    return re.search(rf"(?<![\w+#]){re.escape(skill.lower())}(?![\w+#])", low) is not None


def _sections(lines: list[str]) -> dict[str, list[str]]:
    found: dict[str, list[str]] = {}
    current: str | None = None
    for line in lines:
        m = _HEADER_RE.match(line)
        if m and len(line) < 60:
            current = m.group(1).lower().split()[-1]
            found.setdefault(current, [])
            if m.group(2):
                found[current].append(m.group(2))
        elif current is not None:
            found[current].append(line)
    return found


def heuristic_parse(text: str) -> ResumeImport:
    """Best-effort extraction without a model."""
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    name = lines[0] if lines and len(lines[0]) <= 60 and not _EMAIL_RE.search(lines[0]) else ""

    sections = _sections(lines)
    summary_lines = sections.get("summary") or sections.get("profile") or sections.get("objective") or []

    listed: list[str] = []
    for line in sections.get("skills", []) + sections.get("competencies", []):
        listed.extend(s.strip(" •-*") for s in re.split(r"[,;|•]", line))
    low = text.lower()
    skills = [s for s in listed if s] + [s for s in _COMMON_SKILLS if _has_skill(s, low)]
    skills = list(dict.fromkeys(skills))

    email = _EMAIL_RE.search(text)
    phone = _PHONE_RE.search(text)
    linkedin = _LINKEDIN_RE.search(text)
    portfolio = next((u for u in _URL_RE.findall(text) if "linkedin.com" not in u.lower()), "")
    return ResumeImport(
        full_name=name,
        email=email.group(0) if email else "",
        phone=phone.group(0).strip() if phone else "",
        linkedin=linkedin.group(0) if linkedin else "",
        portfolio=portfolio,
        resume=ResumeDocument(summary=" ".join(summary_lines)[:600], skills=skills[:25]),
    )


# ── Public API ───────────────────────────────────────────────────────────

_PARSE_PROMPT = """Extract resume JSON including contact info from the resume text below.
Return JSON with keys: fullName, email, phone, linkedin, portfolio,
resumeJson {{summary, skills (list), experience [{{company, role, duration, achievements (list)}}],
projects [{{name, description, technologies (list)}}]}}.
Use an empty string or empty list when a value is not present. Never invent employers.

Resume text:
{resume_text}"""


class ResumeImporter:
    def __init__(self, client: GroqClient | None = None) -> None:
        self.client = client

    async def parse_text(self, text: str) -> ResumeImport:
        if not text.strip():
            raise ValueError("resume text is empty")
        if self.client is not None:
            try:
                data = await self.client.acomplete_json(
                    _PARSE_PROMPT.format(resume_text=text[:_TEXT_LIMIT]), max_tokens=2500
                )
                if not isinstance(data, dict):
                    raise ValueError("parser returned a non-object")
                parsed = ResumeImport.from_dict(data)
                log.info("Model extraction complete: name=%s, skills=%d", parsed.full_name, len(parsed.resume.skills))
                return parsed
            except Exception as exc:
                log.warning("Model resume parsing failed (%s), falling back to heuristic", exc)
        parsed = heuristic_parse(text)
        log.info("Heuristic extraction complete: name=%s, skills=%d", parsed.full_name, len(parsed.resume.skills))
        return parsed

    async def import_file(self, path: Path) -> ResumeImport:
        log.info("Extracting text from %s", path.name)
        text = extract_text(path)
        if not text.strip():
            raise ValueError(f"Could not extract any text from {path.name}")
        return await self.parse_text(text)


def merge_into(profile: Profile, parsed: ResumeImport, track_name: str | None = None) -> Profile:
    """Profile with *parsed* appended as a track; non-empty contact fields win."""
    track = ResumeTrack(
        id=new_id(),
        name=track_name or f"Track: {parsed.full_name or 'Untitled'}",
        content=parsed.resume,
    )
    return dataclasses.replace(
        profile,
        full_name=parsed.full_name or profile.full_name,
        email=parsed.email or profile.email,
        phone=parsed.phone or profile.phone,
        linkedin=parsed.linkedin or profile.linkedin,
        portfolio=parsed.portfolio or profile.portfolio,
        resume_tracks=[*profile.resume_tracks, track],
    )
