"""
Application dispatchers.

``PackageDispatcher`` writes a plain-text application package (cover letter,
formatted resume, contact details, mutation report) and reports the job's
apply URL as the endpoint, leaving the final submit to the candidate.

``BrowserDispatcher`` additionally opens the apply page with Playwright,
detects the platform (LinkedIn, Workday, Greenhouse, Lever, Indeed,
aggregator or generic), clicks through to the form and prefills contact
fields and the cover letter. Captcha walls and unrecognisable pages are
reported to the Risk Shield.
"""
from __future__ import annotations

import asyncio
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from autojob.config import PACKAGES_DIR
from autojob.errors import DispatchError
from autojob.log import get_logger
from autojob.models import (
    ApplicationMaterials,
    DispatchResult,
    JobRecord,
    Profile,
    ResumeDocument,
    utc_now,
)
from autojob.risk import RiskShield

log = get_logger(__name__)

PLAYWRIGHT_MISSING = "Playwright not installed. Run `pip install playwright && playwright install chromium`"

CAPTCHA_SELECTORS = [
    'iframe[src*="recaptcha"]',
    'iframe[src*="hcaptcha"]',
    'iframe[title*="challenge" i]',
    ".g-recaptcha",
    "#px-captcha",
    "[data-sitekey]",
]

APPLY_BUTTONS: dict[str, list[str]] = {
    "linkedin": ['button:has-text("Easy Apply")', 'a:has-text("Apply")'],
    "workday": [
        'a[data-automation-id="jobPostingApplyButton"]',
        'button[data-automation-id="jobPostingApplyButton"]',
    ],
    "greenhouse": ['a:has-text("Apply for this job")', 'button:has-text("Apply")'],
    "lever": ['a.postings-btn', 'a:has-text("Apply for this job")'],
    "indeed": ['button:has-text("Apply now")', 'a:has-text("Apply on company site")', "#applyButtonLinkContainer a"],
    "aggregator": ['a:has-text("Apply")', 'a:has-text("Apply on company site")', 'a[class*="apply"]'],
    "generic": ['button:has-text("Apply")', 'a:has-text("Apply Now")', 'a:has-text("Apply")'],
}

FIELD_SELECTORS: dict[str, list[str]] = {
    "first_name": ["#first_name", 'input[name="first_name"]', 'input[autocomplete="given-name"]'],
    "last_name": ["#last_name", 'input[name="last_name"]', 'input[autocomplete="family-name"]'],
    "full_name": ['input[name="name"]', 'input[autocomplete="name"]'],
    "email": ["#email", 'input[name="email"]', 'input[type="email"]', 'input[data-automation-id="email"]'],
    "phone": ["#phone", 'input[name="phone"]', 'input[type="tel"]'],
    "linkedin": ['input[name*="linkedin" i]', 'input[id*="linkedin" i]'],
    "portfolio": ['input[name*="website" i]', 'input[name*="portfolio" i]'],
}
COVER_LETTER_SELECTORS = ['textarea[name*="cover" i]', 'textarea[name="comments"]', "textarea"]

_AGGREGATORS = ("simplyhired", "talent.com", "jobrapido", "bebee.com", "builtin.com", "remote.co", "talentify")


def detect_platform(url: str) -> str:
    """Classify the URL into a known apply-flow type."""
    u = url.lower()
    if "linkedin.com" in u:
        return "linkedin"
    if "myworkdayjobs.com" in u or "workday.com" in u:
        return "workday"
    if "greenhouse.io" in u:
        return "greenhouse"
    if "lever.co" in u:
        return "lever"
    if "indeed.com" in u:
        return "indeed"
    if any(agg in u for agg in _AGGREGATORS):
        return "aggregator"
    return "generic"


def format_resume(resume: ResumeDocument) -> str:
    """Resume as plain text for copy and paste into application forms."""
    lines = ["", resume.summary, "", "SKILLS:", ", ".join(resume.skills), "", "EXPERIENCE:"]
    for exp in resume.experience:
        lines.append("")
        lines.append(f"{exp.role} at {exp.company} ({exp.duration})")
        lines.extend(f"  • {a}" for a in exp.achievements)
    lines += ["", "", "PROJECTS:"]
    for proj in resume.projects:
        lines += ["", proj.name, proj.description, f"Technologies: {', '.join(proj.technologies)}"]
    return "\n".join(lines) + "\n"


def build_package(job: JobRecord, profile: Profile, materials: ApplicationMaterials, when: datetime) -> str:
    report = materials.report
    keywords = ", ".join(report.keywords_injected) or "N/A"
    return f"""AUTOJOB APPLICATION PACKAGE
===========================

Job: {job.title}
Company: {job.company}
Application URL: {job.apply_url}

DATE: {when.strftime('%Y-%m-%d %H:%M:%S %Z')}

---

COVER LETTER ({materials.cover_letter_style.value})
============

{materials.cover_letter}

---

RESUME
======
{format_resume(materials.resume)}
---

CONTACT INFORMATION
===================

Name: {profile.full_name}
Email: {profile.email}
Phone: {profile.phone}
LinkedIn: {profile.linkedin}
Portfolio: {profile.portfolio}

---

RESUME MUTATION REPORT
======================

Track Used: {report.selected_track_name or 'N/A'}
ATS Score Estimate: {report.ats_score_estimate:.0f}%
Keywords Injected: {keywords}
"""


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")[:40] or "job"


def endpoint_for(job: JobRecord) -> str:
    url = (job.apply_url or "").strip()
    return url if url.startswith("http") else "#"


class PackageDispatcher:
    def __init__(self, out_dir: Path | None = None, clock: Callable[[], datetime] = utc_now) -> None:
        self.out_dir = out_dir or PACKAGES_DIR
        self._clock = clock

    def write_package(self, job: JobRecord, profile: Profile, materials: ApplicationMaterials) -> Path:
        when = self._clock()
        self.out_dir.mkdir(parents=True, exist_ok=True)
        path = self.out_dir / f"{when.strftime('%Y%m%d-%H%M%S')}_{_slug(job.company)}_{job.id}.txt"
        path.write_text(build_package(job, profile, materials, when), encoding="utf-8")
        log.info("Application package written → %s", path)
        return path

    async def dispatch_application(
        self, job: JobRecord, profile: Profile, materials: ApplicationMaterials
    ) -> DispatchResult:
        try:
            path = await asyncio.to_thread(self.write_package, job, profile, materials)
        except OSError as exc:
            raise DispatchError(f"could not write application package: {exc}") from exc
        return DispatchResult(success=True, endpoint=endpoint_for(job), message=f"Package saved to {path.name}")


async def _visible(page: Any, selector: str) -> Any:
    """First visible match for *selector*, or None; never throws."""
    try:
        loc = page.locator(selector).first
        if await loc.count() and await loc.is_visible(timeout=2000):
            return loc
    except Exception:
        return None
    return None


async def _click_first_visible(page: Any, selectors: list[str]) -> bool:
    for sel in selectors:
        loc = await _visible(page, sel)
        if loc is None:
            continue
        try:
            await loc.click()
            return True
        except Exception:
            continue
    return False


async def _fill_first(page: Any, selectors: list[str], value: str) -> bool:
    if not value:
        return False
    for sel in selectors:
        loc = await _visible(page, sel)
        if loc is not None:
            await loc.fill(value)
            return True
    return False


class BrowserDispatcher:
    def __init__(
        self,
        risk: RiskShield,
        *,
        headless: bool = True,
        packages: PackageDispatcher | None = None,
    ) -> None:
        self.risk = risk
        self.headless = headless
        self.packages = packages or PackageDispatcher()

    async def _has_captcha(self, page: Any) -> bool:
        for sel in CAPTCHA_SELECTORS:
            if await _visible(page, sel) is not None:
                return True
        return False

    async def _prefill(self, page: Any, profile: Profile, cover_letter: str) -> int:
        first, _, last = profile.full_name.strip().partition(" ")
        values = {
            "first_name": first,
            "last_name": last,
            "full_name": profile.full_name,
            "email": profile.email,
            "phone": profile.phone,
            "linkedin": profile.linkedin,
            "portfolio": profile.portfolio,
        }
        filled = 0
        for field, selectors in FIELD_SELECTORS.items():
            if await _fill_first(page, selectors, values[field]):
                filled += 1
        if await _fill_first(page, COVER_LETTER_SELECTORS, cover_letter[:3000]):
            filled += 1
        return filled

    async def dispatch_application(
        self, job: JobRecord, profile: Profile, materials: ApplicationMaterials
    ) -> DispatchResult:
        url = endpoint_for(job)
        await asyncio.to_thread(self.packages.write_package, job, profile, materials)
        if url == "#":
            return DispatchResult(False, url, "No apply URL for this job")

        try:
            from playwright.async_api import async_playwright
        except ImportError as exc:
            raise DispatchError(PLAYWRIGHT_MISSING) from exc

        platform = detect_platform(url)
        log.info("Applying: %s @ %s → %s", job.title, job.company, platform)
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=self.headless)
            try:
                page = await browser.new_page(viewport={"width": 1280, "height": 900})
                page.set_default_timeout(20_000)
                await page.goto(url, wait_until="domcontentloaded", timeout=25_000)

                if await self._has_captcha(page):
                    self.risk.record_anomaly("captcha")
                    return DispatchResult(False, page.url, "Captcha wall detected")

                clicked = await _click_first_visible(page, APPLY_BUTTONS[platform])
                if clicked:
                    await page.wait_for_load_state("domcontentloaded")
                    if await self._has_captcha(page):
                        self.risk.record_anomaly("captcha")
                        return DispatchResult(False, page.url, "Captcha wall detected")

                filled = await self._prefill(page, profile, materials.cover_letter)
                if not clicked and not filled:
                    self.risk.record_anomaly("dom_change")
                    return DispatchResult(True, page.url, f"Apply page opened on {platform}; no form recognised")
                return DispatchResult(True, page.url, f"Prefilled {filled} field(s) on {platform}")
            finally:
                await browser.close()


def build_dispatcher(mode: str, risk: RiskShield, *, headless: bool = True) -> PackageDispatcher | BrowserDispatcher:
    if mode == "browser":
        return BrowserDispatcher(risk, headless=headless)
    if mode != "package":
        log.warning("Unknown AUTOJOB_DISPATCH=%r, using package mode", mode)
    return PackageDispatcher()
