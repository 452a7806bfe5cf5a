"""Markdown summary of a bulk run plus recent application history."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlparse

from autojob.bulk import BulkRun
from autojob.config import REPORTS_DIR
from autojob.log import get_logger
from autojob.models import OutcomeStatus

log = get_logger(__name__)

_FAIL_REASONS: dict[str, str] = {
    "executable doesn't exist": "Browser not installed. Run `playwright install chromium`",
    "playwright not installed": "Playwright missing. Run `pip install playwright && playwright install chromium`",
    "captcha": "Captcha wall. Apply manually via the link",
    "risk threshold": "Risk Shield denied the action",
    "extraction failed": "Listing could not be parsed",
    "timeout": "Page or service timed out",
    "cover letter": "Cover letter generation failed",
    "resume mutation": "Resume tailoring failed",
}

_BADGES: dict[OutcomeStatus, str] = {
    OutcomeStatus.COMPLETED: "✅",
    OutcomeStatus.SKIPPED: "⏭️",
    OutcomeStatus.FAILED: "❌",
    OutcomeStatus.ABORTED: "\U0001f6d1",
}


def _short_reason(reason: str) -> str:
    low = reason.lower()
    for key, msg in _FAIL_REASONS.items():
        if key in low:
            return msg
    return reason[:80] + ("…" if len(reason) > 80 else "")


def _short_url_label(url: str) -> str:
    host = (urlparse(url).hostname or "").replace("www.", "")
    parts = host.split(".")
    return parts[0].capitalize() if parts and parts[0] else "Link"


def _dedupe_apps(apps: list[dict]) -> list[dict]:
    seen: set[tuple[str, str]] = set()
    out: list[dict] = []
    for a in reversed(apps):
        k = (a.get("title", ""), a.get("company", ""))
        if k not in seen:
            seen.add(k)
            out.append(a)
    return out


def build_run_report(run: BulkRun, history: list[dict[str, str]] | None = None) -> str:
    date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    counts = run.counts()
    lines: list[str] = [f"# Bulk Run {run.id}: {date}", ""]
    lines.append(
        f"**{run.total}** queued | **{counts[OutcomeStatus.COMPLETED]}** applied | "
        f"**{counts[OutcomeStatus.SKIPPED]}** skipped | **{counts[OutcomeStatus.FAILED]}** failed | "
        f"**{run.aborted_remaining}** not processed"
    )
    if run.terminus is not None:
        lines.append("")
        lines.append(f"> Stopped early: {run.terminus.detail}")
    lines.append("")

    if run.outcomes:
        lines.append("| # | Listing | Score | Outcome | Note |")
        lines.append("|--:|---------|------:|---------|------|")
        for o in run.outcomes:
            entry = o.entry
            label = f"{entry.job_title} @ {entry.company}" if entry else o.reference
            label = label[:50] + ("…" if len(label) > 50 else "")
            score = f"{o.score:.0f}%" if o.score is not None else "—"
            note = ""
            if o.status == OutcomeStatus.COMPLETED and entry is not None and entry.url != "#":
                note = f"[{_short_url_label(entry.url)}]({entry.url})"
            elif o.status != OutcomeStatus.COMPLETED:
                note = _short_reason(o.detail)
            lines.append(f"| {o.index + 1} | {label} | {score} | {_BADGES[o.status]} {o.status.value} | {note} |")
        lines.append("")

    remaining = run.remaining_queue() if run.terminus is not None else ()
    if remaining:
        lines.append("## Not Processed")
        lines.append("")
        for ref in remaining:
            lines.append(f"- {ref.url if hasattr(ref, 'url') else ref}")
        lines.append("")

    if history:
        lines.append("---")
        lines.append("")
        lines.append("## Application History")
        lines.append("")
        for a in _dedupe_apps(history[-15:])[:10]:
            title, company = a.get("title", ""), a.get("company", "")
            url, status, at = a.get("url", ""), a.get("status", ""), a.get("applied_at", "")
            link = f"[Apply]({url})" if url and url != "#" else ""
            lines.append(f"- **{title}** @ {company} — _{status}_ — {at} {link}".rstrip())
        lines.append("")

    log.info("Built run report for %s: %d outcome(s)", run.id, len(run.outcomes))
    return "\n".join(lines)


def write_run_report(run: BulkRun, content: str, reports_dir: Path | None = None) -> Path:
    target = reports_dir or REPORTS_DIR
    target.mkdir(parents=True, exist_ok=True)
    date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    path = target / f"bulk_{date}_{run.id}.md"
    path.write_text(content, encoding="utf-8")
    log.info("Report written → %s", path)
    return path
