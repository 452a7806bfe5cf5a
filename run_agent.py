#!/usr/bin/env python3
"""Entry point to run the job application agent."""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from autojob.config import EXAMPLE_PROFILE_PATH, PROFILE_PATH, ensure_dirs
from autojob.errors import AutoJobError
from autojob.log import get_logger, set_level
from autojob.models import CoverLetterStyle, DiscoveredJob, OutcomeStatus

log = get_logger(__name__)

STYLES = {s.name.lower(): s for s in CoverLetterStyle}


def _check_setup() -> bool:
    """Return True if first-run setup is needed."""
    if not PROFILE_PATH.exists():
        print()
        print("  No profile found. Copy the example and edit it:")
        print(f"    cp {EXAMPLE_PROFILE_PATH} {PROFILE_PATH}")
        print()
        return True
    return False


def _style(name: str | None) -> CoverLetterStyle | None:
    return STYLES[name] if name else None


def _read_queue(args: argparse.Namespace) -> list[str]:
    refs = list(args.refs)
    if args.queue_file:
        for line in Path(args.queue_file).read_text(encoding="utf-8").splitlines():
            if line.strip() and not line.lstrip().startswith("#"):
                refs.append(line.strip())
    return refs


async def _run_bulk(agent, queue, style, *, write_report: bool) -> None:
    from autojob.report import build_run_report, write_run_report

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, agent.cancel_bulk)
    except (NotImplementedError, RuntimeError):
        log.debug("SIGINT handler unavailable; Ctrl-C will abort immediately")
    try:
        run = await agent.start_bulk(queue, style)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass

    counts = run.counts()
    log.info("Bulk run %s complete.", run.id)
    log.info("  Applied: %d", counts[OutcomeStatus.COMPLETED])
    log.info("  Skipped (below threshold): %d", counts[OutcomeStatus.SKIPPED])
    log.info("  Failed: %d", counts[OutcomeStatus.FAILED])
    log.info("  Not processed: %d", run.aborted_remaining)
    if write_report:
        content = build_run_report(run, agent.applications())
        log.info("  Report: %s", write_run_report(run, content))


def _print_brief(questions) -> None:
    for i, q in enumerate(questions, 1):
        print(f"\n  Q{i}. {q.question}")
        if q.context:
            print(f"      Context: {q.context}")
        if q.suggested_answer:
            print(f"      Answer:  {q.suggested_answer}")


async def _interview(agent, run) -> bool:
    try:
        questions = await agent.prepare_interview(run)
    except AutoJobError as exc:
        log.error("Interview brief unavailable: %s", exc)
        return False
    _print_brief(questions)
    return True


async def cmd_single(agent, args: argparse.Namespace) -> int:
    run = await agent.evaluate(args.ref)
    for skill in args.augment or []:
        if run.state.terminal:
            break
        await agent.augment(skill, run)
    await agent.finish(run, _style(args.style))
    if args.interview and run.job is not None:
        await _interview(agent, run)
    if run.entry is not None:
        log.info("Applied: %s @ %s → %s", run.entry.job_title, run.entry.company, run.entry.url)
        return 0
    log.error("Run ended in %s: %s", run.state.value, run.error)
    return 1


async def cmd_bulk(agent, args: argparse.Namespace) -> int:
    queue: list[DiscoveredJob | str] = list(_read_queue(args))
    if args.discover or not queue:
        queue.extend(await agent.discover())
    if not queue:
        log.warning("Nothing to process.")
        return 1
    await _run_bulk(agent, queue, _style(args.style), write_report=not args.no_report)
    return 0


async def cmd_command(agent, args: argparse.Namespace) -> int:
    result = await agent.submit_text(" ".join(args.text))
    for job in result.jobs:
        log.info("  • %s @ %s (%s) %s", job.title, job.company, job.source, job.url)
    if result.jobs and args.run:
        await _run_bulk(agent, result.jobs, None, write_report=True)
    return 0 if result.accepted else 1


async def cmd_status(agent, args: argparse.Namespace) -> int:
    print(await agent.status_summary())
    for row in agent.applications()[-args.history:]:
        print(f"  {row.get('applied_at', '')}  {row.get('title', '')} @ {row.get('company', '')}  {row.get('url', '')}")
    return 0


async def cmd_shell(agent, args: argparse.Namespace) -> int:
    """Interactive session: free text goes to the command interpreter.

    /bulk runs the last discovered listings in the background so that
    "pause" can be typed mid-batch; /override resets the Risk Shield;
    /interview [URL] prints an interview brief for a job (default: the last one).
    """
    discovered: list[DiscoveredJob] = []
    bulk_task: asyncio.Task | None = None
    print("AutoJob shell. Type a command, /bulk, /interview [URL], /override or /quit.")
    while True:
        try:
            line = (await asyncio.to_thread(input, "autojob> ")).strip()
        except EOFError:
            line = "/quit"
        if not line:
            continue
        if line == "/quit":
            if bulk_task is not None and not bulk_task.done():
                agent.cancel_bulk()
                await bulk_task
            return 0
        if line == "/override":
            agent.override_risk_lock()
            continue
        if line.startswith("/interview"):
            ref = line[len("/interview"):].strip()
            try:
                run = await agent.evaluate(ref) if ref else agent.last_run
            except AutoJobError as exc:
                log.error("Interview prep failed: %s", exc)
                continue
            await _interview(agent, run)
            continue
        if line == "/bulk":
            if not discovered:
                print("No discovered listings yet; try 'find remote python jobs'.")
                continue
            if bulk_task is not None and not bulk_task.done():
                print("A bulk run is already in progress.")
                continue
            bulk_task = asyncio.create_task(agent.start_bulk(list(discovered)))
            continue
        try:
            result = await agent.submit_text(line)
        except Exception as exc:
            log.error("Command failed: %s", exc)
            continue
        if result.jobs:
            discovered = result.jobs
            for i, job in enumerate(discovered, 1):
                print(f"  {i:>2}. {job.title} @ {job.company} ({job.location})")


async def cmd_import_resume(args: argparse.Namespace) -> int:
    from autojob.config import Settings, load_profile, save_profile
    from autojob.llm import GroqClient
    from autojob.models import Profile
    from pypdf.errors import PyPdfError

    from autojob.resume import ResumeImporter, merge_into

    settings = Settings.from_env()
    client = GroqClient(settings.groq_api_key, settings.groq_model) if settings.groq_api_key else None
    try:
        parsed = await ResumeImporter(client).import_file(Path(args.path))
    except (OSError, ValueError, PyPdfError) as exc:
        log.error("Resume import failed: %s", exc)
        return 1
    base = load_profile() if PROFILE_PATH.exists() else Profile(full_name="")
    profile = merge_into(base, parsed, args.track_name)
    save_profile(profile)
    track = profile.resume_tracks[-1]
    log.info("Added track %r (%d skills) for %s", track.name, len(track.content.skills), profile.full_name or "unnamed")
    return 0


COMMANDS = {
    "single": cmd_single,
    "bulk": cmd_bulk,
    "command": cmd_command,
    "status": cmd_status,
    "shell": cmd_shell,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="run_agent", description="Autonomous job application agent")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug-level console output")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("single", help="Apply to one job (URL or pasted text)")
    p.add_argument("ref")
    p.add_argument("--style", choices=sorted(STYLES))
    p.add_argument("--augment", action="append", metavar="SKILL", help="Add a skill to the resume before applying")
    p.add_argument("--interview", action="store_true", help="Print an interview brief for the job")

    p = sub.add_parser("bulk", help="Apply to a queue of jobs one at a time")
    p.add_argument("refs", nargs="*")
    p.add_argument("--queue-file", help="File with one job URL per line")
    p.add_argument("--discover", action="store_true", help="Append discovered listings to the queue")
    p.add_argument("--style", choices=sorted(STYLES))
    p.add_argument("--no-report", action="store_true")

    p = sub.add_parser("command", help="Run a natural-language command")
    p.add_argument("text", nargs="+")
    p.add_argument("--run", action="store_true", help="Bulk-apply to the listings the command discovers")

    p = sub.add_parser("status", help="Show risk, strategy and recent applications")
    p.add_argument("--history", type=int, default=10)

    sub.add_parser("shell", help="Interactive command session")

    p = sub.add_parser("import-resume", help="Add a resume file (PDF, DOCX, TXT) as a new track")
    p.add_argument("path")
    p.add_argument("--track-name")
    return parser


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        set_level(logging.DEBUG)
    ensure_dirs()
    if args.cmd == "import-resume":
        return await cmd_import_resume(args)
    if _check_setup():
        return 1
    from autojob.agent import build_agent

    agent = build_agent()
    return await COMMANDS[args.cmd](agent, args)


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
