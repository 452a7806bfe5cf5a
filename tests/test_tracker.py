"""Tests for the CSV application history and bulk run reports."""

import json

from autojob.bulk import QUOTA_REACHED, BulkRun
from autojob.models import (
    ApplicationLogEntry,
    ApplicationMaterials,
    CoverLetterStyle,
    ItemOutcome,
    MutationReport,
    OutcomeStatus,
    PipelineState,
    ResumeDocument,
)
from autojob.report import build_run_report, write_run_report
from autojob.tracker import HEADERS, CsvApplicationStore


def _entry(job_id="j1", url="https://acme.example/jobs/1", materials=True):
    return ApplicationLogEntry(
        id=f"e-{job_id}",
        job_id=job_id,
        job_title="Backend Engineer",
        company="Acme",
        status=PipelineState.COMPLETED,
        timestamp="2026-03-01T10:00:00+00:00",
        url=url,
        platform="Other",
        location="Remote",
        materials=ApplicationMaterials(
            cover_letter="Hello",
            cover_letter_style=CoverLetterStyle.ULTRA_CONCISE,
            resume=ResumeDocument(summary="Builder", skills=["Python"]),
            report=MutationReport("backend", "Backend Engineer", ["Python"], ats_score_estimate=80),
        )
        if materials
        else None,
    )


class TestCsvApplicationStore:
    def test_creates_file_with_header(self, tmp_path):
        store = CsvApplicationStore(tmp_path / "data" / "applications.csv")
        assert store.entries() == []
        first_line = store.path.read_text(encoding="utf-8").splitlines()[0]
        assert first_line.split(",") == HEADERS

    def test_records_append_in_order(self, tmp_path):
        store = CsvApplicationStore(tmp_path / "applications.csv")
        store.record(_entry("j1"))
        store.record(_entry("j2", url="https://acme.example/jobs/2", materials=False))

        rows = store.entries()

        assert [r["job_id"] for r in rows] == ["j1", "j2"]
        assert rows[0]["status"] == "COMPLETED"
        assert rows[0]["track"] == "Backend Engineer"
        assert rows[0]["cover_letter_style"] == "Ultra Concise"
        assert json.loads(rows[0]["materials"])["cover_letter"] == "Hello"
        assert rows[1]["materials"] == ""


class TestRunReport:
    def _run(self):
        run = BulkRun(queue=("https://a.example/1", "https://b.example/2", "https://c.example/3"))
        run.outcomes.append(
            ItemOutcome(0, "https://a.example/1", OutcomeStatus.COMPLETED, "applied", 88.0, _entry())
        )
        run.outcomes.append(
            ItemOutcome(1, "https://b.example/2", OutcomeStatus.FAILED, "Risk threshold exceeded", 91.0)
        )
        run.terminus = ItemOutcome(2, "https://c.example/3", OutcomeStatus.ABORTED, QUOTA_REACHED)
        run.finished = True
        return run

    def test_summary_and_rows(self):
        report = build_run_report(self._run())
        assert "**3** queued | **1** applied | **0** skipped | **1** failed | **1** not processed" in report
        assert "> Stopped early: daily quota reached" in report
        assert "Backend Engineer @ Acme" in report
        assert "[Acme](https://acme.example/jobs/1)" in report
        assert "Risk Shield denied the action" in report

    def test_unprocessed_items_are_listed(self):
        report = build_run_report(self._run())
        assert "## Not Processed" in report
        assert "- https://c.example/3" in report

    def test_history_section_dedupes(self):
        history = [
            {"title": "Backend Engineer", "company": "Acme", "url": "https://x/1", "status": "COMPLETED"},
            {"title": "Backend Engineer", "company": "Acme", "url": "https://x/2", "status": "COMPLETED"},
        ]
        report = build_run_report(self._run(), history)
        assert report.count("**Backend Engineer** @ Acme") == 1
        assert "[Apply](https://x/2)" in report

    def test_write_run_report(self, tmp_path):
        run = self._run()
        path = write_run_report(run, "# hello", reports_dir=tmp_path / "reports")
        assert path.parent == tmp_path / "reports"
        assert path.name.endswith(f"_{run.id}.md")
        assert path.read_text(encoding="utf-8") == "# hello"
