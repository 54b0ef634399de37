"""
Unit tests for the progress module.
"""

from datetime import datetime, timezone

from src.ingestion.progress import JsonProgressFile, JsonReportWriter, MemoryProgressSink
from src.schemas.run import ProgressCounters, ProgressSnapshot, RunReport, SessionInfo

STARTED = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_snapshot(completed: int) -> ProgressSnapshot:
    return ProgressSnapshot(
        session_id="discovery-1",
        start_time=STARTED,
        progress=ProgressCounters(cities_total=5, cities_completed=completed, events_scraped=10),
        last_completed_city="Chicago",
    )


class TestJsonProgressFile:
    """Tests for JsonProgressFile."""

    def test_overwrites_latest_snapshot(self, tmp_path):
        sink = JsonProgressFile(tmp_path / "nested" / "progress.json")
        sink.write(make_snapshot(1))
        sink.write(make_snapshot(2))

        latest = sink.read()
        assert latest.progress.cities_completed == 2
        assert latest.last_completed_city == "Chicago"
        assert list((tmp_path / "nested").iterdir()) == [tmp_path / "nested" / "progress.json"]

    def test_read_missing(self, tmp_path):
        assert JsonProgressFile(tmp_path / "none.json").read() is None


class TestJsonReportWriter:
    """Tests for JsonReportWriter."""

    def test_writes_report(self, tmp_path):
        writer = JsonReportWriter(tmp_path)
        report = RunReport(job_id="discovery-1", session=SessionInfo(start_time=STARTED))

        path = writer.write(report)

        assert path == tmp_path / "discovery-report-discovery-1.json"
        assert RunReport.model_validate_json(path.read_text()).job_id == "discovery-1"


class TestMemoryProgressSink:
    """Tests for MemoryProgressSink."""

    def test_keeps_snapshots(self):
        sink = MemoryProgressSink()
        assert sink.latest is None
        sink.write(make_snapshot(1))
        sink.write(make_snapshot(2))
        assert len(sink.snapshots) == 2
        assert sink.latest.progress.cities_completed == 2
