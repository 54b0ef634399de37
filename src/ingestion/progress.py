"""
Progress and report sinks.

The orchestrator overwrites a progress snapshot after every completed
location so an external monitor can follow a run, and writes the final
RunReport once the run ends. Both are plain JSON files.
"""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel

from src.schemas.run import ProgressSnapshot, RunReport

logger = logging.getLogger(__name__)


def _write_json_atomic(path: Path, model: BaseModel) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(model.model_dump_json(indent=2), encoding="utf-8")
    os.replace(tmp, path)


class ProgressSink(ABC):
    """Receives progress snapshots during a run."""

    @abstractmethod
    def write(self, snapshot: ProgressSnapshot) -> None:
        pass


class ReportSink(ABC):
    """Receives the final report of a run."""

    @abstractmethod
    def write(self, report: RunReport) -> Optional[Path]:
        pass


class JsonProgressFile(ProgressSink):
    """Overwrites one JSON file with the latest snapshot."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def write(self, snapshot: ProgressSnapshot) -> None:
        _write_json_atomic(self.path, snapshot)

    def read(self) -> Optional[ProgressSnapshot]:
        if not self.path.exists():
            return None
        return ProgressSnapshot.model_validate_json(self.path.read_text(encoding="utf-8"))


class JsonReportWriter(ReportSink):
    """Writes each report to ``<report_dir>/discovery-report-<job_id>.json``."""

    def __init__(self, report_dir: Path):
        self.report_dir = Path(report_dir)

    def path_for(self, job_id: str) -> Path:
        return self.report_dir / f"discovery-report-{job_id}.json"

    def write(self, report: RunReport) -> Optional[Path]:
        path = self.path_for(report.job_id)
        _write_json_atomic(path, report)
        logger.info(f"Report written to {path}")
        return path


class MemoryProgressSink(ProgressSink):
    """Keeps snapshots in memory for in-process monitoring."""

    def __init__(self):
        self.snapshots: List[ProgressSnapshot] = []

    def write(self, snapshot: ProgressSnapshot) -> None:
        self.snapshots.append(snapshot)

    @property
    def latest(self) -> Optional[ProgressSnapshot]:
        return self.snapshots[-1] if self.snapshots else None
