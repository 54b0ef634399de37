"""
Discovery Orchestrator.

Runs discovery jobs across locations and sources:

1. locations are split into chunks of ``location_concurrency``
2. chunks run one after another; locations inside a chunk run concurrently
3. per location, every selected source is fetched through the TaskEngine and
   its records go through the EventProcessor
4. a progress snapshot is written after each location
5. a RunReport is built, written and returned

A failing source contributes zero events and an error entry; a location fails
only when all its sources failed. The run itself only fails when there are no
locations to process.
"""

import asyncio
import datetime as dt
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union

from src.configs.config import IngestionConfig, load_ingestion_config
from src.configs.settings import Settings, get_settings
from src.ingestion.adapters import BaseSourceAdapter, FetchParams
from src.ingestion.adapters.factory import create_adapters_from_config
from src.ingestion.errors import ConfigurationError
from src.ingestion.monitoring.logging import with_context
from src.ingestion.persist import EventStore, create_event_store
from src.ingestion.processor import EventProcessor, ProcessorConfig
from src.ingestion.progress import (
    JsonProgressFile,
    JsonReportWriter,
    ProgressSink,
    ReportSink,
)
from src.ingestion.quality import QualityGate
from src.ingestion.task_engine import Task, TaskEngine
from src.ingestion.utils import chunk_list
from src.schemas.event import CanonicalEvent, RawEventRecord
from src.schemas.run import (
    CityJobResult,
    Location,
    ProgressCounters,
    ProgressSnapshot,
    RunPerformance,
    RunReport,
    RunSummary,
    SessionInfo,
)

logger = logging.getLogger(__name__)

LocationInput = Union[Location, str]


class JobStatus(str, Enum):
    """Lifecycle of a discovery job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class DiscoveryJob:
    """Bookkeeping for one discovery run."""

    job_id: str
    sources: List[str]
    locations: List[Location]
    params: FetchParams
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: JobStatus = JobStatus.PENDING
    cancel_requested: bool = False
    cities_completed: int = 0
    events_so_far: int = 0
    last_completed_city: Optional[str] = None
    accepted_events: List[CanonicalEvent] = field(default_factory=list)
    report: Optional[RunReport] = None

    def summary(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "sources": self.sources,
            "cities_total": len(self.locations),
            "cities_completed": self.cities_completed,
            "events_scraped": self.events_so_far,
            "last_completed_city": self.last_completed_city,
            "cancel_requested": self.cancel_requested,
        }


class DiscoveryOrchestrator:
    """
    Coordinates discovery runs.

    Responsibilities:
    - Resolve sources and locations for a run
    - Fan out fetch jobs through the TaskEngine, chunked by location
    - Hand records to the EventProcessor
    - Track jobs, write progress snapshots and the final report
    """

    def __init__(
        self,
        adapters: Dict[str, BaseSourceAdapter],
        store: EventStore,
        engine: Optional[TaskEngine] = None,
        processor: Optional[EventProcessor] = None,
        gate: Optional[QualityGate] = None,
        location_concurrency: int = 2,
        target_events: int = 1000,
        max_events_per_source: Optional[int] = None,
        seed_locations: Optional[Sequence[Location]] = None,
        progress_sink: Optional[ProgressSink] = None,
        report_sink: Optional[ReportSink] = None,
    ):
        if location_concurrency < 1:
            raise ConfigurationError("location_concurrency must be at least 1")

        self.logger = logging.getLogger("orchestrator")
        self.adapters = dict(adapters)
        self.store = store
        self.engine = engine or TaskEngine()
        self.gate = gate or QualityGate()
        self.processor = processor or EventProcessor(self.engine, store, gate=self.gate)
        self.location_concurrency = location_concurrency
        self.target_events = target_events
        self.max_events_per_source = max_events_per_source
        self.seed_locations = list(seed_locations or [])
        self.progress_sink = progress_sink
        self.report_sink = report_sink
        self.jobs: Dict[str, DiscoveryJob] = {}
        self._background: Set[asyncio.Task] = set()

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def run_discovery(
        self,
        sources: Optional[Sequence[str]] = None,
        locations: Optional[Sequence[LocationInput]] = None,
        categories: Optional[List[str]] = None,
        date_range: Optional[Tuple[dt.date, dt.date]] = None,
        max_events_per_source: Optional[int] = None,
        job_id: Optional[str] = None,
    ) -> RunReport:
        """
        Run a discovery job to completion.

        Args:
            sources: Source ids to use (default: all configured adapters)
            locations: Locations or city names (default: seed locations)
            categories: Optional category filter passed to adapters
            date_range: Optional (start, end) filter passed to adapters
            max_events_per_source: Cap on records per source and location
            job_id: Optional explicit job id

        Returns:
            RunReport, also for partially failed runs

        Raises:
            ConfigurationError: If there are no locations to process
        """
        job = self._create_job(
            sources, locations, categories, date_range, max_events_per_source, job_id
        )
        return await self._execute(job)

    def submit_discovery(
        self,
        sources: Optional[Sequence[str]] = None,
        locations: Optional[Sequence[LocationInput]] = None,
        categories: Optional[List[str]] = None,
        date_range: Optional[Tuple[dt.date, dt.date]] = None,
        max_events_per_source: Optional[int] = None,
    ) -> str:
        """
        Start a discovery job in the background of the running event loop.

        Returns:
            The job id; follow it with get_status() / get_job()
        """
        job = self._create_job(
            sources, locations, categories, date_range, max_events_per_source, None
        )
        task = asyncio.get_running_loop().create_task(self._execute(job))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return job.job_id

    def get_job(self, job_id: str) -> Optional[DiscoveryJob]:
        return self.jobs.get(job_id)

    def get_status(self) -> Dict[str, Any]:
        """Active jobs plus engine metrics."""
        active = [
            job.summary()
            for job in self.jobs.values()
            if job.status in (JobStatus.PENDING, JobStatus.RUNNING)
        ]
        engine_status = self.engine.get_status()
        return {
            "active_jobs": active,
            "total_jobs": len(self.jobs),
            "metrics": engine_status["metrics"],
            "engine": {k: v for k, v in engine_status.items() if k != "metrics"},
        }

    def cancel_job(self, job_id: str) -> bool:
        """
        Ask a running job to stop after its current chunk.

        In-flight fetches and writes finish or time out; nothing is interrupted.

        Returns:
            True if the job was running and is now marked for cancellation
        """
        job = self.jobs.get(job_id)
        if job is None or job.status not in (JobStatus.PENDING, JobStatus.RUNNING):
            return False
        job.cancel_requested = True
        self.logger.info(f"Cancellation requested for job {job_id}")
        return True

    async def close(self) -> None:
        for adapter in self.adapters.values():
            await adapter.close()
        self.store.close()

    # ========================================================================
    # JOB SETUP
    # ========================================================================

    def _create_job(
        self,
        sources: Optional[Sequence[str]],
        locations: Optional[Sequence[LocationInput]],
        categories: Optional[List[str]],
        date_range: Optional[Tuple[dt.date, dt.date]],
        max_events_per_source: Optional[int],
        job_id: Optional[str],
    ) -> DiscoveryJob:
        resolved = self._resolve_locations(locations)
        job = DiscoveryJob(
            job_id=job_id or f"discovery-{uuid.uuid4().hex[:12]}",
            sources=list(sources) if sources is not None else list(self.adapters),
            locations=resolved,
            params=FetchParams(
                categories=categories,
                date_range=date_range,
                max_events=max_events_per_source or self.max_events_per_source,
            ),
        )
        self.jobs[job.job_id] = job
        return job

    def _resolve_locations(
        self, locations: Optional[Sequence[LocationInput]]
    ) -> List[Location]:
        if locations is None:
            locations = self.seed_locations
        if not locations:
            raise ConfigurationError("No locations to process")

        resolved = []
        for loc in locations:
            if isinstance(loc, str):
                loc = Location(name=loc)
            elif not isinstance(loc, Location):
                raise ConfigurationError(f"Unreadable location entry: {loc!r}")
            if loc.is_active:
                resolved.append(loc)

        if not resolved:
            raise ConfigurationError("No active locations to process")
        return resolved

    # ========================================================================
    # EXECUTION
    # ========================================================================

    async def _execute(self, job: DiscoveryJob) -> RunReport:
        job.status = JobStatus.RUNNING
        log = with_context(self.logger, run_id=job.job_id, stage="discovery")
        chunks = chunk_list(job.locations, self.location_concurrency)
        log.info(
            f"Starting discovery: {len(job.locations)} locations in {len(chunks)} "
            f"chunks, sources={job.sources}"
        )

        run_errors: List[str] = []
        sources = []
        for source_id in job.sources:
            if source_id in self.adapters:
                sources.append(source_id)
            else:
                run_errors.append(f"{source_id}: no adapter configured")
                log.warning(f"Skipping unknown source '{source_id}'")

        self._write_progress(job, "running")
        city_results: List[CityJobResult] = []
        processed_chunks: List[List[str]] = []
        cancelled = False

        try:
            for index, chunk in enumerate(chunks, start=1):
                if job.cancel_requested:
                    cancelled = True
                    log.info(f"Cancelled before chunk {index}/{len(chunks)}")
                    break
                log.info(
                    f"Chunk {index}/{len(chunks)}: {', '.join(loc.name for loc in chunk)}"
                )
                results = await asyncio.gather(
                    *(self._process_location(job, loc, sources) for loc in chunk)
                )
                city_results.extend(results)
                processed_chunks.append([loc.slug for loc in chunk])
        except Exception:
            job.status = JobStatus.FAILED
            log.error("Discovery run crashed", exc_info=True)
            raise

        for result in city_results:
            run_errors.extend(result.errors)

        report = self._build_report(job, city_results, processed_chunks, run_errors, cancelled)
        job.report = report
        job.status = JobStatus.CANCELLED if cancelled else JobStatus.COMPLETED
        self._write_progress(job, job.status.value)
        self._write_report(report)
        log.info(
            f"Discovery finished: {report.summary.total_events} events, "
            f"{report.summary.successful_locations} ok / "
            f"{report.summary.failed_locations} failed locations"
        )
        return report

    async def _process_location(
        self,
        job: DiscoveryJob,
        location: Location,
        sources: List[str],
    ) -> CityJobResult:
        started = time.perf_counter()
        log = with_context(self.logger, run_id=job.job_id, location=location.slug)
        result = CityJobResult(location=location.name, location_slug=location.slug)

        try:
            fetch_results = await self.engine.spawn_batch(
                [
                    Task(
                        name=f"fetch:{source_id}:{location.slug}",
                        handler=self._fetch,
                        payload=(self.adapters[source_id], location, job.params),
                    )
                    for source_id in sources
                ]
            )

            failed_sources = 0
            for source_id, fetched in zip(sources, fetch_results):
                if not fetched.success:
                    failed_sources += 1
                    result.sources[source_id] = 0
                    result.errors.append(f"{location.name}: {source_id}: {fetched.error}")
                    continue

                records: List[RawEventRecord] = list(fetched.data or [])
                if job.params.max_events:
                    records = records[: job.params.max_events]
                result.fetched += len(records)

                processing = await self.processor.process(records, source_id)
                result.sources[source_id] = processing.stats.persisted
                result.events += processing.stats.persisted
                result.rejected += processing.stats.rejected
                job.accepted_events.extend(processing.events)

            result.success = not sources or failed_sources < len(sources)
        except Exception as e:
            log.error(f"Location {location.name} failed", exc_info=True)
            result.success = False
            result.errors.append(f"{location.name}: {e}")

        result.duration_ms = (time.perf_counter() - started) * 1000
        log.info(
            f"{location.name}: {result.events} events from {result.sources} "
            f"in {result.duration_ms:.0f}ms"
        )

        job.cities_completed += 1
        job.events_so_far += result.events
        job.last_completed_city = location.name
        self._write_progress(job, "running")
        return result

    @staticmethod
    async def _fetch(payload: Tuple[BaseSourceAdapter, Location, FetchParams]):
        adapter, location, params = payload
        return await adapter.fetch(location, params)

    # ========================================================================
    # REPORTING
    # ========================================================================

    def _build_report(
        self,
        job: DiscoveryJob,
        city_results: List[CityJobResult],
        chunks: List[List[str]],
        errors: List[str],
        cancelled: bool,
    ) -> RunReport:
        ended = datetime.now(timezone.utc)
        duration_minutes = (ended - job.started_at).total_seconds() / 60
        total_events = sum(r.events for r in city_results)
        successful = sum(1 for r in city_results if r.success)

        quality_warnings: List[str] = []
        if job.accepted_events:
            quality_warnings = self.gate.check_batch_consistency(job.accepted_events)

        return RunReport(
            job_id=job.job_id,
            session=SessionInfo(
                start_time=job.started_at,
                end_time=ended,
                duration_minutes=round(duration_minutes, 4),
            ),
            summary=RunSummary(
                total_events=total_events,
                total_fetched=sum(r.fetched for r in city_results),
                total_rejected=sum(r.rejected for r in city_results),
                successful_locations=successful,
                failed_locations=len(city_results) - successful,
                locations_completed=[r.location for r in city_results],
                target_events=self.target_events,
                target_achieved=total_events >= self.target_events,
                cancelled=cancelled,
            ),
            performance=RunPerformance(
                events_per_minute=(
                    round(total_events / duration_minutes, 2)
                    if duration_minutes > 0
                    else 0.0
                ),
                average_time_per_location_ms=(
                    round(sum(r.duration_ms for r in city_results) / len(city_results), 2)
                    if city_results
                    else 0.0
                ),
            ),
            chunks=chunks,
            locations=city_results,
            errors=errors,
            quality_warnings=quality_warnings,
            engine_metrics=self.engine.metrics.as_dict(),
        )

    def _write_progress(self, job: DiscoveryJob, status: str) -> None:
        if self.progress_sink is None:
            return
        snapshot = ProgressSnapshot(
            session_id=job.job_id,
            start_time=job.started_at,
            status=status,
            progress=ProgressCounters(
                cities_total=len(job.locations),
                cities_completed=job.cities_completed,
                events_scraped=job.events_so_far,
                target_events=self.target_events,
            ),
            last_completed_city=job.last_completed_city,
        )
        try:
            self.progress_sink.write(snapshot)
        except Exception:
            self.logger.warning("Failed to write progress snapshot", exc_info=True)

    def _write_report(self, report: RunReport) -> None:
        if self.report_sink is None:
            return
        try:
            self.report_sink.write(report)
        except Exception:
            self.logger.warning("Failed to write run report", exc_info=True)


def load_orchestrator_from_config(
    config: Optional[Union[IngestionConfig, str, Path]] = None,
    settings: Optional[Settings] = None,
    store: Optional[EventStore] = None,
) -> DiscoveryOrchestrator:
    """
    Factory function to create an orchestrator from ingestion.yaml.

    Args:
        config: Loaded config, or a path to the YAML (default from settings)
        settings: Application settings (default: cached settings)
        store: Event store (default: PostgreSQL if configured, else in-memory)

    Returns:
        Configured DiscoveryOrchestrator
    """
    settings = settings or get_settings()
    if not isinstance(config, IngestionConfig):
        config = load_ingestion_config(config, settings)

    if store is None:
        store = create_event_store(settings)
    engine = TaskEngine(config.engine.to_engine_config())
    gate = QualityGate()
    processor = EventProcessor(
        engine,
        store,
        gate=gate,
        config=ProcessorConfig(
            batch_size=config.processor.batch_size,
            batch_pause_seconds=config.processor.batch_pause_seconds,
        ),
    )

    return DiscoveryOrchestrator(
        adapters=create_adapters_from_config(config),
        store=store,
        engine=engine,
        processor=processor,
        gate=gate,
        location_concurrency=config.orchestrator.location_concurrency,
        target_events=config.orchestrator.target_events,
        max_events_per_source=config.orchestrator.max_events_per_source,
        seed_locations=config.active_locations,
        progress_sink=JsonProgressFile(settings.PROGRESS_PATH),
        report_sink=JsonReportWriter(settings.REPORT_DIR),
    )
