"""
Event Processor.

Takes the records one source returned for one location and pushes them
through the pipeline in fixed-size batches:

    RawEventRecord -> EventNormalizer -> QualityGate -> EventStore

Persistence runs through the TaskEngine, so store writes share the engine's
worker cap, timeout and retry policy. A failing event never aborts its batch.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from src.ingestion.errors import PartialBatchFailure, ValidationError
from src.ingestion.normalization import DEFAULT_CATEGORY, EventNormalizer
from src.ingestion.persist import EventStore, UpsertResult
from src.ingestion.quality import QualityGate
from src.ingestion.task_engine import Task, TaskEngine
from src.ingestion.utils import chunk_list
from src.schemas.event import CanonicalEvent, RawEventRecord


class ProcessingStatus(str, Enum):
    """Outcome of one process() call."""

    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


@dataclass
class ProcessorConfig:
    batch_size: int = 25
    batch_pause_seconds: float = 1.0


@dataclass
class ProcessingStats:
    """Counters for one process() call."""

    total: int = 0
    normalized: int = 0
    geocoded: int = 0
    categorized: int = 0
    accepted: int = 0
    rejected: int = 0
    persisted: int = 0
    inserted: int = 0
    updated: int = 0
    errors: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class ProcessingResult:
    """Result of processing one source's records."""

    status: ProcessingStatus
    source_id: str
    started_at: datetime
    ended_at: datetime
    stats: ProcessingStats = field(default_factory=ProcessingStats)
    events: List[CanonicalEvent] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Calculate processing duration."""
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def success_rate(self) -> float:
        """Persisted events as a percentage of input records."""
        if self.stats.total == 0:
            return 0.0
        return (self.stats.persisted / self.stats.total) * 100

    def failure_summary(self) -> Optional[PartialBatchFailure]:
        """PartialBatchFailure describing dropped records, if any."""
        failed = self.stats.total - self.stats.persisted
        if failed == 0:
            return None
        return PartialBatchFailure(failed, self.stats.total)


class EventProcessor:
    """
    Normalize, gate and persist records in batches.

    Args:
        engine: TaskEngine used for store writes
        store: Event store
        normalizer: Defaults to an EventNormalizer bound to ``store``
        gate: Defaults to a QualityGate
        config: Batch size and pause
        sleep: Awaitable used for the inter-batch pause
    """

    def __init__(
        self,
        engine: TaskEngine,
        store: EventStore,
        normalizer: Optional[EventNormalizer] = None,
        gate: Optional[QualityGate] = None,
        config: Optional[ProcessorConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.engine = engine
        self.store = store
        self.normalizer = normalizer or EventNormalizer(store=store)
        self.gate = gate or QualityGate()
        self.config = config or ProcessorConfig()
        self._sleep = sleep
        self.logger = logging.getLogger("processor")

    @property
    def slug_allocator(self):
        return self.normalizer.slug_allocator

    async def process(
        self,
        records: Sequence[RawEventRecord],
        source_id: str,
    ) -> ProcessingResult:
        """
        Process all records of one source.

        Batches run sequentially with ``batch_pause_seconds`` between them
        (none after the last batch).
        """
        started = datetime.now(timezone.utc)
        stats = ProcessingStats()
        events: List[CanonicalEvent] = []
        errors: List[Dict[str, Any]] = []

        batches = chunk_list(list(records), self.config.batch_size)
        for index, batch in enumerate(batches, start=1):
            self.logger.debug(
                f"{source_id}: batch {index}/{len(batches)} ({len(batch)} records)"
            )
            accepted = await asyncio.to_thread(
                self._prepare_batch, batch, source_id, stats, errors
            )
            events.extend(await self._persist_batch(accepted, source_id, stats, errors))

            if index < len(batches) and self.config.batch_pause_seconds > 0:
                await self._sleep(self.config.batch_pause_seconds)

        result = ProcessingResult(
            status=self._status_for(stats),
            source_id=source_id,
            started_at=started,
            ended_at=datetime.now(timezone.utc),
            stats=stats,
            events=events,
            errors=errors,
        )
        summary = result.failure_summary()
        if summary is not None:
            self.logger.info(f"{source_id}: {summary.message}")
        self.logger.info(
            f"{source_id}: {stats.persisted}/{stats.total} persisted "
            f"({stats.rejected} rejected, {stats.errors} errors)"
        )
        return result

    def _prepare_batch(
        self,
        batch: List[RawEventRecord],
        source_id: str,
        stats: ProcessingStats,
        errors: List[Dict[str, Any]],
    ) -> List[CanonicalEvent]:
        """Normalize and gate one batch; returns the accepted, annotated events."""
        accepted: List[CanonicalEvent] = []

        for record in batch:
            stats.total += 1
            try:
                event = self.normalizer.normalize(record, source_id)
            except ValidationError as e:
                stats.rejected += 1
                errors.append(_error_entry("normalize", record.title, e.message))
                continue
            except Exception as e:
                stats.errors += 1
                self.logger.error(
                    f"Normalization crashed for '{record.title}' from {source_id}",
                    exc_info=True,
                )
                errors.append(_error_entry("normalize", record.title, str(e)))
                continue

            stats.normalized += 1
            if event.has_coordinates:
                stats.geocoded += 1
            if event.category != DEFAULT_CATEGORY:
                stats.categorized += 1

            decision = self.gate.evaluate(event)
            if not decision.accepted:
                stats.rejected += 1
                self._release(event)
                errors.append(
                    _error_entry(
                        "quality",
                        event.title,
                        "; ".join(i.message for i in decision.errors)
                        or "quality score too low",
                    )
                )
                continue

            stats.accepted += 1
            accepted.append(decision.event)

        return accepted

    async def _persist_batch(
        self,
        events: List[CanonicalEvent],
        source_id: str,
        stats: ProcessingStats,
        errors: List[Dict[str, Any]],
    ) -> List[CanonicalEvent]:
        if not events:
            return []

        tasks = [
            Task(
                name=f"persist:{source_id}:{event.slug}",
                handler=self.slug_allocator.persist,
                payload=event,
            )
            for event in events
        ]
        results = await self.engine.spawn_batch(tasks)

        stored: List[CanonicalEvent] = []
        for event, result in zip(events, results):
            if not result.success:
                stats.errors += 1
                self._release(event)
                errors.append(_error_entry("persist", event.title, result.error or ""))
                continue

            upsert: UpsertResult = result.data
            stats.persisted += 1
            if upsert.created:
                stats.inserted += 1
            else:
                stats.updated += 1
            stored.append(upsert.event)

        return stored

    def _release(self, event: CanonicalEvent) -> None:
        # Slugs of already stored events belong to the store, not the allocator.
        if event.id is None:
            self.slug_allocator.release(event.slug)

    @staticmethod
    def _status_for(stats: ProcessingStats) -> ProcessingStatus:
        if stats.persisted == stats.total:
            return ProcessingStatus.SUCCESS
        if stats.persisted == 0:
            return ProcessingStatus.FAILED
        return ProcessingStatus.PARTIAL_SUCCESS


def _error_entry(stage: str, title: Optional[str], message: str) -> Dict[str, Any]:
    return {"stage": stage, "title": title, "message": message}
