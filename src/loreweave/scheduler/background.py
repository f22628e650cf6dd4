"""Background generation of relationship suggestions.

Jobs are queued per graph and consumed by asyncio worker tasks; callers
that schedule a job never wait for it. Inside a job every unordered
entity pair is processed sequentially, in batches separated by a short
pause. Progress, the per-graph job lock and the rate-limit window live in
the ephemeral cache so several processes can share them through Redis.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from loreweave.errors import SuggestionError
from loreweave.models.entity import parse_datetime
from loreweave.prediction.config import SchedulerConfig
from loreweave.prediction.model import RelationshipPredictor
from loreweave.storage.base import EphemeralCache, GraphStore
from loreweave.storage.cache import MemoryCache

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_active(self) -> bool:
        return self in (JobStatus.QUEUED, JobStatus.RUNNING)


@dataclass
class ProgressRecord:
    """Progress of one graph's generation job."""

    status: JobStatus
    total: int = 0
    processed: int = 0
    created: int = 0
    percent: int = 0
    started_at: datetime | None = None
    updated_at: datetime = field(default_factory=datetime.utcnow)
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "total": self.total,
            "processed": self.processed,
            "created": self.created,
            "percent": self.percent,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "updated_at": self.updated_at.isoformat(),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProgressRecord":
        return cls(
            status=JobStatus(data["status"]),
            total=int(data.get("total") or 0),
            processed=int(data.get("processed") or 0),
            created=int(data.get("created") or 0),
            percent=int(data.get("percent") or 0),
            started_at=parse_datetime(data.get("started_at")),
            updated_at=parse_datetime(data.get("updated_at")) or datetime.utcnow(),
            error=data.get("error"),
        )


class SuggestionScheduler:
    """Queues and runs per-graph suggestion generation jobs."""

    def __init__(
        self,
        graph_store: GraphStore,
        predictor: RelationshipPredictor,
        cache: EphemeralCache | None = None,
        config: SchedulerConfig | None = None,
    ) -> None:
        self.graph_store = graph_store
        self.predictor = predictor
        self.config = config or SchedulerConfig()
        self.cache = cache or MemoryCache(default_ttl=self.config.progress_ttl)

        self._queue: asyncio.Queue[tuple[str, str]] = asyncio.Queue()
        # graph_id -> job id of the queued, not yet started job
        self._queued: dict[str, str] = {}
        self._workers: list[asyncio.Task] = []
        self._refresh_task: asyncio.Task | None = None

    # Cache keys
    @staticmethod
    def progress_key(graph_id: str) -> str:
        return f"suggestions:progress:{graph_id}"

    @staticmethod
    def lock_key(graph_id: str) -> str:
        return f"suggestions:lock:{graph_id}"

    @staticmethod
    def rate_key(graph_id: str) -> str:
        return f"suggestions:rate:{graph_id}"

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    async def start(self, workers: int | None = None, periodic_refresh: bool = False) -> None:
        """Start worker tasks consuming the job queue."""
        if self._workers:
            return
        count = workers or self.config.workers
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"suggestion-worker-{i}")
            for i in range(count)
        ]
        if periodic_refresh:
            self._refresh_task = asyncio.create_task(self.run_periodic_refresh())
        logger.info(f"Suggestion scheduler started with {count} worker(s)")

    async def stop(self) -> None:
        """Cancel workers. A job in flight is abandoned at its next await."""
        tasks = list(self._workers)
        if self._refresh_task is not None:
            tasks.append(self._refresh_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._refresh_task = None
        logger.info("Suggestion scheduler stopped")

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def _worker(self, index: int) -> None:
        while True:
            graph_id, job_id = await self._queue.get()
            try:
                if self._queued.get(graph_id) != job_id:
                    logger.info(f"Skipping cancelled job {job_id} for graph {graph_id}")
                    continue
                del self._queued[graph_id]
                logger.debug(f"Worker {index} picked up graph {graph_id}")
                await self.process_graph(graph_id, job_id)
            finally:
                self._queue.task_done()

    # ==========================================================================
    # Scheduling
    # ==========================================================================

    async def schedule_generation_job(self, graph_id: str) -> bool:
        """Queue a job for the graph. False when one is active or the graph is rate limited."""
        progress = await self.get_progress(graph_id)
        if progress is not None and progress.status.is_active:
            logger.warning(f"Job already {progress.status.value} for graph {graph_id}")
            return False

        job_id = f"job-{uuid.uuid4()}"
        acquired = await self.cache.set_if_absent(
            self.lock_key(graph_id), job_id, ttl=self.config.progress_ttl
        )
        if not acquired:
            logger.warning(f"Job lock for graph {graph_id} is held, not scheduling")
            return False

        if not await self._check_rate_limit(graph_id):
            await self._release_lock(graph_id, job_id)
            return False

        await self._save_progress(
            graph_id, ProgressRecord(status=JobStatus.QUEUED, started_at=datetime.utcnow())
        )
        self._queued[graph_id] = job_id
        self._queue.put_nowait((graph_id, job_id))
        logger.info(f"Scheduled generation job for graph {graph_id}")
        return True

    async def _release_lock(self, graph_id: str, job_id: str) -> None:
        if not await self.cache.delete_if_equals(self.lock_key(graph_id), job_id):
            logger.warning(f"Job lock for graph {graph_id} no longer held by {job_id}")

    async def _check_rate_limit(self, graph_id: str) -> bool:
        """Rolling window of job start times per graph."""
        now = time.time()
        window_start = now - self.config.rate_window
        recent = [
            stamp
            for stamp in (await self.cache.get(self.rate_key(graph_id)) or [])
            if stamp > window_start
        ]
        if len(recent) >= self.config.rate_limit:
            logger.warning(f"Rate limit exceeded for graph {graph_id}")
            return False
        recent.append(now)
        await self.cache.set(self.rate_key(graph_id), recent, ttl=self.config.rate_window)
        return True

    async def refresh_all_graphs(self) -> int:
        """Schedule a job for every graph, staggered. Returns how many were scheduled."""
        graph_ids = await self.graph_store.list_graph_ids()
        scheduled = 0
        for index, graph_id in enumerate(graph_ids):
            if not await self.schedule_generation_job(graph_id):
                continue
            scheduled += 1
            if index < len(graph_ids) - 1 and self.config.refresh_stagger > 0:
                await asyncio.sleep(self.config.refresh_stagger)
        logger.info(f"Refresh scheduled {scheduled} of {len(graph_ids)} graphs")
        return scheduled

    async def run_periodic_refresh(self, interval: float | None = None) -> None:
        interval = interval if interval is not None else self.config.refresh_interval
        while True:
            try:
                await self.refresh_all_graphs()
            except SuggestionError as e:
                logger.error(f"Periodic refresh failed: {e}")
            await asyncio.sleep(interval)

    # ==========================================================================
    # Progress
    # ==========================================================================

    async def get_progress(self, graph_id: str) -> ProgressRecord | None:
        data = await self.cache.get(self.progress_key(graph_id))
        if data is None:
            return None
        return ProgressRecord.from_dict(data)

    async def _save_progress(self, graph_id: str, record: ProgressRecord) -> None:
        record.updated_at = datetime.utcnow()
        await self.cache.set(
            self.progress_key(graph_id), record.to_dict(), ttl=self.config.progress_ttl
        )

    async def cancel_job(self, graph_id: str) -> bool:
        """Forget the job's progress and drop it if it has not started yet."""
        removed = await self.cache.delete(self.progress_key(graph_id))
        dropped = False
        job_id = self._queued.pop(graph_id, None)
        if job_id is not None:
            await self._release_lock(graph_id, job_id)
            dropped = True
        if removed or dropped:
            logger.info(f"Cancelled generation job for graph {graph_id}")
        return removed or dropped

    # ==========================================================================
    # Job body
    # ==========================================================================

    async def process_graph(self, graph_id: str, job_id: str | None = None) -> ProgressRecord:
        """Generate suggestions for every unordered entity pair of a graph.

        A job started by a worker passes its id and releases the lock it holds.
        """
        record = ProgressRecord(status=JobStatus.RUNNING, started_at=datetime.utcnow())
        try:
            logger.info(f"Starting suggestion generation for graph {graph_id}")
            await self._save_progress(graph_id, record)

            entities = await self.graph_store.get_entities(graph_id)
            pairs = [
                (first, second)
                for i, first in enumerate(entities)
                for second in entities[i + 1:]
            ]
            record.total = len(pairs)
            logger.info(f"Generated {record.total} entity pairs for graph {graph_id}")

            batch_size = max(1, self.config.batch_size)
            for start in range(0, record.total, batch_size):
                for first, second in pairs[start:start + batch_size]:
                    try:
                        suggestion = await self.predictor.generate_suggestion(
                            first.id, second.id, graph_id
                        )
                        if suggestion is not None:
                            record.created += 1
                    except SuggestionError as e:
                        logger.warning(
                            f"Error generating suggestion for {first.id}-{second.id}: {e}"
                        )

                    record.processed += 1
                    if record.processed % self.config.progress_every == 0:
                        record.percent = int(record.processed / record.total * 100)
                        await self._save_progress(graph_id, record)

                if start + batch_size < record.total and self.config.batch_pause > 0:
                    await asyncio.sleep(self.config.batch_pause)

            record.status = JobStatus.COMPLETED
            record.percent = 100
            await self._save_progress(graph_id, record)
            logger.info(
                f"Completed generation for graph {graph_id}: {record.created} suggestions created"
            )
        except Exception as e:
            logger.error(f"Failed to process graph {graph_id}: {e}")
            record.status = JobStatus.ERROR
            record.error = str(e)
            await self._save_progress(graph_id, record)
        finally:
            if job_id is not None:
                await self._release_lock(graph_id, job_id)
        return record
