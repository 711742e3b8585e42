"""Pipeline orchestration for uploaded watch histories.

A job runs three steps: parse, resolve and aggregate. Each step reads its
input from and writes its output to Cloud Storage, so a step that already
completed is skipped when Cloud Tasks redelivers the job. Job state and
progress live in Firestore.
"""

import asyncio
import json
import logging
import secrets
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import TypeAdapter

from backend.config import BackendSettings
from backend.models.processing_job import (
    STEP_PROGRESS,
    STEP_RANGES,
    ProcessingJob,
    ProcessingJobProgress,
    ProcessingJobStatus,
    ProcessingStep,
)
from backend.services.cloud_tasks_service import CloudTasksService
from backend.services.firestore_service import FirestoreService
from backend.services.song_cache_service import SongCacheService
from backend.services.storage_service import StorageService
from takeout_wrapped.core.exceptions import InvalidExportError, NotFoundError, ProcessingError
from takeout_wrapped.core.models import PlayEvent, SongMetadata, Statistics
from takeout_wrapped.services.duration_estimator import estimate_duration
from takeout_wrapped.services.metadata_resolver import MetadataResolver
from takeout_wrapped.services.stats_aggregator import StatsAggregator
from takeout_wrapped.services.takeout_parser import TakeoutParser, validate_export
from takeout_wrapped.utils.text import create_song_key

logger = logging.getLogger(__name__)

NO_MUSIC_MESSAGE = "No valid music entries found"
GENERIC_FAILURE_MESSAGE = "Processing failed. Please try uploading your history again."

_events_adapter = TypeAdapter(list[PlayEvent])
_metadata_adapter = TypeAdapter(dict[str, SongMetadata])


class ProcessingService:
    """Service that creates, runs and reports on processing jobs."""

    JOBS_COLLECTION = "processing_jobs"
    STATS_COLLECTION = "user_stats"
    LATEST_JOB_COLLECTION = "user_latest_jobs"

    EVENTS_ARTIFACT = "events"
    METADATA_ARTIFACT = "metadata"

    def __init__(
        self,
        settings: BackendSettings,
        firestore: FirestoreService,
        storage: StorageService,
        cloud_tasks: CloudTasksService | None = None,
        parser: TakeoutParser | None = None,
        resolver: MetadataResolver | None = None,
        aggregator: StatsAggregator | None = None,
    ):
        self.settings = settings
        self.firestore = firestore
        self.storage = storage
        self.cloud_tasks = cloud_tasks
        self.parser = parser or TakeoutParser(chunk_size=settings.chunk_size)
        self.song_cache = SongCacheService(firestore)
        self.resolver = resolver or MetadataResolver.from_settings(settings, self.song_cache)
        self.aggregator = aggregator or StatsAggregator.from_settings(settings)

    # -------------------------------------------------------------------------
    # Job creation and lookup
    # -------------------------------------------------------------------------

    def _generate_job_id(self) -> str:
        """Generate a unique job ID."""
        return f"job_{secrets.token_hex(12)}"

    async def create_job(self, user_id: str, content: bytes) -> ProcessingJob:
        """Store an upload and queue it for processing.

        Any earlier job for the user is superseded and their statistics are
        cleared, so stale results are never shown next to a new upload.

        Args:
            user_id: Uploading user's ID.
            content: Raw watch-history.json bytes.

        Returns:
            The new pending job.

        Raises:
            InvalidExportError: If the upload is not a watch history export.
        """
        try:
            payload = json.loads(content)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidExportError(f"File is not valid JSON: {e}")
        validate_export(payload)

        await self.invalidate_user_data(user_id)

        job = ProcessingJob(id=self._generate_job_id(), user_id=user_id)
        await self.storage.upload_bytes(self.storage.upload_path(user_id, job.id), content)
        await self.firestore.set_document(self.JOBS_COLLECTION, job.id, job.to_dict())
        await self.firestore.set_document(
            self.LATEST_JOB_COLLECTION,
            user_id,
            {"latest_job_id": job.id, "updated_at": datetime.now(UTC).isoformat()},
        )

        if self.cloud_tasks is not None:
            self.cloud_tasks.create_processing_task(job.id, user_id)

        logger.info(f"Created processing job {job.id} for user {user_id} ({len(content)} bytes)")
        return job

    async def invalidate_user_data(self, user_id: str) -> None:
        """Supersede a user's unfinished jobs and delete their statistics."""
        jobs = await self.firestore.query_documents(
            self.JOBS_COLLECTION,
            filters=[("user_id", "==", user_id)],
        )
        for job_data in jobs:
            job = ProcessingJob.from_dict(job_data)
            if job.is_finished:
                continue
            await self.firestore.update_document(
                self.JOBS_COLLECTION,
                job.id,
                {"status": ProcessingJobStatus.SUPERSEDED.value, "updated_at": datetime.now(UTC).isoformat()},
            )
            logger.info(f"Superseded job {job.id} for user {user_id}")

        await self.firestore.delete_document(self.STATS_COLLECTION, user_id)

    async def get_job(self, job_id: str) -> ProcessingJob | None:
        """Get a job by ID."""
        data = await self.firestore.get_document(self.JOBS_COLLECTION, job_id)
        return ProcessingJob.from_dict(data) if data else None

    async def get_latest_job(self, user_id: str) -> ProcessingJob | None:
        """Get the job for the user's most recent upload."""
        pointer = await self.firestore.get_document(self.LATEST_JOB_COLLECTION, user_id)
        if not pointer or not pointer.get("latest_job_id"):
            return None
        return await self.get_job(pointer["latest_job_id"])

    async def get_user_statistics(self, user_id: str) -> Statistics | None:
        """Get the statistics produced by the user's latest completed job."""
        data = await self.firestore.get_document(self.STATS_COLLECTION, user_id)
        if not data or not data.get("statistics"):
            return None
        return Statistics.model_validate(data["statistics"])

    # -------------------------------------------------------------------------
    # Job execution
    # -------------------------------------------------------------------------

    async def run_job(self, job_id: str) -> ProcessingJob:
        """Run the remaining steps of a job.

        Safe to call repeatedly: finished jobs are returned unchanged and
        completed steps are skipped.

        Raises:
            NotFoundError: If the job does not exist.
        """
        job = await self.get_job(job_id)
        if job is None:
            raise NotFoundError(f"Processing job not found: {job_id}")

        if job.is_finished:
            logger.info(f"Job already {job.status.value}: {job_id}")
            return job

        job.status = ProcessingJobStatus.PROCESSING
        job.attempts += 1
        await self._save(job)

        for step in ProcessingStep:
            if step in job.completed_steps:
                continue

            if await self._is_superseded(job):
                job.status = ProcessingJobStatus.SUPERSEDED
                await self._save(job)
                logger.info(f"Job {job.id} superseded by a newer upload, stopping")
                return job

            try:
                await self._run_step_with_retries(job, step)
            except InvalidExportError as e:
                await self._fail(job, str(e))
                return job
            except ProcessingError as e:
                logger.error(f"Job {job.id} failed: {e}")
                await self._fail(job, GENERIC_FAILURE_MESSAGE)
                return job

            stage, percentage = STEP_PROGRESS[step]
            job.completed_steps.append(step)
            job.progress = ProcessingJobProgress(stage=stage, percentage=percentage)
            await self._save(job)

        if await self._is_superseded(job):
            job.status = ProcessingJobStatus.SUPERSEDED
            await self._save(job)
            return job

        job.status = ProcessingJobStatus.COMPLETED
        job.completed_at = datetime.now(UTC)
        await self._save(job)
        logger.info(f"Processing job completed: {job.id}")
        return job

    async def _run_step_with_retries(self, job: ProcessingJob, step: ProcessingStep) -> None:
        """Run a step, retrying failures up to max_step_attempts times.

        Raises:
            InvalidExportError: Immediately; bad input does not improve on retry.
            ProcessingError: When every attempt failed.
        """
        stage, start, _ = STEP_RANGES[step]
        job.progress = ProcessingJobProgress(stage=stage, percentage=start)
        await self._save(job)

        max_attempts = max(1, self.settings.max_step_attempts)
        for attempt in range(1, max_attempts + 1):
            try:
                await self._run_step(job, step)
                return
            except InvalidExportError:
                raise
            except Exception as e:
                logger.warning(f"Step {step.value} of job {job.id} failed (attempt {attempt}/{max_attempts}): {e}")
                if attempt == max_attempts:
                    raise ProcessingError(stage, str(e), job.progress.percentage) from e
                await asyncio.sleep(self.settings.step_retry_delay_seconds * attempt)

    async def _run_step(self, job: ProcessingJob, step: ProcessingStep) -> None:
        if step is ProcessingStep.PARSE:
            await self._parse(job)
        elif step is ProcessingStep.RESOLVE:
            await self._resolve(job)
        else:
            await self._aggregate(job)

    async def _parse(self, job: ProcessingJob) -> None:
        """Parse the raw upload into play events."""
        content = await self.storage.download_bytes(self.storage.upload_path(job.user_id, job.id))
        if content is None:
            raise ProcessingError("parsing", f"Upload missing for job {job.id}")

        result = await self.parser.parse_json(content, self._progress_callback(job, ProcessingStep.PARSE))
        if not result.events:
            if result.aborted and result.errors:
                logger.warning(f"Job {job.id} upload rejected: {result.errors[0]}")
                raise InvalidExportError(result.errors[0])
            raise InvalidExportError(NO_MUSIC_MESSAGE)

        await self.storage.upload_bytes(
            self.storage.artifact_path(job.id, self.EVENTS_ARTIFACT),
            _events_adapter.dump_json(result.events),
        )

        job.summary.total_entries = result.total_entries
        job.summary.music_entries = result.music_entries
        job.summary.parsed_events = len(result.events)
        job.summary.parse_errors = len(result.errors)

    async def _resolve(self, job: ProcessingJob) -> None:
        """Resolve metadata for every distinct video in the parsed events."""
        events = await self._load_events(job)

        try:
            resolution = await self.resolver.resolve(event.external_id for event in events if event.external_id)
        finally:
            await self.resolver.close()

        songs = {**resolution.songs, **await self._estimate_missing(events, resolution.songs)}

        await self.storage.upload_bytes(
            self.storage.artifact_path(job.id, self.METADATA_ARTIFACT),
            _metadata_adapter.dump_json(songs),
        )

        job.summary.songs_requested = resolution.stats.requested
        job.summary.songs_cached = resolution.stats.cached
        job.summary.songs_fetched = resolution.stats.fetched
        job.summary.songs_not_found = resolution.stats.not_found

    async def _estimate_missing(
        self,
        events: list[PlayEvent],
        resolved: dict[str, SongMetadata],
    ) -> dict[str, SongMetadata]:
        """Fill in songs the metadata provider could not resolve.

        A song already cached under the same "artist - title" key is reused.
        Otherwise the duration is estimated and cached under the video id so
        later uploads find it. Plays without a video id are keyed by song key
        and are not written back.

        Returns:
            Metadata keyed by video id, or by song key for plays without one.
        """
        estimated: dict[str, SongMetadata] = {}
        unknown_keys: set[str] = set()

        for event in events:
            lookup_id = StatsAggregator.metadata_key(event)
            if lookup_id in resolved or lookup_id in estimated or lookup_id in unknown_keys:
                continue

            artist = StatsAggregator.resolve_artist(event, None)
            key = create_song_key(artist, event.title)
            try:
                known = await self.song_cache.get_by_key(key)
            except Exception as e:
                logger.warning(f"Song cache key lookup failed for '{key}': {e}")
                known = None

            if known is not None:
                estimated[lookup_id] = known.model_copy(update={"external_id": event.external_id or known.external_id})
                continue
            if event.external_id is None:
                unknown_keys.add(lookup_id)
                continue

            estimate = estimate_duration(event.title, artist)
            song = SongMetadata(
                key=key,
                external_id=event.external_id,
                title=event.title,
                artist=artist,
                duration=estimate.duration,
                estimation_method=estimate.method,
                confidence=estimate.confidence,
            )
            estimated[event.external_id] = song
            try:
                await self.song_cache.upsert(song)
            except Exception as e:
                logger.warning(f"Failed to cache estimate for {event.external_id}: {e}")

        if estimated:
            logger.info(f"Estimated or matched {len(estimated)} songs without provider metadata")
        return estimated

    async def _aggregate(self, job: ProcessingJob) -> None:
        """Compute statistics and store them for the user."""
        events = await self._load_events(job)
        content = await self.storage.download_bytes(self.storage.artifact_path(job.id, self.METADATA_ARTIFACT))
        if content is None:
            raise ProcessingError("generating-stats", f"Metadata artifact missing for job {job.id}")
        metadata = _metadata_adapter.validate_json(content)

        statistics = await self.aggregator.aggregate(
            events,
            metadata,
            self._progress_callback(job, ProcessingStep.AGGREGATE),
        )

        # A newer upload may have arrived while aggregating
        if await self._is_superseded(job):
            logger.info(f"Discarding statistics of superseded job {job.id}")
            return

        await self.firestore.set_document(
            self.STATS_COLLECTION,
            job.user_id,
            {
                "user_id": job.user_id,
                "job_id": job.id,
                "statistics": statistics.model_dump(mode="json"),
                "updated_at": datetime.now(UTC).isoformat(),
            },
        )

    async def _load_events(self, job: ProcessingJob) -> list[PlayEvent]:
        content = await self.storage.download_bytes(self.storage.artifact_path(job.id, self.EVENTS_ARTIFACT))
        if content is None:
            raise ProcessingError("resolving", f"Events artifact missing for job {job.id}")
        return _events_adapter.validate_json(content)

    async def _is_superseded(self, job: ProcessingJob) -> bool:
        pointer = await self.firestore.get_document(self.LATEST_JOB_COLLECTION, job.user_id)
        return bool(pointer and pointer.get("latest_job_id") not in (None, job.id))

    async def _fail(self, job: ProcessingJob, message: str) -> None:
        """Mark a job failed, keeping the stage and percentage it reached."""
        job.status = ProcessingJobStatus.FAILED
        job.error = message
        await self._save(job)

    async def _save(self, job: ProcessingJob) -> None:
        job.updated_at = datetime.now(UTC)
        await self.firestore.set_document(self.JOBS_COLLECTION, job.id, job.to_dict())

    def _progress_callback(self, job: ProcessingJob, step: ProcessingStep) -> Callable[[int, int], Awaitable[None]]:
        """Create a callback that maps step progress onto the job percentage.

        Args:
            job: Job being processed.
            step: Step reporting progress.

        Returns:
            Async callback(processed, total).
        """
        stage, start, end = STEP_RANGES[step]

        async def callback(processed: int, total: int) -> None:
            """Update job progress in Firestore when the percentage changes."""
            percentage = start + (end - start) * processed // total if total else start
            if percentage == job.progress.percentage and stage == job.progress.stage:
                return
            job.progress = ProcessingJobProgress(stage=stage, percentage=percentage)
            await self.firestore.update_document(
                self.JOBS_COLLECTION,
                job.id,
                {
                    "progress": {"stage": stage, "percentage": percentage},
                    "updated_at": datetime.now(UTC).isoformat(),
                },
            )

        return callback

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    async def cleanup_expired_artifacts(self, retention_days: int | None = None) -> dict[str, Any]:
        """Delete uploads and step outputs of jobs older than the retention period.

        Job documents and user statistics are kept.

        Returns:
            Dict with the number of jobs cleaned and blobs deleted.
        """
        days = retention_days if retention_days is not None else self.settings.artifact_retention_days
        cutoff = datetime.now(UTC) - timedelta(days=days)

        jobs = await self.firestore.query_documents(
            self.JOBS_COLLECTION,
            filters=[("created_at", "<", cutoff.isoformat())],
        )

        blobs_deleted = 0
        for job_data in jobs:
            job = ProcessingJob.from_dict(job_data)
            blobs_deleted += await self.storage.delete_prefix(f"jobs/{job.id}/")
            blobs_deleted += await self.storage.delete_prefix(f"uploads/{job.user_id}/{job.id}/")

        logger.info(f"Cleaned up {len(jobs)} jobs older than {days} days ({blobs_deleted} blobs)")
        return {"jobs_cleaned": len(jobs), "blobs_deleted": blobs_deleted}
