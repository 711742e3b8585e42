"""Models for pipeline processing job tracking."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ProcessingJobStatus(str, Enum):
    """Processing job status values."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    SUPERSEDED = "superseded"  # a newer upload replaced this job


class ProcessingStep(str, Enum):
    """Pipeline steps, in execution order."""

    PARSE = "parse"
    RESOLVE = "resolve"
    AGGREGATE = "aggregate"


# Stage name and progress percentage reported once each step completes
STEP_PROGRESS: dict[ProcessingStep, tuple[str, int]] = {
    ProcessingStep.PARSE: ("resolving", 40),
    ProcessingStep.RESOLVE: ("generating-stats", 70),
    ProcessingStep.AGGREGATE: ("completed", 100),
}

# Progress range each step reports within while running
STEP_RANGES: dict[ProcessingStep, tuple[str, int, int]] = {
    ProcessingStep.PARSE: ("parsing", 10, 40),
    ProcessingStep.RESOLVE: ("resolving", 40, 70),
    ProcessingStep.AGGREGATE: ("generating-stats", 70, 95),
}


@dataclass
class ProcessingJobProgress:
    """Progress of a processing job, as shown to the user."""

    stage: str = "queued"
    percentage: int = 0


@dataclass
class ProcessingJobSummary:
    """Counts recorded as steps complete."""

    total_entries: int = 0
    music_entries: int = 0
    parsed_events: int = 0
    parse_errors: int = 0
    songs_requested: int = 0
    songs_cached: int = 0
    songs_fetched: int = 0
    songs_not_found: int = 0


@dataclass
class ProcessingJob:
    """Processing job state stored in Firestore."""

    id: str
    user_id: str
    status: ProcessingJobStatus = ProcessingJobStatus.PENDING
    progress: ProcessingJobProgress = field(default_factory=ProcessingJobProgress)
    summary: ProcessingJobSummary = field(default_factory=ProcessingJobSummary)
    completed_steps: list[ProcessingStep] = field(default_factory=list)
    attempts: int = 0
    error: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @property
    def is_finished(self) -> bool:
        """Whether the job will make no further progress."""
        return self.status in (
            ProcessingJobStatus.COMPLETED,
            ProcessingJobStatus.FAILED,
            ProcessingJobStatus.SUPERSEDED,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to Firestore document dict."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status.value,
            "progress": {
                "stage": self.progress.stage,
                "percentage": self.progress.percentage,
            },
            "summary": {
                "total_entries": self.summary.total_entries,
                "music_entries": self.summary.music_entries,
                "parsed_events": self.summary.parsed_events,
                "parse_errors": self.summary.parse_errors,
                "songs_requested": self.summary.songs_requested,
                "songs_cached": self.summary.songs_cached,
                "songs_fetched": self.summary.songs_fetched,
                "songs_not_found": self.summary.songs_not_found,
            },
            "completed_steps": [step.value for step in self.completed_steps],
            "attempts": self.attempts,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProcessingJob":
        """Create from Firestore document dict."""
        progress_data = data.get("progress", {})
        summary_data = data.get("summary", {})

        return cls(
            id=data.get("id", ""),
            user_id=data.get("user_id", ""),
            status=ProcessingJobStatus(data.get("status", "pending")),
            progress=ProcessingJobProgress(
                stage=progress_data.get("stage", "queued"),
                percentage=progress_data.get("percentage", 0),
            ),
            summary=ProcessingJobSummary(
                total_entries=summary_data.get("total_entries", 0),
                music_entries=summary_data.get("music_entries", 0),
                parsed_events=summary_data.get("parsed_events", 0),
                parse_errors=summary_data.get("parse_errors", 0),
                songs_requested=summary_data.get("songs_requested", 0),
                songs_cached=summary_data.get("songs_cached", 0),
                songs_fetched=summary_data.get("songs_fetched", 0),
                songs_not_found=summary_data.get("songs_not_found", 0),
            ),
            completed_steps=[ProcessingStep(step) for step in data.get("completed_steps", [])],
            attempts=data.get("attempts", 0),
            error=data.get("error"),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else datetime.now(UTC),
            updated_at=datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else datetime.now(UTC),
            completed_at=datetime.fromisoformat(data["completed_at"]) if data.get("completed_at") else None,
        )
