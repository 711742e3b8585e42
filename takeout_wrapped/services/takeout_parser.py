"""Parser for Google Takeout YouTube watch history exports.

Turns raw watch-history.json records into PlayEvents. Only YouTube Music
plays are kept; everything else in the export is skipped silently.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from takeout_wrapped.core.exceptions import InvalidExportError
from takeout_wrapped.core.models import ParseResult, PlayEvent, RawActivityRecord
from takeout_wrapped.utils.extraction import extract_from_title, extract_with_subtitle_artist
from takeout_wrapped.utils.text import clean_artist_name, clean_title, extract_video_id

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], Awaitable[None]]

TOO_MANY_ERRORS_MESSAGE = "Too many errors encountered, stopping parse"
INVALID_FORMAT_MESSAGE = "Invalid JSON format: Expected an array of activity records"


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp from the export.

    Naive timestamps are taken as UTC.

    Raises:
        ValueError: If the value is not a valid ISO-8601 timestamp.
    """
    played_at = datetime.fromisoformat(value.strip())
    if played_at.tzinfo is None:
        played_at = played_at.replace(tzinfo=UTC)
    return played_at


class TakeoutParser:
    """Extract PlayEvents from raw activity records.

    Records are processed in chunks, yielding to the event loop between
    chunks so large exports do not starve other tasks. Chunk size never
    affects the result.
    """

    MUSIC_HEADER = "YouTube Music"
    MAX_ERRORS = 100
    MIN_TITLE_LENGTH = 3
    MAX_TITLE_LENGTH = 200

    # Non-play activity that shows up in the same export
    EXCLUDED_PHRASES = (
        "watched a video that has been removed",
        "watched a private video",
        "watched a video",
        "visited youtube.com",
        "visited music.youtube.com",
        "searched for",
    )

    def __init__(self, chunk_size: int = 2000):
        self.chunk_size = max(1, chunk_size)

    def is_music_play(self, record: RawActivityRecord) -> bool:
        """Check whether a record is a YouTube Music play worth keeping."""
        if not record.title or not record.time:
            return False
        if record.header != self.MUSIC_HEADER:
            return False

        title = record.title.lower()
        if any(phrase in title for phrase in self.EXCLUDED_PHRASES):
            return False

        return self.MIN_TITLE_LENGTH <= len(record.title) <= self.MAX_TITLE_LENGTH

    def parse_record(self, record: RawActivityRecord) -> PlayEvent:
        """Convert a qualifying record into a PlayEvent.

        Raises:
            ValueError: If the record has no title or time, or its timestamp
                cannot be parsed.
        """
        if not record.title or not record.time:
            raise ValueError("Record has no title or time")

        played_at = parse_timestamp(record.time)
        title = clean_title(record.title)

        # Only the first subtitle names the uploading channel
        first_subtitle = (record.subtitles[0].name or "").strip() if record.subtitles else ""
        subtitle_artist = clean_artist_name(first_subtitle) if first_subtitle else ""
        if subtitle_artist:
            match = extract_with_subtitle_artist(title, subtitle_artist)
        else:
            match = extract_from_title(title)

        return PlayEvent(
            title=match.title,
            artist=match.artist,
            original_title=record.title,
            external_id=extract_video_id(record.title_url),
            played_at=played_at,
            parse_confidence=match.confidence,
        )

    async def parse(self, records: Any, progress_callback: ProgressCallback | None = None) -> ParseResult:
        """Parse a decoded export.

        Args:
            records: Decoded JSON payload; expected to be a list of objects.
            progress_callback: Optional async callback(processed, total).

        Returns:
            ParseResult. A payload that is not a list of objects returns no
            events and a single error with aborted=True.
        """
        if not isinstance(records, list) or not all(isinstance(record, dict) for record in records):
            logger.warning("Rejected export: top level is not an array of objects")
            return ParseResult(errors=[INVALID_FORMAT_MESSAGE], aborted=True)

        total = len(records)
        events: list[PlayEvent] = []
        errors: list[str] = []
        music_entries = 0
        aborted = False

        for start in range(0, total, self.chunk_size):
            for index in range(start, min(start + self.chunk_size, total)):
                try:
                    record = RawActivityRecord.model_validate(records[index])
                except ValidationError as e:
                    errors.append(f"Error processing entry {index}: {e.error_count()} invalid field(s)")
                else:
                    if not self.is_music_play(record):
                        continue
                    music_entries += 1
                    try:
                        events.append(self.parse_record(record))
                    except ValueError:
                        errors.append(f"Error processing entry {index}: invalid timestamp '{record.time}'")

                if len(errors) > self.MAX_ERRORS:
                    errors.append(TOO_MANY_ERRORS_MESSAGE)
                    aborted = True
                    break

            if aborted:
                logger.warning(f"Stopped parsing after {len(errors) - 1} errors")
                break

            processed = min(start + self.chunk_size, total)
            if progress_callback:
                await progress_callback(processed, total)
            await asyncio.sleep(0)

        logger.info(f"Parsed {len(events)} plays from {music_entries} music entries ({total} total, {len(errors)} errors)")
        return ParseResult(
            events=events,
            total_entries=total,
            music_entries=music_entries,
            errors=errors,
            aborted=aborted,
        )

    async def parse_json(self, content: bytes | str, progress_callback: ProgressCallback | None = None) -> ParseResult:
        """Decode and parse a watch-history.json file."""
        try:
            records = json.loads(content)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Rejected export: {e}")
            return ParseResult(errors=[f"Failed to parse JSON: {e}"], aborted=True)
        return await self.parse(records, progress_callback)


def validate_export(payload: Any) -> None:
    """Check that a decoded upload looks like a watch history export.

    The top level must be an array and its first record must carry at least
    one of title, titleUrl or time.

    Raises:
        InvalidExportError: If the payload fails these checks.
    """
    if not isinstance(payload, list):
        raise InvalidExportError("Expected an array of activity records")
    if payload:
        first = payload[0]
        if not isinstance(first, dict) or not any(key in first for key in ("title", "titleUrl", "time")):
            raise InvalidExportError("First record is missing title, titleUrl and time")
