"""Duration estimation for songs without authoritative metadata.

Tiers, most specific first:
1. Title patterns ("intro", "extended mix", "radio edit", ...)
2. Genre averages
3. Global average

All functions are pure, so estimates are memoised per input.
"""

import re
from dataclasses import dataclass
from functools import lru_cache

from takeout_wrapped.core.models import DurationEstimate

GLOBAL_AVERAGE_DURATION = 210  # 3.5 minutes
GLOBAL_AVERAGE_CONFIDENCE = 0.4

GENRE_DEFAULT_CONFIDENCE = 0.5
GENRE_MATCH_CONFIDENCE = 0.6

# Average song length per genre, in seconds
GENRE_DURATIONS: dict[str, int] = {
    "pop": 195,
    "top 40": 190,
    "commercial": 200,
    "hip-hop": 225,
    "rap": 220,
    "trap": 210,
    "rock": 240,
    "hard rock": 255,
    "classic rock": 270,
    "metal": 285,
    "electronic": 270,
    "edm": 255,
    "house": 300,
    "techno": 330,
    "trance": 360,
    "classical": 480,
    "symphony": 900,
    "concerto": 720,
    "country": 215,
    "jazz": 300,
    "blues": 255,
    "reggae": 230,
    "folk": 220,
    "acoustic": 210,
    "alternative": 230,
    "indie": 225,
    "r&b": 205,
    "soul": 220,
    "punk": 150,
    "default": 210,
}


@dataclass(frozen=True)
class TitlePattern:
    """A title keyword that implies a typical duration."""

    pattern: re.Pattern[str]
    duration: int
    confidence: float
    exclude: re.Pattern[str] | None = None

    def matches(self, title: str) -> bool:
        if not self.pattern.search(title):
            return False
        return self.exclude is None or not self.exclude.search(title)


# Checked in order; the first match wins
TITLE_PATTERNS = [
    TitlePattern(re.compile(r"intro", re.I), 90, 0.85, exclude=re.compile(r"introduction", re.I)),
    TitlePattern(re.compile(r"outro|interlude", re.I), 120, 0.85),
    TitlePattern(re.compile(r"extended", re.I), 390, 0.8),
    TitlePattern(re.compile(r"radio edit", re.I), 195, 0.9),
    TitlePattern(re.compile(r"club (?:mix|remix)", re.I), 345, 0.85),
    TitlePattern(re.compile(r"remix", re.I), 270, 0.75, exclude=re.compile(r"radio", re.I)),
    TitlePattern(re.compile(r"\blive\b", re.I), 285, 0.7),  # whole word, so "olive" and "alive" do not count
    TitlePattern(re.compile(r"acoustic", re.I), 200, 0.75),
    TitlePattern(re.compile(r"demo", re.I), 180, 0.7),
    TitlePattern(re.compile(r"instrumental", re.I), 210, 0.75),
]


def estimate_from_title(title: str) -> DurationEstimate | None:
    """Estimate duration from keywords in the title, or None if none apply."""
    for title_pattern in TITLE_PATTERNS:
        if title_pattern.matches(title):
            return DurationEstimate(
                duration=title_pattern.duration,
                method="title-pattern",
                confidence=title_pattern.confidence,
            )
    return None


def estimate_from_genre(genre_hints: tuple[str, ...] | list[str] | None) -> DurationEstimate:
    """Estimate duration from the first recognised genre hint.

    Unrecognised or missing hints return the table default at lower confidence.
    """
    for genre in genre_hints or ():
        duration = GENRE_DURATIONS.get(genre.lower().strip())
        if duration is not None:
            return DurationEstimate(duration=duration, method="genre-default", confidence=GENRE_MATCH_CONFIDENCE)
    return DurationEstimate(
        duration=GENRE_DURATIONS["default"],
        method="genre-default",
        confidence=GENRE_DEFAULT_CONFIDENCE,
    )


def estimate_global() -> DurationEstimate:
    """Global average fallback."""
    return DurationEstimate(
        duration=GLOBAL_AVERAGE_DURATION,
        method="global-average",
        confidence=GLOBAL_AVERAGE_CONFIDENCE,
    )


@lru_cache(maxsize=8192)
def _estimate(title: str, genre_hints: tuple[str, ...]) -> DurationEstimate:
    title_estimate = estimate_from_title(title)
    if title_estimate is not None:
        return title_estimate

    genre_estimate = estimate_from_genre(genre_hints)
    if genre_estimate.confidence > GENRE_DEFAULT_CONFIDENCE:
        return genre_estimate

    return estimate_global()


def estimate_duration(
    title: str,
    artist: str | None = None,
    genre_hints: list[str] | tuple[str, ...] | None = None,
) -> DurationEstimate:
    """Estimate a song's duration.

    Args:
        title: Song or video title.
        artist: Artist name. Currently unused by any tier but accepted so
            callers can pass full song context.
        genre_hints: Optional genre tags, most relevant first.

    Returns:
        The estimate from the first tier that applies.
    """
    return _estimate(title, tuple(genre_hints or ()))
