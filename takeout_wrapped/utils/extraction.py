"""Artist/title extraction strategies for activity and video titles.

Each strategy is a pure function that takes a cleaned title and returns a
TitleMatch or None. Strategies are tried in order and the first match wins.
"""

import re
from dataclasses import dataclass

from takeout_wrapped.utils.text import clean_artist_name, clean_song_title, clean_title, is_generic_artist

UNKNOWN_ARTIST = "Unknown Artist"

SUBTITLE_CONFIDENCE = 0.95
UNKNOWN_CONFIDENCE = 0.2

DASH_PATTERN = re.compile(r"^(.+?)\s*[-–—]\s*(.+)$")
DOT_PATTERN = re.compile(r"^(.+?)\s*[·•]\s*(.+)$")
BY_PATTERN = re.compile(r"^(.+?)\s+by\s+(.+)$", re.IGNORECASE)
COLON_PATTERN = re.compile(r"^(.+?)\s*:\s*(.+)$")

# Fallbacks used when the subtitle artist prefix consumes the whole title
SEPARATOR_SUFFIX_PATTERN = re.compile(r"^.+?[-–—·•:]\s*(.+)$")
BY_PREFIX_PATTERN = re.compile(r"^(.+?)\s+by\s+.+$", re.IGNORECASE)


@dataclass(frozen=True)
class TitleMatch:
    """Artist and song title extracted from a title string."""

    title: str
    artist: str
    confidence: float


def _split(pattern: re.Pattern[str], title: str, artist_group: int, confidence: float) -> TitleMatch | None:
    match = pattern.match(title)
    if not match:
        return None
    title_group = 2 if artist_group == 1 else 1
    artist = clean_artist_name(match.group(artist_group))
    song = clean_song_title(match.group(title_group))
    if not artist or not song:
        return None
    return TitleMatch(title=song, artist=artist, confidence=confidence)


def split_artist_dash_title(title: str) -> TitleMatch | None:
    """Match "Artist - Title"."""
    return _split(DASH_PATTERN, title, artist_group=1, confidence=0.7)


def split_artist_dot_title(title: str) -> TitleMatch | None:
    """Match "Artist · Title" (YouTube Music uses the middle dot)."""
    return _split(DOT_PATTERN, title, artist_group=1, confidence=0.7)


def split_title_by_artist(title: str) -> TitleMatch | None:
    """Match "Title by Artist"."""
    return _split(BY_PATTERN, title, artist_group=2, confidence=0.6)


def split_artist_colon_title(title: str) -> TitleMatch | None:
    """Match "Artist: Title"."""
    return _split(COLON_PATTERN, title, artist_group=1, confidence=0.5)


def split_title_dash_artist(title: str) -> TitleMatch | None:
    """Match "Title - Artist"."""
    return _split(DASH_PATTERN, title, artist_group=2, confidence=0.4)


TITLE_STRATEGIES = (
    split_artist_dash_title,
    split_artist_dot_title,
    split_title_by_artist,
    split_artist_colon_title,
    split_title_dash_artist,
)


def extract_from_title(title: str) -> TitleMatch:
    """Extract artist and song from a cleaned title with no subtitle artist.

    Falls back to "Unknown Artist" with the whole title as the song.
    """
    for strategy in TITLE_STRATEGIES:
        match = strategy(title)
        if match is not None:
            return match
    return TitleMatch(title=clean_song_title(title), artist=UNKNOWN_ARTIST, confidence=UNKNOWN_CONFIDENCE)


def extract_with_subtitle_artist(title: str, artist: str) -> TitleMatch:
    """Extract the song title when the artist is known from the subtitle.

    Strips a leading "Artist -", "Artist ·" or "Artist:" from the title. If
    that leaves nothing, tries the "X - Y" and "X by Y" shapes before
    keeping the cleaned title as is.
    """
    prefix = re.compile(rf"^{re.escape(artist)}\s*[-–—·•:]?\s*", re.IGNORECASE)
    song = prefix.sub("", title).strip()

    if not song:
        suffix_match = SEPARATOR_SUFFIX_PATTERN.match(title)
        by_match = BY_PREFIX_PATTERN.match(title)
        if suffix_match:
            song = suffix_match.group(1)
        elif by_match:
            song = by_match.group(1)
        else:
            song = title

    return TitleMatch(
        title=clean_song_title(song) or title,
        artist=artist,
        confidence=SUBTITLE_CONFIDENCE,
    )


def derive_artist_from_title(title: str) -> str | None:
    """Re-derive an artist from a video title when the channel name is generic.

    Returns the first strategy match whose artist looks like a real name:
    longer than two characters, not purely numeric and not itself generic.
    """
    cleaned = clean_title(title)
    for strategy in TITLE_STRATEGIES:
        match = strategy(cleaned)
        if match is None:
            continue
        artist = match.artist
        if len(artist) > 2 and not artist.isdigit() and not is_generic_artist(artist):
            return artist
    return None
