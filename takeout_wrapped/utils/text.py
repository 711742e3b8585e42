"""Text normalization utilities for Takeout Wrapped."""

import re

WHITESPACE_PATTERN = re.compile(r"\s+")

# Trailing annotations YouTube uploaders attach to video titles
TITLE_REMOVE_PATTERNS = [
    re.compile(r"^watched\s+", re.IGNORECASE),
    re.compile(r"\s*\(official\s+(?:video|audio|music\s+video)\)$", re.IGNORECASE),
    re.compile(r"\s*\[official\s+(?:video|audio|music\s+video)\]$", re.IGNORECASE),
    re.compile(r"\s*-\s*official\s+(?:video|audio|music\s+video)$", re.IGNORECASE),
    re.compile(r"\s*\((?:lyrics|lyric\s+video|with\s+lyrics)\)$", re.IGNORECASE),
    re.compile(r"\s*\[(?:lyrics|lyric\s+video|with\s+lyrics)\]$", re.IGNORECASE),
    re.compile(r"\s*\[(?:hd|hq|4k)\]$", re.IGNORECASE),
    re.compile(r"\s*\((?:hd|hq|4k)\)$", re.IGNORECASE),
    re.compile(r"\s*\(\d{4}\)$"),
]

SONG_TITLE_REMOVE_PATTERNS = [
    re.compile(r"\s+(?:feat\.|ft\.|featuring)\s+.+$", re.IGNORECASE),  # feat. Another Artist
    re.compile(r"\s*\(\s*remix\s*\)$", re.IGNORECASE),
]

ARTIST_REMOVE_PATTERNS = [
    re.compile(r"\s*-\s*topic$", re.IGNORECASE),  # auto-generated "Artist - Topic" channels
    re.compile(r"\s+official$", re.IGNORECASE),
    re.compile(r"\s+vevo$", re.IGNORECASE),
    re.compile(r"\s+records$", re.IGNORECASE),
]

# Channel names that say nothing about who performed the song
GENERIC_ARTISTS = frozenset(
    {
        "release",
        "various artists",
        "various",
        "unknown",
        "unknown artist",
        "music",
        "songs",
        "audio",
        "official",
        "lyrics",
        "lyric video",
        "audio library",
        "no copyright sounds",
        "ncs",
        "trap nation",
        "bass nation",
        "proximity",
        "mrsuicidesheep",
        "chill nation",
        "wave music",
        "vevo",
        "topic",
    }
)

# Whole-word match so names like "Audioslave" are not treated as generic
GENERIC_ARTIST_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(name) for name in sorted(GENERIC_ARTISTS, key=len, reverse=True)) + r")\b"
)

VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/)([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/embed/([a-zA-Z0-9_-]{11})"),
]

RELEASE_YEAR_PATTERNS = [
    re.compile(r"\((\d{4})\)"),  # (2019)
    re.compile(r"\[(\d{4})\]"),  # [2019]
    re.compile(r"[-–—]\s*(\d{4})(?:\s|$)"),  # - 2019
    re.compile(r"\b(19[5-9]\d|20[0-2]\d)\b"),  # bare year
]

MIN_RELEASE_YEAR = 1950


def _remove_until_stable(text: str, patterns: list[re.Pattern[str]]) -> str:
    """Apply removal patterns repeatedly until the text stops changing."""
    text = WHITESPACE_PATTERN.sub(" ", text).strip()
    previous = None
    while text != previous:
        previous = text
        for pattern in patterns:
            text = pattern.sub("", text)
        text = WHITESPACE_PATTERN.sub(" ", text).strip()
    return text


def clean_title(title: str) -> str:
    """Clean a raw activity title.

    - Remove leading "Watched "
    - Remove trailing official video/audio, lyrics, HD/HQ/4K and (YYYY) tags
    - Collapse whitespace

    Idempotent: clean_title(clean_title(x)) == clean_title(x).
    """
    return _remove_until_stable(title, TITLE_REMOVE_PATTERNS)


def clean_song_title(title: str) -> str:
    """Clean a title down to the song name.

    Applies clean_title and additionally drops featured-artist clauses
    and a trailing "(remix)".
    """
    return _remove_until_stable(title, TITLE_REMOVE_PATTERNS + SONG_TITLE_REMOVE_PATTERNS)


def clean_artist_name(artist: str) -> str:
    """Clean a channel name down to the artist name.

    - Remove trailing "- Topic"
    - Remove trailing "Official", "VEVO", "Records"
    - Collapse whitespace
    """
    return _remove_until_stable(artist, ARTIST_REMOVE_PATTERNS)


def is_generic_artist(artist: str | None) -> bool:
    """Check whether an artist name is a placeholder rather than a performer.

    Matches empty names, exact deny-list entries, and names that contain a
    deny-list entry as a whole word (e.g. "Trap Nation Presents").
    """
    if artist is None:
        return True
    normalized = WHITESPACE_PATTERN.sub(" ", artist).strip().lower()
    if not normalized or normalized in GENERIC_ARTISTS:
        return True
    return GENERIC_ARTIST_PATTERN.search(normalized) is not None


def create_song_key(artist: str, title: str) -> str:
    """Create the normalized song key used to group plays.

    Format: "artist - title", lowercased and trimmed.
    """
    return f"{artist.lower().strip()} - {title.lower().strip()}"


def create_artist_key(artist: str) -> str:
    """Create the normalized artist key used to group plays."""
    return artist.lower().strip()


def extract_video_id(url: str | None) -> str | None:
    """Extract the 11-character YouTube video id from a URL.

    Supports watch?v=, youtu.be/ and embed/ URLs. Returns None when absent.
    """
    if not url:
        return None
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def extract_release_year(title: str, max_year: int) -> int | None:
    """Extract a plausible release year from a video title.

    Args:
        title: Raw video title.
        max_year: Latest acceptable year (usually current year + 1).

    Returns:
        Year between 1950 and max_year, or None.
    """
    for pattern in RELEASE_YEAR_PATTERNS:
        match = pattern.search(title)
        if match:
            year = int(match.group(1))
            if MIN_RELEASE_YEAR <= year <= max_year:
                return year
    return None


def is_valid_release_year(year: int, max_year: int) -> bool:
    """Check that a year falls within the accepted release year range."""
    return MIN_RELEASE_YEAR <= year <= max_year
