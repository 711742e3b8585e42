"""Tests for text normalization utilities."""

from takeout_wrapped.utils.text import (
    clean_artist_name,
    clean_song_title,
    clean_title,
    create_artist_key,
    create_song_key,
    extract_release_year,
    extract_video_id,
    is_generic_artist,
    is_valid_release_year,
)


class TestCleanTitle:
    """Tests for clean_title function."""

    def test_removes_watched_prefix(self) -> None:
        assert clean_title("Watched Bohemian Rhapsody") == "Bohemian Rhapsody"

    def test_removes_official_video_suffix(self) -> None:
        assert clean_title("Queen - Bohemian Rhapsody (Official Video)") == "Queen - Bohemian Rhapsody"
        assert clean_title("Queen - Bohemian Rhapsody [Official Music Video]") == "Queen - Bohemian Rhapsody"
        assert clean_title("Queen - Bohemian Rhapsody - Official Audio") == "Queen - Bohemian Rhapsody"

    def test_removes_lyrics_and_quality_tags(self) -> None:
        assert clean_title("Song (Lyrics)") == "Song"
        assert clean_title("Song [HD]") == "Song"
        assert clean_title("Song (4K)") == "Song"

    def test_removes_trailing_year(self) -> None:
        assert clean_title("Song (2019)") == "Song"

    def test_collapses_whitespace(self) -> None:
        assert clean_title("  Song   Name  ") == "Song Name"

    def test_strips_stacked_tags(self) -> None:
        """Test tags stacked after each other are all removed."""
        assert clean_title("Watched Song (Lyrics) [HD]") == "Song"

    def test_is_idempotent(self) -> None:
        """Test cleaning an already clean title changes nothing."""
        titles = [
            "Watched Watched Song (Official Video) (Lyrics)",
            "Artist - Song [HQ] (2001)",
            "Plain Title",
        ]
        for title in titles:
            once = clean_title(title)
            assert clean_title(once) == once


class TestCleanSongTitle:
    """Tests for clean_song_title function."""

    def test_removes_featured_artist(self) -> None:
        assert clean_song_title("Song feat. Other Artist") == "Song"
        assert clean_song_title("Song ft. Other Artist") == "Song"
        assert clean_song_title("Song featuring Other Artist") == "Song"

    def test_removes_remix_suffix(self) -> None:
        assert clean_song_title("Song (Remix)") == "Song"

    def test_keeps_named_remix(self) -> None:
        assert clean_song_title("Song (Someone Remix)") == "Song (Someone Remix)"


class TestCleanArtistName:
    """Tests for clean_artist_name function."""

    def test_removes_topic_suffix(self) -> None:
        assert clean_artist_name("Real Artist - Topic") == "Real Artist"

    def test_removes_vevo_and_official(self) -> None:
        assert clean_artist_name("Other Band VEVO") == "Other Band"
        assert clean_artist_name("Band Official") == "Band"

    def test_removes_records_suffix(self) -> None:
        assert clean_artist_name("Monstercat Records") == "Monstercat"

    def test_is_idempotent(self) -> None:
        once = clean_artist_name("Band Official VEVO")
        assert once == "Band"
        assert clean_artist_name(once) == once


class TestIsGenericArtist:
    """Tests for is_generic_artist function."""

    def test_exact_match(self) -> None:
        assert is_generic_artist("Release") is True
        assert is_generic_artist("Various Artists") is True

    def test_case_insensitive(self) -> None:
        assert is_generic_artist("TRAP NATION") is True

    def test_whole_word_match(self) -> None:
        """Test a generic word inside a longer name still counts."""
        assert is_generic_artist("Trap Nation Presents") is True

    def test_substring_is_not_a_match(self) -> None:
        """Test names merely containing a generic word are real artists."""
        assert is_generic_artist("Audioslave") is False
        assert is_generic_artist("Musical Youth") is False

    def test_real_artist(self) -> None:
        assert is_generic_artist("Queen") is False

    def test_empty_is_generic(self) -> None:
        assert is_generic_artist(None) is True
        assert is_generic_artist("") is True
        assert is_generic_artist("   ") is True


class TestKeys:
    """Tests for song and artist key helpers."""

    def test_song_key_format(self) -> None:
        assert create_song_key("Queen", "Bohemian Rhapsody") == "queen - bohemian rhapsody"

    def test_song_key_trims(self) -> None:
        assert create_song_key("  Queen ", " Bohemian Rhapsody  ") == "queen - bohemian rhapsody"

    def test_same_song_same_key(self) -> None:
        assert create_song_key("QUEEN", "bohemian rhapsody") == create_song_key("queen", "Bohemian Rhapsody")

    def test_artist_key(self) -> None:
        assert create_artist_key(" Queen ") == "queen"


class TestExtractVideoId:
    """Tests for extract_video_id function."""

    def test_watch_url(self) -> None:
        assert extract_video_id("https://music.youtube.com/watch?v=dQw4w9WgXcQ") == "dQw4w9WgXcQ"

    def test_watch_url_with_extra_params(self) -> None:
        assert extract_video_id("https://www.youtube.com/watch?v=dQw4w9WgXcQ&list=PL1") == "dQw4w9WgXcQ"

    def test_short_url(self) -> None:
        assert extract_video_id("https://youtu.be/dQw4w9WgXcQ") == "dQw4w9WgXcQ"

    def test_embed_url(self) -> None:
        assert extract_video_id("https://www.youtube.com/embed/dQw4w9WgXcQ") == "dQw4w9WgXcQ"

    def test_missing(self) -> None:
        assert extract_video_id(None) is None
        assert extract_video_id("") is None
        assert extract_video_id("https://www.youtube.com/channel/UC123") is None


class TestExtractReleaseYear:
    """Tests for extract_release_year function."""

    def test_parenthesized_year(self) -> None:
        assert extract_release_year("Song (1987)", max_year=2027) == 1987

    def test_bracketed_year(self) -> None:
        assert extract_release_year("Song [2019]", max_year=2027) == 2019

    def test_dashed_year(self) -> None:
        assert extract_release_year("Song - 1975 Remaster", max_year=2027) == 1975

    def test_bare_year(self) -> None:
        assert extract_release_year("Live at Wembley 1986", max_year=2027) == 1986

    def test_out_of_range(self) -> None:
        assert extract_release_year("Song (1899)", max_year=2027) is None
        assert extract_release_year("Song (2031)", max_year=2027) is None

    def test_no_year(self) -> None:
        assert extract_release_year("Bohemian Rhapsody", max_year=2027) is None

    def test_valid_release_year(self) -> None:
        assert is_valid_release_year(1950, max_year=2027) is True
        assert is_valid_release_year(1949, max_year=2027) is False
        assert is_valid_release_year(2028, max_year=2027) is False
