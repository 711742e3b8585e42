"""Main CLI entry point for Takeout Wrapped."""

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from takeout_wrapped import __version__
from takeout_wrapped.core.config import get_settings
from takeout_wrapped.core.models import ParseResult, SongMetadata, Statistics
from takeout_wrapped.services.duration_estimator import estimate_duration
from takeout_wrapped.services.metadata_resolver import MetadataResolver
from takeout_wrapped.services.song_cache import InMemorySongCache
from takeout_wrapped.services.stats_aggregator import StatsAggregator
from takeout_wrapped.services.takeout_parser import TakeoutParser

console = Console()


def _format_duration(seconds: float) -> str:
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}:{secs:02d}"


def _parse_file(path: Path) -> ParseResult:
    parser = TakeoutParser(chunk_size=get_settings().chunk_size)
    return asyncio.run(parser.parse_json(path.read_bytes()))


async def _resolve(result: ParseResult, cache_path: Path | None) -> dict[str, SongMetadata]:
    cache = InMemorySongCache.load(cache_path) if cache_path else InMemorySongCache()
    resolver = MetadataResolver.from_settings(get_settings(), cache)
    try:
        resolution = await resolver.resolve(event.external_id for event in result.events if event.external_id)
    finally:
        await resolver.close()
    if cache_path:
        cache.save(cache_path)
    console.print(
        f"[dim]Metadata: {resolution.stats.cached} cached, {resolution.stats.fetched} fetched, "
        f"{resolution.stats.not_found} not found[/dim]"
    )
    return resolution.songs


@click.group()
@click.version_option(version=__version__, prog_name="takeout-wrapped")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Takeout Wrapped - Your YouTube Music listening, summarized."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--limit", "-l", default=20, help="Number of plays to show")
def parse(path: Path, limit: int) -> None:
    """Parse a watch-history.json export and show the extracted plays."""
    with console.status(f"Parsing {path.name}..."):
        result = _parse_file(path)

    for error in result.errors[:5]:
        console.print(f"[red]{error}[/red]")

    if not result.events:
        console.print("[yellow]No YouTube Music plays found[/yellow]")
        return

    table = Table(title=f"Plays in {path.name}")
    table.add_column("Played At", style="dim")
    table.add_column("Artist", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("Confidence", justify="right", style="magenta")

    for event in result.events[:limit]:
        table.add_row(
            event.played_at.strftime("%Y-%m-%d %H:%M"),
            event.artist,
            event.title,
            f"{event.parse_confidence:.2f}",
        )

    console.print(table)
    console.print(
        f"[dim]{len(result.events)} plays from {result.music_entries} music entries "
        f"({result.total_entries} records, {len(result.errors)} errors)[/dim]"
    )


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--resolve/--no-resolve", default=False, help="Look up metadata with the YouTube Data API")
@click.option(
    "--cache",
    "cache_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="JSON file used to cache resolved metadata between runs",
)
@click.option("--json", "as_json", is_flag=True, help="Print statistics as JSON")
def stats(path: Path, resolve: bool, cache_path: Path | None, as_json: bool) -> None:
    """Compute listening statistics for a watch-history.json export."""
    with console.status(f"Parsing {path.name}..."):
        result = _parse_file(path)

    if not result.events:
        message = result.errors[0] if result.errors else "No YouTube Music plays found"
        console.print(f"[red]{message}[/red]")
        raise SystemExit(1)

    metadata: dict[str, SongMetadata] = {}
    if resolve:
        with console.status("Resolving song metadata..."):
            metadata = asyncio.run(_resolve(result, cache_path))

    with console.status("Computing statistics..."):
        statistics = asyncio.run(StatsAggregator.from_settings(get_settings()).aggregate(result.events, metadata))

    if as_json:
        click.echo(statistics.model_dump_json(indent=2))
        return

    _print_statistics(statistics)


def _print_statistics(statistics: Statistics) -> None:
    console.print("\n[bold]Listening Stats[/bold]")
    console.print(f"  Total plays:      [cyan]{statistics.total_listens:,}[/cyan]")
    console.print(f"  Unique songs:     [cyan]{statistics.total_songs:,}[/cyan]")
    console.print(f"  Unique artists:   [cyan]{statistics.total_artists:,}[/cyan]")
    console.print(f"  Total playtime:   [cyan]{_format_duration(statistics.total_playtime)}[/cyan]")
    console.print(f"  Daily average:    [cyan]{_format_duration(statistics.daily_average_playtime)}[/cyan]")
    console.print(f"  Longest session:  [cyan]{_format_duration(statistics.longest_session)}[/cyan]")
    if statistics.music_era:
        console.print(f"  Music era:        [cyan]{statistics.music_era}[/cyan]")

    table = Table(title="Top Songs")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Artist", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("Plays", justify="right", style="magenta")
    for i, song in enumerate(statistics.top_songs, 1):
        table.add_row(str(i), song.artist, song.title, str(song.play_count))
    console.print(table)

    table = Table(title="Top Artists")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Artist", style="cyan")
    table.add_column("Plays", justify="right", style="magenta")
    table.add_column("Songs", justify="right")
    for i, top_artist in enumerate(statistics.top_artists, 1):
        table.add_row(str(i), top_artist.name, str(top_artist.play_count), str(top_artist.unique_songs))
    console.print(table)


@cli.command()
@click.argument("title")
@click.option("--genre", "-g", "genres", multiple=True, help="Genre hint (repeatable)")
def estimate(title: str, genres: tuple[str, ...]) -> None:
    """Estimate the duration of a song from its title and genre."""
    result = estimate_duration(title, genre_hints=genres)
    console.print(
        f"[green]{_format_duration(result.duration)}[/green] "
        f"[dim]({result.method}, confidence {result.confidence:.2f})[/dim]"
    )


if __name__ == "__main__":
    cli()
