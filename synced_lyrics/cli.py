from __future__ import annotations

import asyncio
import re
import time
from pathlib import Path

import typer

from synced_lyrics.config import load_config, save_config_lang
from synced_lyrics.i18n import available_langs, set_lang, t
from synced_lyrics.logging_setup import setup_logging
from synced_lyrics.lyrics.export import export_json, export_lrc, export_srt
from synced_lyrics.lyrics.lrc import LrcParseStats, parse_lrc_with_stats, parse_plain_lyrics, repair_timings
from synced_lyrics.lyrics.model import LyricsDocument, PlaybackSample
from synced_lyrics.lyrics.ttml import parse_ttml
from synced_lyrics.render.ansi import AnsiRenderer, layout_for
from synced_lyrics.sources.base import CancellationToken
from synced_lyrics.sources.service import ReconciliationEngine
from synced_lyrics.sources.types import TrackQuery
from synced_lyrics.sync.scheduler import SyncScheduler

app = typer.Typer(no_args_is_help=True, add_completion=False)

_LRC_STAMP = re.compile(r"\[\d+:\d{1,2}")


@app.callback()
def _init() -> None:
    set_lang(load_config().lang)


def _read_document(
    path: Path, duration_s: float, repair: bool = False
) -> tuple[LyricsDocument, LrcParseStats | None, bool]:
    """LRC, TTML or plain text, told apart by content. Returns (doc, LRC stats, stretched)."""
    text = path.read_text(encoding="utf-8")
    if text.lstrip().startswith("<"):
        return parse_ttml(text, round(duration_s * 1000)), None, False
    if _LRC_STAMP.search(text):
        doc, stats = parse_lrc_with_stats(text, round(duration_s * 1000))
        stretched = repair_timings(doc.lines, load_config().timing) if repair else False
        return doc, stats, stretched
    return parse_plain_lyrics(text), None, False


def _fmt_clock(ms: int) -> str:
    m, rem = divmod(max(ms, 0), 60_000)
    return f"{m:02d}:{rem / 1000:05.2f}"


@app.command()
def parse(
    path: Path,
    duration: float = typer.Option(300.0, "--duration", "-d", help="Song duration (seconds) for the last line"),
    repair: bool = typer.Option(False, "--repair", help="Apply the word-timing repair heuristics"),
):
    """Parse LRC/TTML and print a summary."""
    doc, stats, stretched = _read_document(path, duration, repair)
    typer.echo(t("parse_summary", lines=len(doc.lines), sync=doc.sync_granularity.value))
    if stats is not None:
        typer.echo(f"lines_total={stats.lines_total}")
        typer.echo(f"lines_with_timestamps={stats.lines_with_timestamps}")
        typer.echo(f"lines_ignored={stats.lines_ignored}")
        typer.echo(f"offset_ms={stats.offset_ms}")
        typer.echo(f"tags={stats.tags}")
    if doc.language:
        typer.echo(f"language={doc.language}")
    if repair:
        typer.echo(f"stretched_short_durations={stretched}")


@app.command()
def export(
    path: Path,
    fmt: str = typer.Option("srt", "--format", case_sensitive=False, help="lrc|srt|json"),
    out: Path | None = typer.Option(None, "--out", help="Output file (default: stdout)"),
    duration: float = typer.Option(300.0, "--duration", "-d", help="Song duration (seconds) for the last line"),
    repair: bool = typer.Option(False, "--repair", help="Apply the word-timing repair heuristics"),
):
    """Export LRC/TTML to SRT/JSON/LRC (normalized)."""
    doc, _stats, _stretched = _read_document(path, duration, repair)
    fmt_l = fmt.lower()
    if fmt_l == "json":
        data = export_json(doc)
    elif fmt_l == "lrc":
        data = export_lrc(doc)
    elif fmt_l == "srt":
        data = export_srt(doc)
    else:
        raise typer.BadParameter(t("unknown_format", fmt=fmt))

    if out:
        out.write_text(data, encoding="utf-8")
    else:
        typer.echo(data, nl=False)


@app.command()
def fetch(
    song: str = typer.Option(..., "--song", "-s"),
    artist: str = typer.Option(..., "--artist", "-a"),
    album: str = typer.Option("", "--album"),
    duration: float = typer.Option(0.0, "--duration", "-d", help="Song duration (seconds)"),
    media_id: str = typer.Option("", "--media-id"),
    video: bool = typer.Option(False, "--video", help="The playing media is a music video"),
    json_output: bool = typer.Option(False, "--json", help="Output the document as JSON"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Look lyrics up across all providers and print the pick."""
    setup_logging(debug)
    cfg = load_config()
    engine = ReconciliationEngine(cfg)
    query = TrackQuery(song=song, artist=artist, album=album, duration_s=duration, media_id=media_id)

    rec = asyncio.run(engine.reconcile(query, CancellationToken(), is_video=video))
    if rec is None:
        raise typer.Exit(code=1)

    if json_output:
        typer.echo(export_json(rec.document))
        return
    typer.echo(t("fetch_source", source=rec.result.source_label, link=rec.result.source_link or "-"))
    if rec.needs_remap:
        typer.echo(t("fetch_remap"))
    for line in rec.document.lines:
        typer.echo(f"[{_fmt_clock(line.start_ms)}] {line.text}")


@app.command()
def play(
    path: Path,
    start: float = typer.Option(0.0, "--start", help="Start position (seconds)"),
    duration: float = typer.Option(300.0, "--duration", "-d", help="Song duration (seconds) for the last line"),
    refresh_hz: float = typer.Option(20.0, "--refresh-hz", help="Redraw frequency (Hz)"),
    no_alt_screen: bool = typer.Option(False, "--no-alt-screen", help="Do not use alternate screen buffer"),
):
    """Play a lyrics file against a simulated clock in the terminal."""
    cfg = load_config()
    doc, _stats, _stretched = _read_document(path, duration)
    title = path.stem

    scheduler = SyncScheduler(cfg.scheduler)
    renderer = AnsiRenderer(use_alt_screen=not no_alt_screen)
    tick_s = 1.0 / max(refresh_hz, 1.0)
    end_s = max((ln.end_ms for ln in doc.lines), default=0) / 1000 + 1.0

    with renderer:
        scheduler.load(doc, layout_for(doc, renderer.body_rows))
        if not scheduler.ticking:
            renderer.render(f"{title} {t('unsynced_lyrics')}", doc, scheduler.on_sample(PlaybackSample(0, 0, False)))
            time.sleep(2.0)
            return

        began_ms = time.time() * 1000
        try:
            while True:
                now_ms = time.time() * 1000
                position = start + (now_ms - began_ms) / 1000
                if position > end_s:
                    break
                tick = scheduler.on_sample(PlaybackSample(position, round(now_ms), True), now_ms=now_ms)
                renderer.render(title, doc, tick, scheduler.scroll_top)
                time.sleep(tick_s)
        except KeyboardInterrupt:
            pass


@app.command()
def lang(code: str = typer.Argument(..., help="EN or RU")):
    """Save the interface language."""
    code_u = code.upper()
    if code_u not in available_langs():
        raise typer.BadParameter(" / ".join(available_langs()))
    save_config_lang(code_u)
    set_lang(code_u)
    typer.echo(t("lang_saved", lang=code_u))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
