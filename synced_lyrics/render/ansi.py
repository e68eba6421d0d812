from __future__ import annotations

import shutil
import signal
import sys
from dataclasses import dataclass
from typing import Callable

from colorama import Fore, Style, just_fix_windows_console

from synced_lyrics.i18n import t
from synced_lyrics.lyrics.model import LyricLine, LyricsDocument
from synced_lyrics.lyrics.text import is_rtl
from synced_lyrics.sync.scheduler import LinePhase, SchedulerState, TickResult, ViewportLayout

CSI = "\x1b["


@dataclass(frozen=True, slots=True)
class Theme:
    title: str = Fore.CYAN + Style.BRIGHT
    current: str = Fore.GREEN + Style.BRIGHT
    sung: str = Fore.WHITE + Style.BRIGHT
    pending: str = Fore.GREEN + Style.NORMAL
    background: str = Fore.MAGENTA
    dim: str = Style.DIM
    warning: str = Fore.YELLOW + Style.BRIGHT
    reset: str = Style.RESET_ALL


def _extra_rows(line: LyricLine) -> list[str]:
    rows = []
    if line.romanization:
        rows.append(line.romanization)
    if line.translation:
        rows.append(line.translation.text)
    return rows


def layout_for(doc: LyricsDocument, viewport_rows: int) -> ViewportLayout:
    """One row per line plus one per romanization/translation row."""
    tops: list[float] = []
    heights: list[float] = []
    row = 0
    for line in doc.lines:
        h = 1 + len(_extra_rows(line))
        tops.append(float(row))
        heights.append(float(h))
        row += h
    return ViewportLayout(line_tops=tuple(tops), line_heights=tuple(heights), viewport_height=float(viewport_rows))


class AnsiRenderer:
    def __init__(self, use_alt_screen: bool = True, theme: Theme | None = None):
        self.use_alt_screen = use_alt_screen
        self.theme = theme or Theme()
        self._entered = False
        self._resize_handler: Callable[..., None] | None = None
        self._last_render_args: tuple[str, LyricsDocument, TickResult, float] | None = None

    def __enter__(self):
        self.enter()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.exit()

    @property
    def body_rows(self) -> int:
        _cols, rows = shutil.get_terminal_size(fallback=(80, 24))
        # reserve 1 line for title
        return max(rows - 1, 1)

    def enter(self) -> None:
        if self._entered:
            return
        just_fix_windows_console()
        if self.use_alt_screen:
            sys.stdout.write(CSI + "?1049h")  # alt screen
        sys.stdout.write(CSI + "?25l")  # hide cursor
        sys.stdout.write(CSI + "H" + CSI + "2J")  # home + clear
        sys.stdout.flush()
        self._entered = True

        if hasattr(signal, "SIGWINCH"):

            def _on_resize(signum, frame):
                if self._last_render_args:
                    self.render(*self._last_render_args)

            self._resize_handler = _on_resize
            signal.signal(signal.SIGWINCH, _on_resize)

    def exit(self) -> None:
        if not self._entered:
            return
        if self._resize_handler:
            signal.signal(signal.SIGWINCH, signal.SIG_DFL)
            self._resize_handler = None
        sys.stdout.write(self.theme.reset)
        sys.stdout.write(CSI + "?25h")  # show cursor
        if self.use_alt_screen:
            sys.stdout.write(CSI + "?1049l")  # normal screen
        sys.stdout.flush()
        self._entered = False
        self._last_render_args = None

    def _line_text(self, line: LyricLine, phase: LinePhase | None, active: bool) -> str:
        th = self.theme
        if not active:
            return f"{th.dim}{line.text}{th.reset}"
        if phase is None or not line.is_word_timed:
            return f"{th.current}{line.text}{th.reset}"

        out: list[str] = []
        for part, progress in zip(line.parts, phase.part_progress):
            color = th.sung if progress >= 1.0 else th.pending
            if part.is_background:
                color += th.background
            out.append(f"{color}{part.text}{th.reset}")
        return "".join(out)

    def frame(self, title: str, doc: LyricsDocument, tick: TickResult, scroll_top: float) -> list[str]:
        th = self.theme
        cols, _rows = shutil.get_terminal_size(fallback=(80, 24))
        header = f"{th.title}♫ {title} ♫{th.reset}"
        if tick.state == SchedulerState.SUSPENDED:
            header += f" {th.warning}[{t('autoscroll_paused')}]{th.reset}"

        rows: list[str] = []
        for i, line in enumerate(doc.lines):
            active = i == tick.active_line_index
            text = self._line_text(line, tick.phase_for(i), active)
            if is_rtl(line.text):
                text = " " * max(cols - len(line.text), 0) + text
            rows.append(text)
            for extra in _extra_rows(line):
                rows.append(f"{th.dim}  {extra}{th.reset}")

        start = max(int(round(scroll_top)), 0)
        return [header] + rows[start : start + self.body_rows]

    def render(self, title: str, doc: LyricsDocument, tick: TickResult, scroll_top: float = 0.0) -> None:
        # Store args for SIGWINCH redraw
        self._last_render_args = (title, doc, tick, scroll_top)

        out = self.frame(title, doc, tick, scroll_top)
        # move home + clear, then print full frame
        sys.stdout.write(CSI + "H" + CSI + "2J")
        sys.stdout.write("\n".join(out))
        sys.stdout.write(self.theme.reset)
        sys.stdout.flush()
