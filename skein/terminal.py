"""Raw-mode terminal: setup/teardown, key decoding, and frame painting."""
from __future__ import annotations

import logging
import os
import select
import shutil
import signal
import sys
import termios
import tty

from rich.console import Console
from rich.control import Control
from rich.text import Text

log = logging.getLogger(__name__)


class TerminalError(RuntimeError):
    """The terminal could not be put into interactive mode."""


# ── Key decoding ──────────────────────────────────────────────────────

ESCAPE_SEQUENCES = {
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOC": "right",
    "\x1bOD": "left",
    "\x1b[5~": "pageup",
    "\x1b[6~": "pagedown",
    "\x1b[H": "home",
    "\x1b[F": "end",
    "\x1b[1~": "home",
    "\x1b[4~": "end",
}

SINGLE_KEYS = {
    "\r": "enter",
    "\n": "enter",
    " ": "space",
    "\x03": "ctrl-c",
    "\x7f": "backspace",
    "\t": "tab",
}


def decode_keys(data: str) -> list[str]:
    """Split a chunk of raw input into key names.

    Printable characters map to themselves, known escape sequences to names
    like ``up`` or ``pagedown``. Unknown CSI and SS3 sequences and Alt chords
    are dropped; an ESC at the end of the chunk or before another ESC is
    ``escape``.
    """
    keys: list[str] = []
    i = 0
    while i < len(data):
        ch = data[i]
        if ch != "\x1b":
            keys.append(SINGLE_KEYS.get(ch, ch))
            i += 1
            continue
        for seq, name in ESCAPE_SEQUENCES.items():
            if data.startswith(seq, i):
                keys.append(name)
                i += len(seq)
                break
        else:
            if data.startswith("\x1b[", i):
                # unknown CSI: skip parameters up to the final byte
                j = i + 2
                while j < len(data) and not ("@" <= data[j] <= "~"):
                    j += 1
                i = j + 1
            elif i + 1 < len(data) and data[i + 1] != "\x1b":
                # SS3 function keys (F1-F4) and Alt chords have no binding
                i += 3 if data[i + 1] == "O" and i + 2 < len(data) else 2
            else:
                keys.append("escape")
                i += 1
    return keys


# ── Terminal ──────────────────────────────────────────────────────────

class Terminal:
    """Owns raw mode, the alternate screen and signal wake-ups.

    Use as a context manager: ``__enter__`` acquires everything and
    ``__exit__`` releases it on every exit path.
    """

    def __init__(self, stdin=None, console: Console | None = None):
        self.stdin = stdin or sys.stdin
        self.console = console or Console()
        self.fd: int | None = None
        self.resized = False
        self._old_attrs = None
        self._wake_r: int | None = None
        self._wake_w: int | None = None
        self._old_wakeup = -1
        self._wakeup_set = False
        self._screen = False
        self._old_handlers: dict[int, object] = {}

    def size(self) -> tuple[int, int]:
        cols, rows = shutil.get_terminal_size((120, 40))
        return cols, rows

    def __enter__(self) -> Terminal:
        if not self.stdin.isatty():
            raise TerminalError("stdin is not a terminal")
        try:
            self.fd = self.stdin.fileno()
            self._old_attrs = termios.tcgetattr(self.fd)
            tty.setraw(self.fd)

            self._wake_r, self._wake_w = os.pipe()
            os.set_blocking(self._wake_r, False)
            os.set_blocking(self._wake_w, False)
            self._old_wakeup = signal.set_wakeup_fd(self._wake_w)
            self._wakeup_set = True
            for signum, handler in ((signal.SIGWINCH, self._on_resize),
                                    (signal.SIGTERM, self._on_terminate)):
                self._old_handlers[signum] = signal.signal(signum, handler)

            self.console.set_alt_screen(True)
            self.console.show_cursor(False)
            self._screen = True
        except (termios.error, OSError, ValueError) as e:
            self.__exit__(None, None, None)
            raise TerminalError(f"cannot set up terminal: {e}") from e
        log.debug("terminal ready (%dx%d)", *self.size())
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # each layer is undone even if an outer one fails to restore
        try:
            if self._screen:
                self._screen = False
                self.console.show_cursor(True)
                self.console.set_alt_screen(False)
        finally:
            try:
                self._restore_signals()
            finally:
                if self.fd is not None and self._old_attrs is not None:
                    termios.tcsetattr(self.fd, termios.TCSADRAIN, self._old_attrs)
                    self._old_attrs = None

    def _restore_signals(self) -> None:
        for signum, handler in self._old_handlers.items():
            signal.signal(signum, handler)
        self._old_handlers.clear()
        if self._wakeup_set:
            signal.set_wakeup_fd(self._old_wakeup)
            self._wakeup_set = False
        for fd in (self._wake_r, self._wake_w):
            if fd is not None:
                os.close(fd)
        self._wake_r = self._wake_w = None

    def _on_resize(self, signum, frame) -> None:
        self.resized = True

    def _on_terminate(self, signum, frame) -> None:
        raise SystemExit(128 + signum)

    # ── Input ─────────────────────────────────────────────────────────

    def read_events(self, timeout: float | None) -> list[str]:
        """Block until input, a signal, or the timeout; return event names.

        Key events are key names, a pending resize is reported as ``resize``.
        """
        watched = [self.fd, self._wake_r]
        ready, _, _ = select.select(watched, [], [], timeout)
        events: list[str] = []
        if self._wake_r in ready:
            try:
                while os.read(self._wake_r, 512):
                    pass
            except BlockingIOError:
                pass
        if self.resized:
            self.resized = False
            events.append("resize")
        if self.fd in ready:
            data = os.read(self.fd, 1024)
            events.extend(decode_keys(data.decode("utf-8", errors="ignore")))
        return events

    # ── Output ────────────────────────────────────────────────────────

    def paint(self, lines: list[Text], clear: bool = False) -> None:
        """Write a full frame, one row per line, at absolute positions."""
        console = self.console
        with console:
            if clear:
                console.control(Control.clear())
            for y, line in enumerate(lines):
                console.control(Control.move_to(0, y))
                console.print(line, end="", no_wrap=True, overflow="crop", crop=True, soft_wrap=False)
