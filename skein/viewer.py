"""Transcript viewer: timed playback of history plus live tail of the log."""
from __future__ import annotations

import logging

from rich.text import Text

from skein.formatters.human import Glyphs, glyphs
from skein.scheduler import Handle, Scheduler
from skein.session import Message, SessionFile, file_size, parse_session, wrap_text

log = logging.getLogger(__name__)

IMMEDIATE_MESSAGES = 5
PLAYBACK_INTERVAL = 0.05
TAIL_INTERVAL = 1.0
THINKING_EXCERPT = 80

USER_STYLE = "bold color(39)"
ASSISTANT_STYLE = "bold color(213)"
OTHER_STYLE = "color(245)"
THINKING_STYLE = "italic color(245)"
TOOL_STYLE = "color(172)"


def format_message(msg: Message, width: int, box: Glyphs | None = None) -> list[Text]:
    """Break one message into display lines, ending with a blank separator."""
    box = box or glyphs()
    lines: list[Text] = []
    stamp = f"[{msg.timestamp.astimezone().strftime('%X')}]" if msg.timestamp else ""

    if msg.kind in ("user", "assistant"):
        if msg.kind == "user":
            rule, title, style = box.heavy, "USER", USER_STYLE
        else:
            rule, title, style = box.light, "ASSISTANT", ASSISTANT_STYLE
        header = Text()
        header.append(f"{rule * 3} {title} ", style=style)
        header.append(stamp, style="dim")
        header.append(" ")
        header.append(rule * max(0, width - header.cell_len), style=style)
    else:
        header = Text(f"### {msg.kind.upper()}", style=OTHER_STYLE)
    lines.append(header)

    if msg.thinking:
        excerpt = msg.thinking[:THINKING_EXCERPT].replace("\n", " ")
        lines.append(Text(f"[thinking: {excerpt}...]", style=THINKING_STYLE))

    for tool in msg.tools:
        lines.append(Text(f"  [Tool: {tool.name}]", style=TOOL_STYLE))

    if msg.text:
        for line in wrap_text(msg.text, width):
            lines.append(Text("  " + line))

    lines.append(Text(""))
    return lines


def tail_diff(known: list[Message], updated: list[Message]) -> list[Message]:
    """Messages in a re-parsed file beyond those already known."""
    return updated[len(known):]


class SessionViewer:
    """Owns the transcript buffer of the one session currently open."""

    def __init__(self, scheduler: Scheduler, width: int = 80, height: int = 24,
                 ascii_mode: bool | None = None):
        self.scheduler = scheduler
        self.width = width
        self.height = height
        self.box = glyphs(ascii_mode)
        self.session: SessionFile | None = None
        self.lines: list[Text] = []
        self.shown: list[Message] = []
        self.scroll = 0
        self._pending: list[Message] = []
        self._playback: Handle | None = None
        self._watch: Handle | None = None
        self._last_size = 0

    # ── Geometry ──────────────────────────────────────────────────────

    @property
    def viewport(self) -> int:
        return max(1, self.height - 4)

    @property
    def text_width(self) -> int:
        return max(10, self.width - 4)

    @property
    def max_scroll(self) -> int:
        return max(0, len(self.lines) - self.viewport)

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.scroll = min(self.scroll, self.max_scroll)

    # ── Lifecycle ─────────────────────────────────────────────────────

    @property
    def streaming(self) -> bool:
        return self._playback is not None

    @property
    def is_open(self) -> bool:
        return self.session is not None

    def open(self, session: SessionFile) -> None:
        """Show the newest messages now and reveal older ones on a timer."""
        self.close()
        self.session = session
        self.lines = []
        self.shown = []
        self.scroll = 0

        messages = list(session.messages)
        self._pending = messages[:-IMMEDIATE_MESSAGES]
        for msg in messages[-IMMEDIATE_MESSAGES:]:
            self._append(msg)
        if self._pending:
            self._playback = self.scheduler.call_every(PLAYBACK_INTERVAL, self.reveal_next)

        self._last_size = session.size
        self._watch = self.scheduler.call_every(TAIL_INTERVAL, self.poll)
        log.debug("opened %s (%d messages, %d queued for playback)",
                  session.path, len(messages), len(self._pending))

    def close(self) -> None:
        self._stop_playback()
        if self._watch is not None:
            self._watch.cancel()
            self._watch = None
        if self.session is not None:
            log.debug("closed %s", self.session.path)
        self.session = None
        self._pending = []

    def _stop_playback(self) -> None:
        if self._playback is not None:
            self._playback.cancel()
            self._playback = None

    # ── Playback ──────────────────────────────────────────────────────

    def reveal_next(self) -> None:
        """Prepend the newest message not yet shown above the visible block."""
        if self._pending:
            self._prepend(self._pending.pop())
        if not self._pending:
            self._stop_playback()

    def skip(self) -> None:
        """Cancel playback and show the full message list at once."""
        if not self.streaming or self.session is None:
            return
        self._stop_playback()
        self._pending = []
        self.lines = []
        self.shown = []
        for msg in self.session.messages:
            self._append(msg)

    # ── Live tail ─────────────────────────────────────────────────────

    def poll(self) -> bool:
        """Append messages written since the last look. True if any arrived."""
        session = self.session
        if session is None:
            return False
        size = file_size(session.path)
        if size is None:
            return False
        if size <= self._last_size:
            self._last_size = size
            return False
        self._last_size = size

        updated = parse_session(session.path)
        fresh = tail_diff(session.messages, updated.messages)
        for msg in fresh:
            self._append(msg)
        session.messages = updated.messages
        session.meta = updated.meta
        session.size = size
        if fresh:
            log.debug("%s grew to %d bytes, %d new messages", session.path, size, len(fresh))
        return bool(fresh)

    # ── Buffer ────────────────────────────────────────────────────────

    def _append(self, msg: Message) -> None:
        self.lines.extend(format_message(msg, self.text_width, self.box))
        self.shown.append(msg)
        self.scroll = self.max_scroll

    def _prepend(self, msg: Message) -> None:
        block = format_message(msg, self.text_width, self.box)
        self.lines[:0] = block
        self.shown.insert(0, msg)
        # keep the lines already on screen where they are
        self.scroll = min(self.scroll + len(block), self.max_scroll)

    # ── Scrolling ─────────────────────────────────────────────────────

    def scroll_by(self, delta: int) -> None:
        self.scroll = max(0, min(self.scroll + delta, self.max_scroll))

    def page(self, direction: int) -> None:
        self.scroll_by(direction * max(1, self.height - 6))

    def scroll_home(self) -> None:
        self.scroll = 0

    def scroll_end(self) -> None:
        self.scroll = self.max_scroll
