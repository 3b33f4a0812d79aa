"""Log record parsing, session files, and the core data model."""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

log = logging.getLogger(__name__)


# ── Paths ─────────────────────────────────────────────────────────────

def config_dir() -> Path:
    env = os.environ.get("CLAUDE_CONFIG_DIR")
    if env:
        return Path(env)
    # Check both common locations
    xdg = Path.home() / ".config" / "claude"
    if xdg.exists():
        return xdg
    dot = Path.home() / ".claude"
    if dot.exists():
        return dot
    return dot  # default


def projects_dir() -> Path:
    return config_dir() / "projects"


def repo_anchor() -> str:
    """Directory name whose next path component is the organization."""
    return os.environ.get("SKEIN_REPO_ANCHOR") or "Git"


# ── JSONL helpers ─────────────────────────────────────────────────────

def _loads(line: str) -> dict | None:
    line = line.strip()
    if not line:
        return None
    try:
        raw = json.loads(line)
    except json.JSONDecodeError:
        return None
    return raw if isinstance(raw, dict) else None


def iter_lines(text: str) -> Iterator[dict]:
    """Yield parsed records from JSONL text, skipping bad lines."""
    for line in text.split("\n"):
        raw = _loads(line)
        if raw is not None:
            yield raw


def iter_jsonl(path: Path) -> Iterator[dict]:
    """Yield parsed records from a JSONL file, skipping bad lines."""
    with open(path, encoding="utf-8", errors="replace") as f:
        for line in f:
            raw = _loads(line)
            if raw is not None:
                yield raw


# ── Record ────────────────────────────────────────────────────────────

RECORD_KINDS = ("user", "assistant", "summary", "other")
MESSAGE_KINDS = ("user", "assistant", "summary")


class ToolCall:
    __slots__ = ("name", "input")

    def __init__(self, name: str, input: Any = None):
        self.name = name
        self.input = input if input is not None else {}

    def __repr__(self) -> str:
        return f"ToolCall({self.name!r})"


class Message:
    """One normalized conversation entry shown in the viewer."""

    __slots__ = ("kind", "timestamp", "text", "thinking", "tools")

    def __init__(self, kind: str, timestamp: datetime | None = None, text: str = "",
                 thinking: str = "", tools: list[ToolCall] | None = None):
        if kind not in MESSAGE_KINDS:
            raise ValueError(f"unknown message kind: {kind!r}")
        self.kind = kind
        self.timestamp = timestamp
        self.text = text
        self.thinking = thinking
        self.tools = tools or []

    def __repr__(self) -> str:
        return f"Message({self.kind!r}, {self.text[:20]!r})"


class Record:
    """Thin wrapper over a raw JSONL dict with typed property accessors.

    ``kind`` is fixed when the record is built: ``user``, ``assistant`` and
    ``summary`` keep their type, anything else becomes ``other``.
    """

    __slots__ = ("raw", "kind")

    def __init__(self, raw: dict):
        self.raw = raw
        rtype = raw.get("type")
        self.kind = rtype if rtype in MESSAGE_KINDS else "other"

    @property
    def type(self) -> str:
        return self.raw.get("type", "")

    @property
    def timestamp(self) -> datetime | None:
        return parse_ts(self.raw.get("timestamp"))

    def _text_field(self, key: str) -> str | None:
        value = self.raw.get(key)
        return value if isinstance(value, str) and value else None

    @property
    def session_id(self) -> str | None:
        return self._text_field("sessionId")

    @property
    def cwd(self) -> str | None:
        return self._text_field("cwd")

    @property
    def git_branch(self) -> str | None:
        return self._text_field("gitBranch")

    @property
    def summary(self) -> str:
        s = self.raw.get("summary")
        return s if isinstance(s, str) else ""

    @property
    def message(self) -> dict:
        m = self.raw.get("message")
        return m if isinstance(m, dict) else {}

    @property
    def content(self) -> Any:
        return self.message.get("content")

    @property
    def content_text(self) -> str:
        c = self.content
        if isinstance(c, str):
            return c
        if isinstance(c, list):
            parts = []
            for block in c:
                if isinstance(block, str):
                    parts.append(block)
                elif isinstance(block, dict) and block.get("type") == "text":
                    text = block.get("text")
                    if isinstance(text, str):
                        parts.append(text)
            return "\n".join(parts)
        return ""

    @property
    def tool_uses(self) -> list[dict]:
        c = self.content
        if not isinstance(c, list):
            return []
        return [b for b in c if isinstance(b, dict) and b.get("type") == "tool_use"]

    @property
    def tool_calls(self) -> list[ToolCall]:
        calls = []
        for b in self.tool_uses:
            name = b.get("name")
            calls.append(ToolCall(name if isinstance(name, str) and name else "?", b.get("input")))
        return calls

    @property
    def thinking_text(self) -> str:
        """Thinking text of the record; the last non-empty block wins."""
        c = self.content
        if not isinstance(c, list):
            return ""
        thinking = ""
        for b in c:
            if (isinstance(b, dict) and b.get("type") == "thinking"
                    and isinstance(b.get("thinking"), str) and b["thinking"]):
                thinking = b["thinking"]
        return thinking

    def to_message(self) -> Message | None:
        """Normalize into a Message, or None when there is nothing to show."""
        ts = self.timestamp
        if self.kind == "user":
            text = self.content_text
            if not text.strip():
                return None
            return Message("user", ts, text=text)
        if self.kind == "assistant":
            text = self.content_text
            thinking = self.thinking_text
            tools = self.tool_calls
            if not (text.strip() or thinking or tools):
                return None
            return Message("assistant", ts, text=text, thinking=thinking, tools=tools)
        if self.kind == "summary" and self.summary:
            return Message("summary", ts, text=self.summary)
        return None


# ── Session files ─────────────────────────────────────────────────────

AGENT_PREFIX = "agent-"


class SessionMeta:
    __slots__ = ("project", "branch", "session_id", "start", "end", "message_count", "cwd")

    def __init__(self):
        self.project: str | None = None
        self.branch: str | None = None
        self.session_id: str | None = None
        self.start: datetime | None = None
        self.end: datetime | None = None
        self.message_count = 0
        self.cwd: str | None = None


class SessionFile:
    """One log file: a session or a sub-agent conversation."""

    __slots__ = ("path", "id", "is_agent", "agent_id", "size", "meta", "messages")

    def __init__(self, path: Path, size: int = 0):
        self.path = path
        self.id = path.stem
        self.is_agent = self.id.startswith(AGENT_PREFIX)
        self.agent_id = self.id.removeprefix(AGENT_PREFIX) if self.is_agent else None
        self.size = size
        self.meta = SessionMeta()
        self.messages: list[Message] = []

    @property
    def display_id(self) -> str:
        if self.is_agent:
            return self.agent_id or self.id
        return self.meta.session_id or self.id

    def __repr__(self) -> str:
        return f"SessionFile({self.id!r}, {len(self.messages)} messages)"


def file_size(path: Path) -> int | None:
    try:
        return path.stat().st_size
    except OSError:
        return None


def build_session(path: Path, records: Iterator[dict], size: int = 0) -> SessionFile:
    """Fold raw records into a SessionFile with aggregated metadata."""
    session = SessionFile(path, size)
    meta = session.meta
    for raw in records:
        rec = Record(raw)
        if meta.cwd is None and rec.cwd:
            meta.cwd = rec.cwd
        if meta.branch is None and rec.git_branch:
            meta.branch = rec.git_branch
        if meta.session_id is None and rec.session_id:
            meta.session_id = rec.session_id
        ts = rec.timestamp
        if ts is not None:
            if meta.start is None:
                meta.start = ts
            meta.end = ts

        msg = rec.to_message()
        if msg is None:
            continue
        if msg.kind in ("user", "assistant"):
            meta.message_count += 1
        session.messages.append(msg)
    meta.project = meta.cwd
    return session


def parse_session_text(text: str, path: Path) -> SessionFile:
    return build_session(path, iter_lines(text), size=len(text.encode("utf-8")))


def parse_session(path: Path) -> SessionFile:
    """Read a whole log file. Unreadable files yield an empty session."""
    size = file_size(path) or 0
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            text = f.read()
    except OSError as e:
        log.debug("skipping unreadable log %s: %s", path, e)
        return SessionFile(path, size)
    return build_session(path, iter_lines(text), size=size)


def first_cwd(path: Path) -> str | None:
    """Return the first working directory recorded in a log file."""
    try:
        for raw in iter_jsonl(path):
            cwd = raw.get("cwd")
            if cwd and isinstance(cwd, str):
                return cwd
    except OSError as e:
        log.debug("cannot scan %s: %s", path, e)
    return None


# ── Formatting helpers ────────────────────────────────────────────────

def short_id(full_id: str) -> str:
    return full_id[:8]


def format_size(n: int) -> str:
    if n < 1024:
        return f"{n}B"
    if n < 1024 * 1024:
        return f"{n / 1024:.1f}K"
    return f"{n / (1024 * 1024):.1f}M"


def parse_ts(ts: Any) -> datetime | None:
    """Parse an ISO-8601 string or an epoch number (seconds or millis)."""
    if ts is None or ts == "" or isinstance(ts, bool):
        return None
    if isinstance(ts, str):
        try:
            ts = float(ts)
        except ValueError:
            try:
                dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
            except ValueError:
                return None
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt
    if not isinstance(ts, (int, float)):
        return None
    secs = ts / 1000 if ts > 1e11 else ts
    try:
        return datetime.fromtimestamp(secs, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def format_ago(ts: datetime | None, now: datetime | None = None) -> str:
    if ts is None:
        return ""
    now = now or datetime.now(timezone.utc)
    secs = (now - ts).total_seconds()
    if secs < 3600:
        return f"{max(0, int(secs // 60))}m ago"
    if secs < 86400:
        return f"{int(secs // 3600)}h ago"
    if secs < 7 * 86400:
        return f"{int(secs // 86400)}d ago"
    return ts.astimezone().strftime("%Y-%m-%d")


def truncate_words(text: str, max_words: int) -> str:
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + "..."


def wrap_text(text: str, width: int) -> list[str]:
    """Greedy word wrap per paragraph; over-long words are cut with '...'."""
    width = max(1, width)
    lines: list[str] = []
    for para in text.split("\n"):
        if len(para) <= width:
            lines.append(para)
            continue
        line = ""
        for word in para.split(" "):
            if line and len(line) + len(word) + 1 <= width:
                line += " " + word
            elif not line and len(word) <= width:
                line = word
            else:
                if line:
                    lines.append(line)
                line = _cut_word(word, width)
        if line:
            lines.append(line)
    return lines


def _cut_word(word: str, width: int) -> str:
    if len(word) <= width:
        return word
    if width <= 3:
        return word[:width]
    return word[:width - 3] + "..."
