"""Shared fixtures for skein tests."""
from __future__ import annotations

import json
import pytest
from pathlib import Path


PROJECT_CWD = "/Users/dev/Git/acme/widget"


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Rec:
    """Builders for raw log records."""

    @staticmethod
    def user(text, ts, **extra) -> dict:
        return {"type": "user", "timestamp": ts, "message": {"content": text}, **extra}

    @staticmethod
    def assistant(text, ts, thinking=None, tools=(), **extra) -> dict:
        content = []
        if thinking:
            content.append({"type": "thinking", "thinking": thinking})
        if text:
            content.append({"type": "text", "text": text})
        for name in tools:
            content.append({"type": "tool_use", "name": name, "input": {}})
        return {"type": "assistant", "timestamp": ts, "message": {"content": content}, **extra}

    @staticmethod
    def conversation(n: int, start_minute: int = 0, cwd: str = PROJECT_CWD,
                     branch: str = "main", session_id: str = "sess-0001") -> list[dict]:
        """n alternating user/assistant records one minute apart."""
        out = []
        for i in range(n):
            ts = f"2026-01-01T10:{start_minute + i:02d}:00Z"
            meta = {"cwd": cwd, "gitBranch": branch, "sessionId": session_id}
            if i % 2 == 0:
                out.append(Rec.user(f"question {i}", ts, **meta))
            else:
                out.append(Rec.assistant(f"answer {i}", ts, **meta))
        return out


@pytest.fixture
def rec():
    return Rec


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tmp_jsonl(tmp_path):
    """Factory: write a list of dicts as a JSONL file, return path."""
    def _make(records: list[dict], name: str = "session.jsonl") -> Path:
        p = tmp_path / name
        with open(p, "w") as f:
            for rec in records:
                f.write(json.dumps(rec) + "\n")
        return p
    return _make


@pytest.fixture
def projects_root(tmp_path):
    root = tmp_path / "projects"
    root.mkdir()
    return root


@pytest.fixture
def make_project(projects_root):
    """Factory: write {file name: records} into a project directory."""
    def _make(name: str, files: dict[str, list[dict]]) -> Path:
        d = projects_root / name
        d.mkdir(parents=True, exist_ok=True)
        for fname, records in files.items():
            with open(d / fname, "w") as f:
                for rec in records:
                    f.write(json.dumps(rec) + "\n")
        return d
    return _make


@pytest.fixture
def acme_root(make_project, projects_root, rec):
    """One repo: a 4-message session on main plus an agent inside its window."""
    make_project("-Users-dev-Git-acme-widget", {
        "sess-1111.jsonl": rec.conversation(4, start_minute=0, session_id="sess-1111"),
        "agent-abc123.jsonl": rec.conversation(2, start_minute=1, session_id="sess-1111"),
    })
    return projects_root


@pytest.fixture
def sample_records():
    """Minimal transcript records for testing."""
    return [
        {
            "type": "system",
            "subtype": "init",
            "timestamp": "2026-01-01T00:00:00Z",
            "cwd": PROJECT_CWD,
            "sessionId": "test-session-id-001",
            "gitBranch": "main",
        },
        {
            "type": "user",
            "timestamp": "2026-01-01T00:00:01Z",
            "message": {"content": "Hello, help me with this code"},
        },
        {
            "type": "assistant",
            "timestamp": "2026-01-01T00:00:05Z",
            "gitBranch": "feature-x",
            "message": {
                "model": "claude-opus-4-6",
                "content": [
                    {"type": "thinking", "thinking": "Let me analyze the request"},
                    {"type": "text", "text": "I'll help you with that."},
                    {"type": "tool_use", "name": "Read", "input": {"file_path": "/src/main.py"}},
                ],
            },
        },
        {
            "type": "user",
            "timestamp": "2026-01-01T00:00:08Z",
            "message": {
                "content": [
                    {"type": "tool_result", "content": "file contents here", "is_error": False},
                ],
            },
        },
        {
            "type": "assistant",
            "timestamp": "2026-01-01T00:00:12Z",
            "message": {
                "content": [
                    {"type": "text", "text": "Here's the fix."},
                    {"type": "tool_use", "name": "Edit", "input": {"file_path": "/src/main.py"}},
                ],
            },
        },
        {
            "type": "user",
            "timestamp": "2026-01-01T00:00:15Z",
            "message": {
                "content": [
                    {"type": "tool_result", "content": "error: file not found", "is_error": True},
                ],
            },
        },
        {
            "type": "assistant",
            "timestamp": "2026-01-01T00:00:20Z",
            "message": {
                "content": [
                    {"type": "text", "text": "Let me try another approach."},
                    {"type": "tool_use", "name": "Bash", "input": {"command": "ls /src"}},
                ],
            },
        },
        {"type": "summary", "summary": "Fixed the main module", "leafUuid": "abc"},
    ]


@pytest.fixture
def sample_session(tmp_jsonl, sample_records):
    from skein.session import parse_session
    return parse_session(tmp_jsonl(sample_records, name="test-session-id-001.jsonl"))
