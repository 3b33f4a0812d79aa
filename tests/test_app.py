"""Tests for skein.app: key handling across tree and viewer modes."""
from __future__ import annotations

import pytest

from skein.app import TREE, VIEWER, App
from skein.scheduler import Scheduler


@pytest.fixture
def app(acme_root, clock):
    app = App(acme_root, scheduler=Scheduler(clock=clock), anchor="Git", width=100, height=30)
    app.refresh()
    app.running = True
    return app


def press(app: App, *keys: str) -> None:
    for key in keys:
        app.dispatch("key", key)


def selected_label(app: App) -> str:
    return app.tree.current.node.label


class TestTreeMode:
    def test_refresh_counts_leaves(self, app):
        assert app.total == 2
        assert [row.node.label for row in app.tree.rows] == ["Sessions", "acme"]

    def test_navigate_to_session(self, app):
        press(app, "j", "enter", "j", "l", "j", "right", "j")
        assert app.tree.current.node.kind == "session"
        press(app, "enter")
        assert app.mode == VIEWER
        assert len(app.viewer.shown) == 4
        press(app, "s")
        headers = [line.plain for line in app.viewer.lines
                   if line.plain.startswith(("═══ USER", "─── ASSISTANT"))]
        assert len(headers) == 4

    def test_movement_is_clamped(self, app):
        press(app, "k", "up")
        assert app.tree.selected == 0
        press(app, "G", "down", "j")
        assert app.tree.selected == len(app.tree.rows) - 1
        press(app, "g")
        assert app.tree.selected == 0

    def test_space_toggles(self, app):
        press(app, "j", "space")
        assert [row.node.label for row in app.tree.rows] == ["Sessions", "acme", "widget"]
        press(app, "space")
        assert [row.node.label for row in app.tree.rows] == ["Sessions", "acme"]

    def test_back_collapses_then_ascends(self, app):
        press(app, "j", "enter", "j")
        assert selected_label(app) == "widget"
        press(app, "h")
        assert selected_label(app) == "acme"
        press(app, "b")
        assert [row.node.label for row in app.tree.rows] == ["Sessions", "acme"]

    def test_refresh_resets_state(self, app):
        press(app, "j", "enter", "j")
        press(app, "r")
        assert app.tree.selected == 0
        assert [row.node.label for row in app.tree.rows] == ["Sessions", "acme"]

    @pytest.mark.parametrize("key", ["q", "escape", "ctrl-c"])
    def test_quit_keys(self, app, key):
        press(app, key)
        assert app.running is False

    def test_unknown_key_ignored(self, app):
        press(app, "x", "tab")
        assert app.mode == TREE
        assert app.running


class TestViewerMode:
    @pytest.fixture
    def viewing(self, app):
        app.open_session(app.tree.root.children[0].children[0].children[0].children[0].session)
        return app

    def test_back_returns_to_tree(self, viewing):
        press(viewing, "q")
        assert viewing.mode == TREE
        assert viewing.running
        assert viewing.scheduler.active_count == 0

    @pytest.mark.parametrize("key", ["h", "b", "left", "escape"])
    def test_back_keys(self, viewing, key):
        press(viewing, key)
        assert viewing.mode == TREE

    def test_refresh_key_ignored(self, viewing):
        press(viewing, "r")
        assert viewing.mode == VIEWER

    def test_scroll_keys(self, viewing):
        viewing.resize(100, 10)
        press(viewing, "g")
        assert viewing.viewer.scroll == 0
        press(viewing, "j", "down")
        assert viewing.viewer.scroll == 2
        press(viewing, "k")
        assert viewing.viewer.scroll == 1
        press(viewing, "G")
        assert viewing.viewer.scroll == viewing.viewer.max_scroll
        press(viewing, "pageup")
        assert viewing.viewer.scroll == viewing.viewer.max_scroll - 4
        press(viewing, "home")
        assert viewing.viewer.scroll == 0
        press(viewing, "end")
        assert viewing.viewer.scroll == viewing.viewer.max_scroll

    def test_stale_timer_event_is_dropped(self, viewing, clock):
        clock.advance(1.0)
        handles = viewing.scheduler.due()
        assert handles
        press(viewing, "q")
        for handle in handles:
            viewing.dispatch("timer", handle)
        assert all(not viewing.scheduler.fire(h) for h in handles)

    def test_timer_event_fires(self, app, tmp_jsonl, rec, clock):
        from skein.session import parse_session
        app.open_session(parse_session(tmp_jsonl(rec.conversation(8), name="long.jsonl")))
        clock.advance(0.05)
        for handle in app.scheduler.due():
            app.dispatch("timer", handle)
        assert len(app.viewer.shown) == 6


class TestEvents:
    def test_post_queues_in_order(self, app):
        app.post("key", "j")
        app.post("resize")
        assert list(app.events) == [("key", "j"), ("resize", None)]

    def test_resize_without_terminal_is_noop(self, app):
        app.dispatch("resize", None)
        assert (app.width, app.height) == (100, 30)

    def test_frame_matches_size(self, app):
        frame = app.frame()
        assert len(frame) == 30


class ScriptedTerminal:
    """Stands in for Terminal: replays key batches, then raises or quits."""

    def __init__(self, scheduler: Scheduler, batches: list):
        self.scheduler = scheduler
        self.batches = list(batches)
        self.frames: list = []
        self.active_at_exit: int | None = None
        self.active_at_fault: int | None = None
        self.restored = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.active_at_exit = self.scheduler.active_count
        self.restored = True

    def size(self):
        return 100, 30

    def read_events(self, timeout):
        batch = self.batches.pop(0)
        if isinstance(batch, BaseException):
            self.active_at_fault = self.scheduler.active_count
            raise batch
        return batch

    def paint(self, lines, clear=False):
        self.frames.append((len(lines), clear))


OPEN_SESSION = ["j", "enter", "j", "l", "j", "right", "j", "enter"]


class TestRun:
    def _app(self, root, clock, batches):
        scheduler = Scheduler(clock=clock)
        terminal = ScriptedTerminal(scheduler, batches)
        app = App(root, terminal=terminal, scheduler=scheduler, anchor="Git")
        return app, terminal

    def test_quit_cancels_timers_before_restore(self, acme_root, clock):
        app, terminal = self._app(acme_root, clock, [OPEN_SESSION, ["q", "q", "j"]])
        app.run()
        assert not app.running
        assert terminal.restored
        assert terminal.active_at_exit == 0
        assert terminal.frames[0] == (30, True)
        assert len(terminal.frames) == 1 + len(OPEN_SESSION) + 2

    @pytest.mark.parametrize("fault", [
        RuntimeError("boom"), SystemExit(143), KeyboardInterrupt(),
    ], ids=["fault", "sigterm", "interrupt"])
    def test_every_exit_path_cleans_up(self, acme_root, clock, fault):
        app, terminal = self._app(acme_root, clock, [OPEN_SESSION, fault])
        with pytest.raises(type(fault)):
            app.run()
        assert terminal.active_at_fault == 1
        assert terminal.active_at_exit == 0
        assert terminal.restored
        assert not app.viewer.is_open

    def test_function_key_does_not_quit(self, acme_root, clock):
        from skein.terminal import decode_keys
        app, terminal = self._app(acme_root, clock, [decode_keys("\x1bOP\x1bOQ"), ["q"]])
        app.run()
        # the dashboard was still running when the second batch was read
        assert terminal.batches == []
        assert len(terminal.frames) == 2
