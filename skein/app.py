"""Dashboard controller: one event queue, two modes, repaint after each event."""
from __future__ import annotations

import logging
from collections import deque
from pathlib import Path

from rich.text import Text

from skein.formatters.human import glyphs
from skein.formatters.screen import content_height, render
from skein.hierarchy import Node, count_leaves, discover
from skein.scheduler import Scheduler
from skein.session import SessionFile
from skein.terminal import Terminal
from skein.tree import TreeView
from skein.viewer import SessionViewer

log = logging.getLogger(__name__)

TREE = "tree"
VIEWER = "viewer"

QUIT_KEYS = ("q", "escape", "ctrl-c")
BACK_KEYS = ("h", "b", "left")


class App:
    """Owns the terminal, the timers, the tree and the viewer.

    Events are ``(kind, payload)`` tuples: ``("key", name)``,
    ``("resize", None)`` and ``("timer", handle)``. They are dispatched one
    at a time in arrival order, each followed by a repaint.
    """

    def __init__(self, root_dir: Path, terminal: Terminal | None = None,
                 scheduler: Scheduler | None = None, anchor: str | None = None,
                 ascii_mode: bool | None = None, width: int = 120, height: int = 40):
        self.root_dir = root_dir
        self.terminal = terminal
        self.scheduler = scheduler or Scheduler()
        self.anchor = anchor
        self.box = glyphs(ascii_mode)
        self.mode = TREE
        self.width = width
        self.height = height
        self.tree = TreeView(Node("root", "Sessions", expanded=True))
        self.total = 0
        self.viewer = SessionViewer(self.scheduler, width, height, ascii_mode=ascii_mode)
        self.running = False
        self.events: deque[tuple[str, object]] = deque()

    # ── State changes ─────────────────────────────────────────────────

    def refresh(self) -> None:
        """Rediscover everything; expand state and selection start over."""
        root = discover(self.root_dir, self.anchor)
        self.tree.set_root(root)
        self.total = count_leaves(root)

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.viewer.resize(width, height)

    def open_session(self, session: SessionFile) -> None:
        self.viewer.open(session)
        self.mode = VIEWER

    def close_viewer(self) -> None:
        self.viewer.close()
        self.mode = TREE

    def quit(self) -> None:
        self.running = False

    # ── Dispatch ──────────────────────────────────────────────────────

    def post(self, kind: str, payload: object = None) -> None:
        self.events.append((kind, payload))

    def dispatch(self, kind: str, payload: object) -> None:
        if kind == "key":
            self.handle_key(payload)
        elif kind == "timer":
            self.scheduler.fire(payload)
        elif kind == "resize" and self.terminal is not None:
            self.resize(*self.terminal.size())
        self.tree.ensure_visible(content_height(self.height))

    def handle_key(self, key: str) -> None:
        if self.mode == VIEWER:
            self._viewer_key(key)
        else:
            self._tree_key(key)

    def _tree_key(self, key: str) -> None:
        tree = self.tree
        if key in QUIT_KEYS:
            self.quit()
        elif key in ("down", "j"):
            tree.move(1)
        elif key in ("up", "k"):
            tree.move(-1)
        elif key in ("enter", "l", "right"):
            session = tree.select()
            if session is not None:
                self.open_session(session)
        elif key == "space":
            session = tree.toggle_expand()
            if session is not None:
                self.open_session(session)
        elif key in BACK_KEYS:
            tree.collapse_or_ascend()
        elif key == "r":
            self.refresh()
        elif key == "g":
            tree.first()
        elif key == "G":
            tree.last()

    def _viewer_key(self, key: str) -> None:
        viewer = self.viewer
        if key in QUIT_KEYS or key in BACK_KEYS:
            self.close_viewer()
        elif key in ("down", "j"):
            viewer.scroll_by(1)
        elif key in ("up", "k"):
            viewer.scroll_by(-1)
        elif key == "pagedown":
            viewer.page(1)
        elif key == "pageup":
            viewer.page(-1)
        elif key in ("g", "home"):
            viewer.scroll_home()
        elif key in ("G", "end"):
            viewer.scroll_end()
        elif key == "s":
            viewer.skip()

    # ── Loop ──────────────────────────────────────────────────────────

    def frame(self) -> list[Text]:
        return render(self, self.width, self.height)

    def collect(self) -> None:
        """Wait for input or the next timer, queueing whatever arrived."""
        for name in self.terminal.read_events(self.scheduler.timeout()):
            if name == "resize":
                self.post("resize")
            else:
                self.post("key", name)
        for handle in self.scheduler.due():
            self.post("timer", handle)

    def run(self) -> None:
        """Run until quit. The terminal is restored on every exit path."""
        with self.terminal:
            try:
                self.running = True
                self.resize(*self.terminal.size())
                self.refresh()
                self.terminal.paint(self.frame(), clear=True)
                while self.running:
                    self.collect()
                    while self.events and self.running:
                        kind, payload = self.events.popleft()
                        self.dispatch(kind, payload)
                        self.terminal.paint(self.frame(), clear=kind == "resize")
            finally:
                self.viewer.close()
                self.scheduler.cancel_all()
                log.debug("event loop stopped")
