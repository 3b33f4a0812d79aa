"""Expand state, flattened rows, selection and scroll for the hierarchy."""
from __future__ import annotations

from skein.hierarchy import Node
from skein.session import SessionFile


class FlatRow:
    __slots__ = ("node", "depth")

    def __init__(self, node: Node, depth: int):
        self.node = node
        self.depth = depth

    def __repr__(self) -> str:
        return f"FlatRow({self.node.label!r}, depth={self.depth})"


class TreeView:
    """Cursor over the pre-order, expand-aware linearization of a hierarchy."""

    def __init__(self, root: Node):
        self.root = root
        self.rows: list[FlatRow] = []
        self.selected = 0
        self.scroll = 0
        self.flatten()

    def flatten(self) -> list[FlatRow]:
        rows: list[FlatRow] = []

        def visit(node: Node, depth: int) -> None:
            rows.append(FlatRow(node, depth))
            if node.expanded:
                for child in node.children:
                    visit(child, depth + 1)

        visit(self.root, 0)
        self.rows = rows
        self._clamp()
        return rows

    def set_root(self, root: Node) -> None:
        """Replace the hierarchy after a rediscovery."""
        self.root = root
        self.selected = 0
        self.scroll = 0
        self.flatten()

    @property
    def current(self) -> FlatRow | None:
        if 0 <= self.selected < len(self.rows):
            return self.rows[self.selected]
        return None

    def _clamp(self) -> None:
        self.selected = max(0, min(self.selected, len(self.rows) - 1))

    # ── Movement ──────────────────────────────────────────────────────

    def move(self, delta: int) -> None:
        self.selected += delta
        self._clamp()

    def first(self) -> None:
        self.selected = 0
        self.scroll = 0

    def last(self) -> None:
        self.selected = len(self.rows) - 1
        self._clamp()

    def ensure_visible(self, height: int) -> None:
        """Scroll by the minimum amount that keeps the selection on screen."""
        height = max(1, height)
        if self.selected < self.scroll:
            self.scroll = self.selected
        elif self.selected >= self.scroll + height:
            self.scroll = self.selected - height + 1

    # ── Expand / open ─────────────────────────────────────────────────

    def toggle_expand(self) -> SessionFile | None:
        """Flip a container; a childless leaf is returned for opening instead."""
        row = self.current
        if row is None:
            return None
        node = row.node
        if node.children:
            node.expanded = not node.expanded
            self.flatten()
            return None
        return node.session

    def select(self) -> SessionFile | None:
        """Open a leaf, or expand a container."""
        row = self.current
        if row is None:
            return None
        node = row.node
        if node.session is not None:
            return node.session
        if node.children:
            node.expanded = True
            self.flatten()
        return None

    def collapse_or_ascend(self) -> None:
        row = self.current
        if row is None:
            return
        if row.node.expanded:
            row.node.expanded = False
            self.flatten()
            return
        for i in range(self.selected - 1, -1, -1):
            if self.rows[i].depth < row.depth:
                self.selected = i
                return
