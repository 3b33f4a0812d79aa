"""Human formatter: Rich console state, glyph sets and the hierarchy listing."""
from __future__ import annotations

import os
import sys

from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from skein.hierarchy import Node

# ── Module state ──────────────────────────────────────────────────────

USE_ASCII = False
console = Console()
err_console = Console(stderr=True)


def init(ascii_mode: bool = False):
    global USE_ASCII, console
    USE_ASCII = ascii_mode
    console = Console()


def detect_ascii() -> bool:
    encoding = getattr(sys.stdout, "encoding", "") or ""
    if encoding.lower().replace("-", "") not in ("utf8", "utf16", "utf32"):
        return True
    lang = os.environ.get("LANG", "") + os.environ.get("LC_ALL", "")
    if lang and "utf" not in lang.lower():
        return True
    return False


class Glyphs:
    __slots__ = ("vbar", "heavy", "light")

    def __init__(self, vbar: str, heavy: str, light: str):
        self.vbar = vbar
        self.heavy = heavy
        self.light = light


UNICODE_GLYPHS = Glyphs("│", "═", "─")
ASCII_GLYPHS = Glyphs("|", "=", "-")


def glyphs(ascii_mode: bool | None = None) -> Glyphs:
    if ascii_mode is None:
        ascii_mode = USE_ASCII
    return ASCII_GLYPHS if ascii_mode else UNICODE_GLYPHS


# ── Node styling ──────────────────────────────────────────────────────

NODE_ICONS = {
    "root": "@ ",
    "organization": "@ ",
    "repository": "# ",
    "branch": "~ ",
    "session": "o ",
    "agent": "* ",
}

NODE_STYLES = {
    "root": "color(15)",
    "organization": "color(220)",
    "repository": "color(39)",
    "branch": "color(114)",
    "session": "color(245)",
    "agent": "color(141)",
}


# ── Hierarchy listing ─────────────────────────────────────────────────

def _node_markup(node: Node) -> str:
    style = NODE_STYLES[node.kind]
    label = f"[{style}]{NODE_ICONS[node.kind]}{escape(node.label)}[/]"
    if node.kind in ("organization", "repository"):
        label += f" [dim]({node.session_count} sessions)[/]"
    return label


def _add_children(branch: Tree, node: Node) -> None:
    for child in node.children:
        _add_children(branch.add(_node_markup(child)), child)


def format_hierarchy(root: Node) -> None:
    """Print the whole discovered hierarchy as a Rich tree."""
    if not root.children:
        console.print("[yellow]No sessions found.[/]")
        return
    tree = Tree(_node_markup(root), guide_style="dim")
    _add_children(tree, root)
    console.print(tree)
    console.print(f"\n[dim]{root.session_count} sessions[/]")
