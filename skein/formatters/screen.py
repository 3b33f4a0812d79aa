"""Full-screen frames for the dashboard: tree + preview, or the transcript.

Every function here is pure: state in, one ``Text`` per terminal row out,
each cropped or padded to the terminal width. The terminal layer positions
the rows with cursor-addressed writes.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from rich.text import Text

from skein.formatters.human import NODE_ICONS, NODE_STYLES, Glyphs
from skein.hierarchy import ORPHAN_BRANCH, Node
from skein.session import Message, format_ago, format_size, truncate_words, wrap_text
from skein.tree import FlatRow
from skein.viewer import ASSISTANT_STYLE, OTHER_STYLE, USER_STYLE

if TYPE_CHECKING:
    from skein.app import App

TITLE = " Claude Session Browser "
TITLE_STYLE = "bold color(6) on color(236)"
STATUS_STYLE = "color(15) on color(236)"
HINT_STYLE = "color(245) on color(236)"
HEADER_STYLE = "bold color(14)"
BORDER_STYLE = "color(240)"
SELECTED_STYLE = "color(15) on color(4)"

TREE_HINTS = "j/k:Nav Enter:Open Space:Expand h:Back r:Refresh q:Quit"
VIEWER_HINTS = "j/k:Scroll PgUp/Dn:Page s:Skip b:Back q:Quit"

PREVIEW_MESSAGES = 3
PREVIEW_WORDS = 250
PREVIEW_LINES = 6


def left_pane_width(width: int) -> int:
    return min(45, int(width * 0.4))


def content_height(height: int) -> int:
    """Rows between the pane header (row 3) and the status bar."""
    return max(0, height - 4)


def _fit(text: Text, width: int) -> Text:
    fitted = text.copy()
    fitted.truncate(max(0, width), overflow="crop", pad=True)
    return fitted


# ── Bars ──────────────────────────────────────────────────────────────

def title_bar(width: int) -> Text:
    bar = Text(TITLE, style=TITLE_STYLE)
    bar.align("center", width)
    return _fit(bar, width)


def status_bar(left: str, hints: str, width: int) -> Text:
    bar = Text(style=STATUS_STYLE)
    bar.append(left)
    gap = width - bar.cell_len - len(hints) - 1
    bar.append(" " * max(1, gap))
    bar.append(hints, style=HINT_STYLE)
    bar.append(" ")
    return _fit(bar, width)


# ── Tree pane ─────────────────────────────────────────────────────────

def tree_row(row: FlatRow, selected: bool, width: int) -> Text:
    node = row.node
    indent = "  " * row.depth
    if node.children:
        expand = "v " if node.expanded else "> "
    else:
        expand = "  "
    label = NODE_ICONS[node.kind] + node.label
    if selected:
        return _fit(Text(indent + expand + label, style=SELECTED_STYLE), width)
    t = Text(indent)
    t.append(expand, style="color(245)")
    t.append(label, style=NODE_STYLES[node.kind])
    return _fit(t, width)


# ── Preview pane ──────────────────────────────────────────────────────

def _message_summary(msg: Message) -> str:
    parts = []
    if msg.tools:
        parts.append("[" + ", ".join(t.name for t in msg.tools) + "]")
    if msg.thinking:
        parts.append("[thinking] " + msg.thinking[:100] + "...")
    if msg.text:
        parts.append(msg.text)
    return " ".join(parts)


def _message_heading(msg: Message) -> Text:
    if msg.kind == "user":
        return Text(">> USER", style=USER_STYLE)
    if msg.kind == "assistant":
        return Text("<< ASSISTANT", style=ASSISTANT_STYLE)
    return Text("## " + msg.kind.upper(), style=OTHER_STYLE)


def preview(node: Node | None, width: int, now: datetime | None = None) -> list[Text]:
    """Kind-specific summary of the selected node."""
    if node is None or node.kind == "root":
        return [
            Text("Select a session to preview", style="dim"),
            Text(""),
            Text("Navigate with j/k or arrows", style="dim"),
            Text("Press Enter to view full session", style="dim"),
        ]

    heading = Text(NODE_ICONS[node.kind] + node.label, style="bold " + NODE_STYLES[node.kind])
    if node.kind == "organization":
        return [
            heading,
            Text(""),
            Text(f"Repos: {len(node.children)}"),
            Text(f"Sessions: {node.session_count}"),
        ]
    if node.kind == "repository":
        return [
            heading,
            Text(node.full_path or "", style="dim"),
            Text(""),
            Text(f"Branches: {len(node.children)}"),
            Text(f"Sessions: {node.session_count}"),
            Text(f"Agents: {node.agent_count}"),
        ]
    if node.kind == "branch":
        noun = "Agents" if node.label == ORPHAN_BRANCH else "Sessions"
        return [heading, Text(""), Text(f"{noun}: {len(node.children)}")]

    session = node.session
    meta = session.meta
    kind_label = "Agent" if node.kind == "agent" else "Session"
    lines = [Text.assemble((f"{kind_label}: ", "bold"), session.display_id)]
    if meta.branch:
        lines.append(Text(f"Branch: {meta.branch}", style=NODE_STYLES["branch"]))
    lines.append(Text(f"Messages: {meta.message_count}", style="dim"))
    if meta.start:
        lines.append(Text(f"Started: {format_ago(meta.start, now)}", style="dim"))
    lines.append(Text(f"Size: {format_size(session.size)}", style="dim"))
    lines += [Text(""), Text(f"Last {PREVIEW_MESSAGES} messages:", style="underline"), Text("")]

    wrap_width = max(10, width - 4)
    for msg in session.messages[-PREVIEW_MESSAGES:]:
        lines.append(_message_heading(msg))
        wrapped = wrap_text(truncate_words(_message_summary(msg), PREVIEW_WORDS), wrap_width)
        for line in wrapped[:PREVIEW_LINES]:
            lines.append(Text("  " + line, style="dim"))
        if len(wrapped) > PREVIEW_LINES:
            lines.append(Text("  ...", style="dim"))
        lines.append(Text(""))
    return lines


# ── Layouts ───────────────────────────────────────────────────────────

def render_tree(app: App, width: int, height: int, now: datetime | None = None) -> list[Text]:
    box: Glyphs = app.box
    tree = app.tree
    left = left_pane_width(width)
    right = max(0, width - left - 1)
    rows = content_height(height)

    header = Text()
    header.append(box.vbar, style=BORDER_STYLE)
    header.append(" Sessions ", style=HEADER_STYLE)
    header.append(f"({app.total} total)", style="dim")
    header = _fit(header, left)
    header.append(box.vbar, style=BORDER_STYLE)
    header.append(" Preview", style=HEADER_STYLE)

    current = tree.current
    side = preview(current.node if current else None, right, now)

    lines = [title_bar(width), Text(" " * width), _fit(header, width)]
    for i in range(rows):
        idx = tree.scroll + i
        line = Text()
        line.append(box.vbar, style=BORDER_STYLE)
        if idx < len(tree.rows):
            line.append_text(tree_row(tree.rows[idx], idx == tree.selected, left - 1))
        else:
            line.append(" " * max(0, left - 1))
        line.append(box.vbar, style=BORDER_STYLE)
        if i < len(side):
            line.append_text(_fit(side[i], right))
        lines.append(_fit(line, width))

    position = f" {tree.selected + 1}/{len(tree.rows)}"
    return _finish(lines, status_bar(position, TREE_HINTS, width), width, height)


def render_viewer(app: App, width: int, height: int) -> list[Text]:
    viewer = app.viewer
    session = viewer.session
    if session is not None:
        title = f" Session: {session.display_id} [{session.meta.branch or 'unknown'}]"
    else:
        title = " Session Viewer"

    lines = [title_bar(width), Text(" " * width), _fit(Text(title, style=HEADER_STYLE), width)]
    for i in range(content_height(height)):
        idx = viewer.scroll + i
        if idx < len(viewer.lines):
            lines.append(_fit(viewer.lines[idx], width))
        else:
            lines.append(Text(" " * width))

    position = f" Line {viewer.scroll + 1}/{len(viewer.lines)}"
    if viewer.streaming:
        position += " [STREAMING]"
    return _finish(lines, status_bar(position, VIEWER_HINTS, width), width, height)


def _finish(lines: list[Text], status: Text, width: int, height: int) -> list[Text]:
    if height <= 0:
        return []
    return lines[:height - 1] + [status]


def render(app: App, width: int, height: int, now: datetime | None = None) -> list[Text]:
    """One frame for the current mode."""
    if app.mode == "viewer":
        return render_viewer(app, width, height)
    return render_tree(app, width, height, now)
