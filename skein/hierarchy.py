"""Session discovery: organization → repository → branch → session → agent."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from skein.session import (
    SessionFile, first_cwd, format_ago, parse_session, repo_anchor, short_id,
)

log = logging.getLogger(__name__)

NODE_KINDS = ("root", "organization", "repository", "branch", "session", "agent")
LEAF_KINDS = ("session", "agent")

ORPHAN_BRANCH = "(agents)"
UNKNOWN_BRANCH = "unknown"
OTHER_ORG = "other"
PRIMARY_BRANCHES = ("main", "master")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Node:
    """One node of the session hierarchy.

    Leaf kinds (``session``, ``agent``) must carry the SessionFile they
    display; every other kind must not.
    """

    __slots__ = ("kind", "label", "children", "expanded", "session",
                 "session_count", "full_path", "agent_count")

    def __init__(self, kind: str, label: str, session: SessionFile | None = None,
                 expanded: bool = False, full_path: str | None = None):
        if kind not in NODE_KINDS:
            raise ValueError(f"unknown node kind: {kind!r}")
        if kind in LEAF_KINDS and session is None:
            raise ValueError(f"{kind} node requires a session")
        if kind not in LEAF_KINDS and session is not None:
            raise ValueError(f"{kind} node cannot hold a session")
        self.kind = kind
        self.label = label
        self.children: list[Node] = []
        self.expanded = expanded
        self.session = session
        self.session_count = 0
        self.full_path = full_path
        self.agent_count = 0

    @property
    def is_leaf(self) -> bool:
        return self.kind in LEAF_KINDS

    def __repr__(self) -> str:
        return f"Node({self.kind!r}, {self.label!r}, {len(self.children)} children)"


class _RepoGroup:
    __slots__ = ("full_path", "branches", "agents")

    def __init__(self, full_path: str):
        self.full_path = full_path
        self.branches: dict[str, list[SessionFile]] = {}
        self.agents: list[SessionFile] = []


# ── Path decomposition ────────────────────────────────────────────────

def split_org_repo(full_path: str, anchor: str | None = None) -> tuple[str, str]:
    """Map a project path to (organization, repository).

    /Users/me/Git/acme/widget          -> ("acme", "widget")
    /Users/me/Git/acme/widget-wt/fast  -> ("acme", "widget-wt/fast")
    /srv/tools/widget                  -> ("other", "tools/widget")
    """
    anchor = anchor or repo_anchor()
    parts = [p for p in full_path.split("/") if p]
    if anchor in parts:
        i = parts.index(anchor)
        if len(parts) > i + 1:
            org = parts[i + 1]
            repo = "/".join(parts[i + 2:]) or org
            return org, repo
    return OTHER_ORG, "/".join(parts[-2:]) or full_path


def find_project_path(files: list[Path]) -> str | None:
    """Canonical path of a project: the first cwd found across its logs."""
    for f in files:
        cwd = first_cwd(f)
        if cwd:
            return cwd
    return None


# ── Labels & ordering ─────────────────────────────────────────────────

def session_label(session: SessionFile, now: datetime | None = None) -> str:
    label = f"{short_id(session.display_id)} ({session.meta.message_count}m)"
    ago = format_ago(session.meta.start, now)
    return f"{label} {ago}" if ago else label


def agent_label(agent: SessionFile) -> str:
    return f"{agent.display_id} ({agent.meta.message_count}m)"


def branch_sort_key(label: str) -> tuple[bool, str, str]:
    return label not in PRIMARY_BRANCHES, label.casefold(), label


def _start_key(session: SessionFile) -> tuple[bool, datetime]:
    start = session.meta.start
    return start is not None, start or EPOCH


def agent_belongs(agent: SessionFile, session: SessionFile, now: datetime) -> bool:
    """True when the agent started inside the session's time window."""
    start = session.meta.start or EPOCH
    end = session.meta.end or now
    agent_start = agent.meta.start or EPOCH
    return start <= agent_start <= end


def count_leaves(node: Node) -> int:
    n = 1 if node.is_leaf else 0
    for child in node.children:
        n += count_leaves(child)
    return n


# ── Discovery ─────────────────────────────────────────────────────────

def _log_files(project: Path) -> list[Path]:
    try:
        return sorted(f for f in project.iterdir() if f.suffix == ".jsonl" and f.is_file())
    except OSError as e:
        log.debug("cannot list %s: %s", project, e)
        return []


def _scan(root: Path, anchor: str) -> dict[tuple[str, str], _RepoGroup]:
    repos: dict[tuple[str, str], _RepoGroup] = {}
    try:
        projects = sorted(root.iterdir())
    except OSError as e:
        log.debug("cannot list %s: %s", root, e)
        return repos
    for project in projects:
        if project.name.startswith(".") or not project.is_dir():
            continue
        files = _log_files(project)
        if not files:
            continue
        full_path = find_project_path(files)
        if not full_path:
            log.debug("no working directory in %s, skipping", project.name)
            continue

        key = split_org_repo(full_path, anchor)
        group = repos.get(key)
        if group is None:
            group = repos[key] = _RepoGroup(full_path)
        for f in files:
            sf = parse_session(f)
            if sf.is_agent:
                group.agents.append(sf)
            else:
                group.branches.setdefault(sf.meta.branch or UNKNOWN_BRANCH, []).append(sf)
    return repos


def _build_repo(label: str, group: _RepoGroup, now: datetime) -> Node:
    repo = Node("repository", label, full_path=group.full_path)
    repo.agent_count = len(group.agents)
    attached: set[int] = set()

    for branch_name, sessions in group.branches.items():
        branch = Node("branch", branch_name)
        for s in sorted(sessions, key=_start_key, reverse=True):
            node = Node("session", session_label(s, now), session=s)
            for agent in group.agents:
                if agent_belongs(agent, s, now):
                    node.children.append(Node("agent", agent_label(agent), session=agent))
                    attached.add(id(agent))
            branch.children.append(node)
        branch.session_count = len(branch.children)
        repo.children.append(branch)

    orphans = [a for a in group.agents if id(a) not in attached]
    if orphans:
        branch = Node("branch", ORPHAN_BRANCH)
        branch.children = [Node("agent", agent_label(a), session=a) for a in orphans]
        repo.children.append(branch)

    repo.children.sort(key=lambda n: branch_sort_key(n.label))
    repo.session_count = sum(b.session_count for b in repo.children)
    return repo


def build_hierarchy(repos: dict[tuple[str, str], _RepoGroup], now: datetime) -> Node:
    root = Node("root", "Sessions", expanded=True)
    orgs: dict[str, Node] = {}
    for (org_name, repo_name), group in repos.items():
        repo = _build_repo(repo_name, group, now)
        if not repo.children:
            continue
        org = orgs.get(org_name)
        if org is None:
            org = orgs[org_name] = Node("organization", org_name)
        org.children.append(repo)
        org.session_count += repo.session_count

    for org in orgs.values():
        org.children.sort(key=lambda n: n.session_count, reverse=True)
    root.children = sorted(orgs.values(), key=lambda n: n.session_count, reverse=True)
    root.session_count = sum(o.session_count for o in root.children)
    return root


def discover(root: Path, anchor: str | None = None, now: datetime | None = None) -> Node:
    """Scan a projects directory into a hierarchy. A missing root is empty."""
    now = now or datetime.now(timezone.utc)
    if not root.is_dir():
        log.info("projects directory %s missing, nothing discovered", root)
        return Node("root", "Sessions", expanded=True)
    repos = _scan(root, anchor or repo_anchor())
    tree = build_hierarchy(repos, now)
    log.info("discovered %d sessions in %d repositories under %s",
             tree.session_count, len(repos), root)
    return tree
