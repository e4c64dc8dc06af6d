"""Resolve a human-readable project name for a conversation.

Composer rows in the global store rarely say which project they belong to.
The name is inferred from whatever signals are present, trying an ordered
list of strategies until one produces a name.
"""

import json
import logging
import urllib.parse
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


def strip_file_scheme(uri: str) -> str:
    if uri.startswith("file://"):
        return urllib.parse.unquote(uri[7:])
    return uri


def last_segment(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


def is_path_prefix(folder: str, path: str) -> bool:
    """True if ``folder`` contains ``path``, compared segment by segment."""
    folder = folder.rstrip("/")
    if not folder:
        return path.startswith("/")
    return path == folder or path.startswith(folder + "/")


@dataclass
class WorkspaceIndex:
    """Folder paths declared by the ``workspace.json`` descriptors.

    Keyed by workspace storage id, in enumeration order.
    """

    folders: dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls, workspace_storage: Path) -> "WorkspaceIndex":
        folders: dict[str, str] = {}
        if not workspace_storage.is_dir():
            logger.warning("Workspace storage not found: %s", workspace_storage)
            return cls(folders)
        try:
            ws_dirs = sorted(workspace_storage.iterdir())
        except OSError as e:
            logger.warning("Cannot list workspace storage %s: %s", workspace_storage, e)
            return cls(folders)
        for ws_dir in ws_dirs:
            if not ws_dir.is_dir():
                continue
            folder = read_workspace_folder(ws_dir)
            if folder:
                folders[ws_dir.name] = folder
        return cls(folders)

    def name_for_id(self, workspace_id: str) -> str | None:
        folder = self.folders.get(workspace_id)
        return last_segment(folder) if folder else None

    def match_path(self, path: str) -> str:
        """Name of the workspace whose folder is the longest prefix of ``path``.

        Falls back to the name of the path's parent directory.
        """
        best_name = None
        best_len = 0
        for folder in self.folders.values():
            if is_path_prefix(folder, path) and len(folder) > best_len:
                best_name = last_segment(folder)
                best_len = len(folder)
        if best_name:
            return best_name

        parts = path.split("/")
        if len(parts) >= 2 and parts[-2]:
            return parts[-2]
        return UNKNOWN


def read_workspace_folder(ws_dir: Path) -> str | None:
    """Extract the project folder path from ``workspace.json``."""
    ws_json = ws_dir / "workspace.json"
    if not ws_json.exists():
        return None
    try:
        data = json.loads(ws_json.read_text(encoding="utf-8"))
        folder_uri = data.get("folder", "") if isinstance(data, dict) else ""
        return strip_file_scheme(folder_uri) if folder_uri else None
    except (json.JSONDecodeError, UnicodeDecodeError, OSError, AttributeError) as e:
        logger.warning("Failed to read workspace.json in %s: %s", ws_dir, e)
        return None


@dataclass
class WorkspaceSignals:
    """Everything known about a conversation that can hint at its project."""

    composer_id: str
    composer: dict
    first_bubble_id: str | None = None
    # reads a JSON value from the store by key
    lookup: Callable[[str], Optional[dict]] = lambda key: None


Strategy = Callable[[WorkspaceSignals, WorkspaceIndex], Optional[str]]


def from_workspace_id(signals: WorkspaceSignals, index: WorkspaceIndex) -> str | None:
    workspace_id = signals.composer.get("workspaceId")
    if not workspace_id:
        return None
    return index.name_for_id(workspace_id)


def candidate_paths(composer: dict) -> list[str]:
    """File paths mentioned by a composer, most reliable first."""
    candidates = []

    created = composer.get("newlyCreatedFiles") or []
    if created and isinstance(created[0], dict):
        candidates.append((created[0].get("uri") or {}).get("path"))

    code_blocks = composer.get("codeBlockData") or {}
    if isinstance(code_blocks, dict) and code_blocks:
        candidates.append(next(iter(code_blocks)))

    for key in ("addedFiles", "allAttachedFileCodeChunksUris"):
        values = composer.get(key) or []
        if values and isinstance(values[0], str):
            candidates.append(values[0])

    return [strip_file_scheme(c) for c in candidates if isinstance(c, str) and c]


def from_file_paths(signals: WorkspaceSignals, index: WorkspaceIndex) -> str | None:
    for path in candidate_paths(signals.composer):
        name = index.match_path(path)
        if name != UNKNOWN:
            return name
    return None


def from_request_context(signals: WorkspaceSignals, index: WorkspaceIndex) -> str | None:
    if not signals.first_bubble_id:
        return None
    key = f"messageRequestContext:{signals.composer_id}:{signals.first_bubble_id}"
    context = signals.lookup(key)
    if not context:
        return None
    layouts = context.get("projectLayouts") or []
    if not layouts:
        return None
    layout = json.loads(layouts[0]) if isinstance(layouts[0], str) else layouts[0]
    abs_path = layout["listDirV2Result"]["directoryTreeRoot"]["absPath"]
    return index.match_path(abs_path) if abs_path else None


STRATEGIES: list[Strategy] = [from_workspace_id, from_file_paths, from_request_context]


def resolve_workspace(
    signals: WorkspaceSignals,
    index: WorkspaceIndex,
    strategies: list[Strategy] = STRATEGIES,
) -> str:
    """Apply each strategy in turn; the first usable name wins."""
    for strategy in strategies:
        try:
            name = strategy(signals, index)
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError, IndexError) as e:
            logger.debug("%s failed for %s: %s", strategy.__name__, signals.composer_id, e)
            continue
        if name and name != UNKNOWN:
            return name
    return UNKNOWN
