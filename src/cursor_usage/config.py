"""Platform-aware path resolution for Cursor data and report output."""

import os
import sys
from dataclasses import dataclass
from pathlib import Path

DEFAULT_OUTPUT_DIRNAME = "cursor-logs-export"


def get_cursor_user_path() -> Path:
    """Return the path to Cursor's ``User`` directory."""
    env = os.environ.get("CURSOR_USAGE_DATA_PATH")
    if env:
        return Path(env)

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "Cursor" / "User"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / "Cursor" / "User"
    else:  # Linux
        return Path.home() / ".config" / "Cursor" / "User"


@dataclass(frozen=True)
class Settings:
    """Resolved locations for one run.

    Built once by the CLI and handed to every component that touches the
    filesystem.
    """

    cursor_user_path: Path
    output_dir: Path

    @classmethod
    def from_env(cls, output_dir: Path | str | None = None) -> "Settings":
        if output_dir is None:
            output_dir = Path.cwd() / DEFAULT_OUTPUT_DIRNAME
        return cls(cursor_user_path=get_cursor_user_path(), output_dir=Path(output_dir))

    @property
    def global_storage(self) -> Path:
        return self.cursor_user_path / "globalStorage"

    @property
    def workspace_storage(self) -> Path:
        return self.cursor_user_path / "workspaceStorage"

    @property
    def state_db(self) -> Path:
        """Global ``state.vscdb`` holding composer and bubble rows."""
        return self.global_storage / "state.vscdb"

    @property
    def chats_dir(self) -> Path:
        return self.output_dir / "chats"

    @property
    def report_path(self) -> Path:
        return self.output_dir / "report.html"
