"""Configuration for exporting Cline conversations."""

import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

CLINE_EXTENSION_ID = "saoudrizwan.claude-dev"


def default_tasks_dir():
    """Return the folder where the Cline VS Code extension stores its tasks."""
    system = platform.system()
    if system == "Darwin":
        base = Path.home() / "Library" / "Application Support" / "Code"
    elif system == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home())) / "Code"
    else:
        base = Path.home() / ".config" / "Code"
    return str(base / "User" / "globalStorage" / CLINE_EXTENSION_ID / "tasks")


@dataclass
class ExportOptions:
    """Switches controlling what ends up in the exported page."""

    suppress_commands: bool = False
    strip_absolute_paths: bool = False
    hide_file_contents: bool = False
    # Derived once per run from the conversation when strip_absolute_paths is set
    project_root: Optional[str] = None


class Config:
    """Configuration for the command line tool."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        # Where exports go when -o is not given
        self.output_dir = os.environ.get(
            "CLINE_TRANSCRIPTS_OUTPUT", "./cline-export-output"
        )

        # Where the local command looks for task directories
        self.tasks_dir = os.environ.get("CLINE_TASKS_DIR", default_tasks_dir())

        # Number of tasks offered by the local command
        try:
            self.local_limit = int(os.environ.get("CLINE_TRANSCRIPTS_LIMIT", "10"))
        except ValueError:
            raise ValueError("CLINE_TRANSCRIPTS_LIMIT must be an integer")

    def __repr__(self):
        """Return a string representation of the config."""
        return (
            f"<Config(output_dir='{self.output_dir}', "
            f"tasks_dir='{self.tasks_dir}', "
            f"local_limit={self.local_limit})>"
        )
