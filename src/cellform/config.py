"""Project-level configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "cellform.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "formula_prefix": "=",
    "max_workers": 1,
    "stop_on_error": False,
    "logging_enabled": True,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}


DEMO_CONFIG = """\
# cellform project configuration
#
# formula_prefix: "="      # stripped from formulas before parsing ("" to disable)
# max_workers: 1           # batch worker threads
# stop_on_error: false     # abort a batch at the first invalid formula
# logging_enabled: true    # write events to logs/events.ndjson
# logging_fsync: false
"""


def load_config(project_dir: Path) -> dict[str, Any]:
    """Load configuration from ``cellform.yaml``, with defaults.

    Args:
        project_dir: Directory holding ``cellform.yaml``.

    Returns:
        Merged configuration dict.

    Raises:
        ValueError: If the file does not contain a mapping.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = project_dir / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"{config_path} must contain a mapping")
        config.update(user_config)
    return config


def strip_prefix(text: str, prefix: str | None) -> str:
    """Remove a leading formula marker such as ``=``, ignoring leading blanks."""
    stripped = text.lstrip(" \t")
    if prefix and stripped.startswith(prefix):
        return stripped[len(prefix):]
    return text
