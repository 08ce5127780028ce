"""Path utilities for Reader Sync."""

import os
from pathlib import Path

DATA_DIR_ENV = "READER_SYNC_HOME"


def get_project_dir() -> Path:
    """
    Get the data directory used for config, state and logs.

    ``READER_SYNC_HOME`` overrides the default ``~/.reader-sync``.

    Returns:
        Path to the data directory
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        data_dir = Path(override).expanduser()
    else:
        data_dir = Path.home() / ".reader-sync"

    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def ensure_data_dir() -> Path:
    """
    Ensure the data directory exists and return its path.

    Returns:
        Path to the data directory
    """
    data_dir = get_project_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_config_file_path() -> Path:
    """Get the path to the configuration file."""
    # A config.yaml in the working directory wins over the data directory
    local_config = Path.cwd() / "config.yaml"
    if local_config.exists():
        return local_config

    return get_project_dir() / "config.yaml"


def get_state_file_path() -> Path:
    """Get the path to the state file."""
    return get_log_dir().parent / "state.json"


def get_log_dir() -> Path:
    """Get the log directory path."""
    log_dir = get_project_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir
