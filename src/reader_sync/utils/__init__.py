"""Utility functions for Reader Sync."""

from .paths import (
    get_project_dir,
    get_config_file_path,
    get_state_file_path,
    get_log_dir,
    ensure_data_dir
)

__all__ = [
    "get_project_dir",
    "get_config_file_path",
    "get_state_file_path",
    "get_log_dir",
    "ensure_data_dir"
]
