"""Utility functions for cc-switch."""

from .log import log_with_timestamp, configure_log_file, close_log_file
from .settings import SettingsManager, home_dir, is_dev_build, expand_home

__all__ = [
    "log_with_timestamp",
    "configure_log_file",
    "close_log_file",
    "SettingsManager",
    "home_dir",
    "is_dev_build",
    "expand_home",
]
