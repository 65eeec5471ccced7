"""Logging utilities."""

import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

# Global log file handle
_log_file = None
_log_file_path: Optional[Path] = None


def configure_log_file(path: Optional[Path]):
    """Set the file that log lines are appended to (None disables file logging)."""
    global _log_file_path
    close_log_file()
    _log_file_path = Path(path) if path else None


def _get_log_file():
    """Get or create the log file handle."""
    global _log_file
    if _log_file_path is None:
        return None
    if _log_file is None or _log_file.closed:
        try:
            _log_file_path.parent.mkdir(parents=True, exist_ok=True)
            _log_file = open(_log_file_path, 'a', encoding='utf-8')
            # Write a separator when opening a new session
            _log_file.write(f"\n{'='*80}\n")
            _log_file.write(f"Session started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
            _log_file.write(f"{'='*80}\n")
            _log_file.flush()
        except OSError as e:
            print(f"Warning: Could not open log file {_log_file_path}: {e}", file=sys.stderr)
            _log_file = None
    return _log_file


def close_log_file():
    """Close the log file handle."""
    global _log_file
    if _log_file and not _log_file.closed:
        try:
            _log_file.write(f"Session ended: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
            _log_file.close()
        except OSError:
            pass
    _log_file = None


def log_with_timestamp(message: str, prefix: str = ""):
    """
    Print a log message with timestamp to the terminal and the log file.

    Args:
        message: The log message
        prefix: Optional prefix (e.g., "[Settings]", "[UsageFooter]")
    """
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]  # Include milliseconds

    if prefix:
        log_message = f"{timestamp} {prefix} {message}"
    else:
        log_message = f"{timestamp} {message}"

    print(log_message)
    sys.stdout.flush()

    log_file = _get_log_file()
    if log_file:
        try:
            log_file.write(log_message + "\n")
            log_file.flush()
        except OSError as e:
            print(f"Warning: Could not write to log file: {e}", file=sys.stderr)
