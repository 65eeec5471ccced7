"""Settings persistence manager.

Every persisted store of the app is a flat JSON document handled by a
SettingsManager:

    <app config dir>/settings.json       global application settings
    <app config dir>/config.json         providers per target
    ~/.cc-switch/app_paths.json          app config directory override
    ~/.cc-switch/ui_state.json           local cache (language, common snippets)

Environment:
    CCSWITCH_HOME   replaces the user's home directory for path defaults
    CCSWITCH_DEV    marks a development build (no real process restart)
"""
import json
import os
from pathlib import Path
from typing import Any, Optional

from .log import log_with_timestamp

# Keys of the local key-value cache
LANGUAGE_KEY = "language"
CLAUDE_COMMON_SNIPPET_KEY = "cc-switch:common-config-snippet"
CODEX_COMMON_SNIPPET_KEY = "cc-switch:codex-common-config-snippet"


def home_dir() -> Path:
    """Home directory used for all default paths."""
    override = os.environ.get("CCSWITCH_HOME", "").strip()
    if override:
        return Path(override)
    return Path.home()


def is_dev_build() -> bool:
    """Whether the process runs as a development build."""
    return os.environ.get("CCSWITCH_DEV", "").strip().lower() in {"1", "true", "yes"}


def expand_home(raw: str, home: Optional[Path] = None) -> Path:
    """Resolve '~', '~/x' and '~\\x' against the home directory."""
    base = home or home_dir()
    if raw == "~":
        return base
    for prefix in ("~/", "~\\"):
        if raw.startswith(prefix):
            return base / raw[len(prefix):]
    return Path(raw)


class SettingsManager:
    """Manages one JSON settings document."""

    def __init__(self, path: Path):
        """Initialize settings manager."""
        self.settings_file = Path(path)
        self._settings: dict[str, Any] = {}
        self._load()

    def _load(self):
        """Load settings from file."""
        if self.settings_file.exists():
            try:
                with open(self.settings_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                self._settings = data if isinstance(data, dict) else {}
            except (OSError, ValueError) as e:
                log_with_timestamp(f"Could not read {self.settings_file}: {e}", "[SettingsManager]")
                self._settings = {}
        else:
            self._settings = {}

    def _save(self):
        """Save settings to file.

        Raises:
            OSError: If the file cannot be written
        """
        self.settings_file.parent.mkdir(parents=True, exist_ok=True)
        # Set restrictive permissions
        old_umask = os.umask(0o077)
        try:
            with open(self.settings_file, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, indent=2, ensure_ascii=False)
            os.chmod(self.settings_file, 0o600)
        finally:
            os.umask(old_umask)

    def reload(self):
        """Re-read the document from disk."""
        self._load()

    def all(self) -> dict[str, Any]:
        """Shallow copy of the whole document."""
        return dict(self._settings)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value."""
        return self._settings.get(key, default)

    def set(self, key: str, value: Any):
        """Set a setting value."""
        self._settings[key] = value
        self._save()

    def replace(self, values: dict[str, Any]):
        """Replace the whole document."""
        self._settings = dict(values)
        self._save()

    def delete(self, key: str):
        """Delete a setting."""
        if key in self._settings:
            del self._settings[key]
            self._save()
