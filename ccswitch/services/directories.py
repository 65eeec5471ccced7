"""Directory override resolution for the app and each target."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional

from ..models.providers import AppType
from ..models.settings import Settings, normalize_dir
from ..utils.log import log_with_timestamp
from ..utils.settings import home_dir
from .backend import ConfigBackend


class DirectoryKind(str, Enum):
    """Independently overridable config directories."""

    APP = "app"
    CLAUDE = "claude"
    CODEX = "codex"

    @property
    def suffix(self) -> str:
        """Directory name under home used when there is no override."""
        return {
            self.APP: ".cc-switch",
            self.CLAUDE: AppType.CLAUDE.config_dir_name,
            self.CODEX: AppType.CODEX.config_dir_name,
        }[self]

    @property
    def app_type(self) -> Optional[AppType]:
        """Target this directory belongs to (None for the app itself)."""
        if self == self.APP:
            return None
        return AppType(self.value)

    @property
    def settings_field(self) -> Optional[str]:
        """Settings field holding the override (the app override is stored apart)."""
        return {
            self.APP: None,
            self.CLAUDE: "claude_config_dir",
            self.CODEX: "codex_config_dir",
        }[self]


@dataclass
class DirectoryEntry:
    """Override and effective path of one directory."""
    override: Optional[str] = None
    resolved: str = ""


class DirectoryOverrideResolver:
    """Holds override/resolved pairs while settings are being edited.

    Browse and reset only change local state; persisting happens on save.
    """

    def __init__(self, backend: ConfigBackend, home: Optional[Callable[[], Path]] = None):
        self.backend = backend
        self._home = home or home_dir
        self.entries: Dict[DirectoryKind, DirectoryEntry] = {
            kind: DirectoryEntry(resolved=self.default_for(kind)) for kind in DirectoryKind
        }

    def default_for(self, kind: DirectoryKind) -> str:
        """Home directory joined with the kind's suffix."""
        return str(self._home() / DirectoryKind(kind).suffix)

    def override(self, kind: DirectoryKind) -> Optional[str]:
        return self.entries[DirectoryKind(kind)].override

    def resolved(self, kind: DirectoryKind) -> str:
        return self.entries[DirectoryKind(kind)].resolved

    async def load(self, app_override: Optional[str], settings: Settings):
        """Load baselines: the stored app override plus the target overrides in settings."""
        app_value = normalize_dir(app_override)
        self.entries[DirectoryKind.APP] = DirectoryEntry(
            override=app_value,
            resolved=app_value or self.default_for(DirectoryKind.APP),
        )

        for kind in (DirectoryKind.CLAUDE, DirectoryKind.CODEX):
            try:
                resolved = await self.backend.get_resolved_config_dir(kind.app_type)
            except Exception as e:
                log_with_timestamp(f"Could not resolve {kind.value} config dir: {e}", "[Directories]")
                resolved = ""
            self.entries[kind] = DirectoryEntry(
                override=normalize_dir(getattr(settings, kind.settings_field)),
                resolved=resolved or self.default_for(kind),
            )

    async def browse(self, kind: DirectoryKind) -> Optional[str]:
        """Ask the user for a directory. Returns the new override, or None if nothing changed."""
        kind = DirectoryKind(kind)
        entry = self.entries[kind]
        seed = entry.override or entry.resolved
        try:
            selected = await self.backend.select_directory(seed)
        except Exception as e:
            log_with_timestamp(f"Directory picker failed: {e}", "[Directories]")
            return None

        value = normalize_dir(selected)
        if value is None:
            return None
        entry.override = value
        entry.resolved = value
        return value

    def reset(self, kind: DirectoryKind) -> str:
        """Clear the override and return the recomputed default."""
        kind = DirectoryKind(kind)
        default = self.default_for(kind)
        self.entries[kind] = DirectoryEntry(override=None, resolved=default)
        return default
