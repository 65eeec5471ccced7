"""
Backend boundary.

WORKFLOW OVERVIEW:
==================
Every external effect of the orchestration layer goes through one
ConfigBackend. View models never touch files, dialogs or processes
directly; they await backend calls and translate failures into logged
messages and safe render states.

CALLS:
- Settings store:            get_settings / save_settings
- Directory override store:  get_app_config_dir_override / set_app_config_dir_override
- Path resolution:           get_resolved_config_dir, select_directory
- Side effects:              apply_claude_plugin_config, notify_mode_change,
                             refresh_external_menu, restart_process
- Providers:                 get_providers, persist_sort_order, persist_provider
- Usage:                     query_usage

LocalConfigBackend (local_backend.py) implements all of them on local files.
Tests use an in-memory fake.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..models.providers import AppType, Provider, SortOrderUpdate
from ..models.settings import OperationMode, Settings
from ..models.usage import UsageResult


class ConfigBackend(ABC):
    """Asynchronous boundary to persisted stores and the host process."""

    @abstractmethod
    async def get_settings(self) -> Mapping[str, Any]:
        """Stored settings record; may be partial or use legacy keys."""

    @abstractmethod
    async def save_settings(self, settings: Settings) -> None:
        """Persist the settings record."""

    @abstractmethod
    async def get_app_config_dir_override(self) -> Optional[str]:
        """Stored app config directory override, or None."""

    @abstractmethod
    async def set_app_config_dir_override(self, path: Optional[str]) -> None:
        """Store a trimmed override; None or blank clears it."""

    @abstractmethod
    async def get_resolved_config_dir(self, app_type: AppType) -> str:
        """Effective config directory of a target."""

    @abstractmethod
    async def select_directory(self, seed: str) -> str:
        """Let the user pick a directory; empty string when cancelled."""

    @abstractmethod
    async def apply_claude_plugin_config(self, enabled: bool) -> None:
        """Write (enabled) or remove (disabled) the plugin integration artifact. Idempotent."""

    @abstractmethod
    async def notify_mode_change(
        self,
        mode: OperationMode,
        claude_common_config: Optional[str] = None,
        codex_common_config: Optional[str] = None,
    ) -> None:
        """Rewrite live target config for a new operation mode."""

    @abstractmethod
    async def get_providers(self, app_type: AppType) -> Tuple[Dict[str, Provider], str]:
        """Providers by id and the id of the current provider."""

    @abstractmethod
    async def persist_sort_order(self, updates: List[SortOrderUpdate], app_type: AppType) -> None:
        """Persist a full reorder batch in one call."""

    @abstractmethod
    async def persist_provider(self, provider: Provider, app_type: AppType) -> None:
        """Persist one provider."""

    @abstractmethod
    async def refresh_external_menu(self) -> None:
        """Rebuild the tray menu."""

    @abstractmethod
    async def query_usage(self, provider_id: str, app_type: AppType) -> UsageResult:
        """Run the provider's stored usage script and return its result."""

    @abstractmethod
    async def restart_process(self) -> None:
        """Restart the application process. Raises RestartError on failure."""
