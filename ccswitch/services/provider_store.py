"""Provider collections persisted in config.json.

Layout:

    {
      "claude": {"providers": {"<id>": {...}}, "current": "<id>"},
      "codex":  {"providers": {...}, "current": ""}
    }
"""

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..models.providers import AppType, Provider, SortOrderUpdate
from ..utils.log import log_with_timestamp
from ..utils.settings import SettingsManager


class ProviderStore:
    """Service for reading and updating provider collections."""

    def __init__(self, path: Path):
        """Initialize the store."""
        self.settings = SettingsManager(path)

    def _section(self, app_type: AppType) -> dict:
        section = self.settings.get(AppType(app_type).value)
        if not isinstance(section, dict):
            return {"providers": {}, "current": ""}
        providers = section.get("providers")
        return {
            "providers": dict(providers) if isinstance(providers, dict) else {},
            "current": section.get("current") if isinstance(section.get("current"), str) else "",
        }

    def _write_section(self, app_type: AppType, section: dict):
        self.settings.set(AppType(app_type).value, section)

    def load(self, app_type: AppType) -> Dict[str, Provider]:
        """All valid providers of a target, keyed by id. Malformed entries are skipped."""
        self.settings.reload()
        providers: Dict[str, Provider] = {}
        for provider_id, data in self._section(app_type)["providers"].items():
            if not isinstance(data, dict):
                continue
            try:
                provider = Provider.from_dict({"id": provider_id, **data}, app_type)
            except ValidationError as e:
                log_with_timestamp(f"Skipping malformed provider {provider_id}: {e}", "[ProviderStore]")
                continue
            providers[provider.id] = provider
        return providers

    def current_id(self, app_type: AppType) -> str:
        """Id of the current provider, or empty string."""
        return self._section(app_type)["current"]

    def set_current(self, provider_id: str, app_type: AppType):
        """Mark a provider as current."""
        section = self._section(app_type)
        section["current"] = provider_id
        self._write_section(app_type, section)

    def get_provider(self, provider_id: str, app_type: AppType) -> Optional[Provider]:
        """Get a provider by ID."""
        return self.load(app_type).get(provider_id)

    def update_provider(self, provider: Provider, app_type: AppType):
        """Insert or replace one provider.

        Raises:
            OSError: If config.json cannot be written
        """
        section = self._section(app_type)
        section["providers"][provider.id] = provider.to_dict()
        self._write_section(app_type, section)

    def update_sort_order(self, updates: List[SortOrderUpdate], app_type: AppType):
        """Apply a whole reorder batch in a single write.

        Raises:
            KeyError: If an update names an unknown provider
            OSError: If config.json cannot be written
        """
        section = self._section(app_type)
        providers = section["providers"]
        missing = [u.id for u in updates if u.id not in providers]
        if missing:
            raise KeyError(f"Unknown provider(s): {', '.join(missing)}")

        for update in updates:
            entry = dict(providers[update.id])
            entry["sortIndex"] = update.sort_index
            providers[update.id] = entry
        self._write_section(app_type, section)

