"""
ProviderListViewModel - provider list of one target.

WORKFLOW OVERVIEW:
==================
1. Load:
   - Fetches providers and the current id for the target
   - Keeps them in display order (services/ordering.py)

2. Drag reorder:
   - Moves one provider and renumbers all of them 0..N-1
   - A drag while the previous order is still being saved is dropped
   - Persists the whole batch in one call
   - On success refreshes the tray menu and tells the list listener
   - On failure logs, notifies, and puts the previous order back

3. Usage scripts:
   - save_usage_script validates locally, then persists the provider
   - test_usage_script runs the stored script once and summarises the result
   - Each provider card gets its own UsageFooterViewModel
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from ..errors import run_side_effect
from ..models.providers import AppType, Provider
from ..models.settings import Language
from ..models.usage import UsageResult, UsageScript
from ..services.backend import ConfigBackend
from ..services.ordering import reorder, sort_providers
from ..services.usage_script import summarize_usage_result, validate_usage_script
from ..utils.log import log_with_timestamp
from .usage_viewmodel import UsageFooterViewModel

LOG_PREFIX = "[ProviderList]"
NOT_CONFIGURED = "Not configured"


@dataclass
class ProviderListViewModel:
    """View model for the provider list of one target."""

    backend: ConfigBackend
    app_type: AppType = AppType.CLAUDE
    language: Language = Language.ZH

    on_notify: Optional[Callable[[str, str], None]] = None  # (message, level)
    on_providers_updated: Optional[Callable[[], Awaitable[None]]] = None

    providers: Dict[str, Provider] = field(default_factory=dict)
    current_id: str = ""
    sorted_providers: List[Provider] = field(default_factory=list)
    is_loading: bool = False
    is_saving_order: bool = False
    error_message: Optional[str] = None

    _footers: Dict[str, UsageFooterViewModel] = field(default_factory=dict, init=False, repr=False)
    _update_callbacks: List[Callable] = field(default_factory=list, init=False, repr=False)

    def register_update_callback(self, callback: Callable):
        """Register a callback to be called when the list changes."""
        if callback not in self._update_callbacks:
            self._update_callbacks.append(callback)

    def unregister_update_callback(self, callback: Callable):
        """Unregister an update callback."""
        if callback in self._update_callbacks:
            self._update_callbacks.remove(callback)

    def _notify_update(self):
        for callback in list(self._update_callbacks):
            try:
                callback()
            except Exception as e:
                log_with_timestamp(f"Update callback failed: {e}", LOG_PREFIX)

    def _notify(self, message: str, level: str):
        if self.on_notify:
            self.on_notify(message, level)

    # MARK: - Loading

    async def load(self):
        """Load providers of the target and put them in display order."""
        self.is_loading = True
        try:
            providers, current_id = await self.backend.get_providers(self.app_type)
        except Exception as e:
            log_with_timestamp(f"Failed to load providers: {e}", LOG_PREFIX)
            self.error_message = f"Failed to load providers: {e}"
            return
        finally:
            self.is_loading = False

        self.providers = dict(providers)
        self.current_id = current_id
        self.error_message = None
        self._resort()

        # Footers of providers that no longer exist
        for provider_id in list(self._footers):
            if provider_id not in self.providers:
                del self._footers[provider_id]
        self._notify_update()

    def set_language(self, language: Language):
        """Re-sort for a new display language."""
        self.language = Language(language)
        self._resort()
        self._notify_update()

    def _resort(self):
        self.sorted_providers = sort_providers(self.providers.values(), self.language)

    def is_current(self, provider_id: str) -> bool:
        return provider_id == self.current_id

    def api_url(self, provider: Provider) -> str:
        """API address shown on the card."""
        return provider.settings_config.api_url or NOT_CONFIGURED

    # MARK: - Reorder

    async def reorder(self, source: int, destination: int) -> bool:
        """Apply a drag from one display position to another. Returns True when persisted."""
        if self.is_saving_order:
            log_with_timestamp("Sort order save in flight, drag dropped", LOG_PREFIX)
            return False

        result = reorder(self.sorted_providers, source, destination)
        if result is None:
            return False
        reindexed, updates = result

        previous_sorted = list(self.sorted_providers)
        previous_providers = dict(self.providers)

        self.sorted_providers = reindexed
        self.providers = {provider.id: provider for provider in reindexed}
        self.is_saving_order = True
        self._notify_update()

        try:
            await self.backend.persist_sort_order(updates, self.app_type)
        except Exception as e:
            log_with_timestamp(f"Failed to update sort order: {e}", LOG_PREFIX)
            self.sorted_providers = previous_sorted
            self.providers = previous_providers
            self._notify("Failed to update sort order", "error")
            self._notify_update()
            return False
        finally:
            self.is_saving_order = False

        await run_side_effect("refresh_external_menu", self.backend.refresh_external_menu(), LOG_PREFIX)
        if self.on_providers_updated:
            await run_side_effect("providers_updated", self.on_providers_updated(), LOG_PREFIX)
        return True

    async def reorder_by_id(self, active_id: str, over_id: Optional[str]) -> bool:
        """Drag end by provider ids (over_id is None when dropped outside the list)."""
        if over_id is None or active_id == over_id:
            return False
        ids = [provider.id for provider in self.sorted_providers]
        if active_id not in ids or over_id not in ids:
            return False
        return await self.reorder(ids.index(active_id), ids.index(over_id))

    # MARK: - Usage scripts

    async def save_usage_script(self, provider_id: str, script: UsageScript) -> List[str]:
        """Validate and persist a usage script. Returns errors (empty when saved)."""
        errors = validate_usage_script(script)
        if errors:
            self._notify(errors[0], "error")
            return errors

        provider = self.providers.get(provider_id)
        if provider is None:
            return [f"Provider not found: {provider_id}"]

        updated = provider.with_usage_script(script)
        try:
            await self.backend.persist_provider(updated, self.app_type)
        except Exception as e:
            log_with_timestamp(f"Failed to save usage script for {provider_id}: {e}", LOG_PREFIX)
            self._notify("Failed to save usage script", "error")
            return [f"Failed to save usage script: {e}"]

        self.providers[provider_id] = updated
        self.sorted_providers = [updated if p.id == provider_id else p for p in self.sorted_providers]
        self._notify("Usage query settings saved", "success")
        self._notify_update()

        if self.on_providers_updated:
            await run_side_effect("providers_updated", self.on_providers_updated(), LOG_PREFIX)
        await self.footer(provider_id).sync(provider_id, self.app_type, updated.usage_enabled)
        return []

    async def test_usage_script(self, provider_id: str) -> Tuple[bool, str]:
        """Run the stored script once and report a one-line summary."""
        try:
            result = await self.backend.query_usage(provider_id, self.app_type)
        except Exception as e:
            log_with_timestamp(f"Usage test failed for {provider_id}: {e}", LOG_PREFIX)
            result = UsageResult.failure(str(e))

        ok, message = summarize_usage_result(result)
        self._notify(message, "success" if ok else "error")
        return ok, message

    # MARK: - Usage footers

    def footer(self, provider_id: str) -> UsageFooterViewModel:
        """Usage footer of one provider card (created on first use)."""
        footer = self._footers.get(provider_id)
        if footer is None:
            footer = UsageFooterViewModel(backend=self.backend, provider_id=provider_id, app_type=self.app_type)
            self._footers[provider_id] = footer
        return footer

    async def sync_footers(self):
        """Evaluate every card's footer; each decides on its own whether to query."""
        await asyncio.gather(*[
            self.footer(provider.id).sync(provider.id, self.app_type, provider.usage_enabled)
            for provider in self.sorted_providers
        ])
