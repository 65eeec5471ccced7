"""ViewModels for cc-switch."""

from .settings_viewmodel import SettingsViewModel, SettingsState
from .provider_list_viewmodel import ProviderListViewModel
from .usage_viewmodel import (
    UsageFooterViewModel,
    UsageFooterView,
    UsagePlanView,
    UsageTier,
)

__all__ = [
    "SettingsViewModel",
    "SettingsState",
    "ProviderListViewModel",
    "UsageFooterViewModel",
    "UsageFooterView",
    "UsagePlanView",
    "UsageTier",
]
