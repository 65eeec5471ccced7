"""Services layer for cc-switch."""

from .backend import ConfigBackend
from .directories import DirectoryKind, DirectoryEntry, DirectoryOverrideResolver
from .ordering import compare_providers, sort_providers, reorder
from .usage_script import (
    PRESET_TEMPLATES,
    ExtractorSandbox,
    UsageScriptRunner,
    default_usage_script,
    ensure_valid_usage_script,
    normalize_usage_payload,
    render_script,
    summarize_usage_result,
    validate_usage_script,
)
from .provider_store import ProviderStore
from .local_backend import LocalConfigBackend

__all__ = [
    "ConfigBackend",
    "DirectoryKind",
    "DirectoryEntry",
    "DirectoryOverrideResolver",
    "compare_providers",
    "sort_providers",
    "reorder",
    "PRESET_TEMPLATES",
    "ExtractorSandbox",
    "UsageScriptRunner",
    "default_usage_script",
    "ensure_valid_usage_script",
    "normalize_usage_payload",
    "render_script",
    "summarize_usage_result",
    "validate_usage_script",
    "ProviderStore",
    "LocalConfigBackend",
]
