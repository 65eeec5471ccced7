"""Data models for cc-switch."""

from .providers import (
    AppType,
    ProviderCategory,
    ClaudeProviderConfig,
    CodexProviderConfig,
    ProviderConfig,
    CustomEndpoint,
    ProviderMeta,
    Provider,
    SortOrderUpdate,
)
from .settings import OperationMode, Language, Settings, normalize_dir, normalize_language
from .usage import UsageScript, UsageRequest, UsageData, UsageResult

__all__ = [
    "AppType",
    "ProviderCategory",
    "ClaudeProviderConfig",
    "CodexProviderConfig",
    "ProviderConfig",
    "CustomEndpoint",
    "ProviderMeta",
    "Provider",
    "SortOrderUpdate",
    "OperationMode",
    "Language",
    "Settings",
    "normalize_dir",
    "normalize_language",
    "UsageScript",
    "UsageRequest",
    "UsageData",
    "UsageResult",
]
