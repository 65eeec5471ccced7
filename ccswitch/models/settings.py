"""Application settings models.

Stored settings are partial and may carry legacy key names. Each field is
filled by exactly one resolver below, in this order:

    show_in_tray                      showInTray -> showInDock -> True
    minimize_to_tray_on_close         minimizeToTrayOnClose -> minimize_to_tray_on_close -> True
    enable_claude_plugin_integration  enableClaudePluginIntegration (bool) -> False
    claude_config_dir / codex_config_dir   non-blank string -> None
    language                          language (str) -> cached preference -> "zh"
    operation_mode                    "proxy" -> PROXY, anything else -> WRITE
    proxy_retry_count                 integer >= 0 -> 1
    custom_endpoints_claude / _codex  valid entries of the stored mapping -> None
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..utils.log import log_with_timestamp
from .providers import CustomEndpoint

DEFAULT_PROXY_RETRY_COUNT = 1


class OperationMode(str, Enum):
    """Global switch between writing target config and routing through the local proxy."""

    WRITE = "write"  # Write provider config into target files
    PROXY = "proxy"  # Point targets at the local proxy

    @property
    def display_name(self) -> str:
        """Display name for the mode."""
        return {
            self.WRITE: "Write Mode",
            self.PROXY: "Proxy Mode",
        }[self]

    @property
    def description(self) -> str:
        """Description of the mode."""
        return {
            self.WRITE: "Write the current provider into each target's config files",
            self.PROXY: "Route targets through the local proxy across enabled providers",
        }[self]


class Language(str, Enum):
    """Supported display languages."""

    ZH = "zh"
    EN = "en"

    @property
    def collation_locale(self) -> str:
        """Locale used for name ordering."""
        return "zh_CN" if self == self.ZH else "en_US"


def normalize_language(value: Any) -> Language:
    """'en' stays English; anything else is Chinese."""
    return Language.EN if value in ("en", Language.EN) else Language.ZH


def normalize_dir(value: Optional[str]) -> Optional[str]:
    """Trimmed directory text, or None when blank."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def resolve_show_in_tray(raw: Mapping[str, Any]) -> bool:
    for key in ("showInTray", "showInDock"):
        if isinstance(raw.get(key), bool):
            return raw[key]
    return True


def resolve_minimize_to_tray(raw: Mapping[str, Any]) -> bool:
    for key in ("minimizeToTrayOnClose", "minimize_to_tray_on_close"):
        if isinstance(raw.get(key), bool):
            return raw[key]
    return True


def resolve_plugin_integration(raw: Mapping[str, Any]) -> bool:
    value = raw.get("enableClaudePluginIntegration")
    return value if isinstance(value, bool) else False


def resolve_config_dir(raw: Mapping[str, Any], key: str) -> Optional[str]:
    return normalize_dir(raw.get(key))


def resolve_language(raw: Mapping[str, Any], cached: Optional[str] = None) -> Language:
    value = raw.get("language")
    if isinstance(value, str):
        return normalize_language(value)
    if cached in ("en", "zh"):
        return Language(cached)
    return Language.ZH


def resolve_operation_mode(raw: Mapping[str, Any]) -> OperationMode:
    return OperationMode.PROXY if raw.get("operationMode") == "proxy" else OperationMode.WRITE


def resolve_proxy_retry_count(raw: Mapping[str, Any]) -> int:
    value = raw.get("proxyRetryCount")
    # bool is an int subclass
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return DEFAULT_PROXY_RETRY_COUNT


def resolve_custom_endpoints(raw: Mapping[str, Any], key: str) -> Optional[Dict[str, CustomEndpoint]]:
    """Valid endpoint entries keyed by URL; malformed ones are dropped."""
    value = raw.get(key)
    if not isinstance(value, dict):
        return None
    endpoints = {}
    for url, entry in value.items():
        try:
            endpoints[url] = CustomEndpoint.model_validate(entry)
        except ValidationError as e:
            log_with_timestamp(f"Dropping malformed {key} entry {url!r}: {e.errors()[0]['msg']}", "[Settings]")
    return endpoints


class Settings(BaseModel):
    """Global application settings (the app config directory override lives elsewhere)."""
    model_config = ConfigDict(populate_by_name=True)

    show_in_tray: bool = Field(True, alias="showInTray")
    minimize_to_tray_on_close: bool = Field(True, alias="minimizeToTrayOnClose")
    enable_claude_plugin_integration: bool = Field(False, alias="enableClaudePluginIntegration")
    claude_config_dir: Optional[str] = Field(None, alias="claudeConfigDir")
    codex_config_dir: Optional[str] = Field(None, alias="codexConfigDir")
    language: Language = Language.ZH
    operation_mode: OperationMode = Field(OperationMode.WRITE, alias="operationMode")
    proxy_retry_count: int = Field(DEFAULT_PROXY_RETRY_COUNT, alias="proxyRetryCount", ge=0)
    custom_endpoints_claude: Optional[Dict[str, CustomEndpoint]] = Field(None, alias="customEndpointsClaude")
    custom_endpoints_codex: Optional[Dict[str, CustomEndpoint]] = Field(None, alias="customEndpointsCodex")

    @field_validator("claude_config_dir", "codex_config_dir")
    @classmethod
    def _trim_dir(cls, value: Optional[str]) -> Optional[str]:
        return normalize_dir(value)

    @classmethod
    def from_raw(cls, raw: Optional[Mapping[str, Any]], cached_language: Optional[str] = None) -> "Settings":
        """Build settings from a partial stored record."""
        raw = raw if isinstance(raw, Mapping) else {}
        return cls.model_validate({
            "showInTray": resolve_show_in_tray(raw),
            "minimizeToTrayOnClose": resolve_minimize_to_tray(raw),
            "enableClaudePluginIntegration": resolve_plugin_integration(raw),
            "claudeConfigDir": resolve_config_dir(raw, "claudeConfigDir"),
            "codexConfigDir": resolve_config_dir(raw, "codexConfigDir"),
            "language": resolve_language(raw, cached_language),
            "operationMode": resolve_operation_mode(raw),
            "proxyRetryCount": resolve_proxy_retry_count(raw),
            "customEndpointsClaude": resolve_custom_endpoints(raw, "customEndpointsClaude"),
            "customEndpointsCodex": resolve_custom_endpoints(raw, "customEndpointsCodex"),
        })

    def to_dict(self) -> dict:
        """Convert to the persisted camelCase record."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
