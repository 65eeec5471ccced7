"""Provider models."""

import re
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field

from ..errors import QueryError
from .usage import UsageScript


class AppType(str, Enum):
    """Supported external integration targets."""

    CLAUDE = "claude"
    CODEX = "codex"

    @property
    def display_name(self) -> str:
        """Human-readable display name."""
        return {
            self.CLAUDE: "Claude Code",
            self.CODEX: "Codex",
        }[self]

    @property
    def config_dir_name(self) -> str:
        """Directory under the home directory holding the target's config."""
        return {
            self.CLAUDE: ".claude",
            self.CODEX: ".codex",
        }[self]


class ProviderCategory(str, Enum):
    """Provider category."""

    OFFICIAL = "official"
    CN_OFFICIAL = "cn_official"
    AGGREGATOR = "aggregator"
    THIRD_PARTY = "third_party"
    CUSTOM = "custom"


# base_url = "..." or base_url = '...' inside Codex TOML text
_BASE_URL_PATTERN = re.compile(r"""base_url\s*=\s*(['"])([^'"]+)\1""")


class ClaudeProviderConfig(BaseModel):
    """Claude Code settings.json content for one provider."""
    model_config = ConfigDict(extra="allow")
    app_type: ClassVar[AppType] = AppType.CLAUDE

    env: Dict[str, Any] = Field(default_factory=dict)

    @property
    def api_url(self) -> Optional[str]:
        """Configured API base URL, if any."""
        value = self.env.get("ANTHROPIC_BASE_URL")
        return value if isinstance(value, str) and value else None

    def credentials(self) -> Tuple[str, str]:
        """(api_key, base_url) used by usage scripts."""
        api_key = self.env.get("ANTHROPIC_AUTH_TOKEN")
        if not isinstance(api_key, str) or not api_key:
            raise QueryError("Missing ANTHROPIC_AUTH_TOKEN")
        base_url = self.api_url
        if not base_url:
            raise QueryError("Missing ANTHROPIC_BASE_URL")
        return api_key, base_url


class CodexProviderConfig(BaseModel):
    """Codex auth.json and config.toml content for one provider."""
    model_config = ConfigDict(extra="allow")
    app_type: ClassVar[AppType] = AppType.CODEX

    auth: Dict[str, Any] = Field(default_factory=dict)
    config: str = ""

    @property
    def api_url(self) -> Optional[str]:
        """base_url parsed from the TOML text, if any."""
        match = _BASE_URL_PATTERN.search(self.config)
        return match.group(2) if match else None

    def credentials(self) -> Tuple[str, str]:
        """(api_key, base_url) used by usage scripts."""
        api_key = self.auth.get("OPENAI_API_KEY")
        if not isinstance(api_key, str) or not api_key:
            raise QueryError("Missing OPENAI_API_KEY")
        if "base_url" not in self.config:
            raise QueryError("config.toml has no base_url")
        base_url = self.api_url
        if not base_url:
            raise QueryError("base_url in config.toml is malformed")
        return api_key, base_url


ProviderConfig = Union[ClaudeProviderConfig, CodexProviderConfig]

CONFIG_TYPES = {
    AppType.CLAUDE: ClaudeProviderConfig,
    AppType.CODEX: CodexProviderConfig,
}


class CustomEndpoint(BaseModel):
    """A user-added endpoint, keyed by URL in provider meta."""
    model_config = ConfigDict(populate_by_name=True)

    url: str
    added_at: int = Field(0, alias="addedAt")
    last_used: Optional[int] = Field(None, alias="lastUsed")


class ProviderMeta(BaseModel):
    """Provider metadata kept out of the live target config."""
    custom_endpoints: Dict[str, CustomEndpoint] = Field(default_factory=dict)
    usage_script: Optional[UsageScript] = None


class Provider(BaseModel):
    """A named credential/config set for one target.

    Build from stored data with `Provider.from_dict(data, app_type)`: the
    target decides which config variant `settings_config` holds.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    settings_config: ProviderConfig = Field(alias="settingsConfig")
    website_url: Optional[str] = Field(None, alias="websiteUrl")
    category: Optional[ProviderCategory] = None
    created_at: Optional[int] = Field(None, alias="createdAt")  # epoch milliseconds
    sort_index: Optional[int] = Field(None, alias="sortIndex")
    meta: Optional[ProviderMeta] = None
    proxy_enabled: Optional[bool] = Field(None, alias="proxyEnabled")

    @classmethod
    def from_dict(cls, data: dict, app_type: AppType) -> "Provider":
        """Create from stored dictionary."""
        payload = dict(data)
        raw_config = payload.pop("settingsConfig", None)
        if raw_config is None:
            raw_config = payload.pop("settings_config", None)
        config = CONFIG_TYPES[AppType(app_type)].model_validate(raw_config or {})
        payload["settingsConfig"] = config
        return cls.model_validate(payload)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    @property
    def usage_script(self) -> Optional[UsageScript]:
        """Configured usage script, if any."""
        return self.meta.usage_script if self.meta else None

    @property
    def usage_enabled(self) -> bool:
        """Whether usage queries are enabled for this provider."""
        script = self.usage_script
        return bool(script and script.enabled)

    def with_usage_script(self, script: UsageScript) -> "Provider":
        """Copy of this provider carrying a new usage script."""
        meta = (self.meta or ProviderMeta()).model_copy(update={"usage_script": script})
        return self.model_copy(update={"meta": meta})


class SortOrderUpdate(BaseModel):
    """One (id, sortIndex) pair of a reorder batch."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    sort_index: int = Field(alias="sortIndex")

    def to_dict(self) -> dict:
        return {"id": self.id, "sortIndex": self.sort_index}
