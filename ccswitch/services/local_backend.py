"""
Local file-backed ConfigBackend.

WORKFLOW OVERVIEW:
==================
Paths (home is CCSWITCH_HOME or the user's home):

    ~/.cc-switch/app_paths.json              app config dir override
    <app config dir>/settings.json           settings record
    <app config dir>/config.json             providers per target
    <claude dir>/settings.json               live Claude config
    <codex dir>/auth.json, config.toml       live Codex config
    ~/.claude/config.json                    plugin integration artifact

The app config dir is resolved once at construction: a changed override only
takes effect after a restart.

MODE SWITCH:
- proxy: both targets are pointed at the local proxy with a fixed token.
  The Claude common snippet (JSON) is merged in without touching the two
  proxy env keys; the Codex common snippet (TOML) is appended to the
  generated provider table.
- write: each target gets the current provider's config back, or the
  first provider in display order when none is current.
"""

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from PyQt6.QtCore import QCoreApplication, QProcess
from PyQt6.QtWidgets import QFileDialog, QWidget

from ..errors import PersistenceError, RestartError
from ..models.providers import AppType, Provider, SortOrderUpdate
from ..models.settings import OperationMode, Settings, normalize_dir
from ..models.usage import UsageResult
from ..utils.log import log_with_timestamp
from ..utils.settings import SettingsManager, expand_home, home_dir
from .backend import ConfigBackend
from .ordering import sort_providers
from .provider_store import ProviderStore
from .usage_script import ExtractorSandbox, UsageScriptRunner

APP_CONFIG_DIR_KEY = "app_config_dir_override"

PROXY_URL = "http://127.0.0.1:12857"
PROXY_TOKEN = "ccswitch-proxymode-token"
PROXY_ENV_KEYS = ("ANTHROPIC_AUTH_TOKEN", "ANTHROPIC_BASE_URL")

PLUGIN_CONFIG_KEY = "primaryApiKey"
PLUGIN_CONFIG_VALUE = "any"

CODEX_PROXY_TEMPLATE = """model_provider = "ccswitch"

[model_providers.ccswitch]
base_url = "{base_url}"
name = "ccswitch"
requires_openai_auth = true
wire_api = "responses"
"""


def _write_json_file(path: Path, data: Any):
    """Write JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def _write_text_file(path: Path, content: str):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


def build_claude_proxy_config(common_config: Optional[str]) -> Dict[str, Any]:
    """Claude settings.json content for proxy mode."""
    config: Dict[str, Any] = {
        "env": {
            "ANTHROPIC_AUTH_TOKEN": PROXY_TOKEN,
            "ANTHROPIC_BASE_URL": PROXY_URL,
        }
    }
    if not common_config:
        return config

    try:
        common = json.loads(common_config)
    except ValueError as e:
        log_with_timestamp(f"Ignoring invalid Claude common config: {e}", "[LocalBackend]")
        return config
    if not isinstance(common, dict):
        return config

    for key, value in common.items():
        if key == "env":
            if isinstance(value, dict):
                for env_key, env_value in value.items():
                    if env_key not in PROXY_ENV_KEYS:
                        config["env"][env_key] = env_value
        else:
            config[key] = value
    return config


def build_codex_proxy_config(common_config: Optional[str]) -> str:
    """Codex config.toml content for proxy mode."""
    content = CODEX_PROXY_TEMPLATE.format(base_url=PROXY_URL)
    if common_config:
        content += f"\n{common_config}"
    return content


class LocalConfigBackend(ConfigBackend):
    """ConfigBackend over local JSON/TOML files and Qt dialogs."""

    def __init__(
        self,
        home: Optional[Path] = None,
        sandbox: Optional[ExtractorSandbox] = None,
        on_menu_refresh: Optional[Callable[[], None]] = None,
        parent: Optional[QWidget] = None,
    ):
        """
        Initialize the backend.

        Args:
            home: Home directory for default paths (defaults to home_dir())
            sandbox: JavaScript evaluator for usage scripts
            on_menu_refresh: Called to rebuild the tray menu
            parent: Parent widget for the directory picker
        """
        self.home = Path(home) if home else home_dir()
        self.app_paths = SettingsManager(self.home / ".cc-switch" / "app_paths.json")
        self.app_config_dir = self._resolve_app_config_dir()
        self.settings_store = SettingsManager(self.app_config_dir / "settings.json")
        self.provider_store = ProviderStore(self.app_config_dir / "config.json")
        self.runner = UsageScriptRunner(sandbox)
        self._on_menu_refresh = on_menu_refresh
        self._parent = parent

    def _resolve_app_config_dir(self) -> Path:
        override = normalize_dir(self.app_paths.get(APP_CONFIG_DIR_KEY))
        if override:
            path = expand_home(override, self.home)
            if path.exists():
                return path
            log_with_timestamp(f"App config dir override {path} does not exist, using default", "[LocalBackend]")
        return self.home / ".cc-switch"

    # MARK: - Settings

    async def get_settings(self) -> Dict[str, Any]:
        self.settings_store.reload()
        return self.settings_store.all()

    async def save_settings(self, settings: Settings) -> None:
        try:
            self.settings_store.replace(settings.to_dict())
        except OSError as e:
            raise PersistenceError(f"Could not save settings: {e}") from e
        log_with_timestamp("Settings saved", "[LocalBackend]")

    async def get_app_config_dir_override(self) -> Optional[str]:
        self.app_paths.reload()
        return normalize_dir(self.app_paths.get(APP_CONFIG_DIR_KEY))

    async def set_app_config_dir_override(self, path: Optional[str]) -> None:
        value = normalize_dir(path)
        try:
            if value is None:
                self.app_paths.delete(APP_CONFIG_DIR_KEY)
            else:
                self.app_paths.set(APP_CONFIG_DIR_KEY, value)
        except OSError as e:
            raise PersistenceError(f"Could not save app config dir override: {e}") from e

    # MARK: - Paths

    def config_dir(self, app_type: AppType) -> Path:
        """Effective config directory of a target."""
        app_type = AppType(app_type)
        field = "claudeConfigDir" if app_type == AppType.CLAUDE else "codexConfigDir"
        override = normalize_dir(self.settings_store.get(field))
        if override:
            return expand_home(override, self.home)
        return self.home / app_type.config_dir_name

    async def get_resolved_config_dir(self, app_type: AppType) -> str:
        self.settings_store.reload()
        return str(self.config_dir(app_type))

    async def select_directory(self, seed: str) -> str:
        selected = QFileDialog.getExistingDirectory(self._parent, "Select Directory", seed)
        return selected or ""

    # MARK: - Side effects

    async def apply_claude_plugin_config(self, enabled: bool) -> None:
        manager = SettingsManager(self.home / ".claude" / "config.json")
        try:
            if enabled:
                if manager.get(PLUGIN_CONFIG_KEY) != PLUGIN_CONFIG_VALUE:
                    manager.set(PLUGIN_CONFIG_KEY, PLUGIN_CONFIG_VALUE)
            else:
                manager.delete(PLUGIN_CONFIG_KEY)
        except OSError as e:
            raise PersistenceError(f"Could not update Claude plugin config: {e}") from e

    async def notify_mode_change(
        self,
        mode: OperationMode,
        claude_common_config: Optional[str] = None,
        codex_common_config: Optional[str] = None,
    ) -> None:
        mode = OperationMode(mode)
        log_with_timestamp(f"Switching to {mode.display_name}", "[LocalBackend]")
        try:
            if mode == OperationMode.PROXY:
                self._write_proxy_mode(claude_common_config, codex_common_config)
            else:
                self._write_live_mode()
        except OSError as e:
            raise PersistenceError(f"Could not rewrite live config: {e}") from e

    def _write_proxy_mode(self, claude_common_config: Optional[str], codex_common_config: Optional[str]):
        claude_dir = self.config_dir(AppType.CLAUDE)
        _write_json_file(claude_dir / "settings.json", build_claude_proxy_config(claude_common_config))

        codex_dir = self.config_dir(AppType.CODEX)
        _write_json_file(codex_dir / "auth.json", {"OPENAI_API_KEY": PROXY_TOKEN})
        _write_text_file(codex_dir / "config.toml", build_codex_proxy_config(codex_common_config))

    def _write_live_mode(self):
        for app_type in AppType:
            provider = self._live_provider(app_type)
            if provider is None:
                log_with_timestamp(f"No {app_type.display_name} provider to restore", "[LocalBackend]")
                continue

            config = provider.settings_config.model_dump(mode="json")
            target_dir = self.config_dir(app_type)
            if app_type == AppType.CLAUDE:
                _write_json_file(target_dir / "settings.json", config)
            else:
                _write_json_file(target_dir / "auth.json", config.get("auth", {}))
                _write_text_file(target_dir / "config.toml", config.get("config", ""))

    def _live_provider(self, app_type: AppType) -> Optional[Provider]:
        """Current provider, or the first in display order (which then becomes current)."""
        providers = self.provider_store.load(app_type)
        current = self.provider_store.current_id(app_type)
        if current and current in providers:
            return providers[current]
        if not providers:
            return None
        first = sort_providers(providers.values())[0]
        self.provider_store.set_current(first.id, app_type)
        return first

    async def refresh_external_menu(self) -> None:
        if self._on_menu_refresh:
            self._on_menu_refresh()

    # MARK: - Providers

    async def get_providers(self, app_type: AppType) -> Tuple[Dict[str, Provider], str]:
        return self.provider_store.load(app_type), self.provider_store.current_id(app_type)

    async def persist_sort_order(self, updates: List[SortOrderUpdate], app_type: AppType) -> None:
        try:
            self.provider_store.update_sort_order(updates, app_type)
        except (KeyError, OSError) as e:
            raise PersistenceError(f"Could not save sort order: {e}") from e

    async def persist_provider(self, provider: Provider, app_type: AppType) -> None:
        try:
            self.provider_store.update_provider(provider, app_type)
        except OSError as e:
            raise PersistenceError(f"Could not save provider {provider.id}: {e}") from e

    # MARK: - Usage

    async def query_usage(self, provider_id: str, app_type: AppType) -> UsageResult:
        provider = self.provider_store.get_provider(provider_id, app_type)
        if provider is None:
            return UsageResult.failure(f"Provider not found: {provider_id}")
        return await self.runner.run(provider)

    # MARK: - Process

    async def restart_process(self) -> None:
        result = QProcess.startDetached(sys.executable, sys.argv)
        started = result[0] if isinstance(result, tuple) else bool(result)
        if not started:
            raise RestartError("Could not start a new application process")
        log_with_timestamp("Restarting application", "[LocalBackend]")
        QCoreApplication.quit()
