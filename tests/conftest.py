import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from ccswitch.models.providers import AppType, Provider, SortOrderUpdate
from ccswitch.models.settings import Settings
from ccswitch.models.usage import UsageResult
from ccswitch.services.backend import ConfigBackend
from ccswitch.utils.settings import SettingsManager


class FakeBackend(ConfigBackend):
    """In-memory ConfigBackend that records every call.

    Put an exception in `failures[<method name>]` to make that call raise.
    Set `usage_gate` to an asyncio.Event to hold query_usage until it is set,
    and `sort_order_gate` to hold persist_sort_order the same way.
    """

    def __init__(
        self,
        settings: Optional[Dict[str, Any]] = None,
        app_override: Optional[str] = None,
        providers: Optional[Dict[str, Provider]] = None,
        current: str = "",
    ):
        self.settings: Dict[str, Any] = dict(settings or {})
        self.app_override = app_override
        self.resolved_dirs = {
            AppType.CLAUDE: "/home/test/.claude",
            AppType.CODEX: "/home/test/.codex",
        }
        self.selection = ""
        self.providers: Dict[AppType, Dict[str, Provider]] = {
            AppType.CLAUDE: dict(providers or {}),
            AppType.CODEX: {},
        }
        self.current = {AppType.CLAUDE: current, AppType.CODEX: ""}
        self.usage_result = UsageResult.ok([])
        self.usage_gate: Optional[asyncio.Event] = None
        self.sort_order_gate: Optional[asyncio.Event] = None
        self.failures: Dict[str, Exception] = {}
        self.calls: List[Tuple[str, tuple]] = []

    def _record(self, name: str, *args: Any):
        self.calls.append((name, args))
        if name in self.failures:
            raise self.failures[name]

    def called(self, name: str) -> List[tuple]:
        return [args for call, args in self.calls if call == name]

    @property
    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    @property
    def query_count(self) -> int:
        return len(self.called("query_usage"))

    async def get_settings(self):
        self._record("get_settings")
        return dict(self.settings)

    async def save_settings(self, settings: Settings):
        self._record("save_settings", settings)
        self.settings = settings.to_dict()

    async def get_app_config_dir_override(self):
        self._record("get_app_config_dir_override")
        return self.app_override

    async def set_app_config_dir_override(self, path):
        self._record("set_app_config_dir_override", path)
        self.app_override = path

    async def get_resolved_config_dir(self, app_type):
        self._record("get_resolved_config_dir", app_type)
        return self.resolved_dirs[AppType(app_type)]

    async def select_directory(self, seed):
        self._record("select_directory", seed)
        return self.selection

    async def apply_claude_plugin_config(self, enabled):
        self._record("apply_claude_plugin_config", enabled)

    async def notify_mode_change(self, mode, claude_common_config=None, codex_common_config=None):
        self._record("notify_mode_change", mode, claude_common_config, codex_common_config)

    async def get_providers(self, app_type):
        self._record("get_providers", app_type)
        return dict(self.providers[AppType(app_type)]), self.current[AppType(app_type)]

    async def persist_sort_order(self, updates: List[SortOrderUpdate], app_type):
        if self.sort_order_gate is not None:
            await self.sort_order_gate.wait()
        self._record("persist_sort_order", list(updates), app_type)
        stored = self.providers[AppType(app_type)]
        for update in updates:
            stored[update.id] = stored[update.id].model_copy(update={"sort_index": update.sort_index})

    async def persist_provider(self, provider: Provider, app_type):
        self._record("persist_provider", provider, app_type)
        self.providers[AppType(app_type)][provider.id] = provider

    async def refresh_external_menu(self):
        self._record("refresh_external_menu")

    async def query_usage(self, provider_id, app_type):
        self._record("query_usage", provider_id, app_type)
        if self.usage_gate is not None:
            await self.usage_gate.wait()
        return self.usage_result

    async def restart_process(self):
        self._record("restart_process")


def build_provider(
    provider_id: str,
    name: Optional[str] = None,
    sort_index: Optional[int] = None,
    created_at: Optional[int] = None,
    usage_enabled: Optional[bool] = None,
) -> Provider:
    data: Dict[str, Any] = {
        "id": provider_id,
        "name": name or provider_id,
        "settingsConfig": {
            "env": {
                "ANTHROPIC_AUTH_TOKEN": f"sk-{provider_id}",
                "ANTHROPIC_BASE_URL": f"https://{provider_id}.example.com",
            }
        },
    }
    if sort_index is not None:
        data["sortIndex"] = sort_index
    if created_at is not None:
        data["createdAt"] = created_at
    if usage_enabled is not None:
        data["meta"] = {
            "usage_script": {
                "enabled": usage_enabled,
                "language": "javascript",
                "code": "({request: {url: '{{baseUrl}}/x'}, extractor: function(r) { return {remaining: 5}; }})",
            }
        }
    return Provider.from_dict(data, AppType.CLAUDE)


@pytest.fixture
def make_provider() -> Callable[..., Provider]:
    return build_provider


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def local_cache(tmp_path: Path) -> SettingsManager:
    return SettingsManager(tmp_path / "ui_state.json")


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path

