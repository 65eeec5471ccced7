"""
SettingsViewModel - editing session for global settings.

WORKFLOW OVERVIEW:
==================
States: LOADED -> EDITING -> SAVING -> RESTART_REQUIRED | CLOSED

1. Load:
   - Reads the settings record and the app config dir override
   - Every field is resolved through the named resolvers in models/settings.py
   - Loads the three directory entries and applies the stored language

2. Edit:
   - Local draft only; the language change is previewed immediately
   - Directory browse/reset change the draft, persisted on save

3. Save (sequential, not transactional):
   1. Detect operation mode and app config dir changes
   2. Persist settings (app config dir excluded)
   3. Persist the app config dir override
   4. Apply or remove the Claude plugin artifact (every save, best-effort)
   5. If the mode changed, notify the backend with the cached common snippets
      (best-effort)
   6. Move baselines to the saved values; tell the mode listener if the mode
      changed (best-effort)
   7. RESTART_REQUIRED if the app config dir changed, else CLOSED

   A failure in steps 2-3 is logged and reported, and the session goes back
   to EDITING with the draft kept for a retry. Nothing is raised.

4. Restart:
   - restart_now() restarts the process (in a development build it only
     notifies and closes); a restart failure closes without restarting
   - restart_later() closes; the new directory applies on next launch
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from ..errors import SideEffectResult, run_side_effect
from ..models.settings import (
    Language,
    OperationMode,
    Settings,
    normalize_dir,
    normalize_language,
    resolve_language,
)
from ..services.backend import ConfigBackend
from ..services.directories import DirectoryKind, DirectoryOverrideResolver
from ..utils.log import log_with_timestamp
from ..utils.settings import (
    CLAUDE_COMMON_SNIPPET_KEY,
    CODEX_COMMON_SNIPPET_KEY,
    LANGUAGE_KEY,
    SettingsManager,
    is_dev_build,
)

LOG_PREFIX = "[Settings]"

# Draft fields editable through update(); directories and language have their own methods
EDITABLE_FIELDS = {
    "show_in_tray",
    "minimize_to_tray_on_close",
    "enable_claude_plugin_integration",
    "operation_mode",
    "proxy_retry_count",
}


class SettingsState(str, Enum):
    """Lifecycle of one settings editing session."""

    LOADED = "loaded"
    EDITING = "editing"
    SAVING = "saving"
    RESTART_REQUIRED = "restart_required"
    CLOSED = "closed"


@dataclass
class SettingsViewModel:
    """View model for the settings dialog."""

    backend: ConfigBackend
    local_cache: SettingsManager
    resolver: Optional[DirectoryOverrideResolver] = None
    restart_supported: bool = field(default_factory=lambda: not is_dev_build())

    # Hooks
    on_language_changed: Optional[Callable[[Language], None]] = None
    on_notify: Optional[Callable[[str, str], None]] = None  # (message, level)
    on_operation_mode_changed: Optional[Callable[[OperationMode], Awaitable[None]]] = None
    on_close: Optional[Callable[[], None]] = None

    # State
    state: SettingsState = SettingsState.LOADED
    draft: Settings = field(default_factory=Settings)
    baseline: Settings = field(default_factory=Settings)
    app_config_dir: Optional[str] = None
    initial_app_config_dir: Optional[str] = None
    active_language: Optional[Language] = None
    error_message: Optional[str] = None
    last_side_effects: List[SideEffectResult] = field(default_factory=list)

    def __post_init__(self):
        if self.resolver is None:
            self.resolver = DirectoryOverrideResolver(self.backend)

    # MARK: - Load

    async def load(self):
        """Load baselines from the backend."""
        cached_language = self.local_cache.get(LANGUAGE_KEY)

        try:
            raw = await self.backend.get_settings()
        except Exception as e:
            log_with_timestamp(f"Failed to load settings: {e}", LOG_PREFIX)
            raw = {}

        try:
            app_override = await self.backend.get_app_config_dir_override()
        except Exception as e:
            log_with_timestamp(f"Failed to load app config dir override: {e}", LOG_PREFIX)
            app_override = None

        try:
            settings = Settings.from_raw(raw, cached_language)
        except ValueError as e:
            log_with_timestamp(f"Stored settings are unusable, using defaults: {e}", LOG_PREFIX)
            settings = Settings(language=resolve_language({}, cached_language))
        await self.resolver.load(app_override, settings)

        self.draft = settings
        self.baseline = settings.model_copy()
        self.app_config_dir = normalize_dir(app_override)
        self.initial_app_config_dir = self.app_config_dir
        self.error_message = None
        self.last_side_effects = []
        self.state = SettingsState.LOADED
        self._apply_language(settings.language)

    # MARK: - Edit

    def update(self, **fields: Any):
        """Change draft fields.

        Raises:
            ValueError: On an unknown field or an invalid value
        """
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Not editable through update(): {', '.join(sorted(unknown))}")
        self.draft = Settings.model_validate({**self.draft.model_dump(), **fields})
        self.state = SettingsState.EDITING

    def set_language(self, language: str):
        """Change the draft language and preview it immediately."""
        language = normalize_language(language)
        self.draft = self.draft.model_copy(update={"language": language})
        self.state = SettingsState.EDITING
        self._apply_language(language)

    async def browse_directory(self, kind: DirectoryKind) -> Optional[str]:
        """Pick a directory; a non-blank choice becomes the draft override."""
        value = await self.resolver.browse(kind)
        if value is not None:
            self._set_directory(DirectoryKind(kind), value)
        return value

    def reset_directory(self, kind: DirectoryKind) -> str:
        """Clear the draft override; returns the default path now displayed."""
        default = self.resolver.reset(kind)
        self._set_directory(DirectoryKind(kind), None)
        return default

    def directory(self, kind: DirectoryKind) -> str:
        """Path displayed for a directory."""
        return self.resolver.resolved(kind)

    def _set_directory(self, kind: DirectoryKind, value: Optional[str]):
        if kind == DirectoryKind.APP:
            self.app_config_dir = value
        else:
            self.draft = self.draft.model_copy(update={kind.settings_field: value})
        self.state = SettingsState.EDITING

    # MARK: - Cancel / Save

    def cancel(self):
        """Close without saving, undoing the language preview."""
        if self.draft.language != self.baseline.language:
            self.draft = self.draft.model_copy(update={"language": self.baseline.language})
        self._apply_language(self.baseline.language)
        self._close()

    @property
    def operation_mode_changed(self) -> bool:
        return self.draft.operation_mode != self.baseline.operation_mode

    @property
    def app_config_dir_changed(self) -> bool:
        return normalize_dir(self.app_config_dir) != normalize_dir(self.initial_app_config_dir)

    async def save(self) -> SettingsState:
        """Run the save sequence and return the resulting state."""
        if self.state == SettingsState.SAVING:
            log_with_timestamp("Save already in progress", LOG_PREFIX)
            return self.state

        self.state = SettingsState.SAVING
        self.error_message = None

        # Step 1
        operation_mode_changed = self.operation_mode_changed
        app_config_dir_changed = self.app_config_dir_changed
        app_config_dir = normalize_dir(self.app_config_dir)
        payload = self.draft.model_copy(update={
            "claude_config_dir": normalize_dir(self.draft.claude_config_dir),
            "codex_config_dir": normalize_dir(self.draft.codex_config_dir),
            "language": normalize_language(self.draft.language),
        })

        # Steps 2-3
        try:
            await self.backend.save_settings(payload)
            await self.backend.set_app_config_dir_override(app_config_dir)
        except Exception as e:
            log_with_timestamp(f"Failed to save settings: {e}", LOG_PREFIX)
            self.error_message = f"Failed to save settings: {e}"
            self._notify(self.error_message, "error")
            self.state = SettingsState.EDITING
            return self.state

        # Step 4
        effects = [
            await run_side_effect(
                "apply_claude_plugin_config",
                self.backend.apply_claude_plugin_config(payload.enable_claude_plugin_integration),
                LOG_PREFIX,
            )
        ]

        # Step 5
        if operation_mode_changed:
            effects.append(
                await run_side_effect(
                    "notify_mode_change",
                    self.backend.notify_mode_change(
                        payload.operation_mode,
                        self._cached_snippet(CLAUDE_COMMON_SNIPPET_KEY),
                        self._cached_snippet(CODEX_COMMON_SNIPPET_KEY),
                    ),
                    LOG_PREFIX,
                )
            )

        # Step 6
        self.draft = payload
        self.baseline = payload.model_copy()
        self.app_config_dir = app_config_dir
        self.initial_app_config_dir = app_config_dir
        try:
            self.local_cache.set(LANGUAGE_KEY, payload.language.value)
        except OSError as e:
            log_with_timestamp(f"Failed to persist language preference: {e}", LOG_PREFIX)
        self._apply_language(payload.language)
        if operation_mode_changed and self.on_operation_mode_changed:
            effects.append(
                await run_side_effect(
                    "operation_mode_listener",
                    self.on_operation_mode_changed(payload.operation_mode),
                    LOG_PREFIX,
                )
            )
        self.last_side_effects = effects

        # Step 7
        if app_config_dir_changed:
            self.state = SettingsState.RESTART_REQUIRED
        else:
            self._close()
        return self.state

    # MARK: - Restart

    async def restart_now(self):
        """Restart to apply a new app config dir."""
        if not self.restart_supported:
            self._notify("Development build: restart the app manually to use the new config directory", "success")
            self._close()
            return

        try:
            await self.backend.restart_process()
        except Exception as e:
            log_with_timestamp(f"Restart failed: {e}", LOG_PREFIX)
            self._close()

    def restart_later(self):
        """Close; the override takes effect on next launch."""
        self._close()

    # MARK: - Helpers

    def _cached_snippet(self, key: str) -> Optional[str]:
        value = self.local_cache.get(key)
        return value if isinstance(value, str) and value else None

    def _apply_language(self, language: Language):
        if language == self.active_language:
            return
        self.active_language = language
        if self.on_language_changed:
            self.on_language_changed(language)

    def _notify(self, message: str, level: str):
        if self.on_notify:
            self.on_notify(message, level)

    def _close(self):
        self.state = SettingsState.CLOSED
        if self.on_close:
            self.on_close()
