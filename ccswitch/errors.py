"""Error taxonomy and the best-effort side effect channel.

No failure leaves a view model uncaught. Persistence and restart failures are
logged and reported, query failures are rendered per provider, and
fire-and-forget steps (plugin artifact, mode-switch notification, menu
refresh) report through SideEffectResult instead of raising.
"""

from dataclasses import dataclass
from typing import Awaitable, List, Optional

from .utils.log import log_with_timestamp


class CCSwitchError(Exception):
    """Base class for orchestration errors."""


class ScriptValidationError(CCSwitchError):
    """A usage script failed local validation; blocks persisting it."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid usage script")


class PersistenceError(CCSwitchError):
    """Settings, override, provider or sort order could not be saved."""


class QueryError(CCSwitchError):
    """A usage query could not produce a result."""


class RestartError(CCSwitchError):
    """The process restart could not be performed."""


@dataclass
class SideEffectResult:
    """Outcome of one best-effort step."""
    name: str
    ok: bool
    error: Optional[str] = None


async def run_side_effect(name: str, awaitable: Awaitable, prefix: str = "") -> SideEffectResult:
    """Await a best-effort step; log and report failures instead of raising."""
    try:
        await awaitable
    except Exception as e:
        log_with_timestamp(f"{name} failed (ignored): {e}", prefix)
        return SideEffectResult(name=name, ok=False, error=str(e))
    return SideEffectResult(name=name, ok=True)
