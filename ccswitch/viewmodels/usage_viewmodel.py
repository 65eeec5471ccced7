"""
UsageFooterViewModel - usage display state for one provider card.

WORKFLOW OVERVIEW:
==================
Each displayed provider owns one instance; nothing here is shared between
providers, so two providers may query at the same time while one provider
never has two queries in flight.

1. Automatic fetch (sync):
   - Called whenever the card's (provider id, target, enabled) inputs are
     (re)evaluated
   - Fires only when that key differs from the last automatic firing
   - Disabling clears the remembered key and the displayed result

2. Manual refresh:
   - Always fires, unless a query is already in flight for this instance,
     in which case the request is dropped (no queueing, no cancellation)

3. Rendering (view):
   - Hidden when disabled, before the first result, or on success with no plans
   - Error line with a retry action on failure
   - One line per plan, styled EXPIRED / WARNING / NORMAL
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from ..models.providers import AppType
from ..models.usage import UsageData, UsageResult
from ..services.backend import ConfigBackend
from ..utils.log import log_with_timestamp

UNLIMITED_MARKER = "∞"
EXPIRED_LABEL = "Expired"
WARNING_RATIO = 0.1


class UsageTier(str, Enum):
    """Styling tier of one plan line."""

    EXPIRED = "expired"  # Alert styling
    WARNING = "warning"  # Running low
    NORMAL = "normal"


def format_amount(value: Optional[float]) -> Optional[str]:
    """Two-decimal text, or None when absent."""
    if value is None:
        return None
    return f"{value:.2f}"


def format_total(total: Optional[float]) -> Optional[str]:
    """Total text; -1 means unbounded."""
    if total == -1:
        return UNLIMITED_MARKER
    return format_amount(total)


def plan_tier(plan: UsageData) -> UsageTier:
    """Expired overrides everything; otherwise warn below 10% of total."""
    if plan.is_expired:
        return UsageTier.EXPIRED
    if plan.remaining is not None:
        reference = plan.total if plan.total is not None else plan.remaining
        if plan.remaining < WARNING_RATIO * reference:
            return UsageTier.WARNING
    return UsageTier.NORMAL


@dataclass
class UsagePlanView:
    """Render model of one plan line. None fields render nothing."""
    tier: UsageTier
    plan_name: Optional[str] = None
    extra: Optional[str] = None
    expired_label: Optional[str] = None
    total: Optional[str] = None
    used: Optional[str] = None
    remaining: Optional[str] = None
    unit: Optional[str] = None

    @classmethod
    def from_plan(cls, plan: UsageData) -> "UsagePlanView":
        return cls(
            tier=plan_tier(plan),
            plan_name=plan.plan_name,
            extra=plan.extra,
            expired_label=(plan.invalid_message or EXPIRED_LABEL) if plan.is_expired else None,
            total=format_total(plan.total),
            used=format_amount(plan.used),
            remaining=format_amount(plan.remaining),
            unit=plan.unit,
        )


@dataclass
class UsageFooterView:
    """Render model of the whole footer."""
    visible: bool = False
    error: Optional[str] = None
    plans: List[UsagePlanView] = field(default_factory=list)
    can_retry: bool = False
    is_loading: bool = False


def fetch_key(provider_id: str, app_type: AppType, enabled: bool) -> str:
    """Dedup key of an automatic fetch."""
    return f"{provider_id}-{AppType(app_type).value}-{str(bool(enabled)).lower()}"


@dataclass
class UsageFooterViewModel:
    """Dedup gate, in-flight guard and last result for one provider card."""

    backend: ConfigBackend
    provider_id: str = ""
    app_type: AppType = AppType.CLAUDE
    enabled: bool = False

    usage: Optional[UsageResult] = None
    is_loading: bool = False
    last_fetch_key: str = ""

    _update_callbacks: List[Callable] = field(default_factory=list, init=False, repr=False)

    def register_update_callback(self, callback: Callable):
        """Register a callback to be called when the footer changes."""
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
                log_with_timestamp(f"Update callback failed: {e}", "[UsageFooter]")

    @property
    def current_key(self) -> str:
        return fetch_key(self.provider_id, self.app_type, self.enabled)

    async def sync(self, provider_id: str, app_type: AppType, enabled: bool) -> bool:
        """Evaluate the card inputs. Returns True if a query was issued."""
        self.provider_id = provider_id
        self.app_type = AppType(app_type)
        self.enabled = bool(enabled)

        if not self.enabled:
            self.last_fetch_key = ""
            if self.usage is not None:
                self.usage = None
                self._notify_update()
            return False

        key = self.current_key
        if key == self.last_fetch_key:
            return False
        self.last_fetch_key = key
        return await self._fetch()

    async def refresh(self) -> bool:
        """Manual refresh. Returns False when the footer is disabled or a query is in flight."""
        if not self.enabled:
            return False
        return await self._fetch()

    async def _fetch(self) -> bool:
        if self.is_loading:
            log_with_timestamp(f"Query already in flight for {self.provider_id}, dropped", "[UsageFooter]")
            return False

        self.is_loading = True
        context = self.current_key
        self._notify_update()
        try:
            result = await self.backend.query_usage(self.provider_id, self.app_type)
        except Exception as e:
            log_with_timestamp(f"Usage query failed for {self.provider_id}: {e}", "[UsageFooter]")
            result = UsageResult.failure(str(e))
        finally:
            self.is_loading = False

        if not self.enabled:
            # Disabled while the query ran
            self.usage = None
        elif context != self.current_key:
            # Inputs changed mid-flight; the automatic fetch for them was dropped
            self.usage = None
            return await self._fetch()
        else:
            self.usage = result
        self._notify_update()
        return True

    def view(self) -> UsageFooterView:
        """Render model for the current state."""
        usage = self.usage
        if not self.enabled or usage is None:
            return UsageFooterView(visible=False, is_loading=self.is_loading)
        if not usage.success:
            return UsageFooterView(
                visible=True,
                error=usage.error or "Query failed",
                can_retry=True,
                is_loading=self.is_loading,
            )
        plans = usage.plans
        if not plans:
            return UsageFooterView(visible=False, is_loading=self.is_loading)
        return UsageFooterView(
            visible=True,
            plans=[UsagePlanView.from_plan(plan) for plan in plans],
            can_retry=True,
            is_loading=self.is_loading,
        )
