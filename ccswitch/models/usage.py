"""Usage query models."""

from typing import ClassVar, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class UsageScript(BaseModel):
    """Per-provider usage query script.

    `code` is a JavaScript object literal with a `request` member
    (url, method, headers, optional body; `{{apiKey}}` and `{{baseUrl}}`
    are substituted before evaluation) and an `extractor(response)` function
    returning plan fields.
    """
    DEFAULT_TIMEOUT: ClassVar[int] = 10
    MIN_TIMEOUT: ClassVar[int] = 2
    MAX_TIMEOUT: ClassVar[int] = 30

    enabled: bool = False
    language: Literal["javascript"] = "javascript"
    code: str = ""
    timeout: Optional[int] = None

    @property
    def effective_timeout(self) -> int:
        """Timeout in seconds used when running the script."""
        if self.timeout is None:
            return self.DEFAULT_TIMEOUT
        return max(self.MIN_TIMEOUT, min(self.MAX_TIMEOUT, self.timeout))

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return self.model_dump(exclude_none=True)


class UsageRequest(BaseModel):
    """The `request` member of a usage script after substitution."""
    url: str
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None


class UsageData(BaseModel):
    """One plan entry returned by an extractor. Absent fields render nothing."""
    model_config = ConfigDict(populate_by_name=True)

    plan_name: Optional[str] = Field(None, alias="planName")
    extra: Optional[str] = None
    is_valid: Optional[bool] = Field(None, alias="isValid")
    invalid_message: Optional[str] = Field(None, alias="invalidMessage")
    total: Optional[float] = None
    used: Optional[float] = None
    remaining: Optional[float] = None
    unit: Optional[str] = None

    @property
    def is_expired(self) -> bool:
        """Only an explicit isValid=false marks a plan expired."""
        return self.is_valid is False


class UsageResult(BaseModel):
    """Result of one usage query."""
    success: bool
    data: Optional[List[UsageData]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, plans: List[UsageData]) -> "UsageResult":
        return cls(success=True, data=list(plans))

    @classmethod
    def failure(cls, error: str) -> "UsageResult":
        return cls(success=False, error=error or "Query failed")

    @property
    def plans(self) -> List[UsageData]:
        """Plan entries (empty on failure)."""
        if not self.success:
            return []
        return self.data or []

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return self.model_dump(by_alias=True, exclude_none=True)
