"""
Usage query scripts.

WORKFLOW OVERVIEW:
==================
A provider may carry a UsageScript: a JavaScript object literal describing
one HTTP request and an extractor function. Running it:

1. Substitute {{apiKey}} and {{baseUrl}} with the provider's credentials.
2. Ask the sandbox to evaluate the literal and hand back its `request` member.
3. Perform the request with aiohttp under the script timeout.
4. Ask the sandbox to call `extractor(response)` on the parsed JSON body.
5. Normalise the returned object (or array of objects) into UsageData entries.

Any failure ends the run with UsageResult(success=False, error=...).

The sandbox that evaluates JavaScript is external; ExtractorSandbox is its
interface. validate_usage_script() is only a fast pre-check before a script
is stored and never replaces the sandbox's own parsing.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Tuple

import aiohttp
from pydantic import ValidationError

from ..errors import QueryError, ScriptValidationError
from ..models.providers import Provider
from ..models.usage import UsageData, UsageRequest, UsageResult, UsageScript
from ..utils.log import log_with_timestamp

API_KEY_PLACEHOLDER = "{{apiKey}}"
BASE_URL_PLACEHOLDER = "{{baseUrl}}"

PRESET_TEMPLATES = {
    "generic": """({
  request: {
    url: "{{baseUrl}}/user/balance",
    method: "GET",
    headers: {
      "Authorization": "Bearer {{apiKey}}",
      "User-Agent": "cc-switch/1.0"
    }
  },
  extractor: function(response) {
    return {
      isValid: response.is_active || true,
      remaining: response.balance,
      unit: "USD"
    };
  }
})""",
    "newapi": """({
  request: {
    url: "{{baseUrl}}/api/usage/token",
    method: "GET",
    headers: {
      Authorization: "Bearer {{apiKey}}",
    },
  },
  extractor: function (response) {
    if (response.code) {
      if (response.data.unlimited_quota) {
        return {
          planName: response.data.name,
          total: -1,
          used: response.data.total_used / 500000,
          unit: "USD",
        };
      }
      return {
        isValid: true,
        planName: response.data.name,
        total: response.data.total_granted / 500000,
        used: response.data.total_used / 500000,
        remaining: response.data.total_available / 500000,
        unit: "USD",
      };
    }
    if (response.error) {
      return {
        isValid: false,
        invalidMessage: response.error.message,
      };
    }
  },
})""",
}

DEFAULT_TEMPLATE = "generic"

# Expected JSON types of plan fields; None is always accepted
_STRING_FIELDS = ("planName", "extra", "invalidMessage", "unit")
_NUMBER_FIELDS = ("total", "used", "remaining")


def default_usage_script() -> UsageScript:
    """Script offered for a provider that has none yet."""
    return UsageScript(
        enabled=False,
        code=PRESET_TEMPLATES[DEFAULT_TEMPLATE],
        timeout=UsageScript.DEFAULT_TIMEOUT,
    )


def render_script(code: str, api_key: str, base_url: str) -> str:
    """Substitute the two placeholders."""
    return code.replace(API_KEY_PLACEHOLDER, api_key).replace(BASE_URL_PLACEHOLDER, base_url)


def validate_usage_script(script: UsageScript) -> List[str]:
    """Validate a script before it is stored. Empty list means valid."""
    errors = []

    if script.enabled:
        if not script.code.strip():
            errors.append("Script code cannot be empty")
        elif "return" not in script.code:
            errors.append("Script must contain a return statement")

    if script.timeout is not None and not (
        UsageScript.MIN_TIMEOUT <= script.timeout <= UsageScript.MAX_TIMEOUT
    ):
        errors.append(
            f"Timeout must be between {UsageScript.MIN_TIMEOUT} and {UsageScript.MAX_TIMEOUT} seconds"
        )

    return errors


def ensure_valid_usage_script(script: UsageScript):
    """Raise ScriptValidationError when the script fails validation."""
    errors = validate_usage_script(script)
    if errors:
        raise ScriptValidationError(errors)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _normalize_plan(item: Any) -> UsageData:
    if not isinstance(item, dict):
        raise QueryError("Script must return an object or an array of objects")

    if item.get("isValid") is not None and not isinstance(item["isValid"], bool):
        raise QueryError("isValid must be a boolean or null")
    for key in _STRING_FIELDS:
        if item.get(key) is not None and not isinstance(item[key], str):
            raise QueryError(f"{key} must be a string or null")
    for key in _NUMBER_FIELDS:
        if item.get(key) is not None and not _is_number(item[key]):
            raise QueryError(f"{key} must be a number or null")

    return UsageData.model_validate(item)


def normalize_usage_payload(value: Any) -> List[UsageData]:
    """Turn extractor output (object or non-empty array) into plan entries."""
    if isinstance(value, list):
        if not value:
            raise QueryError("Script returned an empty array")
        plans = []
        for index, item in enumerate(value):
            try:
                plans.append(_normalize_plan(item))
            except QueryError as e:
                raise QueryError(f"Entry [{index}] is invalid: {e}") from e
        return plans
    return [_normalize_plan(value)]


def summarize_usage_result(result: UsageResult) -> Tuple[bool, str]:
    """One-line outcome of a script test run."""
    if result.success and result.plans:
        parts = []
        for plan in result.plans:
            prefix = f"[{plan.plan_name}] " if plan.plan_name else ""
            unit = f" {plan.unit}" if plan.unit else ""
            remaining = "-" if plan.remaining is None else plan.remaining
            parts.append(f"{prefix}Remaining: {remaining}{unit}")
        return True, f"Test succeeded: {', '.join(parts)}"
    return False, f"Test failed: {result.error or 'no data returned'}"


class ExtractorSandbox(ABC):
    """Isolated JavaScript evaluator for usage scripts."""

    @abstractmethod
    async def evaluate_request(self, code: str) -> Mapping[str, Any]:
        """Evaluate the script and return its `request` member as plain data."""

    @abstractmethod
    async def run_extractor(self, code: str, response: Any) -> Any:
        """Evaluate the script and return `extractor(response)` as plain data."""


class UsageScriptRunner:
    """Runs a provider's usage script end to end."""

    def __init__(self, sandbox: Optional[ExtractorSandbox] = None, proxy_url: Optional[str] = None):
        """
        Initialize the runner.

        Args:
            sandbox: JavaScript evaluator; without one every run fails cleanly
            proxy_url: Optional HTTP proxy for the usage request
        """
        self.sandbox = sandbox
        self._proxy_url = proxy_url

    async def run(self, provider: Provider) -> UsageResult:
        """Run the provider's script. Never raises."""
        script = provider.usage_script
        if not script or not script.enabled:
            return UsageResult.failure("Usage query is not enabled")
        if self.sandbox is None:
            return UsageResult.failure("No script sandbox is available")

        timeout = script.effective_timeout
        try:
            api_key, base_url = provider.settings_config.credentials()
            code = render_script(script.code, api_key, base_url)

            raw_request = await asyncio.wait_for(self.sandbox.evaluate_request(code), timeout)
            request = UsageRequest.model_validate(raw_request)
            body = await self._send_request(request, timeout)
            try:
                response = json.loads(body)
            except ValueError as e:
                raise QueryError(f"Response is not valid JSON: {e}") from e

            extracted = await asyncio.wait_for(self.sandbox.run_extractor(code, response), timeout)
            plans = normalize_usage_payload(extracted)
        except asyncio.TimeoutError:
            log_with_timestamp(f"Usage query for {provider.id} timed out after {timeout}s", "[UsageScript]")
            return UsageResult.failure(f"Timed out after {timeout} seconds")
        except QueryError as e:
            log_with_timestamp(f"Usage query for {provider.id} failed: {e}", "[UsageScript]")
            return UsageResult.failure(str(e))
        except ValidationError as e:
            log_with_timestamp(f"Invalid request config for {provider.id}: {e}", "[UsageScript]")
            return UsageResult.failure(f"Invalid request config: {e.errors()[0]['msg']}")
        except Exception as e:
            log_with_timestamp(f"Script error for {provider.id}: {e}", "[UsageScript]")
            return UsageResult.failure(f"Script error: {e}")

        return UsageResult.ok(plans)

    async def _send_request(self, request: UsageRequest, timeout: int) -> str:
        """Perform the usage request and return the body text."""
        method = (request.method or "GET").upper()
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(
                    method,
                    request.url,
                    headers=request.headers,
                    data=request.body,
                    proxy=self._proxy_url,
                    timeout=aiohttp.ClientTimeout(total=timeout),
                ) as response:
                    text = await response.text()
                    if not 200 <= response.status < 300:
                        preview = f"{text[:200]}..." if len(text) > 200 else text
                        raise QueryError(f"HTTP {response.status} : {preview}")
                    return text
        except aiohttp.ClientError as e:
            raise QueryError(f"Request failed: {e}") from e
