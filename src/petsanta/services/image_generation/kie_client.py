"""Kie.ai API client for image generation with error classification.

Provider responses are parsed once here into a small tagged union
(ProviderSuccess / ProviderFailure / ProviderPending) so the rest of the
service never inspects raw provider payloads.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import httpx
import structlog

from petsanta.services.exceptions import PermanentError, TransientError, UpstreamProviderError

logger = structlog.get_logger()

DEFAULT_BASE_URL = "https://api.kie.ai/api/v1"


@dataclass(frozen=True)
class ProviderSuccess:
    """Provider finished the job; result_urls may be empty if nothing was produced."""

    result_urls: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProviderFailure:
    """Provider gave up on the job."""

    reason: Optional[str] = None


@dataclass(frozen=True)
class ProviderPending:
    """Job is queued or running (state is the provider's raw state string)."""

    state: Optional[str] = None


ProviderResult = Union[ProviderSuccess, ProviderFailure, ProviderPending]


@dataclass(frozen=True)
class ProviderUpdate:
    """Parsed task status delivery (callback body or recordInfo data)."""

    provider_task_id: Optional[str]
    result: ProviderResult
    raw: dict


def extract_result_urls(result_json: Any) -> list[str]:
    """Extract generated image URLs from the provider's resultJson field.

    resultJson is normally a JSON-encoded string like '{"resultUrls": [...]}'.
    Malformed or missing values yield an empty list.
    """
    if not result_json:
        return []

    if isinstance(result_json, str):
        try:
            parsed = json.loads(result_json)
        except json.JSONDecodeError as e:
            logger.warning("kie.result_json_invalid", error=str(e))
            return []
    else:
        parsed = result_json

    if not isinstance(parsed, dict):
        return []

    urls = parsed.get("resultUrls") or []
    return [str(url) for url in urls if url]


def parse_task_payload(payload: dict) -> ProviderUpdate:
    """Parse a task status payload into a ProviderUpdate.

    Accepts both the callback body shape ({"code", "msg", "data": {...}}) and a
    bare data object.

    Args:
        payload: Decoded JSON payload from the provider

    Returns:
        ProviderUpdate with the correlation id and typed result
    """
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload

    provider_task_id = data.get("taskId")
    state = data.get("state")

    result: ProviderResult
    if state == "success":
        result = ProviderSuccess(result_urls=extract_result_urls(data.get("resultJson")))
    elif state == "fail":
        result = ProviderFailure(reason=data.get("failMsg") or None)
    else:
        result = ProviderPending(state=state)

    return ProviderUpdate(provider_task_id=provider_task_id, result=result, raw=payload)


def classify_status(status_code: int, body: str) -> UpstreamProviderError:
    """Classify an HTTP error status into a retry category.

    Classification rules:
        - 429 (rate limit) -> TransientError
        - 5xx (service unavailable) -> TransientError
        - 401/403 (authentication) -> PermanentError
        - Other 4xx -> PermanentError
    """
    if status_code == 429:
        return TransientError(f"Rate limit exceeded: {body}")
    if status_code >= 500:
        return TransientError(f"Service unavailable ({status_code}): {body}")
    if status_code in (401, 403):
        return PermanentError(
            f"Authentication failed ({status_code}). Check KIE_AI_API_KEY configuration."
        )
    return PermanentError(f"Bad request ({status_code}): {body}")


class KieClient:
    """Generation provider gateway for the Kie.ai jobs API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        model: str = "nano-banana-pro",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Kie.ai client.

        Args:
            api_key: Kie.ai API key (from KIE_AI_API_KEY env var)
            base_url: API base URL
            model: Generation model identifier
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.transport = transport
        self.headers = {"Authorization": f"Bearer {api_key}"}

    async def submit(
        self,
        prompt: str,
        image_urls: list[str],
        aspect_ratio: str,
        resolution: str,
        output_format: str,
        callback_url: str | None = None,
    ) -> str:
        """Create a generation job.

        Returns:
            Provider task id (correlation id)

        Raises:
            TransientError: Timeout, rate limit, service unavailable
            PermanentError: Authentication failure, bad request, API error envelope
        """
        body: dict[str, Any] = {
            "model": self.model,
            "input": {
                "prompt": prompt,
                "image_input": image_urls,
                "aspect_ratio": aspect_ratio,
                "resolution": resolution,
                "output_format": output_format,
            },
        }
        if callback_url:
            body["callBackUrl"] = callback_url

        data = await self._request("POST", "/jobs/createTask", json=body)

        record = data.get("data") or {}
        task_id = record.get("taskId") if isinstance(record, dict) else None
        if not task_id:
            raise PermanentError("Kie.ai API returned no taskId")
        return task_id

    async def poll(self, provider_task_id: str) -> ProviderUpdate:
        """Fetch current job state together with the raw record for diagnostics.

        Raises:
            TransientError / PermanentError: see submit()
        """
        data = await self._request(
            "GET", "/jobs/recordInfo", params={"taskId": provider_task_id}
        )
        record = data.get("data") or {}
        if not isinstance(record, dict):
            raise PermanentError(f"Kie.ai recordInfo returned malformed data: {record!r}")
        update = parse_task_payload(record)
        return ProviderUpdate(
            provider_task_id=update.provider_task_id or provider_task_id,
            result=update.result,
            raw=record,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.request(
                    method, f"{self.base_url}{path}", headers=self.headers, **kwargs
                )
        except httpx.TimeoutException as e:
            raise TransientError(f"Request timeout after {self.timeout}s: {str(e)}") from e
        except httpx.HTTPError as e:
            raise TransientError(f"Network error: {str(e)}") from e

        if response.status_code >= 400:
            raise classify_status(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise PermanentError(f"Invalid JSON from Kie.ai: {str(e)}") from e

        if not isinstance(data, dict):
            raise PermanentError(f"Unexpected Kie.ai response body: {data!r}")

        # The API wraps every response in {"code", "msg", "data"}
        if data.get("code") != 200:
            raise PermanentError(f"Kie.ai API error: {data.get('msg')}")

        return data
