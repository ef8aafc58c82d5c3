"""
Reasoning Service client.

Async httpx client for an OpenAI-compatible chat-completions endpoint, used
by the item matcher to choose between several candidate products.

The model is asked for {"matches": [{"search_item", "id", "name",
"adjusted_quantity"}]}. Answers wrapped in markdown code fences are
unwrapped before parsing; anything that still is not that JSON shape raises
ReasoningMalformed.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from django.conf import settings

from inventory.exceptions import ReasoningMalformed, ReasoningUnavailable

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


@dataclass
class ReasoningMatch:
    """One item-to-candidate decision returned by the reasoning service."""

    id: str
    search_item: str = ""
    name: str = ""
    adjusted_quantity: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ReasoningMatch"]:
        """Build from one entry of the "matches" list; None if unusable."""
        if not isinstance(data, dict):
            return None
        match_id = data.get("id")
        if match_id in (None, ""):
            return None
        return cls(
            id=str(match_id),
            search_item=str(data.get("search_item") or "").strip(),
            name=str(data.get("name") or ""),
            adjusted_quantity=_to_quantity(data.get("adjusted_quantity")),
        )


def _to_quantity(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        quantity = float(value)
    except (TypeError, ValueError):
        return None
    if quantity <= 0:
        return None
    return int(quantity) if quantity.is_integer() else quantity


def strip_code_fences(content: str) -> str:
    """Return the body of the first markdown code block, or the stripped text."""
    content = (content or "").strip()
    match = CODE_FENCE_PATTERN.search(content)
    if match:
        return match.group(1).strip()
    return content


def parse_matches(content: str) -> List[ReasoningMatch]:
    """
    Parse reasoning output into matches.

    Accepts {"matches": [...]} or a bare list.

    Raises:
        ReasoningMalformed: If the content is not JSON of that shape
    """
    text = strip_code_fences(content)
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ReasoningMalformed(f"Reasoning output is not JSON: {e}", raw_content=content) from e

    if isinstance(data, dict):
        entries = data.get("matches")
    else:
        entries = data
    if not isinstance(entries, list):
        raise ReasoningMalformed("Reasoning output has no matches list", raw_content=content)

    matches = []
    for entry in entries:
        match = ReasoningMatch.from_dict(entry)
        if match is None:
            logger.debug(f"Skipping unusable reasoning entry: {entry!r}")
            continue
        matches.append(match)
    return matches


class ReasoningClient:
    """
    Async HTTP client for the reasoning service.

    Usage:
        client = ReasoningClient()
        matches = await client.resolve(prompt)
    """

    SYSTEM_PROMPT = (
        "You match grocery shopping-list items to store products. "
        "Respond with JSON only."
    )

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the reasoning client.

        Args:
            base_url: Service URL (defaults to settings.REASONING_SERVICE_URL)
            api_key: Bearer token (defaults to settings.REASONING_SERVICE_TOKEN)
            model: Model name (defaults to settings.REASONING_MODEL)
            timeout: Request timeout in seconds
            temperature: Sampling temperature
            transport: httpx transport override
        """
        self.base_url = (
            base_url or getattr(settings, "REASONING_SERVICE_URL", "https://api.openai.com")
        ).rstrip("/")
        self.api_key = api_key or getattr(settings, "REASONING_SERVICE_TOKEN", "")
        self.model = model or getattr(settings, "REASONING_MODEL", "gpt-4o")
        self.timeout = timeout or getattr(settings, "REASONING_TIMEOUT", 60.0)
        self.temperature = (
            temperature if temperature is not None
            else getattr(settings, "REASONING_TEMPERATURE", 1.0)
        )
        self.transport = transport

        self.completions_endpoint = f"{self.base_url}/v1/chat/completions"

    def _get_headers(self) -> Dict[str, str]:
        """Build request headers with authentication."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def complete(self, prompt: str) -> str:
        """
        Send one prompt and return the assistant message content.

        Raises:
            ReasoningUnavailable: On timeouts, connection errors and non-200 responses
            ReasoningMalformed: If the response envelope has no message content
        """
        payload = {
            "model": self.model,
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": self.SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        }

        logger.debug(f"Calling reasoning service (prompt length: {len(prompt)} chars)")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.completions_endpoint,
                    json=payload,
                    headers=self._get_headers(),
                )
        except httpx.TimeoutException as e:
            logger.error(f"Reasoning service timeout: {e}")
            raise ReasoningUnavailable(f"Request timeout after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"Reasoning service connection error: {e}")
            raise ReasoningUnavailable(f"Connection error: {e}") from e

        if response.status_code != 200:
            logger.warning(f"Reasoning service returned status {response.status_code}")
            raise ReasoningUnavailable(
                f"Reasoning service returned status {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
            return data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ReasoningMalformed(
                f"Unexpected reasoning response envelope: {e}",
                raw_content=response.text[:2000],
            ) from e

    async def resolve(self, prompt: str) -> List[ReasoningMatch]:
        """
        Ask the reasoning service to resolve items and parse its answer.

        Raises:
            ReasoningUnavailable: If the service could not be reached
            ReasoningMalformed: If the answer is not the requested JSON
        """
        content = await self.complete(prompt)
        matches = parse_matches(content)
        logger.info(f"Reasoning service returned {len(matches)} matches")
        return matches


def get_reasoning_client() -> ReasoningClient:
    """Build a reasoning client from settings."""
    return ReasoningClient()
