"""
Async client for the Google Generative Language REST API.

All metrics, narrative analysis and flow images come from this service;
nothing here knows about car setups.
"""

import json
import time
import asyncio
from dataclasses import dataclass
from typing import Optional, Dict, Any, List

import aiohttp

from .errors import ConfigurationError, TransportError, SchemaError


DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


@dataclass
class OracleResponse:
    """Decoded JSON payload with latency."""
    payload: Any
    latency_ms: float


@dataclass
class InlineImage:
    """Raw image part returned by the oracle."""
    mime_type: str
    data: str  # base64
    latency_ms: float


class GeminiClient:
    """Async client for generateContent calls."""

    def __init__(
        self,
        api_key: str = "",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session exists."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def generate_json(
        self,
        model: str,
        prompt: str,
        schema: Dict[str, Any],
    ) -> OracleResponse:
        """
        Request a schema-constrained JSON response.

        Args:
            model: Model name, e.g. "gemini-2.5-flash".
            prompt: The prompt text.
            schema: Response schema in the API's OpenAPI subset.

        Returns:
            OracleResponse with the decoded JSON payload.

        Raises:
            ConfigurationError: If no API key is configured.
            TransportError: On timeout, connection failure or HTTP error.
            SchemaError: If the response has no text or the text is not JSON.
        """
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": schema,
            },
        }
        start_time = time.perf_counter()
        response = await self._post(model, body)
        latency_ms = (time.perf_counter() - start_time) * 1000

        text = self._extract_text(response)
        if not text:
            reason = self._block_reason(response)
            if reason:
                raise SchemaError(f"No data received from oracle (blocked: {reason})")
            raise SchemaError("No data received from oracle")

        try:
            payload = json.loads(text)
        except ValueError as e:
            raise SchemaError(f"Oracle returned invalid JSON: {e}") from e

        return OracleResponse(payload=payload, latency_ms=latency_ms)

    async def generate_image(
        self,
        model: str,
        prompt: str,
        aspect_ratio: str = "16:9",
    ) -> InlineImage:
        """
        Request a single generated image.

        Raises:
            ConfigurationError: If no API key is configured.
            TransportError: On timeout, connection failure or HTTP error.
            SchemaError: If the response carries no inline image.
        """
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
                "imageConfig": {"aspectRatio": aspect_ratio},
            },
        }
        start_time = time.perf_counter()
        response = await self._post(model, body)
        latency_ms = (time.perf_counter() - start_time) * 1000

        for part in self._candidate_parts(response):
            inline = part.get("inlineData") or part.get("inline_data")
            if not isinstance(inline, dict):
                continue
            data = inline.get("data")
            if isinstance(data, str) and data:
                mime_type = inline.get("mimeType") or inline.get("mime_type")
                return InlineImage(
                    mime_type=mime_type if isinstance(mime_type, str) else "image/png",
                    data=data,
                    latency_ms=latency_ms,
                )

        reason = self._block_reason(response)
        if reason:
            raise SchemaError(f"No image data received (blocked: {reason})")
        raise SchemaError("No image data received")

    async def _post(self, model: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Send a request and map failures onto the error taxonomy."""
        if not self.api_key or not self.api_key.strip():
            raise ConfigurationError("API key not configured")

        try:
            return await self._make_request(model, body)
        except asyncio.TimeoutError as e:
            print(f"[Oracle] Timeout after {self.timeout}s")
            raise TransportError(f"Oracle request timed out after {self.timeout}s") from e
        except aiohttp.ClientResponseError as e:
            print(f"[Oracle] HTTP {e.status}: {e.message}")
            raise TransportError(f"Oracle request failed with HTTP {e.status}") from e
        except aiohttp.ClientError as e:
            print(f"[Oracle] Connection error: {e}")
            raise TransportError(f"Could not reach oracle: {e}") from e
        except ValueError as e:
            print(f"[Oracle] Undecodable response body: {e}")
            raise SchemaError("Oracle returned a non-JSON response body") from e

    async def _make_request(self, model: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Make the actual API request."""
        session = await self._ensure_session()

        async with session.post(
            f"{self.base_url}/models/{model}:generateContent",
            json=body,
            headers={"x-goog-api-key": self.api_key},
        ) as resp:
            resp.raise_for_status()
            return await resp.json()

    def _candidate_parts(self, response: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Content parts of the first candidate, or an empty list."""
        try:
            parts = response["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            return []
        if not isinstance(parts, list):
            return []
        return [part for part in parts if isinstance(part, dict)]

    def _extract_text(self, response: Dict[str, Any]) -> Optional[str]:
        """Concatenate the text parts of the first candidate."""
        texts = [
            part["text"] for part in self._candidate_parts(response)
            if isinstance(part.get("text"), str) and not part.get("thought")
        ]
        text = "".join(texts)
        if text and text.strip():
            return text.strip()
        return None

    def _block_reason(self, response: Dict[str, Any]) -> Optional[str]:
        """Safety block reason reported by the API, if any."""
        if not isinstance(response, dict):
            return None
        feedback = response.get("promptFeedback")
        if not isinstance(feedback, dict):
            feedback = {}
        if feedback.get("blockReason"):
            return feedback["blockReason"]
        try:
            finish = response["candidates"][0].get("finishReason")
        except (KeyError, IndexError, TypeError, AttributeError):
            return None
        if finish in ("SAFETY", "PROHIBITED_CONTENT", "IMAGE_SAFETY", "BLOCKLIST"):
            return finish
        return None

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "GeminiClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
