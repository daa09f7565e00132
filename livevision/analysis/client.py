"""Gemini generateContent client.

Sends a still image plus a text question to the Gemini REST API and
extracts the text answer.

Usage:
    client = GeminiAnalysisClient()
    response = await client.analyze(api_key, "gemini-2.5-flash", still, "What is this?")
    if response.success:
        print(response.output)
    await client.close()
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from livevision.analysis.base import AnalysisCapability, AnalysisResponse
from livevision.models.session import StillPayload

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def build_request_body(image: StillPayload, question: str) -> Dict[str, Any]:
    """Build the generateContent request body.

    The question goes first as a text part (omitted when blank), followed
    by the image as inline base64 data.
    """
    parts = []
    if question.strip():
        parts.append({"text": question})
    parts.append({
        "inline_data": {
            "mime_type": image.mime_type,
            "data": image.to_base64(),
        }
    })
    return {"contents": [{"parts": parts}]}


def parse_generate_response(data: Any) -> AnalysisResponse:
    """Extract the answer text from a generateContent response.

    Blocked prompts, missing candidates and empty text are failures.
    """
    if not isinstance(data, dict):
        return AnalysisResponse(success=False, message="Malformed response from analysis service")

    feedback = data.get("promptFeedback") or {}
    if feedback.get("blockReason"):
        return AnalysisResponse(
            success=False,
            message=f"Request blocked: {feedback['blockReason']}",
        )

    candidates = data.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return AnalysisResponse(success=False, message="No candidates in response")

    candidate = candidates[0]
    parts = (candidate.get("content") or {}).get("parts") or []
    text = "".join(
        part.get("text", "") for part in parts if isinstance(part, dict)
    ).strip()

    if not text:
        reason = candidate.get("finishReason")
        message = "Empty response from model"
        if reason:
            message += f" (finishReason: {reason})"
        return AnalysisResponse(success=False, message=message)

    return AnalysisResponse(success=True, output=text)


def _error_message(data: Any, status: int) -> str:
    """Service error message, falling back to the HTTP status."""
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
    return f"HTTP {status}"


class GeminiAnalysisClient(AnalysisCapability):
    """aiohttp client for the Gemini generateContent endpoint."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 60.0,
    ):
        """Initialize Gemini client.

        Args:
            base_url: API base URL (e.g., https://generativelanguage.googleapis.com/v1beta)
            timeout_seconds: HTTP request timeout
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the client and cleanup resources."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def analyze(
        self,
        credential: str,
        model: str,
        image: StillPayload,
        question: str,
    ) -> AnalysisResponse:
        url = f"{self.base_url}/models/{model}:generateContent"
        body = build_request_body(image, question)
        headers = {"x-goog-api-key": credential}

        logger.debug(f"POST {url} ({image.width}x{image.height}, {len(image.data)} bytes)")

        try:
            session = await self._get_session()
            async with session.post(url, json=body, headers=headers) as resp:
                try:
                    data = await resp.json(content_type=None)
                except ValueError:
                    data = None

                if resp.status == 200:
                    return parse_generate_response(data)

                message = _error_message(data, resp.status)
                logger.warning(f"Analysis service returned HTTP {resp.status}: {message}")
                return AnalysisResponse(success=False, message=message)

        except asyncio.TimeoutError:
            return AnalysisResponse(success=False, message="Connection timeout")
        except aiohttp.ClientError as e:
            return AnalysisResponse(success=False, message=f"Connection error: {e}")
