import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from committee_auth.config import Settings
from committee_auth.schemas.claude import ClaudeExtractRequest, ClaudeExtractResponse

logger = logging.getLogger(__name__)


class ClaudeServiceError(Exception):
    """Proxy call could not be completed; payload is safe to return to the client."""

    def __init__(self, status_code: int, payload: dict[str, Any]):
        self.status_code = status_code
        self.payload = payload
        super().__init__(payload.get("error", "Claude proxy error"))


class ClaudeService:
    """Forwards committee requests to the Anthropic Messages API."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.timeout = settings.claude_timeout
        self._transport = transport

    def _get_headers(self, api_key: str) -> dict:
        return {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": self.settings.claude_api_version,
        }

    def _build_messages(self, request: ClaudeExtractRequest) -> list[dict]:
        if request.message_content:
            for index, part in enumerate(request.message_content):
                logger.debug(f"Content part {index}: {part.get('type', 'unknown')}")
            return [{"role": "user", "content": request.message_content}]
        if request.prompt:
            return [{"role": "user", "content": request.prompt}]
        raise ClaudeServiceError(400, {"error": "Either prompt or messageContent is required"})

    def _upstream_error(self, response: httpx.Response, model: str) -> ClaudeServiceError:
        error_text = response.text
        logger.error(f"Claude API error: {response.status_code} {error_text[:500]}")
        try:
            error_data = json.loads(error_text)
        except ValueError:
            error_data = None

        error = error_data.get("error") if isinstance(error_data, dict) else None
        if isinstance(error, dict) and error.get("message"):
            if "model" in error["message"]:
                return ClaudeServiceError(400, {"error": f"Invalid model: {model}"})
            return ClaudeServiceError(
                400,
                {"error": error["message"], "type": error.get("type", "unknown_error")},
            )

        return ClaudeServiceError(response.status_code, {"error": error_text})

    async def create_message(self, request: ClaudeExtractRequest) -> ClaudeExtractResponse:
        """
        Send one user message to Claude and return the first text block.

        Raises:
            ClaudeServiceError: On bad input, missing API key, or upstream failure
        """
        messages = self._build_messages(request)

        api_key = request.api_key or self.settings.claude_api_key
        if not api_key:
            raise ClaudeServiceError(
                400,
                {
                    "error": "Claude API key required. Please provide apiKey in request body.",
                    "needsApiKey": True,
                },
            )

        model = request.model or self.settings.claude_default_model
        max_tokens = request.max_tokens or self.settings.claude_default_max_tokens
        logger.info(f"Making request to Claude API with model: {model}")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    self.settings.claude_api_url,
                    headers=self._get_headers(api_key),
                    json={
                        "model": model,
                        "max_tokens": max_tokens,
                        "temperature": request.temperature,
                        "messages": messages,
                    },
                )
            except httpx.RequestError as e:
                logger.error(f"Request error from Claude API: {e}")
                raise ClaudeServiceError(502, {"error": "Failed to reach Claude API"}) from None

        if not response.is_success:
            raise self._upstream_error(response, model)

        data = response.json()
        usage = data.get("usage")
        if usage:
            logger.info(
                "Token usage: input=%s output=%s",
                usage.get("input_tokens"),
                usage.get("output_tokens"),
            )

        text_blocks = [b.get("text", "") for b in data.get("content", []) if b.get("type") == "text"]
        if not text_blocks:
            raise ClaudeServiceError(502, {"error": "Claude API returned no text content"})

        return ClaudeExtractResponse(
            content=text_blocks[0],
            usage=usage,
            model=model,
            processed_at=datetime.now(timezone.utc).isoformat(),
        )
