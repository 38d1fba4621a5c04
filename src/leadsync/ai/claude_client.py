"""Async Claude API wrapper used for lead summaries."""
import asyncio
import logging
from typing import Optional

import anthropic

from leadsync.exceptions import SummaryGenerationError

logger = logging.getLogger(__name__)


class ClaudeClient:
    """Async wrapper over the Anthropic SDK returning the reply text of one user turn."""

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-5", temperature: float = 0.2):
        self._client = anthropic.Anthropic(api_key=api_key)
        self.model = model
        self.temperature = temperature

    async def complete(
        self,
        user_prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 600,
        prefill: Optional[str] = None,
    ) -> str:
        """
        Send one user turn to Claude and return the reply text.

        Runs the sync SDK call in a thread pool executor.

        Args:
            prefill: Start of the assistant turn; Claude continues from it and
                the returned text includes it. ``"{"`` pins the reply to a JSON object.

        Raises:
            SummaryGenerationError: if the API call fails or the reply was cut
                off at ``max_tokens``.
        """
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            None,
            lambda: self._complete_sync(user_prompt, system_prompt, max_tokens, prefill),
        )

    def _complete_sync(
        self,
        user_prompt: str,
        system_prompt: Optional[str],
        max_tokens: int,
        prefill: Optional[str] = None,
    ) -> str:
        messages = [{"role": "user", "content": user_prompt}]
        if prefill:
            messages.append({"role": "assistant", "content": prefill})
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
            "messages": messages,
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = self._client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            logger.warning("Claude request failed: %s", exc)
            raise SummaryGenerationError(f"Claude request failed: {exc}") from exc

        if response.stop_reason == "max_tokens":
            raise SummaryGenerationError(f"Claude reply truncated at {max_tokens} tokens")
        text = "".join(block.text for block in response.content if block.type == "text")
        return (prefill or "") + text
