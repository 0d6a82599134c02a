"""Text classification collaborator backed by the Anthropic Messages API."""

from __future__ import annotations

from typing import Protocol

import anthropic

from guestbridge.config import Settings
from guestbridge.domain.errors import CollaboratorError
from guestbridge.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_TOKENS = 8000


class TextClassifier(Protocol):
    def complete(self, prompt: str) -> str: ...


class AnthropicClassifier:
    """Sends one prompt, returns the concatenated text blocks of the reply."""

    def __init__(
        self,
        client: anthropic.Anthropic,
        model: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnthropicClassifier":
        if not settings.anthropic_api_key:
            raise CollaboratorError("ANTHROPIC_API_KEY is not configured")
        return cls(
            anthropic.Anthropic(api_key=settings.anthropic_api_key),
            settings.vendor_grouping_model,
        )

    def complete(self, prompt: str) -> str:
        """Raises CollaboratorError when the API call fails or returns no text."""
        try:
            message = self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                temperature=0,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as exc:
            raise CollaboratorError(f"Classifier request failed: {exc}") from exc

        text = "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        ).strip()
        logger.info(
            "classifier responded",
            extra={
                "extra_fields": {
                    "model": self._model,
                    "input_tokens": message.usage.input_tokens,
                    "output_tokens": message.usage.output_tokens,
                    "chars": len(text),
                }
            },
        )
        if not text:
            raise CollaboratorError("Classifier returned no text")
        return text
