"""Anthropic Claude provider using anthropic SDK message streaming."""

import logging
import os
import time

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from roundtable.models import ChatMessage
from roundtable.providers.base import ChunkCallback, GenerationBackend, ProviderError, sdk_status_code

logger = logging.getLogger(__name__)


def _to_anthropic_message(msg: ChatMessage) -> dict:
    if not (msg.images or msg.pdfs):
        return {"role": msg.role, "content": msg.content}

    blocks: list[dict] = []
    for pdf in msg.pdfs:
        blocks.append({
            "type": "document",
            "source": {"type": "base64", "media_type": pdf.mime_type, "data": pdf.data},
        })
    for img in msg.images:
        blocks.append({
            "type": "image",
            "source": {"type": "base64", "media_type": img.mime_type, "data": img.data},
        })
    blocks.append({"type": "text", "text": msg.content})
    return {"role": msg.role, "content": blocks}


class AnthropicProvider(GenerationBackend):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ModelConfig, api_key: str | None = None) -> None:
        self._config = config
        api_key = (api_key or os.environ.get(config.api_key_env, "")).strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key, timeout=config.timeout_sec)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate(
        self,
        model: str,
        system_prompt: str,
        messages: list[ChatMessage],
        on_chunk: ChunkCallback | None = None,
    ) -> str:
        start = time.monotonic()
        pieces: list[str] = []
        try:
            async with self._client.messages.stream(
                model=model,
                max_tokens=self._config.max_tokens,
                system=system_prompt,
                messages=[_to_anthropic_message(m) for m in messages],
            ) as stream:
                async for text in stream.text_stream:
                    if text:
                        pieces.append(text)
                        if on_chunk:
                            on_chunk(text)
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}", sdk_status_code(exc)) from exc

        content = "".join(pieces)
        if not content:
            raise ProviderError(self._config.name, "Empty response content")

        logger.info("Anthropic %s: %.2fs, %d chars", model, time.monotonic() - start, len(content))
        return content
