"""OpenAI provider using openai SDK streaming chat completions."""

import logging
import os
import time

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from roundtable.models import ChatMessage
from roundtable.providers.base import ChunkCallback, GenerationBackend, ProviderError, sdk_status_code

logger = logging.getLogger(__name__)


def _to_openai_message(msg: ChatMessage) -> dict:
    if msg.role != "user" or not (msg.images or msg.pdfs):
        return {"role": msg.role, "content": msg.content}

    text = msg.content
    if msg.pdfs:
        names = ", ".join(p.name for p in msg.pdfs)
        text = (
            f"[Note: PDF files attached ({names}) - these will be analyzed by "
            f"Claude and Gemini who can read PDFs directly]\n\n{msg.content}"
        )
    parts: list[dict] = [{"type": "text", "text": text}]
    for img in msg.images:
        parts.append({
            "type": "image_url",
            "image_url": {"url": f"data:{img.mime_type};base64,{img.data}"},
        })
    return {"role": "user", "content": parts}


class OpenAIProvider(GenerationBackend):
    """OpenAI provider via openai SDK."""

    def __init__(self, config: ModelConfig, api_key: str | None = None) -> None:
        self._config = config
        api_key = (api_key or os.environ.get(config.api_key_env, "")).strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = AsyncOpenAI(api_key=api_key, timeout=config.timeout_sec)

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
            stream = await self._client.chat.completions.create(
                model=model,
                messages=[{"role": "system", "content": system_prompt}]
                + [_to_openai_message(m) for m in messages],
                max_tokens=self._config.max_tokens,
                stream=True,
            )
            async for chunk in stream:
                delta = chunk.choices[0].delta.content if chunk.choices else None
                if delta:
                    pieces.append(delta)
                    if on_chunk:
                        on_chunk(delta)
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}", sdk_status_code(exc)) from exc

        content = "".join(pieces)
        if not content:
            raise ProviderError(self._config.name, "Empty response content")

        logger.info("OpenAI %s: %.2fs, %d chars", model, time.monotonic() - start, len(content))
        return content
