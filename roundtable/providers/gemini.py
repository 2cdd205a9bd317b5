"""Gemini provider using google-genai SDK streaming."""

import base64
import logging
import os
import time

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from roundtable.models import ChatMessage
from roundtable.providers.base import ChunkCallback, GenerationBackend, ProviderError, sdk_status_code

logger = logging.getLogger(__name__)


def _to_gemini_content(msg: ChatMessage) -> genai_types.Content:
    parts: list[genai_types.Part] = []
    for pdf in msg.pdfs:
        parts.append(genai_types.Part.from_bytes(data=base64.b64decode(pdf.data), mime_type=pdf.mime_type))
    for img in msg.images:
        parts.append(genai_types.Part.from_bytes(data=base64.b64decode(img.data), mime_type=img.mime_type))
    parts.append(genai_types.Part.from_text(text=msg.content))
    role = "model" if msg.role == "assistant" else "user"
    return genai_types.Content(role=role, parts=parts)


class GeminiProvider(GenerationBackend):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, config: ModelConfig, api_key: str | None = None) -> None:
        self._config = config
        api_key = (api_key or os.environ.get(config.api_key_env, "")).strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(
            api_key=api_key,
            http_options=genai_types.HttpOptions(timeout=config.timeout_sec * 1000),
        )

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
            stream = await self._client.aio.models.generate_content_stream(
                model=model,
                contents=[_to_gemini_content(m) for m in messages],
                config=genai_types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    max_output_tokens=self._config.max_tokens,
                ),
            )
            async for chunk in stream:
                text = chunk.text
                if text:
                    pieces.append(text)
                    if on_chunk:
                        on_chunk(text)
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}", sdk_status_code(exc)) from exc

        content = "".join(pieces)
        if not content:
            raise ProviderError(self._config.name, "Empty response text")

        logger.info("Gemini %s: %.2fs, %d chars", model, time.monotonic() - start, len(content))
        return content
