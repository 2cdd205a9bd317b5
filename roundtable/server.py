"""FastAPI entry point: stream a debate to the browser as server-sent events."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from config.config_loader import AppConfig, load_config
from roundtable.events import DebateEvent, EventChannel, EventType
from roundtable.healthcheck import key_status
from roundtable.models import DISPLAY_NAMES, ImageInput, PdfInput
from roundtable.orchestrator import DebateOrchestrator
from roundtable.providers.base import ProviderError
from roundtable.providers.factory import Credentials, build_backends

logger = logging.getLogger(__name__)


class ApiKeys(BaseModel):
    openai: str = ""
    anthropic: str = ""
    google: str = ""


class ImagePayload(BaseModel):
    data: str
    mime_type: str = Field(pattern=r"^image/(jpeg|png|gif|webp)$")


class PdfPayload(BaseModel):
    data: str
    name: str


class RoundtableRequest(BaseModel):
    prompt: str = ""
    api_keys: ApiKeys = Field(default_factory=ApiKeys)
    images: list[ImagePayload] = Field(default_factory=list)
    pdfs: list[PdfPayload] = Field(default_factory=list)


async def _stream_debate(orchestrator: DebateOrchestrator, channel: EventChannel, prompt: str) -> AsyncIterator[str]:
    """Run the debate in the background and relay its events until the channel closes."""

    async def drive() -> None:
        try:
            await orchestrator.run(prompt)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Debate %s crashed", orchestrator.state.id)
            channel.push(DebateEvent(EventType.ERROR, {"error": str(exc) or "An unexpected error occurred"}))
        finally:
            channel.close()

    task = asyncio.create_task(drive())
    try:
        async for event in channel:
            yield event.encode_sse()
    finally:
        # Client went away or stream finished; stop forwarding further events.
        if not task.done():
            orchestrator.abort()
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


def create_app(config: AppConfig | None = None) -> FastAPI:
    load_dotenv()
    app_config = config or load_config()
    app = FastAPI(title="Roundtable")

    @app.get("/api/keys/status")
    async def keys_status() -> dict[str, bool]:
        return key_status(Credentials().with_env_fallback(app_config))

    @app.post("/api/roundtable")
    async def roundtable(request: RoundtableRequest):
        if not request.prompt.strip():
            return JSONResponse({"error": "Prompt is required"}, status_code=400)

        credentials = Credentials(**request.api_keys.model_dump()).with_env_fallback(app_config)
        missing = credentials.missing()
        if missing:
            names = ", ".join(DISPLAY_NAMES[b] for b in missing)
            return JSONResponse({"error": f"Missing API keys: {names}. Add them in Settings or .env."}, status_code=400)

        try:
            backends = build_backends(credentials, app_config)
        except ProviderError as exc:
            return JSONResponse({"error": str(exc)}, status_code=400)

        channel = EventChannel()
        orchestrator = DebateOrchestrator.from_config(
            backends,
            app_config,
            channel.push,
            images=[ImageInput(data=i.data, mime_type=i.mime_type) for i in request.images],
            pdfs=[PdfInput(data=p.data, name=p.name) for p in request.pdfs],
        )
        logger.info("Starting debate %s", orchestrator.state.id)
        return StreamingResponse(
            _stream_debate(orchestrator, channel, request.prompt),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    return app
