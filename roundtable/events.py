"""Typed debate events and the ordered channel that carries them to a caller."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    ROUND_START = "round_start"
    MODEL_START = "model_start"
    MODEL_CHUNK = "model_chunk"
    MODEL_COMPLETE = "model_complete"
    AGREEMENT_CHECK = "agreement_check"
    MODEL_ERROR = "model_error"
    DEBATE_COMPLETE = "debate_complete"
    ERROR = "error"


@dataclass
class DebateEvent:
    type: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = {}
        for key, value in self.data.items():
            if value is None:
                continue
            data[key] = value.value if isinstance(value, Enum) else value
        return {"type": self.type.value, "data": data}

    def encode_sse(self) -> str:
        """Frame the event as a single server-sent events message."""
        return f"data: {json.dumps(self.to_dict())}\n\n"


class EventChannel:
    """Append-only, ordered, single-consumer stream of DebateEvents.

    ``push`` never blocks, so it can be handed to the orchestrator as its
    ``on_event`` sink. Events pushed after ``close`` are dropped.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[DebateEvent | None] = asyncio.Queue()
        self._closed = False

    def push(self, event: DebateEvent) -> None:
        if self._closed:
            logger.debug("Dropping %s pushed after close", event.type.value)
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[DebateEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[DebateEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event
