"""Backend health checks: ping each API before starting a debate."""

import asyncio
import logging

from roundtable.models import BackendId, ChatMessage
from roundtable.providers.base import GenerationBackend
from roundtable.providers.factory import Credentials

logger = logging.getLogger(__name__)

_PING_SYSTEM_PROMPT = "You are a connectivity check."
_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(name: str, backend: GenerationBackend) -> tuple[str, bool, str]:
    """Ping a single backend. Returns (name, ok, error_message)."""
    try:
        await asyncio.wait_for(
            backend.generate(
                backend.model_string(),
                _PING_SYSTEM_PROMPT,
                [ChatMessage(role="user", content=_PING_PROMPT)],
            ),
            timeout=_TIMEOUT_SEC,
        )
        return name, True, ""
    except Exception as exc:
        logger.debug("Health check for %s failed: %s", name, exc)
        return name, False, str(exc) or type(exc).__name__


async def run_health_checks(
    backends: dict[str, GenerationBackend],
) -> dict[str, tuple[bool, str]]:
    """Ping all backends in parallel.

    Returns:
        Dict mapping backend name -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(n, b) for n, b in backends.items()))
    return {name: (ok, err) for name, ok, err in results}


def key_status(credentials: Credentials) -> dict[str, bool]:
    """Report which provider keys are present, keyed by provider account name."""
    return {
        "openai": bool(credentials.for_backend(BackendId.CHATGPT).strip()),
        "anthropic": bool(credentials.for_backend(BackendId.CLAUDE).strip()),
        "google": bool(credentials.for_backend(BackendId.GEMINI).strip()),
    }
