"""Shared pytest fixtures."""

import asyncio
import re
from pathlib import Path

import pytest

from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig
from roundtable.events import DebateEvent, EventType
from roundtable.models import BackendId, ChatMessage, DebateMessage, DebateRound, DebateRun, RunStatus, Verdict
from roundtable.providers.base import ChunkCallback, GenerationBackend, ProviderError

AGREE = "Looks right to me. <verdict>AGREE</verdict>"
DISAGREE = "This misses the point. <verdict>DISAGREE</verdict>"


def quota_error(name: str = "mock") -> ProviderError:
    return ProviderError(name, "Error code: 429 - rate limit exceeded", status_code=429)


def fatal_error(name: str = "mock") -> ProviderError:
    return ProviderError(name, "Error code: 401 - invalid x-api-key", status_code=401)


class MockBackend(GenerationBackend):
    """Test double that replays scripted responses and records every call.

    Each scripted item is either a string (streamed word by word, then
    returned) or an exception (raised). When the script runs out the
    default text is returned.
    """

    def __init__(self, backend_id: BackendId, responses: list | None = None, default: str = "Mock response") -> None:
        self._id = backend_id
        self._responses = list(responses or [])
        self._default = default
        self.calls: list[dict] = []

    def name(self) -> str:
        return self._id.value

    def model_string(self) -> str:
        return f"{self._id.value}-mock"

    async def generate(
        self,
        model: str,
        system_prompt: str,
        messages: list[ChatMessage],
        on_chunk: ChunkCallback | None = None,
    ) -> str:
        self.calls.append({"model": model, "system_prompt": system_prompt, "messages": messages})
        item = self._responses.pop(0) if self._responses else self._default
        if isinstance(item, BaseException):
            raise item
        if on_chunk:
            for piece in re.findall(r"\S+\s*|\s+", item):
                on_chunk(piece)
        return item

    @property
    def prompts(self) -> list[str]:
        return [call["messages"][-1].content for call in self.calls]


class HangingBackend(MockBackend):
    """Backend whose calls never resolve; used to exercise cancellation."""

    async def generate(self, model, system_prompt, messages, on_chunk=None):
        self.calls.append({"model": model, "system_prompt": system_prompt, "messages": messages})
        await asyncio.Event().wait()


def make_backends(
    chatgpt: list | None = None,
    claude: list | None = None,
    gemini: list | None = None,
) -> dict[BackendId, MockBackend]:
    return {
        BackendId.CHATGPT: MockBackend(BackendId.CHATGPT, chatgpt),
        BackendId.CLAUDE: MockBackend(BackendId.CLAUDE, claude),
        BackendId.GEMINI: MockBackend(BackendId.GEMINI, gemini),
    }


def event_types(events: list[DebateEvent]) -> list[EventType]:
    return [e.type for e in events]


def assert_well_formed(events: list[DebateEvent]) -> None:
    """Chunks sit inside their turn; exactly one terminal event, and it is last."""
    open_turns: set[tuple[int, BackendId]] = set()
    for event in events:
        key = (event.data.get("round"), event.data.get("backend_id"))
        if event.type is EventType.MODEL_START:
            open_turns.add(key)
        elif event.type is EventType.MODEL_CHUNK:
            assert key in open_turns, f"chunk outside turn: {key}"
        elif event.type is EventType.MODEL_COMPLETE:
            open_turns.discard(key)
        elif event.type is EventType.MODEL_ERROR:
            open_turns = {t for t in open_turns if t[1] != event.data["backend_id"]}
    terminal = [e for e in events if e.type in (EventType.DEBATE_COMPLETE, EventType.ERROR)]
    assert len(terminal) == 1
    assert events[-1] is terminal[0]


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        proposer="PROPOSER",
        revision="REVISION",
        critic="CRITIC",
        synthesis="SYNTHESIS",
        summary="SUMMARY",
    )


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-sonnet-4-20250514",
        api_key_env="TEST_ANTHROPIC_KEY",
        timeout_sec=30,
        max_tokens=1024,
    )


@pytest.fixture
def sample_app_config(tmp_path: Path, sample_prompts_config: PromptsConfig) -> AppConfig:
    models = {
        BackendId.CHATGPT: ModelConfig("chatgpt", "openai", "gpt-4o", "TEST_OPENAI_KEY", 30, 1024),
        BackendId.CLAUDE: ModelConfig("claude", "anthropic", "claude-sonnet-4-20250514", "TEST_ANTHROPIC_KEY", 30, 1024),
        BackendId.GEMINI: ModelConfig("gemini", "gemini", "gemini-2.0-flash", "TEST_GOOGLE_KEY", 30, 1024),
    }
    return AppConfig(
        defaults=DefaultsConfig(
            max_rounds=3,
            output_dir=tmp_path / "output",
            proposer_order=[BackendId.CHATGPT, BackendId.CLAUDE, BackendId.GEMINI],
            critic_order=[BackendId.CLAUDE, BackendId.GEMINI, BackendId.CHATGPT],
            synthesis_order=[BackendId.CLAUDE, BackendId.GEMINI, BackendId.CHATGPT],
        ),
        models=models,
        prompts=sample_prompts_config,
    )


@pytest.fixture
def events() -> list[DebateEvent]:
    return []


@pytest.fixture
def sample_run() -> DebateRun:
    return DebateRun(
        id="run123",
        status=RunStatus.COMPLETE,
        current_round=1,
        rounds=[
            DebateRound(
                round_number=1,
                messages=[
                    DebateMessage(BackendId.CHATGPT, "Use YAML for config."),
                    DebateMessage(BackendId.CLAUDE, AGREE, Verdict.AGREE),
                    DebateMessage(BackendId.GEMINI, AGREE, Verdict.AGREE),
                ],
            )
        ],
        final_answer="Use YAML for config.",
        summary="Everyone agreed on YAML.",
        all_agree=True,
    )
