"""Dataclasses and enums for the roundtable debate. No logic, no deps."""

from dataclasses import dataclass, field
from enum import Enum


class BackendId(str, Enum):
    CHATGPT = "chatgpt"
    CLAUDE = "claude"
    GEMINI = "gemini"


DISPLAY_NAMES: dict[BackendId, str] = {
    BackendId.CHATGPT: "ChatGPT",
    BackendId.CLAUDE: "Claude",
    BackendId.GEMINI: "Gemini",
}


class Verdict(str, Enum):
    AGREE = "AGREE"
    DISAGREE = "DISAGREE"


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"
    ABORTED = "aborted"


@dataclass
class ImageInput:
    data: str              # base64, no data URL prefix
    mime_type: str         # image/jpeg, image/png, image/gif, image/webp


@dataclass
class PdfInput:
    data: str
    name: str
    mime_type: str = "application/pdf"


@dataclass
class ChatMessage:
    role: str              # "user" or "assistant"
    content: str
    images: list[ImageInput] = field(default_factory=list)
    pdfs: list[PdfInput] = field(default_factory=list)


@dataclass
class DebateMessage:
    backend_id: BackendId
    text: str = ""
    verdict: Verdict | None = None


@dataclass
class DebateRound:
    round_number: int
    messages: list[DebateMessage] = field(default_factory=list)


@dataclass
class DebateRun:
    id: str
    status: RunStatus = RunStatus.IDLE
    current_round: int = 0
    active_backend: BackendId | None = None
    rounds: list[DebateRound] = field(default_factory=list)
    final_answer: str | None = None
    summary: str | None = None
    all_agree: bool = False
    disabled_backends: set[BackendId] = field(default_factory=set)
    debate_history: str = ""
    error_message: str | None = None
    error_code: str | None = None
