"""Debate orchestration: round state machine, role selection, consensus, synthesis."""

import asyncio
import logging
import uuid
from collections.abc import Callable

from config.config_loader import AppConfig, PromptsConfig, load_config
from roundtable.events import DebateEvent, EventType
from roundtable.failures import FailureKind, classify_failure, is_retryable
from roundtable.models import (
    DISPLAY_NAMES,
    BackendId,
    ChatMessage,
    DebateMessage,
    DebateRound,
    DebateRun,
    ImageInput,
    PdfInput,
    RunStatus,
    Verdict,
)
from roundtable.prompts import (
    build_critic_message,
    build_proposer_message,
    build_revision_message,
    build_summary_message,
    build_synthesis_message,
)
from roundtable.providers.base import GenerationBackend
from roundtable.providers.factory import Credentials, build_backends
from roundtable.synthesis import format_feedback, format_round_transcript, split_synthesis
from roundtable.verdict import parse_verdict

logger = logging.getLogger(__name__)

EventSink = Callable[[DebateEvent], None]

MAX_ROUNDS = 5

ALL_BACKENDS_EXHAUSTED = "all_backends_exhausted"
BACKEND_FAILURE = "backend_failure"

ALL_EXHAUSTED_MESSAGE = "All models have hit their usage limits. Unable to continue the debate."
PREVIOUS_ANSWER_NOTE = "[Using previous answer due to rate limit]"
SUMMARY_PLACEHOLDER = "Summary unavailable due to rate limits."
NO_SYNTHESIZER_SUMMARY = "All models hit their usage limits. Returning the last available answer."

DEFAULT_PROPOSER_ORDER = [BackendId.CHATGPT, BackendId.CLAUDE, BackendId.GEMINI]
DEFAULT_CRITIC_ORDER = [BackendId.CLAUDE, BackendId.GEMINI, BackendId.CHATGPT]
DEFAULT_SYNTHESIS_ORDER = [BackendId.CLAUDE, BackendId.GEMINI, BackendId.CHATGPT]


class BackendsExhausted(Exception):
    """No backend is left to fill a required role."""


class BackendFailure(Exception):
    """A backend raised a non-retryable error; the run cannot continue."""

    def __init__(self, backend_id: BackendId, cause: BaseException) -> None:
        self.backend_id = backend_id
        super().__init__(f"{DISPLAY_NAMES[backend_id]} returned an error: {cause}")


class DebateAborted(Exception):
    """The caller aborted the run."""


def has_consensus(verdicts: list[Verdict | None]) -> bool:
    """True when at least one verdict was cast and every cast verdict is AGREE."""
    cast = [v for v in verdicts if v is not None]
    return bool(cast) and all(v is Verdict.AGREE for v in cast)


class DebateOrchestrator:
    """Runs one debate over three backends and reports progress as events.

    The orchestrator exclusively owns ``self.state``; callers observe it through
    the events passed to ``on_event``. One instance drives exactly one run.
    """

    def __init__(
        self,
        backends: dict[BackendId, GenerationBackend],
        prompts: PromptsConfig,
        on_event: EventSink,
        *,
        max_rounds: int = MAX_ROUNDS,
        proposer_order: list[BackendId] | None = None,
        critic_order: list[BackendId] | None = None,
        synthesis_order: list[BackendId] | None = None,
        images: list[ImageInput] | None = None,
        pdfs: list[PdfInput] | None = None,
        run_id: str | None = None,
    ) -> None:
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self._proposer_order = list(proposer_order or DEFAULT_PROPOSER_ORDER)
        self._critic_order = list(critic_order or DEFAULT_CRITIC_ORDER)
        self._synthesis_order = list(synthesis_order or DEFAULT_SYNTHESIS_ORDER)
        needed = set(self._proposer_order) | set(self._critic_order) | set(self._synthesis_order)
        missing = needed - set(backends)
        if missing:
            raise ValueError(f"No backend configured for: {', '.join(sorted(b.value for b in missing))}")

        self._backends = backends
        self._prompts = prompts
        self._on_event = on_event
        self._max_rounds = max_rounds
        self._images = list(images or [])
        self._pdfs = list(pdfs or [])
        self._aborted = False
        self.state = DebateRun(id=run_id or uuid.uuid4().hex)

    @classmethod
    def from_config(
        cls,
        backends: dict[BackendId, GenerationBackend],
        config: AppConfig,
        on_event: EventSink,
        **kwargs,
    ) -> "DebateOrchestrator":
        kwargs.setdefault("max_rounds", config.defaults.max_rounds)
        return cls(
            backends,
            config.prompts,
            on_event,
            proposer_order=config.defaults.proposer_order,
            critic_order=config.defaults.critic_order,
            synthesis_order=config.defaults.synthesis_order,
            **kwargs,
        )

    @property
    def _has_attachments(self) -> bool:
        return bool(self._images or self._pdfs)

    def abort(self) -> None:
        """Stop the run at the next suspension point without reporting an error."""
        if not self._aborted:
            logger.info("Debate %s aborted by caller", self.state.id)
        self._aborted = True

    async def run(self, user_prompt: str) -> DebateRun:
        """Drive the debate to a terminal state and return the run record.

        Raises:
            ValueError: If the prompt is empty.
            RuntimeError: If this orchestrator has already been run.
        """
        if not user_prompt or not user_prompt.strip():
            raise ValueError("Prompt is required")
        if self.state.status is not RunStatus.IDLE:
            raise RuntimeError(f"Debate {self.state.id} has already been started")

        self.state.status = RunStatus.RUNNING
        logger.info("Debate %s started (max %d rounds)", self.state.id, self._max_rounds)
        try:
            await self._debate(user_prompt)
        except DebateAborted:
            self._mark_aborted()
        except asyncio.CancelledError:
            self._mark_aborted()
            raise
        except BackendsExhausted:
            self._fail(ALL_EXHAUSTED_MESSAGE, ALL_BACKENDS_EXHAUSTED)
        except BackendFailure as exc:
            self._fail(str(exc), BACKEND_FAILURE)
        return self.state

    # --- state transitions ---

    def _emit(self, event_type: EventType, **data) -> None:
        if self._aborted:
            return
        self._on_event(DebateEvent(event_type, data))

    def _check_aborted(self) -> None:
        if self._aborted:
            raise DebateAborted()

    def _mark_aborted(self) -> None:
        self._aborted = True
        if self.state.status is RunStatus.RUNNING:
            self.state.status = RunStatus.ABORTED
            self.state.active_backend = None

    def _complete(self, final_answer: str, summary: str, all_agree: bool) -> None:
        self.state.final_answer = final_answer
        self.state.summary = summary
        self.state.all_agree = all_agree
        self.state.active_backend = None
        self.state.status = RunStatus.COMPLETE
        logger.info(
            "Debate %s complete after %d round(s), consensus=%s",
            self.state.id, self.state.current_round, all_agree,
        )
        self._emit(EventType.DEBATE_COMPLETE, final_answer=final_answer, summary=summary, all_agree=all_agree)

    def _fail(self, message: str, code: str) -> None:
        self.state.final_answer = None
        self.state.error_message = message
        self.state.error_code = code
        self.state.active_backend = None
        self.state.status = RunStatus.ERROR
        logger.error("Debate %s failed [%s]: %s", self.state.id, code, message)
        self._emit(EventType.ERROR, error=message, code=code)

    def _disable(self, backend_id: BackendId, exc: BaseException) -> None:
        self.state.disabled_backends.add(backend_id)
        name = DISPLAY_NAMES[backend_id]
        if classify_failure(exc) is FailureKind.QUOTA:
            message = f"{name} has hit its usage limit and will be skipped for the rest of this debate."
        else:
            message = f"{name} is temporarily unavailable and will be skipped for the rest of this debate."
        logger.warning("Disabling %s for debate %s: %s", backend_id.value, self.state.id, exc)
        self._emit(EventType.MODEL_ERROR, backend_id=backend_id, error=message)

    def _first_available(self, order: list[BackendId]) -> BackendId | None:
        for backend_id in order:
            if backend_id not in self.state.disabled_backends:
                return backend_id
        return None

    # --- backend calls ---

    async def _generate(
        self,
        backend_id: BackendId,
        system_prompt: str,
        text: str,
        on_chunk: Callable[[str], None] | None = None,
        attach: bool = True,
    ) -> str | None:
        """Call a backend. Returns None after disabling it on a retryable failure."""
        self._check_aborted()
        backend = self._backends[backend_id]
        message = ChatMessage(
            role="user",
            content=text,
            images=self._images if attach else [],
            pdfs=self._pdfs if attach else [],
        )
        try:
            content = await backend.generate(backend.model_string(), system_prompt, [message], on_chunk)
        except Exception as exc:
            self._check_aborted()
            if not is_retryable(exc):
                raise BackendFailure(backend_id, exc) from exc
            self._disable(backend_id, exc)
            return None
        self._check_aborted()
        return content

    async def _run_turn(
        self,
        round_number: int,
        backend_id: BackendId,
        system_prompt: str,
        text: str,
    ) -> DebateMessage | None:
        """Stream one turn. The resolved text replaces whatever the chunks built up."""
        self.state.active_backend = backend_id
        self._emit(EventType.MODEL_START, round=round_number, backend_id=backend_id)
        message = DebateMessage(backend_id=backend_id)

        def forward(chunk: str) -> None:
            if self._aborted:
                return
            message.text += chunk
            self._emit(EventType.MODEL_CHUNK, round=round_number, backend_id=backend_id, chunk=chunk)

        content = await self._generate(backend_id, system_prompt, text, on_chunk=forward)
        if content is None:
            return None
        message.text = content
        return message

    def _complete_turn(self, rnd: DebateRound, message: DebateMessage, shown: str | None = None) -> None:
        rnd.messages.append(message)
        self._emit(
            EventType.MODEL_COMPLETE,
            round=rnd.round_number,
            backend_id=message.backend_id,
            content=shown if shown is not None else message.text,
            verdict=message.verdict,
        )

    # --- round steps ---

    async def _debate(self, user_prompt: str) -> None:
        answer = ""
        for round_number in range(1, self._max_rounds + 1):
            self._check_aborted()
            self.state.current_round = round_number
            rnd = DebateRound(round_number=round_number)
            self.state.rounds.append(rnd)
            logger.info("Starting round %d of debate %s", round_number, self.state.id)
            self._emit(EventType.ROUND_START, round=round_number)

            proposer_id, answer = await self._propose(rnd, user_prompt, answer)
            feedback, verdicts = await self._critique(rnd, user_prompt, proposer_id, answer)

            self.state.debate_history += format_round_transcript(
                round_number, DISPLAY_NAMES[proposer_id], answer, feedback,
            )

            if has_consensus(verdicts):
                logger.info("Round %d reached consensus", round_number)
                summary = await self._summarize(user_prompt, answer)
                self._complete(answer, summary, all_agree=True)
                return

            logger.info(
                "Round %d: no consensus (%d verdict(s): %s)",
                round_number, len(verdicts), ", ".join(v.value if v else "none" for v in verdicts),
            )

        await self._synthesize(user_prompt, answer)

    async def _propose(self, rnd: DebateRound, user_prompt: str, previous_answer: str) -> tuple[BackendId, str]:
        proposer_id = self._first_available(self._proposer_order)
        if proposer_id is None:
            raise BackendsExhausted()

        if rnd.round_number == 1:
            text = build_proposer_message(user_prompt, self._has_attachments)
            # Fall through the whole proposer order, not just one retry.
            # Without a first answer there is nothing to debate.
            while proposer_id is not None:
                message = await self._run_turn(rnd.round_number, proposer_id, self._prompts.proposer, text)
                if message is not None:
                    self._complete_turn(rnd, message)
                    return proposer_id, message.text
                proposer_id = self._first_available(self._proposer_order)
                if proposer_id is not None:
                    logger.info("Retrying round 1 proposal with %s", proposer_id.value)
            raise BackendsExhausted()

        text = build_revision_message(
            user_prompt, previous_answer, self.state.debate_history, self._has_attachments,
        )
        message = await self._run_turn(rnd.round_number, proposer_id, self._prompts.revision, text)
        if message is None:
            logger.warning("Round %d: reusing previous answer after %s failed", rnd.round_number, proposer_id.value)
            message = DebateMessage(backend_id=proposer_id, text=previous_answer)
            self._complete_turn(rnd, message, shown=PREVIOUS_ANSWER_NOTE)
            return proposer_id, previous_answer

        self._complete_turn(rnd, message)
        return proposer_id, message.text

    async def _critique(
        self,
        rnd: DebateRound,
        user_prompt: str,
        proposer_id: BackendId,
        answer: str,
    ) -> tuple[str, list[Verdict | None]]:
        """Run each available critic in order; later critics see earlier critiques."""
        feedback = ""
        verdicts: list[Verdict | None] = []
        critics = [
            b for b in self._critic_order
            if b != proposer_id and b not in self.state.disabled_backends
        ]
        for critic_id in critics:
            text = build_critic_message(user_prompt, answer, feedback, self._has_attachments)
            message = await self._run_turn(rnd.round_number, critic_id, self._prompts.critic, text)
            if message is None:
                continue
            message.verdict = parse_verdict(message.text)
            feedback += format_feedback(DISPLAY_NAMES[critic_id], message.text)
            verdicts.append(message.verdict)
            self._complete_turn(rnd, message)
            self._emit(
                EventType.AGREEMENT_CHECK,
                round=rnd.round_number,
                backend_id=critic_id,
                verdict=message.verdict,
            )
        return feedback, verdicts

    async def _summarize(self, user_prompt: str, final_answer: str) -> str:
        """Best-effort summary; never fails the run."""
        text = build_summary_message(user_prompt, self.state.debate_history, final_answer)
        for backend_id in self._synthesis_order:
            if backend_id in self.state.disabled_backends:
                continue
            self.state.active_backend = backend_id
            try:
                summary = await self._generate(backend_id, self._prompts.summary, text, attach=False)
            except BackendFailure as exc:
                logger.warning("Summary via %s failed: %s", backend_id.value, exc)
                continue
            if summary and summary.strip():
                return summary.strip()
        logger.warning("No summary available for debate %s", self.state.id)
        return SUMMARY_PLACEHOLDER

    async def _synthesize(self, user_prompt: str, last_answer: str) -> None:
        """Produce the final answer after the round budget ran out."""
        text = build_synthesis_message(user_prompt, self.state.debate_history)
        round_number = self.state.current_round
        while True:
            synth_id = self._first_available(self._synthesis_order)
            if synth_id is None:
                logger.warning("No backend left for synthesis; returning the last proposer answer")
                self._complete(last_answer, NO_SYNTHESIZER_SUMMARY, all_agree=False)
                return
            logger.info("Running synthesis via %s", synth_id.value)
            message = await self._run_turn(round_number, synth_id, self._prompts.synthesis, text)
            if message is not None:
                break

        self._emit(
            EventType.MODEL_COMPLETE,
            round=round_number,
            backend_id=synth_id,
            content=message.text,
        )
        final_answer, summary = split_synthesis(message.text)
        if summary is None:
            summary = await self._summarize(user_prompt, final_answer)
        self._complete(final_answer, summary, all_agree=False)


async def run_roundtable(
    user_prompt: str,
    credentials: Credentials,
    on_event: EventSink,
    config: AppConfig | None = None,
    images: list[ImageInput] | None = None,
    pdfs: list[PdfInput] | None = None,
    max_rounds: int | None = None,
) -> DebateRun:
    """Entry point: validate inputs, build the three backends, run one debate.

    Raises:
        ValueError: On an empty prompt or missing API keys.
    """
    if not user_prompt or not user_prompt.strip():
        raise ValueError("Prompt is required")
    config = config or load_config()
    credentials = credentials.with_env_fallback(config)
    missing = credentials.missing()
    if missing:
        names = ", ".join(DISPLAY_NAMES[b] for b in missing)
        raise ValueError(f"Missing API keys: {names}")

    backends = build_backends(credentials, config)
    kwargs = {"images": images, "pdfs": pdfs}
    if max_rounds is not None:
        kwargs["max_rounds"] = max_rounds
    orchestrator = DebateOrchestrator.from_config(backends, config, on_event, **kwargs)
    return await orchestrator.run(user_prompt)
