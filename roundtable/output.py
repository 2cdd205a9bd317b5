"""Rich console rendering of debate events and markdown transcript save."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from roundtable.events import DebateEvent, EventType
from roundtable.models import DISPLAY_NAMES, BackendId, DebateRun, RunStatus, Verdict

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_VERDICT_STYLES = {
    Verdict.AGREE.value: "bold green",
    Verdict.DISAGREE.value: "bold red",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _preview(content: str, words: int = 50) -> str:
    """Return first N words of a turn."""
    all_words = content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _name(backend_id: str) -> str:
    return DISPLAY_NAMES[BackendId(backend_id)]


class ConsoleRenderer:
    """Event sink that renders debate progress to a rich console.

    With ``stream=True`` chunks are echoed as they arrive; otherwise each
    finished turn is shown as a short preview panel.
    """

    def __init__(self, stream: bool = True, target: Console | None = None) -> None:
        self._stream = stream
        self._console = target or console

    def __call__(self, event: DebateEvent) -> None:
        data = event.to_dict()["data"]
        if event.type is EventType.ROUND_START:
            self._console.print(Rule(f"[bold cyan]Round {data['round']}[/bold cyan]"))
        elif event.type is EventType.MODEL_START:
            self._console.print(f"\n[bold]{_name(data['backend_id'])}[/bold]")
        elif event.type is EventType.MODEL_CHUNK and self._stream:
            self._console.print(data["chunk"], end="", markup=False, highlight=False)
        elif event.type is EventType.MODEL_COMPLETE:
            self._print_complete(data)
        elif event.type is EventType.MODEL_ERROR:
            self._console.print(f"\n[yellow]{data['error']}[/yellow]")
        elif event.type is EventType.ERROR:
            self._console.print(f"\n[bold red]Error:[/bold red] {data['error']}")

    def _print_complete(self, data: dict) -> None:
        verdict = data.get("verdict")
        if self._stream:
            self._console.print()
        else:
            self._console.print(Panel(_preview(data.get("content", "")), border_style="dim"))
        if verdict:
            self._console.print(Text(f"Verdict: {verdict}", style=_VERDICT_STYLES[verdict]))


def print_result(run: DebateRun) -> None:
    """Print the final answer and summary using Rich markdown."""
    if run.status is not RunStatus.COMPLETE:
        return
    title = "Consensus Answer" if run.all_agree else "Synthesized Answer"
    console.print(Rule(f"[bold green]{title}[/bold green]"))
    console.print(
        Text(
            f"Rounds: {len(run.rounds)} | "
            f"Consensus: {'yes' if run.all_agree else 'no'} | "
            f"Skipped: {', '.join(sorted(DISPLAY_NAMES[b] for b in run.disabled_backends)) or 'none'}",
            style="dim",
        )
    )
    console.print(Markdown(run.final_answer or ""))
    console.print(Rule("[bold]Summary[/bold]"))
    console.print(Markdown(run.summary or ""))


def save_to_file(run: DebateRun, question: str, output_dir: Path) -> Path:
    """Save the full debate transcript as a markdown file.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(question) or run.id}.md"

    lines: list[str] = [
        f"# Roundtable: {question[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Run:** {run.id}",
        f"**Status:** {run.status.value}",
        f"**Rounds:** {len(run.rounds)}",
        f"**Consensus:** {'yes' if run.all_agree else 'no'}",
        "",
        "---",
        "",
    ]

    for rnd in run.rounds:
        lines.append(f"## Round {rnd.round_number}")
        lines.append("")
        for idx, msg in enumerate(rnd.messages):
            role = "Proposer" if idx == 0 else "Critic"
            lines.append(f"### {DISPLAY_NAMES[msg.backend_id]} ({role})")
            lines.append("")
            lines.append(msg.text)
            lines.append("")
            if msg.verdict is not None:
                lines.append(f"*Verdict: {msg.verdict.value}*")
                lines.append("")

    if run.status is RunStatus.COMPLETE:
        lines += ["## Final Answer", "", run.final_answer or "", "", "## Summary", "", run.summary or "", ""]
    elif run.error_message:
        lines += ["## Error", "", run.error_message, ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Debate saved to: %s", filepath)
    return filepath
