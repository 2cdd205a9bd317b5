"""Click CLI: loads config and credentials, runs one debate, renders the result."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config
from roundtable.attachments import load_attachments
from roundtable.healthcheck import run_health_checks
from roundtable.models import BackendId, DebateRun, RunStatus
from roundtable.orchestrator import DebateOrchestrator
from roundtable.output import ConsoleRenderer, console, print_result, save_to_file
from roundtable.providers.base import GenerationBackend, ProviderError
from roundtable.providers.factory import Credentials, build_backends

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _check_providers(backends: dict[BackendId, GenerationBackend]) -> bool:
    """Run health checks and print results. Returns True if every backend answered."""
    console.print("\n[bold]Checking providers...[/bold]")
    results = asyncio.run(run_health_checks({b.value: backend for b, backend in backends.items()}))

    all_ok = True
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")
            all_ok = False
    console.print()
    return all_ok


async def _run_single(
    question_text: str,
    config: AppConfig,
    backends: dict[BackendId, GenerationBackend],
    attachments: list[Path],
    max_rounds: int,
    stream: bool,
) -> DebateRun:
    images, pdfs = load_attachments(attachments)
    console.print(f"\n[bold cyan]Roundtable[/bold cyan] (up to {max_rounds} rounds)")
    console.print(f"Question: [italic]{question_text[:80]}{'...' if len(question_text) > 80 else ''}[/italic]")
    if attachments:
        console.print(f"Attachments: {', '.join(p.name for p in attachments)}")

    orchestrator = DebateOrchestrator.from_config(
        backends,
        config,
        ConsoleRenderer(stream=stream),
        max_rounds=max_rounds,
        images=images,
        pdfs=pdfs,
    )
    return await orchestrator.run(question_text)


@click.command()
@click.argument("question", required=False)
@click.option("--file", "question_file", type=click.Path(exists=True), help="Read question from a text/markdown file")
@click.option("--attach", "attach_paths", multiple=True, type=click.Path(exists=True, dir_okay=False),
              help="Image (jpg/png/gif/webp) or PDF to pass to every model. Repeatable.")
@click.option("--max-rounds", default=None, type=click.IntRange(min=1),
              help="Maximum debate rounds before synthesis (default: from config)")
@click.option("--save/--no-save", default=False, help="Save a markdown transcript")
@click.option("--output", "output_path", default=None, help="Transcript directory (default: from config)")
@click.option("--no-stream", is_flag=True, default=False, help="Show turn previews instead of streaming text")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    question: str | None,
    question_file: str | None,
    attach_paths: tuple[str, ...],
    max_rounds: int | None,
    save: bool,
    output_path: str | None,
    no_stream: bool,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """Roundtable -- ChatGPT, Claude and Gemini debate until they agree.

    \b
    Examples:
      roundtable "What is 2+2?"
      roundtable "Explain this diagram" --attach diagram.png
      roundtable --file question.md --max-rounds 3 --save
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if question_file:
        question_text = Path(question_file).read_text(encoding="utf-8").strip()
    elif question:
        question_text = question.strip()
    else:
        question_text = ""
    if not question_text:
        console.print("[bold red]Error:[/bold red] Provide a QUESTION argument or --file.")
        sys.exit(1)

    credentials = Credentials().with_env_fallback(config)
    missing = credentials.missing()
    if missing:
        env_names = ", ".join(config.models[b].api_key_env for b in missing)
        console.print(f"[bold red]Error:[/bold red] Missing API keys. Set {env_names} in .env.")
        sys.exit(1)

    try:
        backends = build_backends(credentials, config)
    except ProviderError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    if not skip_health_check and not _check_providers(backends):
        if not click.confirm("Some providers failed the check. Continue anyway?", default=True):
            sys.exit(0)

    try:
        run = asyncio.run(
            _run_single(
                question_text=question_text,
                config=config,
                backends=backends,
                attachments=[Path(p) for p in attach_paths],
                max_rounds=max_rounds if max_rounds is not None else config.defaults.max_rounds,
                stream=not no_stream,
            )
        )
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    print_result(run)

    if save:
        output_dir = Path(output_path) if output_path else config.defaults.output_dir
        saved_path = save_to_file(run, question_text, output_dir)
        console.print(f"\n[dim]Saved to: {saved_path}[/dim]")

    if run.status is not RunStatus.COMPLETE:
        sys.exit(1)


if __name__ == "__main__":
    main()
