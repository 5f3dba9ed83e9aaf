"""
Polyphony - staged multi-agent dialogue with consensus voting.

Runs one dialogue cycle for a question: every configured agent thinks
independently, reflects on its peers, works through conflicts, attempts a
synthesis and votes; the winning agent(s) write the final answer.
Progress is printed to the terminal as each stage completes.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from core.config import build_pipeline, load_config
from core.display import (
    configure_logging,
    console,
    language_label,
    print_event,
    print_final_outputs,
)
from core.models import Language, SessionStatus
from modules.dialogue.models import CreateSessionRequest
from modules.dialogue.repository import create_session_repository
from modules.dialogue.service import DialogueService
from shared.config import get_settings
from shared.dialogue_config import DialogueConfig
from shared.exceptions import PolyphonyError

logger = logging.getLogger(__name__)


async def run_dialogue(question: str, config: DialogueConfig, stub: bool = False) -> int:
    """Run one full cycle and print its progress.

    Args:
        question: The question to discuss
        config: Run configuration
        stub: Use stub reasoners instead of real models

    Returns:
        Process exit code
    """
    settings = get_settings()
    service = DialogueService(
        pipeline=build_pipeline(config, settings, stub=stub),
        repository=create_session_repository(settings.session_store, settings.session_dir),
        settings=config.dialogue_settings,
    )

    session = await service.create_session(CreateSessionRequest(
        agents=config.profiles,
        title=question[:80],
        language=config.language,
    ))

    async for event in service.run_session_stream(session.id, question):
        print_event(event, session)

    session = await service.get_session(session.id)
    if session.status != SessionStatus.COMPLETED:
        console.print(f"[red]Session ended {session.status.value}[/red]")
        return 1

    console.print()
    print_final_outputs(session)
    console.print(f"\n[dim]Session saved as {session.id} ({settings.session_store} store)[/dim]")
    return 0


def main(question: str, config: DialogueConfig, stub: bool = False) -> int:
    """Main entry point."""
    if len(config.agents) < 2:
        console.print(
            "[red]Error:[/red] At least two agents are required. "
            "Define them under 'agents' in the config file."
        )
        return 1

    console.print(f"[bold]Question:[/bold] {question}")
    console.print(f"[dim]Agents: {', '.join(p.name for p in config.profiles)}[/dim]")
    console.print(f"[dim]Language: {language_label(config.language)}[/dim]")
    if not config.dialogue_settings.summarize_stages:
        console.print("[dim]Stage summaries disabled[/dim]")
    console.print()

    try:
        return asyncio.run(run_dialogue(question, config, stub))
    except PolyphonyError as e:
        logger.error(f"{e.code}: {e.message}")
        return 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Staged multi-agent dialogue with consensus voting"
    )
    parser.add_argument(
        "question",
        nargs="?",
        help="Question for the agents",
    )
    parser.add_argument(
        "-f", "--file",
        type=Path,
        help="Path to a .txt or .md file containing the question",
    )
    parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to YAML config file (required)",
    )
    parser.add_argument(
        "--language",
        choices=[lang.value for lang in Language],
        help="Output language (overrides the config)",
    )
    parser.add_argument(
        "--no-summaries",
        action="store_true",
        help="Skip the summary sub-stages",
    )
    parser.add_argument(
        "--stub",
        action="store_true",
        help="Use deterministic stub reasoners (no model calls)",
    )
    args = parser.parse_args()

    configure_logging(get_settings().log_level)

    # Resolve question from file or argument
    if args.file:
        if not args.file.exists():
            console.print(f"[red]Error:[/red] File not found: {args.file}")
            sys.exit(1)
        if args.file.suffix.lower() not in (".txt", ".md"):
            console.print(f"[red]Error:[/red] File must be .txt or .md: {args.file}")
            sys.exit(1)
        question = args.file.read_text(encoding="utf-8").strip()
    elif args.question:
        question = args.question
    else:
        parser.error("Either a question or --file must be provided")

    # Load config
    if not args.config.exists():
        console.print(f"[red]Error:[/red] Config file not found: {args.config}")
        sys.exit(1)

    try:
        config = load_config(args.config)
    except PolyphonyError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)

    overrides = {}
    if args.language:
        overrides["language"] = Language(args.language)
    if args.no_summaries:
        overrides["summarize_stages"] = False
    if overrides:
        config = config.model_copy(update={
            "dialogue_settings": config.dialogue_settings.model_copy(update=overrides),
        })

    sys.exit(main(question, config, stub=args.stub))
