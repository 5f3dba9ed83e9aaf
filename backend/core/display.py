"""Rich terminal output for dialogue runs."""

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from modules.dialogue.models import DialogueEvent, DialogueEventType

from .models import ConsensusResult, DialogueStage, Language, Session
from .prompts import stage_title

console = Console()

MAX_PANEL_CHARS = 1200


def configure_logging(level: str = "INFO") -> None:
    """Route the root logger through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def format_agent_name(session: Session, agent_id: str) -> str:
    """Display name for an agent id, falling back to the id itself."""
    profile = session.get_agent(agent_id)
    return profile.name if profile else agent_id


def truncate(content: str, limit: int = MAX_PANEL_CHARS) -> str:
    content = content.strip()
    if len(content) > limit:
        return content[:limit] + "..."
    return content


def print_event(event: DialogueEvent, session: Session) -> None:
    """Print one progress line (or panel) for a dialogue event."""
    language = session.language
    if event.type == DialogueEventType.SESSION_STARTED:
        console.print(f"[bold]Session[/bold] {event.session_id} "
                      f"[dim](cycle {event.sequence_number})[/dim]")
    elif event.type == DialogueEventType.STAGE_STARTED and event.stage:
        console.rule(f"[bold]{stage_title(event.stage, language)}[/bold]")
    elif event.type == DialogueEventType.AGENT_COMPLETED and event.response:
        response = event.response
        marker = "" if response.success else " [red](fallback)[/red]"
        console.print(
            f"  [cyan]{format_agent_name(session, response.agent_id)}[/cyan]"
            f" [dim]confidence {response.confidence:.2f}[/dim]{marker}"
        )
    elif event.type == DialogueEventType.STAGE_COMPLETED and event.summary:
        console.print(Panel(
            Text(truncate(event.summary), overflow="fold"),
            title="Summary",
            border_style="dim",
        ))
    elif event.type == DialogueEventType.CONSENSUS_RESOLVED and event.consensus:
        print_consensus(event.consensus, session)
    elif event.type == DialogueEventType.SESSION_ERRORED:
        console.print(f"[red]Error:[/red] {event.error}")
    elif event.type == DialogueEventType.SESSION_ABORTED:
        console.print(f"[yellow]Aborted:[/yellow] {event.error or 'no reason given'}")


def print_consensus(consensus: ConsensusResult, session: Session) -> None:
    """Print the vote tally and how the winners were chosen."""
    table = Table(title="Votes", show_header=True, header_style="bold")
    table.add_column("Agent")
    table.add_column("Votes", justify="right")
    for agent_id in session.agent_ids():
        count = consensus.tally.get(agent_id, 0)
        style = "bold green" if agent_id in consensus.winners else ""
        table.add_row(format_agent_name(session, agent_id), str(count), style=style)
    console.print(table)

    winners = ", ".join(format_agent_name(session, w) for w in consensus.winners)
    console.print(f"[dim]Winners ({consensus.resolved_by}):[/dim] {winners}")


def print_final_outputs(session: Session) -> None:
    """Print each winner's final synthesis for the current cycle."""
    responses = session.responses_for(DialogueStage.FINALIZE)
    if not responses:
        console.print("[yellow]No final output was produced[/yellow]")
        return
    title = stage_title(DialogueStage.FINALIZE, session.language)
    for response in responses:
        console.print(Panel(
            Text(response.content.strip(), overflow="fold"),
            title=f"{title}: {format_agent_name(session, response.agent_id)}",
            border_style="green",
        ))


def language_label(language: Language) -> str:
    return "English" if language == Language.EN else "日本語"
