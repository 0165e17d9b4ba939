"""Markdown rendering, rich console output, and file save for debate results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from brainstorm.models import DebateResult, RoundResponse

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _round_label(index: int, total: int) -> str:
    if index == 0:
        return "Initial Perspectives"
    if index == total - 1:
        return "Final Positions"
    return "Refinement"


def _participants(result: DebateResult) -> list[str]:
    if not result.rounds:
        return []
    return list(dict.fromkeys(r.model_id for r in result.rounds[0].responses))


def format_round_responses(responses: list[RoundResponse]) -> str:
    lines: list[str] = []
    for resp in responses:
        lines.append(f"### {resp.model_id}\n")
        if resp.error is not None:
            lines.append(f"> **ERROR:** {resp.error}\n")
        else:
            lines.append(f"{resp.content}\n")
    return "\n".join(lines)


def format_result(result: DebateResult) -> str:
    """Render the whole debate (header, rounds, synthesis, footer) as markdown."""
    stats = result.stats
    participants = _participants(result)

    lines: list[str] = [
        f"# Brainstorm: {result.topic}\n",
        f"**Models:** {', '.join(participants)}",
        f"**Rounds:** {len(result.rounds)}",
        f"**Duration:** {stats.total_duration_sec:.1f}s | "
        f"**Tokens:** ~{stats.estimated_tokens:,} | "
        f"**Cost:** {stats.estimated_cost}",
    ]
    if result.models_failed:
        lines.append(f"**Failures:** {', '.join(result.models_failed)} (had errors in some rounds)")
    lines.append("")

    for i, rnd in enumerate(result.rounds):
        lines.append(f"## Round {rnd.number} - {_round_label(i, len(result.rounds))}\n")
        lines.append(format_round_responses(rnd.responses))

    lines += ["---\n", "## Synthesis\n", result.synthesis, ""]

    fail_note = f" {len(result.models_failed)} model(s) had failures." if result.models_failed else ""
    lines.append(
        f"---\n*Debate completed in {stats.total_duration_sec:.1f}s. "
        f"{len(participants)} models, {len(result.rounds)} round(s). "
        f"~{stats.estimated_tokens:,} tokens ({stats.estimated_cost}).{fail_note}*"
    )
    return "\n".join(lines)


def _response_preview(response: RoundResponse, words: int = 50) -> str:
    """Return first N words of a response."""
    all_words = response.content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def print_round(round_num: int, responses: list[RoundResponse], full: bool = False) -> None:
    """Print one round's responses to the console, previewed unless ``full``."""
    console.print(Rule(f"[bold cyan]Round {round_num}[/bold cyan]"))
    for resp in responses:
        if resp.error is not None:
            body: Text | Markdown = Text(resp.error, style="red")
            border = "red"
        else:
            body = Markdown(resp.content) if full else Text(_response_preview(resp))
            border = "dim"
        console.print(
            Panel(
                body,
                title=f"[bold]{resp.model_id}[/bold]",
                subtitle=f"{resp.latency_sec:.1f}s" if resp.latency_sec else None,
                border_style=border,
            )
        )


def print_result(result: DebateResult) -> None:
    """Print the synthesis and debate stats using Rich markdown."""
    stats = result.stats
    console.print(Rule("[bold green]Synthesis[/bold green]"))
    console.print(
        Text(
            f"Duration: {stats.total_duration_sec:.1f}s | "
            f"Rounds: {len(result.rounds)} | "
            f"Tokens: ~{stats.estimated_tokens:,} | "
            f"Cost: {stats.estimated_cost}",
            style="dim",
        )
    )
    if result.models_failed:
        console.print(Text(f"Failures: {', '.join(result.models_failed)}", style="yellow"))
    console.print(Markdown(result.synthesis))


def save_to_file(result: DebateResult, output_dir: Path) -> Path:
    """Save the full debate as a markdown file and return its path."""
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(result.topic) or 'brainstorm'}.md"
    filepath.write_text(format_result(result), encoding="utf-8")
    logger.info("Debate saved to: %s", filepath)
    return filepath
