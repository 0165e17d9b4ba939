"""Click CLI: config loading, model selection, debate run, and output."""

import asyncio
import logging
import os
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.text import Text

from config.config_loader import NO_API_KEY, AppConfig, load_config
from brainstorm.client import ModelClient
from brainstorm.debate import run_debate
from brainstorm.healthcheck import run_health_checks
from brainstorm.interactive import HOST_MODEL_ID, MIN_HOST_RESPONSE_CHARS, start_session, submit_host_response
from brainstorm.models import DebateResult, Round
from brainstorm.output import print_result, print_round, save_to_file
from brainstorm.registry import ProviderRegistry, ResolutionError
from brainstorm.sessions import SessionError, SessionStore

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

MIN_MODELS = 2


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # openai/httpx are chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _build_client(config: AppConfig) -> ModelClient:
    registry = ProviderRegistry(config.providers.values())
    return ModelClient(
        registry,
        timeout_sec=config.defaults.timeout_sec,
        max_output_tokens=config.defaults.max_output_tokens,
        temperature=config.defaults.temperature,
    )


def _determine_models(registry: ProviderRegistry, models_arg: str | None) -> list[str]:
    """--models wins; otherwise every provider with its default model."""
    if models_arg:
        return [m.strip() for m in models_arg.split(",") if m.strip()]
    return registry.default_models()


def _print_providers(config: AppConfig) -> None:
    if not config.providers:
        console.print("No providers configured. Add brainstorm.yaml or set OPENAI_API_KEY / DEEPSEEK_API_KEY.")
        return
    console.print(f"[bold]Configured providers[/bold] [dim]({config.source})[/dim]")
    for p in config.providers.values():
        key_set = p.api_key_env == NO_API_KEY or bool(os.environ.get(p.api_key_env, "").strip())
        key_label = "[green]configured[/green]" if key_set else f"[red]MISSING ({p.api_key_env})[/red]"
        console.print(f"  [bold]{p.name}[/bold] -> default model: {p.default_model}  API key: {key_label}")


async def _check_and_filter_models(client: ModelClient, model_ids: list[str]) -> list[str]:
    """Run health checks, print results, and ask the user what to do on failures.

    Returns the working model ids. Exits if the user declines to continue or
    no model passes.
    """
    console.print("\n[bold]Checking models...[/bold]")
    results = await run_health_checks(client, model_ids)

    failed = [mid for mid in model_ids if not results[mid][0]]
    for mid in model_ids:
        ok, err = results[mid]
        if ok:
            console.print(f"  [green]OK  [/green] {mid}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {mid}: {escape(short_err)}")

    if not failed:
        console.print()
        return model_ids

    working = [mid for mid in model_ids if mid not in failed]
    if not working:
        console.print("\n[bold red]Error:[/bold red] No models passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed)} model(s) failed:[/yellow] {', '.join(failed)}")
    if not click.confirm(f"Continue with {', '.join(working)} only?", default=True):
        sys.exit(0)

    console.print()
    return working


def _on_progress(message: str) -> None:
    console.print(Text(f"[brainstorm] {message}", style="dim"))


def _read_host_response(round_number: int, total_rounds: int) -> str:
    remaining = total_rounds - round_number
    if remaining > 0:
        console.print(
            f"\n[bold]Your turn (round {round_number}).[/bold] Refine your position. "
            f"{remaining} more round(s) after this."
        )
    else:
        console.print(
            "\n[bold]Your turn (final round).[/bold] Give your best, refined position. "
            "The debate is synthesized afterwards."
        )
    while True:
        text = click.prompt("Your contribution", type=str).strip()
        if len(text) >= MIN_HOST_RESPONSE_CHARS:
            return text
        console.print(
            f"[yellow]Please engage with the responses above "
            f"(at least {MIN_HOST_RESPONSE_CHARS} characters, got {len(text)}).[/yellow]"
        )


async def _run_single(
    topic: str,
    client: ModelClient,
    config: AppConfig,
    model_ids: list[str],
    rounds: int,
    synthesizer: str,
    instruction: str | None,
) -> DebateResult:
    def on_round_complete(rnd: Round) -> None:
        print_round(rnd.number, rnd.responses)

    return await run_debate(
        topic,
        model_ids,
        rounds,
        client,
        synthesizer=synthesizer,
        instruction=instruction,
        prompts=config.prompts,
        on_progress=_on_progress,
        on_round_complete=on_round_complete,
        context_chars=config.defaults.context_chars,
    )


async def _run_interactive(
    topic: str,
    client: ModelClient,
    config: AppConfig,
    model_ids: list[str],
    rounds: int,
    synthesizer: str,
    instruction: str | None,
) -> DebateResult:
    """Alternate external rounds with the user's own turn as host."""
    store = SessionStore(ttl_sec=config.defaults.session_ttl_sec)
    session, outcome = await start_session(
        store,
        client,
        topic,
        model_ids,
        rounds,
        synthesizer=synthesizer,
        instruction=instruction,
        prompts=config.prompts,
        on_progress=_on_progress,
        context_chars=config.defaults.context_chars,
    )
    print_round(1, outcome.responses, full=True)
    round_number = 1

    while True:
        response = _read_host_response(round_number, rounds)
        turn = await submit_host_response(
            store,
            client,
            session.id,
            response,
            prompts=config.prompts,
            on_progress=_on_progress,
            context_chars=config.defaults.context_chars,
        )
        if turn.result is not None:
            return turn.result
        round_number = turn.round_number
        print_round(round_number, turn.outcome.responses, full=True)


async def _run(
    topic: str,
    client: ModelClient,
    config: AppConfig,
    model_ids: list[str],
    rounds: int,
    synthesizer: str | None,
    instruction: str | None,
    participate: bool,
    health_check: bool,
) -> DebateResult:
    """Health check, then the debate, on one event loop so pooled clients stay valid."""
    if health_check:
        model_ids = await _check_and_filter_models(client, model_ids)

    effective_synthesizer = synthesizer or config.defaults.synthesizer or model_ids[0]

    mode = " (participating)" if participate else ""
    console.print(f"\n[bold cyan]Brainstorm[/bold cyan] -- {len(model_ids)} models, {rounds} rounds{mode}")
    console.print(f"Models: {', '.join(model_ids)}")
    console.print(f"Synthesizer: {effective_synthesizer}")
    console.print(f"Topic: [italic]{escape(topic[:80])}{'...' if len(topic) > 80 else ''}[/italic]\n")

    runner = _run_interactive if participate else _run_single
    return await runner(topic, client, config, model_ids, rounds, effective_synthesizer, instruction)


@click.command()
@click.argument("topic", required=False)
@click.option("--file", "topic_file", type=click.Path(exists=True), help="Read the topic from a file")
@click.option("--models", default=None, help="Comma-separated provider:model list (default: every provider)")
@click.option("--rounds", default=None, type=int, help="Number of debate rounds (default: from config)")
@click.option("--synthesizer", default=None, help="provider:model that synthesizes (default: first model)")
@click.option("--instruction", default=None, help="Custom system prompt for round 1")
@click.option("--participate", is_flag=True, help=f"Take part as host ({HOST_MODEL_ID}) between rounds")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--no-save", is_flag=True, help="Do not write the markdown transcript")
@click.option("--list-providers", is_flag=True, help="List configured providers and exit")
@click.option("--config", "config_path", type=click.Path(), default=None, help="Path to brainstorm.yaml")
@click.option("--skip-health-check", is_flag=True, default=False, help="Skip the connectivity check at startup")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    topic: str | None,
    topic_file: str | None,
    models: str | None,
    rounds: int | None,
    synthesizer: str | None,
    instruction: str | None,
    participate: bool,
    output_path: str | None,
    no_save: bool,
    list_providers: bool,
    config_path: str | None,
    skip_health_check: bool,
    verbose: bool,
) -> None:
    """Brainstorm -- multi-model debate with synthesis.

    \b
    Examples:
      brainstorm "Should we use REST or GraphQL?"
      brainstorm "Monorepo vs polyrepo?" --rounds 2 --models openai:gpt-4o,deepseek:deepseek-chat
      brainstorm --file topic.md --participate
      brainstorm --list-providers
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(Path(config_path) if config_path else None)
    except (FileNotFoundError, ValueError, TypeError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if list_providers:
        _print_providers(config)
        return

    if topic_file:
        topic_text = Path(topic_file).read_text(encoding="utf-8").strip()
    elif topic:
        topic_text = topic
    else:
        console.print("[bold red]Error:[/bold red] Provide a TOPIC argument or --file.")
        sys.exit(1)

    effective_rounds = rounds if rounds is not None else config.defaults.rounds
    if not 1 <= effective_rounds <= config.defaults.max_rounds:
        console.print(
            f"[bold red]Error:[/bold red] --rounds must be between 1 and {config.defaults.max_rounds}."
        )
        sys.exit(1)

    client = _build_client(config)
    model_ids = _determine_models(client.registry, models)
    if len(model_ids) < MIN_MODELS:
        console.print(
            f"[bold red]Error:[/bold red] Need at least {MIN_MODELS} models to brainstorm, "
            f"got {len(model_ids)}. Configure more providers or pass --models."
        )
        sys.exit(1)

    effective_output = Path(output_path) if output_path else config.defaults.output_dir

    try:
        result = asyncio.run(
            _run(
                topic_text,
                client,
                config,
                model_ids,
                effective_rounds,
                synthesizer,
                instruction,
                participate=participate,
                health_check=not skip_health_check,
            )
        )
    except (ResolutionError, SessionError) as exc:
        console.print(f"[bold red]Brainstorm failed:[/bold red] {exc}")
        sys.exit(1)

    print_result(result)

    if not no_save:
        saved_path = save_to_file(result, effective_output)
        console.print(f"\n[dim]Saved to: {saved_path}[/dim]")


if __name__ == "__main__":
    main()
