"""Debate orchestration: concurrent model calls per round, full debate runs."""

import asyncio
import logging
import math
import time
from collections.abc import Callable

from config.config_loader import PromptsConfig
from brainstorm.client import ModelClient
from brainstorm.events import ProgressCallback, emit
from brainstorm.history import MAX_CONTEXT_CHARS, build_history_context
from brainstorm.models import DebateResult, DebateStats, ResolvedModel, Round, RoundOutcome, RoundResponse
from brainstorm.registry import ResolutionError
from brainstorm.synthesis import run_synthesis

logger = logging.getLogger(__name__)

# Quality gate: warn when fewer than this many models respond in Round 1
_MIN_QUALITY_RESPONSES = 3

# Rough blended (input + output) USD cost per 1M tokens
COST_PER_MILLION: dict[str, float] = {
    "gpt-4o": 5,
    "gpt-4.1": 4,
    "gpt-5.2": 15,
    "o3": 20,
    "o4-mini": 2,
    "deepseek-chat": 0.5,
    "deepseek-reasoner": 2,
    "gemini-2.5-pro": 5,
    "gemini-2.5-flash": 0.5,
    "gemini-2.0-flash": 0.3,
}
DEFAULT_COST_PER_MILLION = 3.0


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def estimate_cost(model_ids: list[str], total_tokens: int) -> str:
    """Average the per-million price of the given models and scale to ``total_tokens``."""
    if not model_ids:
        return "~$0.0000"
    prices = [
        COST_PER_MILLION.get(mid.partition(":")[2] or mid, DEFAULT_COST_PER_MILLION)
        for mid in model_ids
    ]
    avg = sum(prices) / len(prices)
    return f"~${total_tokens / 1_000_000 * avg:.4f}"


def estimate_debate_tokens(topic: str, rounds: int, total_chars_processed: int) -> int:
    return estimate_tokens(topic * rounds) + math.ceil(total_chars_processed / 4)


def add_failed(failed: list[str], new: list[str]) -> None:
    """Merge newly failed ids into a cumulative, insertion-ordered list."""
    for model_id in new:
        if model_id not in failed:
            failed.append(model_id)


def _resolve_all(client: ModelClient, model_ids: list[str]) -> list[ResolvedModel | ResolutionError]:
    """Resolve each identifier on its own; raise only if none resolves."""
    if not model_ids:
        raise ValueError("At least one model is required")

    resolved: list[ResolvedModel | ResolutionError] = []
    for mid in model_ids:
        try:
            resolved.append(client.resolve(mid))
        except ResolutionError as exc:
            logger.warning("Cannot resolve %s: %s", mid, exc)
            resolved.append(exc)

    if all(isinstance(r, ResolutionError) for r in resolved):
        raise resolved[0]
    return resolved


async def _call_model(
    client: ModelClient,
    model: ResolvedModel | ResolutionError,
    label: str,
    round_number: int,
    system_message: str,
    user_message: str,
) -> RoundResponse:
    """Call one model and fold the outcome into a RoundResponse.

    Never raises: every failure becomes the response's ``error``.
    """
    if isinstance(model, ResolutionError):
        return RoundResponse(model_id=label, round_number=round_number, content="", error=str(model))

    start = time.monotonic()
    try:
        content = await client.call(model, label, system_message, user_message)
    except Exception as exc:
        logger.warning("Model %s failed in round %d: %s", label, round_number, exc)
        return RoundResponse(
            model_id=label,
            round_number=round_number,
            content="",
            error=str(exc) or type(exc).__name__,
            latency_sec=time.monotonic() - start,
        )
    return RoundResponse(
        model_id=label,
        round_number=round_number,
        content=content,
        latency_sec=time.monotonic() - start,
    )


def _round_messages(
    topic: str,
    round_number: int,
    total_rounds: int,
    previous_rounds: list[Round],
    instruction: str | None,
    prompts: PromptsConfig,
    context_chars: int,
) -> tuple[str, str]:
    """Return (system, user) messages for a round."""
    if round_number == 1:
        return instruction or prompts.initial_system, topic

    history = build_history_context(previous_rounds, context_chars)
    system = prompts.refine_system.format(round=round_number, total_rounds=total_rounds)
    user = prompts.refine_user.format(topic=topic, history=history, round=round_number)
    return system, user


async def run_external_round(
    topic: str,
    model_ids: list[str],
    round_number: int,
    total_rounds: int,
    previous_rounds: list[Round],
    client: ModelClient,
    instruction: str | None = None,
    prompts: PromptsConfig | None = None,
    on_progress: ProgressCallback | None = None,
    context_chars: int = MAX_CONTEXT_CHARS,
) -> RoundOutcome:
    """Run one round against every external model concurrently.

    Waits until every call has settled. Returns one response per model in
    ``model_ids`` order, failures included.

    Raises:
        ResolutionError: None of the identifiers could be resolved.
        ValueError: ``model_ids`` is empty.
    """
    prompts = prompts or PromptsConfig()
    resolved = _resolve_all(client, model_ids)
    system, user = _round_messages(
        topic, round_number, total_rounds, previous_rounds, instruction, prompts, context_chars
    )

    verb = "responding" if round_number == 1 else "refining"
    emit(on_progress, f"Round {round_number}/{total_rounds}: {', '.join(model_ids)} {verb}...")

    responses = list(
        await asyncio.gather(
            *(
                _call_model(client, model, label, round_number, system, user)
                for model, label in zip(resolved, model_ids)
            )
        )
    )

    failed: list[str] = []
    for resp in responses:
        if resp.failed:
            add_failed(failed, [resp.model_id])
            emit(on_progress, f"Round {round_number}: {resp.model_id} failed: {resp.error}")
        else:
            emit(on_progress, f"Round {round_number}: {resp.model_id} responded ({len(resp.content)} chars)")

    succeeded = len(responses) - len(failed)
    if round_number == 1 and len(model_ids) >= _MIN_QUALITY_RESPONSES and succeeded < _MIN_QUALITY_RESPONSES:
        logger.warning(
            "Only %d/%d models responded in Round 1. Debate quality is degraded.",
            succeeded,
            len(model_ids),
        )

    return RoundOutcome(responses=responses, failed_models=failed)


async def run_debate(
    topic: str,
    model_ids: list[str],
    rounds: int,
    client: ModelClient,
    synthesizer: str | None = None,
    instruction: str | None = None,
    prompts: PromptsConfig | None = None,
    on_progress: ProgressCallback | None = None,
    on_round_complete: Callable[[Round], None] | None = None,
    context_chars: int = MAX_CONTEXT_CHARS,
) -> DebateResult:
    """Run every round plus synthesis and return the finished DebateResult.

    Per-model failures never abort the debate; they show up in
    ``models_failed`` and as error responses in the transcript.

    Raises:
        ResolutionError: None of the identifiers could be resolved.
        ValueError: ``model_ids`` is empty or ``rounds`` < 1.
    """
    if rounds < 1:
        raise ValueError(f"rounds must be >= 1, got {rounds}")
    if not model_ids:
        raise ValueError("At least one model is required")

    start = time.monotonic()
    prompts = prompts or PromptsConfig()
    synthesizer_id = synthesizer or model_ids[0]

    planned_tokens = len(model_ids) * (
        client.max_output_tokens * (rounds + 1) + estimate_tokens(topic) * rounds
    )
    emit(
        on_progress,
        f"Starting brainstorm: {len(model_ids)} models, {rounds} rounds. "
        f"Estimated cost: {estimate_cost(model_ids, planned_tokens)}",
    )

    all_rounds: list[Round] = []
    failed: list[str] = []
    total_chars = 0

    for round_number in range(1, rounds + 1):
        outcome = await run_external_round(
            topic,
            model_ids,
            round_number,
            rounds,
            all_rounds,
            client,
            instruction=instruction,
            prompts=prompts,
            on_progress=on_progress,
            context_chars=context_chars,
        )
        current = Round(number=round_number, responses=outcome.responses)
        all_rounds.append(current)
        add_failed(failed, outcome.failed_models)
        total_chars += sum(len(r.content) for r in outcome.responses)

        logger.info(
            "Round %d complete: %d/%d models succeeded",
            round_number,
            len(outcome.responses) - len(outcome.failed_models),
            len(outcome.responses),
        )
        if on_round_complete:
            on_round_complete(current)

    synthesis = await run_synthesis(
        topic,
        all_rounds,
        synthesizer_id,
        model_ids,
        client,
        prompts=prompts,
        on_progress=on_progress,
        context_chars=context_chars,
    )
    total_chars += len(synthesis)

    duration = time.monotonic() - start
    tokens = estimate_debate_tokens(topic, rounds, total_chars)
    stats = DebateStats(
        total_duration_sec=duration,
        estimated_tokens=tokens,
        estimated_cost=estimate_cost(model_ids, tokens),
    )
    emit(
        on_progress,
        f"Brainstorm complete in {duration:.1f}s. ~{tokens:,} tokens, {stats.estimated_cost}",
    )

    return DebateResult(
        topic=topic,
        rounds=all_rounds,
        synthesis=synthesis,
        models_failed=failed,
        stats=stats,
    )
