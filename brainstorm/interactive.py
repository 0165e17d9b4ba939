"""Session-driven debate where a host contributes a turn between rounds.

State machine per session:

    start_session          -> round 1 stored, status "awaiting_host"
    submit_host_response   -> host turn appended, then either
                                next round stored (still "awaiting_host"), or
                                synthesis run, status "complete", session deleted
"""

import logging
import time
from dataclasses import dataclass, replace

from config.config_loader import PromptsConfig
from brainstorm.client import ModelClient
from brainstorm.debate import add_failed, estimate_cost, estimate_debate_tokens, run_external_round
from brainstorm.events import ProgressCallback, emit
from brainstorm.history import MAX_CONTEXT_CHARS
from brainstorm.models import DebateResult, DebateStats, Round, RoundOutcome, RoundResponse, Session
from brainstorm.sessions import SessionComplete, SessionNotFound, SessionStore
from brainstorm.synthesis import run_synthesis

logger = logging.getLogger(__name__)

HOST_MODEL_ID = "host:participant"
MIN_HOST_RESPONSE_CHARS = 50


@dataclass
class HostTurnResult:
    """What a host turn produced: the next round, or the finished debate."""

    session_id: str
    round_number: int
    total_rounds: int
    outcome: RoundOutcome | None = None
    result: DebateResult | None = None

    @property
    def complete(self) -> bool:
        return self.result is not None

    @property
    def remaining_rounds(self) -> int:
        return self.total_rounds - self.round_number


async def start_session(
    store: SessionStore,
    client: ModelClient,
    topic: str,
    model_ids: list[str],
    total_rounds: int,
    synthesizer: str | None = None,
    instruction: str | None = None,
    prompts: PromptsConfig | None = None,
    on_progress: ProgressCallback | None = None,
    context_chars: int = MAX_CONTEXT_CHARS,
) -> tuple[Session, RoundOutcome]:
    """Run round 1 with the external models and open a session for the host.

    Raises:
        ResolutionError: None of the identifiers could be resolved.
        ValueError: ``model_ids`` is empty or ``total_rounds`` < 1.
    """
    if total_rounds < 1:
        raise ValueError(f"total_rounds must be >= 1, got {total_rounds}")
    if not model_ids:
        raise ValueError("At least one model is required")

    started_at = time.monotonic()
    outcome = await run_external_round(
        topic,
        model_ids,
        1,
        total_rounds,
        [],
        client,
        instruction=instruction,
        prompts=prompts,
        on_progress=on_progress,
        context_chars=context_chars,
    )

    session = store.create(
        topic=topic,
        model_identifiers=model_ids,
        total_rounds=total_rounds,
        synthesizer=synthesizer or model_ids[0],
        instruction=instruction,
    )
    session.started_at = started_at
    session.rounds.append(Round(number=1, responses=outcome.responses))
    session.current_round = 1
    session.total_chars_processed += sum(len(r.content) for r in outcome.responses)
    add_failed(session.failed_models, outcome.failed_models)

    logger.info("Session %s opened: %d models, %d rounds", session.id, len(model_ids), total_rounds)
    return session, outcome


async def _finish(
    store: SessionStore,
    client: ModelClient,
    session: Session,
    transcript: list[Round],
    prompts: PromptsConfig | None,
    on_progress: ProgressCallback | None,
    context_chars: int,
) -> DebateResult:
    synthesis = await run_synthesis(
        session.topic,
        transcript,
        session.synthesizer,
        session.model_identifiers,
        client,
        prompts=prompts,
        on_progress=on_progress,
        context_chars=context_chars,
    )
    session.rounds = transcript
    # final host turn plus the synthesis
    session.total_chars_processed += len(transcript[-1].responses[-1].content) + len(synthesis)

    duration = time.monotonic() - session.started_at
    tokens = estimate_debate_tokens(session.topic, session.total_rounds, session.total_chars_processed)
    stats = DebateStats(
        total_duration_sec=duration,
        estimated_tokens=tokens,
        estimated_cost=estimate_cost([*session.model_identifiers, HOST_MODEL_ID], tokens),
    )
    result = DebateResult(
        topic=session.topic,
        rounds=list(session.rounds),
        synthesis=synthesis,
        models_failed=list(session.failed_models),
        stats=stats,
    )

    session.status = "complete"
    store.delete(session.id)

    emit(on_progress, f"Brainstorm complete in {duration:.1f}s. ~{tokens:,} tokens, {stats.estimated_cost}")
    return result


async def submit_host_response(
    store: SessionStore,
    client: ModelClient,
    session_id: str,
    response: str,
    prompts: PromptsConfig | None = None,
    on_progress: ProgressCallback | None = None,
    context_chars: int = MAX_CONTEXT_CHARS,
) -> HostTurnResult:
    """Record the host's turn for the current round and advance the debate.

    The session is only updated once the next round (or the synthesis) has
    settled, so a cancelled call can be retried with the same response.

    Raises:
        ValueError: ``response`` is shorter than MIN_HOST_RESPONSE_CHARS.
        SessionNotFound: Unknown, expired, or already deleted session id.
        SessionComplete: The session already produced its result.
    """
    if len(response.strip()) < MIN_HOST_RESPONSE_CHARS:
        raise ValueError(
            f"Host response must be at least {MIN_HOST_RESPONSE_CHARS} characters, "
            f"got {len(response.strip())}"
        )

    session = store.get(session_id)
    if session is None:
        raise SessionNotFound(session_id)
    if session.status == "complete":
        raise SessionComplete(session_id)

    current = session.current_round
    host_turn = RoundResponse(model_id=HOST_MODEL_ID, round_number=current, content=response)
    transcript = [
        *session.rounds[: current - 1],
        Round(number=current, responses=[*session.rounds[current - 1].responses, host_turn]),
    ]
    emit(on_progress, f"Round {current}: {HOST_MODEL_ID} responded ({len(response)} chars)")

    if current >= session.total_rounds:
        result = await _finish(store, client, session, transcript, prompts, on_progress, context_chars)
        return HostTurnResult(
            session_id=session_id,
            round_number=current,
            total_rounds=session.total_rounds,
            result=result,
        )

    prompts = prompts or PromptsConfig()
    next_round = current + 1
    outcome = await run_external_round(
        session.topic,
        session.model_identifiers,
        next_round,
        session.total_rounds,
        transcript,
        client,
        instruction=session.instruction,
        prompts=replace(prompts, refine_system=prompts.host_refine_system),
        on_progress=on_progress,
        context_chars=context_chars,
    )
    session.rounds = [*transcript, Round(number=next_round, responses=outcome.responses)]
    session.current_round = next_round
    session.total_chars_processed += len(response) + sum(len(r.content) for r in outcome.responses)
    add_failed(session.failed_models, outcome.failed_models)

    return HostTurnResult(
        session_id=session_id,
        round_number=next_round,
        total_rounds=session.total_rounds,
        outcome=outcome,
    )
