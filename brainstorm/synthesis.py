"""Final synthesis: consolidate the transcript, falling back across participants."""

import logging

from config.config_loader import PromptsConfig
from brainstorm.client import ModelClient
from brainstorm.events import ProgressCallback, emit
from brainstorm.history import MAX_CONTEXT_CHARS, build_history_context
from brainstorm.models import Round

logger = logging.getLogger(__name__)

FALLBACK_SYNTHESIS = (
    "Synthesis failed: all models encountered errors during the synthesis step. "
    "Please review the raw debate rounds above."
)


async def _try_synthesizer(client: ModelClient, identifier: str, system: str, user: str) -> str | None:
    """Return the synthesis from ``identifier``, or None if it could not produce one."""
    try:
        model = client.resolve(identifier)
        return await client.call(model, identifier, system, user)
    except Exception as exc:
        logger.warning("Synthesis via %s failed: %s", identifier, exc)
        return None


async def run_synthesis(
    topic: str,
    rounds: list[Round],
    synthesizer_id: str,
    model_ids: list[str],
    client: ModelClient,
    prompts: PromptsConfig | None = None,
    on_progress: ProgressCallback | None = None,
    context_chars: int = MAX_CONTEXT_CHARS,
) -> str:
    """Ask the synthesizer to consolidate the debate.

    On failure every other participant in ``model_ids`` is tried in order.
    If all of them fail, FALLBACK_SYNTHESIS is returned. Never raises.
    """
    prompts = prompts or PromptsConfig()
    history = build_history_context(rounds, context_chars)
    system = prompts.synthesis_system
    user = prompts.synthesis_user.format(topic=topic, history=history)

    emit(on_progress, f"Synthesizing final output using {synthesizer_id}...")

    synthesis = await _try_synthesizer(client, synthesizer_id, system, user)
    if synthesis is not None:
        return synthesis

    emit(on_progress, f"Synthesizer {synthesizer_id} failed, trying fallback models...")
    for identifier in model_ids:
        if identifier == synthesizer_id:
            continue
        synthesis = await _try_synthesizer(client, identifier, system, user)
        if synthesis is not None:
            emit(on_progress, f"Synthesis completed by fallback model {identifier}")
            return synthesis

    logger.error("All %d synthesis attempts failed", len(set(model_ids) | {synthesizer_id}))
    return FALLBACK_SYNTHESIS
