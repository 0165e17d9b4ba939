"""Render prior rounds into one bounded-size context block."""

from brainstorm.models import Round

MAX_CONTEXT_CHARS = 12_000
TRUNCATION_MARKER = "\n[...truncated for context limits]"
HISTORY_HEADER = "=== Previous Responses ==="


def build_history_context(rounds: list[Round], max_chars: int = MAX_CONTEXT_CHARS) -> str:
    """Format all prior rounds, truncating responses when they exceed ``max_chars``.

    Over budget, every response gets an equal share of ``max_chars`` (failed
    responses count towards the divisor but render without content), so one
    long answer cannot crowd the others out of the next prompt.
    """
    total_chars = sum(len(resp.content) for rnd in rounds for resp in rnd.responses)
    total_responses = sum(len(rnd.responses) for rnd in rounds)

    per_response: int | None = None
    if total_chars > max_chars:
        per_response = max_chars // max(total_responses, 1)

    sections: list[str] = []
    for rnd in rounds:
        lines = [f"--- Round {rnd.number} ---"]
        for resp in rnd.responses:
            if resp.error is not None:
                lines.append(f"[{resp.model_id}] (FAILED: {resp.error})\n")
                continue
            content = resp.content
            if per_response is not None and len(content) > per_response:
                content = content[:per_response] + TRUNCATION_MARKER
            lines.append(f"[{resp.model_id}]:\n{content}\n")
        sections.append("\n".join(lines))

    return f"{HISTORY_HEADER}\n\n" + "\n\n".join(sections)
