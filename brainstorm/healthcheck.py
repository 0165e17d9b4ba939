"""Model health checks: ping each backend before starting a debate."""

import asyncio
import logging

from brainstorm.client import ModelClient

logger = logging.getLogger(__name__)

_PING_SYSTEM = "You are a connectivity check."
_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(client: ModelClient, identifier: str) -> tuple[str, bool, str]:
    """Ping a single model. Returns (identifier, ok, error_message)."""
    try:
        model = client.resolve(identifier)
        await client.call(model, identifier, _PING_SYSTEM, _PING_PROMPT, timeout_sec=_TIMEOUT_SEC)
        return identifier, True, ""
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", identifier, exc)
        return identifier, False, str(exc)


async def run_health_checks(client: ModelClient, model_ids: list[str]) -> dict[str, tuple[bool, str]]:
    """Ping all models in parallel.

    Returns:
        Dict mapping model identifier -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(client, mid) for mid in model_ids))
    return {mid: (ok, err) for mid, ok, err in results}
