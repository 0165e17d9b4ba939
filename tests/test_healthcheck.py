"""Tests for brainstorm/healthcheck.py."""

import asyncio

import brainstorm.healthcheck as hc
from brainstorm.client import ModelTimeout
from tests.conftest import FakeClient


async def test_all_models_ok(fake_client, three_models):
    results = await hc.run_health_checks(fake_client, three_models)
    assert results == {mid: (True, "") for mid in three_models}


async def test_failing_model_reported(registry, three_models):
    client = FakeClient(registry, {"deepseek:deepseek-chat": ModelTimeout("deepseek:deepseek-chat", "timed out after 15s")})

    results = await hc.run_health_checks(client, three_models)

    assert results["openai:gpt-4o"] == (True, "")
    ok, err = results["deepseek:deepseek-chat"]
    assert ok is False
    assert "timed out" in err


async def test_unresolvable_model_reported(fake_client):
    results = await hc.run_health_checks(fake_client, ["openai:gpt-4o", "nope:x"])
    ok, err = results["nope:x"]
    assert ok is False
    assert "Unknown provider" in err


async def test_ping_uses_short_timeout(registry):
    seen = {}

    class RecordingClient(FakeClient):
        async def call(self, model, label, system_message, user_message, timeout_sec=None):
            seen[label] = timeout_sec
            await asyncio.sleep(0)
            return "OK"

    await hc.run_health_checks(RecordingClient(registry), ["openai:gpt-4o"])
    assert seen == {"openai:gpt-4o": hc._TIMEOUT_SEC}
