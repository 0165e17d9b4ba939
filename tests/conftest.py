"""Shared pytest fixtures."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from config.config_loader import NO_API_KEY, AppConfig, DefaultsConfig, PromptsConfig, ProviderConfig
from brainstorm.client import ModelClient
from brainstorm.models import ResolvedModel, Round, RoundResponse
from brainstorm.registry import ProviderRegistry


class FakeClient(ModelClient):
    """Test double ModelClient: scripted replies per label, no network.

    ``replies`` maps a model label to a string, an exception instance, or a
    list of those consumed one per call. Unlisted labels answer with a
    canned sentence.
    """

    def __init__(self, registry: ProviderRegistry, replies: dict | None = None) -> None:
        super().__init__(registry, client_factory=MagicMock())
        self.replies = dict(replies or {})
        self.calls: list[tuple[str, str, str]] = []

    async def call(self, model, label, system_message, user_message, timeout_sec=None):  # type: ignore[override]
        self.calls.append((label, system_message, user_message))
        reply = self.replies.get(label, f"{label} thinks this is a reasonable idea.")
        if isinstance(reply, list):
            reply = reply.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    def user_messages_for(self, label: str) -> list[str]:
        return [user for lbl, _, user in self.calls if lbl == label]


@pytest.fixture
def provider_configs() -> list[ProviderConfig]:
    return [
        ProviderConfig("openai", "https://api.openai.com/v1", "OPENAI_API_KEY", "gpt-4o"),
        ProviderConfig("deepseek", "https://api.deepseek.com", "DEEPSEEK_API_KEY", "deepseek-chat"),
        ProviderConfig("ollama", "http://localhost:11434/v1", NO_API_KEY, "llama3"),
    ]


@pytest.fixture
def registry(provider_configs) -> ProviderRegistry:
    return ProviderRegistry(provider_configs)


@pytest.fixture
def fake_client(registry) -> FakeClient:
    return FakeClient(registry)


@pytest.fixture
def three_models() -> list[str]:
    return ["openai:gpt-4o", "deepseek:deepseek-chat", "ollama:llama3"]


@pytest.fixture
def sample_app_config(provider_configs, tmp_path) -> AppConfig:
    return AppConfig(
        defaults=DefaultsConfig(rounds=2, max_rounds=5, output_dir=tmp_path / "output"),
        providers={p.name: p for p in provider_configs},
        prompts=PromptsConfig(),
    )


@pytest.fixture
def resolved_openai() -> ResolvedModel:
    return ResolvedModel("openai", "gpt-4o", "https://api.openai.com/v1", "OPENAI_API_KEY")


@pytest.fixture
def sample_rounds() -> list[Round]:
    return [
        Round(
            number=1,
            responses=[
                RoundResponse("openai:gpt-4o", 1, "Use YAML for human-edited config."),
                RoundResponse("deepseek:deepseek-chat", 1, "Use JSON, it is stricter."),
            ],
        ),
        Round(
            number=2,
            responses=[
                RoundResponse("openai:gpt-4o", 2, "Still YAML, but validate with a schema."),
                RoundResponse("deepseek:deepseek-chat", 2, "", error="[deepseek:deepseek-chat] timed out after 120s"),
            ],
        ),
    ]


def make_completion(content: str | None) -> SimpleNamespace:
    """Shape of an openai ChatCompletion as far as ModelClient reads it."""
    if content is None:
        return SimpleNamespace(choices=[])
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def openai_factory() -> MagicMock:
    """Factory standing in for AsyncOpenAI; every built client shares one create mock."""
    create = AsyncMock(return_value=make_completion("Hello from the backend"))

    def build(**kwargs):
        sdk = MagicMock()
        sdk.init_kwargs = kwargs
        sdk.chat.completions.create = create
        return sdk

    factory = MagicMock(side_effect=build)
    factory.create = create
    return factory
