"""Pure dataclasses for the brainstorm debate pipeline. No logic, no deps."""

from dataclasses import dataclass, field


@dataclass
class ResolvedModel:
    provider: str          # "openai", "deepseek", "groq", ...
    model_id: str          # model string sent to the backend
    base_url: str
    api_key_env: str       # env var holding the key, or "NONE"


@dataclass
class RoundResponse:
    model_id: str          # "provider:model" label
    round_number: int
    content: str
    error: str | None = None
    latency_sec: float = 0.0

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class Round:
    number: int
    responses: list[RoundResponse] = field(default_factory=list)


@dataclass
class RoundOutcome:
    responses: list[RoundResponse]
    failed_models: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DebateStats:
    total_duration_sec: float
    estimated_tokens: int
    estimated_cost: str    # "~$0.0123"


@dataclass(frozen=True)
class DebateResult:
    topic: str
    rounds: list[Round]
    synthesis: str
    models_failed: list[str]
    stats: DebateStats


@dataclass
class Session:
    id: str
    topic: str
    model_identifiers: list[str]
    total_rounds: int
    synthesizer: str
    created_at: float
    started_at: float
    instruction: str | None = None
    current_round: int = 0
    rounds: list[Round] = field(default_factory=list)
    failed_models: list[str] = field(default_factory=list)
    total_chars_processed: int = 0
    status: str = "awaiting_host"  # "awaiting_host" or "complete"
