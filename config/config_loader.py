"""Load brainstorm.yaml (or env vars) into typed dataclasses."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_FILENAME = "brainstorm.yaml"
_CONFIG_ENV = "BRAINSTORM_CONFIG"
_EXTRA_PROVIDERS_ENV = "BRAINSTORM_EXTRA_PROVIDERS"

# Marker for backends that need no API key (e.g. a local Ollama)
NO_API_KEY = "NONE"

KNOWN_BASE_URLS: dict[str, str] = {
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com",
    "groq": "https://api.groq.com/openai/v1",
    "mistral": "https://api.mistral.ai/v1",
    "together": "https://api.together.xyz/v1",
}

KNOWN_DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o",
    "deepseek": "deepseek-chat",
}

_BUILTIN_ENV_PROVIDERS = (("openai", "OPENAI"), ("deepseek", "DEEPSEEK"))


@dataclass
class ProviderConfig:
    name: str
    base_url: str
    api_key_env: str
    default_model: str


@dataclass
class PromptsConfig:
    initial_system: str = (
        "You are participating in a multi-model brainstorming debate. "
        "Provide your best thinking on the given topic. "
        "Be specific, creative, and substantive."
    )
    refine_system: str = (
        "You are in round {round} of {total_rounds} of a multi-model brainstorming debate. "
        "You can see all previous responses from all participants. "
        "Build upon the best ideas, challenge weak reasoning, add new perspectives, "
        "and refine your position. Be specific about what you agree/disagree with and why."
    )
    host_refine_system: str = (
        "You are in round {round} of {total_rounds} of a multi-model brainstorming debate. "
        "You can see all previous responses from all participants (including the human host). "
        "Build upon the best ideas, challenge weak reasoning, add new perspectives, "
        "and refine your position. Be specific about what you agree/disagree with and why."
    )
    refine_user: str = (
        "Original topic: {topic}\n\n{history}\n\n"
        "Now provide your refined response for round {round}. "
        "Critique, build upon, or refute specific points above and state your refined position."
    )
    synthesis_system: str = (
        "You are the synthesizer in a multi-model brainstorming debate. "
        "Create a comprehensive, well-organized final output that: "
        "(1) Identifies the strongest ideas and points of consensus, "
        "(2) Notes important points of disagreement and why they matter, "
        "(3) Provides a clear, actionable conclusion. "
        "Be thorough but concise."
    )
    synthesis_user: str = (
        "Original topic: {topic}\n\n{history}\n\n"
        "Please synthesize the above debate into a comprehensive final output."
    )


@dataclass
class DefaultsConfig:
    rounds: int = 3
    max_rounds: int = 10
    timeout_sec: float = 120.0
    max_output_tokens: int = 4096
    temperature: float = 0.7
    context_chars: int = 12_000
    # Human hosts type between rounds, so sessions outlive the core store default
    session_ttl_sec: float = 3600.0
    output_dir: Path = Path("output")
    synthesizer: str | None = None


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    providers: dict[str, ProviderConfig]
    prompts: PromptsConfig = field(default_factory=PromptsConfig)
    source: str = "env"


def _settings_path(settings_path: Path | None) -> Path:
    if settings_path is not None:
        return settings_path
    env_path = os.environ.get(_CONFIG_ENV, "").strip()
    if env_path:
        return Path(env_path)
    return Path.cwd() / _SETTINGS_FILENAME


def _parse_providers(providers_raw: dict) -> dict[str, ProviderConfig]:
    providers: dict[str, ProviderConfig] = {}
    for name, p in (providers_raw or {}).items():
        if not isinstance(p, dict):
            logger.warning("Skipping provider '%s': expected a mapping, got %s", name, type(p).__name__)
            continue
        base_url = (
            p.get("base_url")
            or KNOWN_BASE_URLS.get(name)
            or KNOWN_BASE_URLS.get(p.get("type", ""))
            or ""
        )
        if not base_url:
            logger.warning("Skipping provider '%s': no base_url and not a known provider", name)
            continue
        if "model" not in p:
            logger.warning("Skipping provider '%s': no model configured", name)
            continue
        providers[name] = ProviderConfig(
            name=name,
            base_url=base_url,
            api_key_env=p.get("api_key_env") or NO_API_KEY,
            default_model=str(p["model"]),
        )
    return providers


def _parse_defaults(defaults_raw: dict) -> DefaultsConfig:
    defaults = DefaultsConfig()
    if "rounds" in defaults_raw:
        defaults.rounds = int(defaults_raw["rounds"])
    if "max_rounds" in defaults_raw:
        defaults.max_rounds = int(defaults_raw["max_rounds"])
    if "timeout_sec" in defaults_raw:
        defaults.timeout_sec = float(defaults_raw["timeout_sec"])
    if "max_output_tokens" in defaults_raw:
        defaults.max_output_tokens = int(defaults_raw["max_output_tokens"])
    if "temperature" in defaults_raw:
        defaults.temperature = float(defaults_raw["temperature"])
    if "context_chars" in defaults_raw:
        defaults.context_chars = int(defaults_raw["context_chars"])
    if "session_ttl_sec" in defaults_raw:
        defaults.session_ttl_sec = float(defaults_raw["session_ttl_sec"])
    if "output_dir" in defaults_raw:
        defaults.output_dir = Path(defaults_raw["output_dir"])
    if defaults_raw.get("synthesizer"):
        defaults.synthesizer = str(defaults_raw["synthesizer"])
    return defaults


def _parse_prompts(prompts_raw: dict) -> PromptsConfig:
    known = PromptsConfig.__dataclass_fields__
    unknown = sorted(set(prompts_raw) - set(known))
    if unknown:
        logger.warning("Ignoring unknown prompt keys: %s", ", ".join(unknown))
    return PromptsConfig(**{k: str(v) for k, v in prompts_raw.items() if k in known})


def providers_from_env(environ: dict[str, str] | None = None) -> dict[str, ProviderConfig]:
    """Detect providers from OPENAI_*, DEEPSEEK_* and BRAINSTORM_EXTRA_PROVIDERS."""
    env = os.environ if environ is None else environ
    providers: dict[str, ProviderConfig] = {}

    for name, prefix in _BUILTIN_ENV_PROVIDERS:
        if not env.get(f"{prefix}_API_KEY", "").strip():
            continue
        providers[name] = ProviderConfig(
            name=name,
            base_url=env.get(f"{prefix}_BASE_URL") or KNOWN_BASE_URLS.get(name, ""),
            api_key_env=f"{prefix}_API_KEY",
            default_model=env.get(f"{prefix}_DEFAULT_MODEL") or KNOWN_DEFAULT_MODELS.get(name, ""),
        )

    extras = env.get(_EXTRA_PROVIDERS_ENV, "")
    for prefix in [s.strip() for s in extras.split(",") if s.strip()]:
        base_url = env.get(f"{prefix}_BASE_URL")
        default_model = env.get(f"{prefix}_DEFAULT_MODEL")
        if not base_url or not default_model:
            logger.warning(
                "Skipping '%s': need %s_BASE_URL and %s_DEFAULT_MODEL", prefix, prefix, prefix
            )
            continue
        name = prefix.lower()
        providers[name] = ProviderConfig(
            name=name,
            base_url=base_url,
            api_key_env=f"{prefix}_API_KEY" if env.get(f"{prefix}_API_KEY") else NO_API_KEY,
            default_model=default_model,
        )

    return providers


def load_config(settings_path: Path | None = None) -> AppConfig:
    """Load configuration from brainstorm.yaml, falling back to env vars.

    An explicitly passed path that does not exist raises FileNotFoundError.
    When no path is passed and no file is found, providers are detected
    from the environment and every other setting keeps its default.
    """
    explicit = settings_path is not None or bool(os.environ.get(_CONFIG_ENV, "").strip())
    path = _settings_path(settings_path)

    if not path.exists():
        if explicit:
            raise FileNotFoundError(f"Settings file not found: {path}")
        logger.info("No %s found, detecting providers from env vars", _SETTINGS_FILENAME)
        providers = providers_from_env()
        logger.info("Detected %d provider(s) from env vars", len(providers))
        return AppConfig(defaults=DefaultsConfig(), providers=providers, source="env")

    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    providers = _parse_providers(raw.get("providers", {}))
    defaults = _parse_defaults(raw.get("defaults", {}) or {})
    prompts = _parse_prompts(raw.get("prompts", {}) or {})

    logger.info("Loaded %d provider(s) from %s", len(providers), path)
    return AppConfig(defaults=defaults, providers=providers, prompts=prompts, source=str(path))
