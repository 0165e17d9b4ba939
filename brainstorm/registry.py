"""Provider registry: resolve "provider:model" identifiers to connection parameters."""

import logging
from collections.abc import Iterable

from config.config_loader import ProviderConfig
from brainstorm.models import ResolvedModel

logger = logging.getLogger(__name__)


class ResolutionError(ValueError):
    """Raised when a model identifier cannot be resolved."""


class InvalidIdentifier(ResolutionError):
    """Identifier is not of the form "provider:model"."""


class UnknownProvider(ResolutionError):
    """Identifier names a provider that is not registered."""


class ProviderRegistry:
    """Registered providers, keyed by name. Lookups have no side effects."""

    def __init__(self, providers: Iterable[ProviderConfig] = ()) -> None:
        self._providers: dict[str, ProviderConfig] = {}
        for p in providers:
            self.add_provider(p)

    def add_provider(self, config: ProviderConfig) -> None:
        if config.name in self._providers:
            raise ValueError(f'Provider "{config.name}" already exists')
        self._providers[config.name] = config
        logger.debug("Registered provider %s (%s)", config.name, config.base_url)

    def get_provider(self, name: str) -> ProviderConfig | None:
        return self._providers.get(name)

    def list_providers(self) -> list[ProviderConfig]:
        return list(self._providers.values())

    def default_models(self) -> list[str]:
        """One "provider:default_model" identifier per registered provider."""
        return [f"{p.name}:{p.default_model}" for p in self._providers.values()]

    def _available(self) -> str:
        return ", ".join(self._providers) or "(none)"

    def resolve(self, identifier: str) -> ResolvedModel:
        """Resolve an identifier such as "openai:gpt-4o".

        Raises:
            InvalidIdentifier: No colon, or nothing after it.
            UnknownProvider: The provider part is not registered.
        """
        provider_name, sep, model_id = identifier.partition(":")
        if not sep:
            raise InvalidIdentifier(
                f'Invalid format "{identifier}". Use "provider:model" '
                f'(e.g. "openai:gpt-4o"). Available: {self._available()}'
            )
        if not model_id:
            raise InvalidIdentifier(
                f'No model in "{identifier}". Use "provider:model" format. '
                f"Available: {self._available()}"
            )

        provider = self._providers.get(provider_name)
        if provider is None:
            raise UnknownProvider(
                f'Unknown provider "{provider_name}". Available: {self._available()}'
            )

        return ResolvedModel(
            provider=provider_name,
            model_id=model_id,
            base_url=provider.base_url,
            api_key_env=provider.api_key_env,
        )
