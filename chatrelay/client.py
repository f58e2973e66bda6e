from typing import AsyncIterator, Dict, Iterable, List, Optional, Sequence

from .cancellation import CancellationToken
from .capabilities import CapabilityResolver
from .errors import ProviderNotConfiguredError
from .files import FileStore
from .providers.base import BaseProvider, ChunkCallback, FilterCallback
from .providers.openai import OpenAIProvider
from .settings import RelaySettings, provider_from_env
from .types import Assistant, CheckResult, CompletionChunk, Message, Model, Provider

PROVIDER_ALIASES = {
    "azure": "azure-openai",
    "lm-studio": "lmstudio",
}


def create_provider(
    provider: Provider,
    files: FileStore,
    resolver: Optional[CapabilityResolver] = None,
    settings: Optional[RelaySettings] = None,
) -> BaseProvider:
    match provider.type:
        case "openai" | "azure-openai":
            return OpenAIProvider(provider, files, resolver=resolver, settings=settings)
        case _:
            raise ProviderNotConfiguredError(f"Unsupported provider type: {provider.type!r}")


class ProviderRegistry:
    """
    Configured providers keyed by provider id.

    The registry owns no request state: each call is delegated to the
    provider instance, which builds and sends its own request.
    """

    def __init__(
        self,
        files: FileStore,
        resolver: Optional[CapabilityResolver] = None,
        settings: Optional[RelaySettings] = None,
    ):
        self.files = files
        self.resolver = resolver
        self.settings = settings
        self.providers: Dict[str, BaseProvider] = {}

    @classmethod
    def from_env(
        cls,
        provider_ids: Iterable[str],
        files: FileStore,
        resolver: Optional[CapabilityResolver] = None,
        settings: Optional[RelaySettings] = None,
    ) -> "ProviderRegistry":
        """
        Register every listed provider that has an API key in the environment.

        Providers without credentials are skipped so the registry can work with
        a subset of them.
        """
        registry = cls(files, resolver=resolver, settings=settings)
        for provider_id in provider_ids:
            try:
                registry.register(provider_from_env(cls.normalize_id(provider_id)))
            except ProviderNotConfiguredError:
                continue
        return registry

    @staticmethod
    def normalize_id(provider_id: str) -> str:
        provider_id = provider_id.lower()
        return PROVIDER_ALIASES.get(provider_id, provider_id)

    def register(self, provider: Provider) -> BaseProvider:
        instance = create_provider(provider, self.files, resolver=self.resolver, settings=self.settings)
        self.providers[provider.id] = instance
        return instance

    def get(self, provider_id: str) -> BaseProvider:
        """
        Raises:
            ProviderNotConfiguredError: If the provider is not registered.
        """
        provider_id = self.normalize_id(provider_id)
        if provider_id not in self.providers:
            raise ProviderNotConfiguredError(f"Provider '{provider_id}' not configured or not supported.")
        return self.providers[provider_id]

    # ==========================================================================
    # Delegation
    # ==========================================================================

    async def list_models(self, provider_id: str) -> List[Model]:
        return await self.get(provider_id).models()

    async def check(self, provider_id: str, model: Optional[Model]) -> CheckResult:
        return await self.get(provider_id).check(model)

    async def completions(
        self,
        provider_id: str,
        messages: Sequence[Message],
        assistant: Assistant,
        on_chunk: ChunkCallback,
        on_filter_messages: Optional[FilterCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        await self.get(provider_id).completions(messages, assistant, on_chunk, on_filter_messages, cancel_token)

    async def astream(
        self,
        provider_id: str,
        messages: Sequence[Message],
        assistant: Assistant,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[CompletionChunk]:
        """
        Stream normalized completion events from the given provider.

        Raises:
            ProviderNotConfiguredError: If the provider is not registered.
        """
        provider = self.get(provider_id)
        async for chunk in provider.stream_completions(messages, assistant, cancel_token=cancel_token):
            yield chunk
