import asyncio
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence

from ..cancellation import CancellationToken
from ..capabilities import CapabilityResolver, DefaultCapabilityResolver, ProviderCapabilities, capabilities_for
from ..files import FileStore
from ..history import filter_context_messages
from ..settings import APP_NAME, APP_URL, RelaySettings, format_api_host
from ..types import (
    Assistant, CheckResult, CompletionChunk, GenerateImageParams, Message, Model, Provider, Suggestion,
)

ChunkCallback = Callable[[CompletionChunk], Any]
FilterCallback = Callable[[List[Message]], Any]
MessageFilter = Callable[[Sequence[Message]], List[Message]]


class BaseProvider(ABC):
    """
    Abstract base class for chat providers.

    Holds the provider configuration and the external collaborators every
    implementation needs: a FileStore for attachments, a CapabilityResolver
    for model flags, and app-level RelaySettings.
    """

    def __init__(
        self,
        provider: Provider,
        files: FileStore,
        resolver: Optional[CapabilityResolver] = None,
        settings: Optional[RelaySettings] = None,
        message_filter: MessageFilter = filter_context_messages,
    ):
        self.provider = provider
        self.files = files
        self.resolver = resolver or DefaultCapabilityResolver()
        self.settings = settings or RelaySettings()
        self.message_filter = message_filter

    @property
    def api_key(self) -> str:
        return self.provider.api_key

    @property
    def capabilities(self) -> ProviderCapabilities:
        return capabilities_for(self.provider.id)

    def get_base_url(self) -> str:
        return format_api_host(self.provider.api_host)

    @property
    def keep_alive_time(self) -> Optional[int]:
        """Keep-alive hint in seconds, or None when the provider has none configured."""
        if self.provider.keep_alive_minutes is None:
            return None
        return self.provider.keep_alive_minutes * 60

    def default_headers(self) -> Dict[str, str]:
        return {"HTTP-Referer": APP_URL, "X-Title": APP_NAME}

    def get_default_model(self) -> Model:
        if self.settings.default_model is None:
            raise ValueError(f"No default model configured for provider '{self.provider.id}'")
        return self.settings.default_model

    def get_model(self, assistant: Assistant) -> Model:
        return assistant.model or self.get_default_model()

    # ==========================================================================
    # Call Surface
    # ==========================================================================

    @abstractmethod
    def stream_completions(
        self,
        messages: Sequence[Message],
        assistant: Assistant,
        on_filter_messages: Optional[FilterCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[CompletionChunk]:
        """
        Run a chat completion and yield normalized events.

        Args:
            messages (Sequence[Message]): Conversation history, oldest first.
            assistant (Assistant): Assistant supplying prompt, model and settings.
            on_filter_messages (Callable, optional): Receives the history actually sent.
            cancel_token (CancellationToken, optional): Stops consumption when cancelled.

        Yields:
            CompletionChunk: One event per vendor chunk, or one for a single-shot call.
        """

    async def completions(
        self,
        messages: Sequence[Message],
        assistant: Assistant,
        on_chunk: ChunkCallback,
        on_filter_messages: Optional[FilterCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        """
        Push-style wrapper over ``stream_completions``: each event goes to ``on_chunk``.
        """
        async for chunk in self.stream_completions(messages, assistant, on_filter_messages, cancel_token):
            result = on_chunk(chunk)
            if asyncio.iscoroutine(result):
                await result

    @abstractmethod
    async def translate(
        self,
        message: Message,
        assistant: Assistant,
        on_response: Optional[Callable[[str], Any]] = None,
    ) -> str:
        pass

    @abstractmethod
    async def summaries(self, messages: Sequence[Message], assistant: Assistant) -> str:
        pass

    @abstractmethod
    async def generate_text(self, prompt: str, content: str) -> str:
        pass

    @abstractmethod
    async def suggestions(self, messages: Sequence[Message], assistant: Assistant) -> List[Suggestion]:
        pass

    @abstractmethod
    async def check(self, model: Optional[Model]) -> CheckResult:
        pass

    @abstractmethod
    async def models(self) -> List[Model]:
        pass

    @abstractmethod
    async def generate_image(
        self,
        params: GenerateImageParams,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[str]:
        pass

    @abstractmethod
    async def get_embedding_dimensions(self, model: Model) -> int:
        pass
