from .cancellation import CancellationToken
from .capabilities import DefaultCapabilityResolver, FileTier, capabilities_for
from .client import ProviderRegistry, create_provider
from .errors import ChatRelayError, ImageGenerationCancelled, ProviderNotConfiguredError
from .files import LocalFileStore
from .providers import BaseProvider, OpenAIProvider
from .settings import RelaySettings, provider_from_env
from .types import (
    Assistant, AssistantSettings, CheckResult, CompletionChunk, CompletionMetrics, CustomParameter,
    FileRef, FileType, GenerateImageParams, Message, Model, Provider, Suggestion,
)

__all__ = [
    "ProviderRegistry",
    "create_provider",
    "BaseProvider",
    "OpenAIProvider",
    "CancellationToken",
    "DefaultCapabilityResolver",
    "FileTier",
    "capabilities_for",
    "LocalFileStore",
    "RelaySettings",
    "provider_from_env",
    "ChatRelayError",
    "ImageGenerationCancelled",
    "ProviderNotConfiguredError",
    "Assistant",
    "AssistantSettings",
    "CheckResult",
    "CompletionChunk",
    "CompletionMetrics",
    "CustomParameter",
    "FileRef",
    "FileType",
    "GenerateImageParams",
    "Message",
    "Model",
    "Provider",
    "Suggestion",
]
