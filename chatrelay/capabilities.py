"""
Provider and model capability lookup.

Vendor quirks are keyed on provider ids and model-id prefixes. They live in
one table here so the assembler, the parameter builder and the completion
driver all ask the same questions instead of repeating prefix checks.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Protocol, Tuple

from .types import Model


class FileTier(str, Enum):
    """Which attachment kinds a provider accepts in a chat request."""
    MULTIMODAL = "multimodal"
    TEXT_ONLY = "text_only"


# Reasoning models reject sampling parameters
REASONING_MODEL_PREFIXES: Tuple[str, ...] = ("o1", "o3")
# o1 rejects the system role entirely
NO_SYSTEM_ROLE_PREFIXES: Tuple[str, ...] = ("o1",)
DEEPSEEK_REASONER = "deepseek-reasoner"


@dataclass(frozen=True)
class ProviderCapabilities:
    provider_id: str
    file_tier: FileTier = FileTier.MULTIMODAL
    non_streaming_model_prefixes: Tuple[str, ...] = ()

    def supports_system_role(self, model: Model) -> bool:
        return not model.id.startswith(NO_SYSTEM_ROLE_PREFIXES)

    def supports_streaming(self, model: Model) -> bool:
        if not self.non_streaming_model_prefixes:
            return True
        return not model.id.startswith(self.non_streaming_model_prefixes)

    def supports_temperature(self, model: Model) -> bool:
        if model.id.startswith(REASONING_MODEL_PREFIXES):
            return False
        if model.provider == "deepseek" and model.id == DEEPSEEK_REASONER:
            return False
        return True

    def requires_user_first(self, model: Model) -> bool:
        """Whether the first non-system turn must be user-authored."""
        return model.id == DEEPSEEK_REASONER


PROVIDER_CAPABILITIES: Dict[str, ProviderCapabilities] = {
    "deepseek": ProviderCapabilities("deepseek", file_tier=FileTier.TEXT_ONLY),
    "baichuan": ProviderCapabilities("baichuan", file_tier=FileTier.TEXT_ONLY),
    "minimax": ProviderCapabilities("minimax", file_tier=FileTier.TEXT_ONLY),
    # GitHub Models serves o1 without streaming support
    "github": ProviderCapabilities("github", non_streaming_model_prefixes=("o1",)),
}


def capabilities_for(provider_id: str) -> ProviderCapabilities:
    """Return the capability entry for a provider, defaulting to full support."""
    return PROVIDER_CAPABILITIES.get(provider_id) or ProviderCapabilities(provider_id)


# =============================================================================
# Model Capability Resolver
# =============================================================================

class CapabilityResolver(Protocol):
    def is_vision_model(self, model: Model) -> bool: ...

    def is_supported_model(self, model: Model) -> bool: ...

    def web_search_params(self, model: Model) -> Dict[str, Any]: ...


VISION_ALLOWED_MODELS = [
    "llava",
    "moondream",
    "minicpm",
    r"gemini-1\.5",
    r"gemini-2\.0",
    "gemini-exp",
    "claude-3",
    "vision",
    "glm-4v",
    "qwen-vl",
    "qwen2-vl",
    r"qwen2\.5-vl",
    "internvl2",
    "grok-vision-beta",
    "pixtral",
    r"gpt-4(?:-[\w-]+)",
    "gpt-4o",
    "gpt-4o-mini",
    r"o1(?:-[\w-]+)?",
    r"deepseek-vl(?:[\w-]+)?",
    "kimi-latest",
    r"gemma-3(?:-[\w-]+)",
]

VISION_EXCLUDED_MODELS = [
    r"gpt-4-\d+-preview",
    "gpt-4-turbo-preview",
    "gpt-4-32k",
    r"gpt-4-\d+",
]

VISION_REGEX = re.compile(
    r"\b(?!(?:" + "|".join(VISION_EXCLUDED_MODELS) + r")\b)(" + "|".join(VISION_ALLOWED_MODELS) + r")\b",
    re.IGNORECASE,
)

# Audio, rerank and speech models are listed by vendors but cannot chat
NOT_SUPPORTED_REGEX = re.compile(r"(?:^tts|rerank|whisper|speech)", re.IGNORECASE)

WEB_SEARCH_PROVIDERS = ("hunyuan", "dashscope", "openrouter")


class DefaultCapabilityResolver:
    """
    Capability lookup based on model-id patterns.

    Applications with their own model registry can pass any object with the
    same three methods.
    """

    def is_vision_model(self, model: Model) -> bool:
        return bool(VISION_REGEX.search(model.id))

    def is_supported_model(self, model: Model) -> bool:
        return not NOT_SUPPORTED_REGEX.search(model.id)

    def is_web_search_model(self, model: Model) -> bool:
        if model.provider in WEB_SEARCH_PROVIDERS:
            return True
        return "search" in model.id

    def web_search_params(self, model: Model) -> Dict[str, Any]:
        if not self.is_web_search_model(model):
            return {}

        match model.provider:
            case "hunyuan":
                return {"enable_enhancement": True, "citation": True, "search_info": True}
            case "dashscope":
                return {"enable_search": True, "search_options": {"forced_search": True}}
            case "openrouter":
                return {"plugins": [{"id": "web"}]}
            case _:
                return {"web_search_options": {}}
