"""
Configuration for chatrelay.

Provider credentials and app-level defaults come from the environment,
loaded from a ``.env`` file with python-dotenv. Assistant-level settings are
supplied per call and resolved here into a complete view.
"""
import os
from dataclasses import dataclass, replace
from typing import Optional

import dotenv

from .errors import ProviderNotConfiguredError
from .types import DEFAULT_CONTEXT_COUNT, Assistant, AssistantSettings, Model, Provider

# Load environment variables
dotenv.load_dotenv()

# A context count at the slider maximum means "no limit"
MAX_CONTEXT_COUNT = 20
UNLIMITED_CONTEXT_COUNT = 100000

DEFAULT_TOPIC_NAMING_PROMPT = (
    "Summarize the conversation into a title of at most 10 words in the language "
    "of the conversation. Do not use punctuation or other special symbols. "
    "Reply with the title only."
)

APP_NAME = "chatrelay"
APP_URL = "https://github.com/chatrelay/chatrelay"

# Hosts used when <ID>_API_HOST is not set
DEFAULT_API_HOSTS = {
    "openai": "https://api.openai.com",
    "deepseek": "https://api.deepseek.com",
    "github": "https://models.inference.ai.azure.com/",
    "together": "https://api.together.xyz",
    "openrouter": "https://openrouter.ai/api/v1/",
    "silicon": "https://api.siliconflow.cn",
    "baichuan": "https://api.baichuan-ai.com",
    "minimax": "https://api.minimax.chat/v1/",
    "dashscope": "https://dashscope.aliyuncs.com/compatible-mode/v1/",
    "hunyuan": "https://api.hunyuan.cloud.tencent.com",
    "lmstudio": "http://localhost:1234",
    "ollama": "http://localhost:11434",
}


def _env_key(provider_id: str, suffix: str) -> str:
    return f"{provider_id.upper().replace('-', '_')}_{suffix}"


def _int_or_none(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip():
        return None
    return int(value)


@dataclass(frozen=True)
class RelaySettings:
    """
    App-level defaults that are not tied to one assistant.

    Attributes:
        default_model: Model used when an assistant has none.
        topic_naming_model: Preferred model for conversation titles.
        topic_naming_prompt: Override for the title system prompt.
    """
    default_model: Optional[Model] = None
    topic_naming_model: Optional[Model] = None
    topic_naming_prompt: Optional[str] = None

    @classmethod
    def from_env(cls, provider_id: str = "openai") -> "RelaySettings":
        """
        Read defaults from CHATRELAY_* environment variables.

        Model variables hold bare model ids; they are bound to ``provider_id``.
        """
        def model(var: str) -> Optional[Model]:
            model_id = os.getenv(var)
            return Model(id=model_id, provider=provider_id, name=model_id) if model_id else None

        return cls(
            default_model=model("CHATRELAY_DEFAULT_MODEL"),
            topic_naming_model=model("CHATRELAY_TOPIC_NAMING_MODEL"),
            topic_naming_prompt=os.getenv("CHATRELAY_TOPIC_NAMING_PROMPT") or None,
        )


def provider_from_env(provider_id: str) -> Provider:
    """
    Build a Provider from ``<ID>_API_KEY``, ``<ID>_API_HOST``,
    ``<ID>_API_VERSION`` and ``<ID>_KEEP_ALIVE`` (minutes).

    Raises:
        ProviderNotConfiguredError: If the API key is missing, or no host is
            configured for a provider without a known default.
    """
    api_key = os.getenv(_env_key(provider_id, "API_KEY"))
    if not api_key:
        raise ProviderNotConfiguredError(
            f"Provider '{provider_id}' not configured: set {_env_key(provider_id, 'API_KEY')}"
        )

    api_host = os.getenv(_env_key(provider_id, "API_HOST")) or DEFAULT_API_HOSTS.get(provider_id)
    if not api_host:
        raise ProviderNotConfiguredError(
            f"Provider '{provider_id}' has no default host: set {_env_key(provider_id, 'API_HOST')}"
        )

    return Provider(
        id=provider_id,
        type="azure-openai" if provider_id == "azure-openai" else "openai",
        api_key=api_key,
        api_host=api_host,
        api_version=os.getenv(_env_key(provider_id, "API_VERSION")),
        keep_alive_minutes=_int_or_none(os.getenv(_env_key(provider_id, "KEEP_ALIVE"))),
    )


def format_api_host(host: str) -> str:
    """
    Turn a configured host into an SDK base URL.

    A trailing ``/`` means the host is already a full base URL; a trailing
    ``#`` means use it verbatim without the marker. Anything else gets the
    conventional ``/v1/`` suffix.
    """
    if host.endswith("#"):
        return host[:-1]
    if host.endswith("/"):
        return host
    return f"{host}/v1/"


def get_assistant_settings(assistant: Assistant) -> AssistantSettings:
    settings = assistant.settings or AssistantSettings()
    context_count = settings.context_count
    if context_count is None:
        context_count = DEFAULT_CONTEXT_COUNT
    elif context_count >= MAX_CONTEXT_COUNT:
        context_count = UNLIMITED_CONTEXT_COUNT
    return replace(settings, context_count=context_count)
