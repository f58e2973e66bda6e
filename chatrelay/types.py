from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, List, Dict, Any, Union, TypedDict, Optional, Tuple

# =============================================================================
# Wire Types (OpenAI chat format)
# =============================================================================

Role = Literal["system", "user", "assistant"]


class TextContent(TypedDict, total=False):
    """
    Text content part for multimodal messages.
    """
    type: Literal["text"]
    text: str


class ImageUrlDetail(TypedDict, total=False):
    """
    Image URL with optional detail level.
    """
    url: str
    detail: Literal["auto", "low", "high"]


class ImageContent(TypedDict, total=False):
    """
    Image content part for multimodal messages (OpenAI format).
    """
    type: Literal["image_url"]
    image_url: ImageUrlDetail


# Content can be a simple string or a list of content parts (text + images)
ContentPart = Union[TextContent, ImageContent]
MessageContent = Union[str, List[ContentPart]]


class ChatMessageParam(TypedDict):
    """
    A single message as sent to the vendor chat completion endpoint.
    """
    role: Role
    content: MessageContent


# =============================================================================
# Domain Types
# =============================================================================

class FileType(str, Enum):
    IMAGE = "image"
    TEXT = "text"
    DOCUMENT = "document"
    VIDEO = "video"
    AUDIO = "audio"
    OTHER = "other"


# Attachment types whose content is inlined as text
TEXT_FILE_TYPES = (FileType.TEXT, FileType.DOCUMENT)


@dataclass(frozen=True)
class FileRef:
    """
    Reference to a stored attachment. Bytes are fetched from a FileStore on demand.
    """
    id: str
    ext: str
    origin_name: str
    type: FileType = FileType.OTHER

    @property
    def name(self) -> str:
        # Key used against the file store
        return self.id + self.ext


@dataclass(frozen=True)
class Message:
    """
    Chat message from the conversation history.

    ``type`` is ``"text"`` for regular messages and ``"clear"`` for the
    context-boundary marker inserted when the user clears the context.
    """
    role: Role
    content: str = ""
    files: Tuple[FileRef, ...] = ()
    id: str = ""
    is_preset: bool = False
    type: Literal["text", "clear"] = "text"


@dataclass(frozen=True)
class Model:
    id: str
    provider: str
    name: str = ""
    group: str = ""
    owned_by: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class Provider:
    """
    Connection settings for one vendor endpoint.

    ``type`` selects the SDK client ("openai" or "azure-openai"); ``id``
    selects the vendor dialect and capability tier.
    """
    id: str
    api_key: str
    api_host: str
    type: Literal["openai", "azure-openai"] = "openai"
    api_version: Optional[str] = None
    keep_alive_minutes: Optional[int] = None


@dataclass(frozen=True)
class CustomParameter:
    name: str
    value: Any
    type: Literal["string", "number", "boolean", "json"] = "string"


DEFAULT_CONTEXT_COUNT = 5
DEFAULT_TEMPERATURE = 1.0


@dataclass(frozen=True)
class AssistantSettings:
    temperature: float = DEFAULT_TEMPERATURE
    top_p: float = 1.0
    context_count: Optional[int] = DEFAULT_CONTEXT_COUNT
    max_tokens: Optional[int] = None
    stream_output: bool = True
    custom_parameters: Tuple[CustomParameter, ...] = ()


@dataclass(frozen=True)
class Assistant:
    id: str = "default"
    name: str = ""
    prompt: str = ""
    model: Optional[Model] = None
    settings: AssistantSettings = field(default_factory=AssistantSettings)
    enable_web_search: bool = False


# =============================================================================
# Result Types
# =============================================================================

@dataclass
class CompletionMetrics:
    time_completion_millsec: int = 0
    time_first_token_millsec: int = 0
    time_thinking_millsec: Optional[int] = None
    completion_tokens: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "time_completion_millsec": self.time_completion_millsec,
            "time_first_token_millsec": self.time_first_token_millsec,
        }
        if self.completion_tokens is not None:
            data["completion_tokens"] = self.completion_tokens
        if self.time_thinking_millsec is not None:
            data["time_thinking_millsec"] = self.time_thinking_millsec
        return data


@dataclass
class CompletionChunk:
    """
    Normalized output event emitted by the completion driver.

    ``text`` and ``reasoning_content`` are deltas for streamed calls and the
    full text for single-shot calls.
    """
    text: str
    metrics: CompletionMetrics
    reasoning_content: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"text": self.text, "metrics": self.metrics.to_dict()}
        if self.reasoning_content is not None:
            data["reasoning_content"] = self.reasoning_content
        if self.usage is not None:
            data["usage"] = self.usage
        return data


@dataclass(frozen=True)
class Suggestion:
    content: str


@dataclass
class CheckResult:
    valid: bool
    error: Optional[BaseException] = None


@dataclass
class GenerateImageParams:
    model: str
    prompt: str
    negative_prompt: Optional[str] = None
    image_size: Optional[str] = None
    batch_size: Optional[int] = None
    seed: Optional[str] = None
    num_inference_steps: Optional[int] = None
    guidance_scale: Optional[float] = None
    prompt_enhancement: Optional[bool] = None
