import asyncio
import contextlib
import logging
import re
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence

import httpx
from openai import AsyncAzureOpenAI, AsyncOpenAI

from .base import BaseProvider, FilterCallback, MessageFilter
from ..assembler import MessageAssembler
from ..cancellation import CancellationToken
from ..capabilities import CapabilityResolver
from ..driver import CompletionRun
from ..errors import ImageGenerationCancelled
from ..files import FileStore
from ..history import filter_context_messages
from ..listing import parse_listing, to_model
from ..params import build_params, get_temperature, split_request_params
from ..settings import DEFAULT_TOPIC_NAMING_PROMPT, RelaySettings, get_assistant_settings
from ..types import (
    Assistant, ChatMessageParam, CheckResult, CompletionChunk, GenerateImageParams, Message, Model,
    Provider, Suggestion,
)
from ..utils import remove_special_characters, take_right

logger = logging.getLogger(__name__)

SUMMARY_MESSAGE_COUNT = 5
SUMMARY_MAX_TOKENS = 1000
SUMMARY_MAX_LENGTH = 50


def _delta_text(chunk: Any) -> str:
    choices = getattr(chunk, "choices", None) or []
    if not choices:
        return ""
    content = getattr(choices[0].delta, "content", None)
    return content if isinstance(content, str) else ""


def _message_text(response: Any) -> str:
    if not response.choices:
        return ""
    content = response.choices[0].message.content
    return content if isinstance(content, str) else ""


def _parse_seed(seed: Optional[str]) -> Optional[int]:
    # Leading integer only, so "12.5" is sent as 12; anything else is omitted
    found = re.match(r"\s*([-+]?\d+)", seed or "")
    return int(found.group(1)) if found else None


class OpenAIProvider(BaseProvider):
    """
    Provider for OpenAI-compatible APIs (OpenAI, DeepSeek, GitHub Models, etc.).

    Vendor quirks are looked up in the capability table by provider id, so one
    class serves every compatible backend. The SDK's own retries are disabled:
    failures surface to the caller as they happen.
    """

    def __init__(
        self,
        provider: Provider,
        files: FileStore,
        resolver: Optional[CapabilityResolver] = None,
        settings: Optional[RelaySettings] = None,
        message_filter: MessageFilter = filter_context_messages,
    ):
        super().__init__(provider, files, resolver, settings, message_filter)
        self.provider_name = provider.id
        self.assembler = MessageAssembler(self.files, self.resolver)

        if provider.type == "azure-openai":
            self.client = AsyncAzureOpenAI(
                api_key=self.api_key,
                api_version=provider.api_version,
                azure_endpoint=provider.api_host,
                max_retries=0,
            )
        else:
            self.client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.get_base_url(),
                default_headers=self.default_headers(),
                max_retries=0,
            )

    def _chat_request(
        self,
        model: Model,
        messages: List[ChatMessageParam],
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Assemble keyword arguments for ``chat.completions.create``.

        Non-standard keys (vendor extensions, keep-alive) go in ``extra_body``.
        """
        kwargs, extra_body = split_request_params(params)
        if self.keep_alive_time is not None:
            extra_body["keep_alive"] = self.keep_alive_time

        request_kwargs = {"model": model.id, "messages": messages, **kwargs}
        if extra_body:
            request_kwargs["extra_body"] = extra_body
        return request_kwargs

    def _system_and_user(self, model: Model, prompt: str, content: str) -> List[ChatMessageParam]:
        messages: List[ChatMessageParam] = []
        if prompt and self.capabilities.supports_system_role(model):
            messages.append({"role": "system", "content": prompt})
        messages.append({"role": "user", "content": content})
        return messages

    # ==========================================================================
    # Completions
    # ==========================================================================

    async def stream_completions(
        self,
        messages: Sequence[Message],
        assistant: Assistant,
        on_filter_messages: Optional[FilterCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[CompletionChunk]:
        """
        Send the conversation to the vendor and yield normalized events.

        Builds the request from the trailing context window, dispatches it,
        and converts the reply: one event for a single-shot call, one per
        chunk for a streamed call. Transport errors propagate unchanged.

        Args:
            messages (Sequence[Message]): Conversation history, oldest first.
            assistant (Assistant): Assistant supplying prompt, model and settings.
            on_filter_messages (Callable, optional): Receives the history actually sent.
            cancel_token (CancellationToken, optional): Stops a stream between chunks.

        Yields:
            CompletionChunk: Normalized events with text deltas and timing metrics.
        """
        model = self.get_model(assistant)
        settings = get_assistant_settings(assistant)
        caps = self.capabilities
        run = CompletionRun(model.id)

        history = self.message_filter(take_right(messages, settings.context_count + 1))
        if on_filter_messages is not None:
            result = on_filter_messages(history)
            if asyncio.iscoroutine(result):
                await result

        chat_messages: List[ChatMessageParam] = []

        # Some reasoners reject a conversation that does not open with the user
        if caps.requires_user_first(model) and (not history or history[0].role != "user"):
            chat_messages.append({"role": "user", "content": ""})

        for message in history:
            chat_messages.append(await self.assembler.assemble(message, model, caps.file_tier))

        if assistant.prompt and caps.supports_system_role(model):
            chat_messages.insert(0, {"role": "system", "content": assistant.prompt})

        params = build_params(assistant, model, caps, self.resolver)
        stream = bool(params.get("stream", False))
        request_kwargs = self._chat_request(model, chat_messages, params)

        logger.debug(
            "%s completion: model=%s messages=%d stream=%s",
            self.provider_name, model.id, len(chat_messages), stream,
        )

        run.dispatch()
        response = await self.client.chat.completions.create(**request_kwargs)

        if not stream:
            yield run.complete(response)
            return

        async for chunk in run.stream(response, cancel_token):
            yield chunk

    # ==========================================================================
    # Auxiliary Operations
    # ==========================================================================

    async def translate(
        self,
        message: Message,
        assistant: Assistant,
        on_response: Optional[Callable[[str], Any]] = None,
    ) -> str:
        """
        Translate a message with the assistant's prompt as instructions.

        When ``on_response`` is given and the model can stream, the reply is
        streamed and the callback receives the accumulated text so far after
        every chunk. Returns the full translation.
        """
        model = self.get_model(assistant)
        stream = on_response is not None and self.capabilities.supports_streaming(model)

        params = {
            "temperature": get_temperature(assistant, model, self.capabilities),
            "stream": stream,
        }
        request_kwargs = self._chat_request(
            model,
            self._system_and_user(model, assistant.prompt, message.content),
            {k: v for k, v in params.items() if v is not None},
        )

        response = await self.client.chat.completions.create(**request_kwargs)

        if not stream:
            return _message_text(response)

        text = ""
        async for chunk in response:
            text += _delta_text(chunk)
            result = on_response(text)
            if asyncio.iscoroutine(result):
                await result

        return text

    async def summaries(self, messages: Sequence[Message], assistant: Assistant) -> str:
        """
        Produce a short conversation title from the last few messages.

        Returns:
            str: At most 50 characters, with newlines, quotes, punctuation and
            combining marks removed.
        """
        model = self.settings.topic_naming_model or assistant.model or self.get_default_model()

        recent = [m for m in take_right(messages, SUMMARY_MESSAGE_COUNT) if not m.is_preset]
        transcript = "\n".join(
            f"User: {m.content}" if m.role == "user" else f"Assistant: {m.content}"
            for m in recent
        )

        prompt = self.settings.topic_naming_prompt or DEFAULT_TOPIC_NAMING_PROMPT
        request_kwargs = self._chat_request(
            model,
            self._system_and_user(model, prompt, transcript),
            {"stream": False, "max_tokens": SUMMARY_MAX_TOKENS},
        )

        response = await self.client.chat.completions.create(**request_kwargs)
        return remove_special_characters(_message_text(response)[:SUMMARY_MAX_LENGTH])

    async def generate_text(self, prompt: str, content: str) -> str:
        model = self.get_default_model()
        response = await self.client.chat.completions.create(
            model=model.id,
            stream=False,
            messages=self._system_and_user(model, prompt, content),
        )
        return _message_text(response)

    async def suggestions(self, messages: Sequence[Message], assistant: Assistant) -> List[Suggestion]:
        """
        Ask the vendor's advice endpoint for follow-up questions.

        Only user messages are sent. Returns an empty list when the assistant
        has no model or the reply carries no questions.
        """
        model = assistant.model
        if model is None:
            return []

        response = await self.client.post(
            "/advice_questions",
            body={
                "messages": [{"role": m.role, "content": m.content} for m in messages if m.role == "user"],
                "model": model.id,
                "max_tokens": 0,
                "temperature": 0,
                "n": 0,
            },
            cast_to=httpx.Response,
        )

        try:
            payload = response.json()
        except ValueError:
            logger.debug("%s advice endpoint returned a non-JSON body", self.provider_name)
            return []

        questions = payload.get("questions") if isinstance(payload, dict) else None
        return [Suggestion(content=q) for q in questions or [] if q]

    async def check(self, model: Optional[Model]) -> CheckResult:
        """
        Probe a model with a one-word prompt.

        Never raises: any failure is returned in ``CheckResult.error``.
        """
        if model is None:
            return CheckResult(valid=False, error=ValueError("No model found"))

        try:
            response = await self.client.chat.completions.create(
                model=model.id,
                messages=[{"role": "user", "content": "hi"}],
                max_tokens=100,
                stream=False,
            )
            valid = bool(response.choices) and response.choices[0].message is not None
            return CheckResult(valid=valid, error=None)
        except Exception as e:
            logger.warning("%s check failed for %s: %s", self.provider_name, model.id, e)
            return CheckResult(valid=False, error=e)

    async def models(self) -> List[Model]:
        """
        List the provider's chat-capable models.

        Returns:
            List[Model]: Normalized models. Empty if the request or normalization fails.
        """
        try:
            response = await self.client.get("/models", cast_to=httpx.Response)
            payload = response.json()
            listed = [to_model(entry, self.provider_name) for entry in parse_listing(self.provider_name, payload)]
            return [m for m in listed if self.resolver.is_supported_model(m)]
        except Exception as e:
            logger.warning("%s model listing failed: %s", self.provider_name, e)
            return []

    async def generate_image(
        self,
        params: GenerateImageParams,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[str]:
        """
        Generate images and return their URLs.

        Cancelling ``cancel_token`` aborts the in-flight HTTP request and
        raises ImageGenerationCancelled.
        """
        body = {
            "model": params.model,
            "prompt": params.prompt,
            "negative_prompt": params.negative_prompt,
            "image_size": params.image_size,
            "batch_size": params.batch_size,
            "seed": _parse_seed(params.seed),
            "num_inference_steps": params.num_inference_steps,
            "guidance_scale": params.guidance_scale,
            "prompt_enhancement": params.prompt_enhancement,
        }
        request = self.client.post(
            "/images/generations",
            body={k: v for k, v in body.items() if v is not None},
            cast_to=httpx.Response,
        )

        response = await self._run_cancellable(request, cancel_token)
        data = response.json().get("data") or []
        return [item["url"] for item in data]

    async def _run_cancellable(self, request, cancel_token: Optional[CancellationToken]):
        if cancel_token is None:
            return await request

        if cancel_token.cancelled:
            request.close()
            raise ImageGenerationCancelled("Image generation cancelled before dispatch")

        task = asyncio.ensure_future(request)
        waiter = asyncio.ensure_future(cancel_token.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        waiter.cancel()
        if task in done:
            return task.result()

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("%s image generation cancelled", self.provider_name)
        raise ImageGenerationCancelled("Image generation cancelled")

    async def get_embedding_dimensions(self, model: Model) -> int:
        data = await self.client.embeddings.create(model=model.id, input="hi")
        return len(data.data[0].embedding)
