"""
Parameter Builder.

Derives chat completion request parameters from assistant settings and the
target model, applying the provider and model-family exceptions from the
capability table. Values are not range-checked; the vendor rejects bad ones.
"""
import json
from typing import Any, Dict, Optional, Tuple

from .capabilities import CapabilityResolver, ProviderCapabilities
from .settings import get_assistant_settings
from .types import Assistant, Model


def get_temperature(assistant: Assistant, model: Model, caps: ProviderCapabilities) -> Optional[float]:
    if not caps.supports_temperature(model):
        return None
    return get_assistant_settings(assistant).temperature


def get_custom_parameters(assistant: Assistant) -> Dict[str, Any]:
    """
    Collect the assistant's custom request parameters.

    ``json`` typed values are decoded when they hold valid JSON and passed as
    strings otherwise. The literal value ``"undefined"`` maps to None, which
    removes the key from the final request.
    """
    params: Dict[str, Any] = {}
    for param in assistant.settings.custom_parameters:
        name = (param.name or "").strip()
        if not name:
            continue
        value = param.value
        if param.type == "json" and isinstance(value, str):
            if value == "undefined":
                value = None
            else:
                try:
                    value = json.loads(value)
                except json.JSONDecodeError:
                    pass
        params[name] = value
    return params


def supports_stream_output(assistant: Assistant, model: Model, caps: ProviderCapabilities) -> bool:
    if not caps.supports_streaming(model):
        return False
    return get_assistant_settings(assistant).stream_output


def build_params(
    assistant: Assistant,
    model: Model,
    caps: ProviderCapabilities,
    resolver: CapabilityResolver,
) -> Dict[str, Any]:
    """
    Build the request parameters for a chat completion.

    Web search parameters and custom parameters are merged last and win
    over the computed values. Keys whose final value is None are dropped so
    the vendor default applies.

    Args:
        assistant (Assistant): Assistant whose settings drive the request.
        model (Model): Target model.
        caps (ProviderCapabilities): Capability entry of the serving provider.
        resolver (CapabilityResolver): Source of web search parameters.

    Returns:
        Dict[str, Any]: ``temperature``, ``top_p``, ``max_tokens``, ``stream``
        and any extra vendor keys.
    """
    settings = get_assistant_settings(assistant)

    params: Dict[str, Any] = {
        "temperature": get_temperature(assistant, model, caps),
        "top_p": settings.top_p,
        "max_tokens": settings.max_tokens,
        "stream": supports_stream_output(assistant, model, caps),
    }

    if assistant.enable_web_search:
        params.update(resolver.web_search_params(model))

    params.update(get_custom_parameters(assistant))

    return {k: v for k, v in params.items() if v is not None}


# Keyword arguments accepted by chat.completions.create; everything else is
# a vendor extension and travels in extra_body
STANDARD_CHAT_PARAMS = frozenset({
    "temperature",
    "top_p",
    "max_tokens",
    "stream",
    "n",
    "stop",
    "seed",
    "presence_penalty",
    "frequency_penalty",
    "logit_bias",
    "response_format",
    "tools",
    "tool_choice",
    "user",
})


def split_request_params(params: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Split parameters into SDK keyword arguments and ``extra_body`` fields."""
    kwargs = {k: v for k, v in params.items() if k in STANDARD_CHAT_PARAMS}
    extra_body = {k: v for k, v in params.items() if k not in STANDARD_CHAT_PARAMS}
    return kwargs, extra_body
