"""
Completion Driver.

Turns a vendor chat completion (a single response or a chunk stream) into
normalized CompletionChunk events with timing metrics.

A run moves through::

    BUILDING -> DISPATCHING -> STREAMING -> DONE
                            \\-> COMPLETE -> DONE
    STREAMING -> ABORTED   (cancellation token observed)

Each run owns its timing accumulators; nothing is shared between calls.
"""
import logging
import time
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, Optional

from .cancellation import CancellationToken
from .types import CompletionChunk, CompletionMetrics

logger = logging.getLogger(__name__)


class CompletionState(str, Enum):
    BUILDING = "building"
    DISPATCHING = "dispatching"
    STREAMING = "streaming"
    COMPLETE = "complete"
    DONE = "done"
    ABORTED = "aborted"


_TRANSITIONS = {
    CompletionState.BUILDING: {CompletionState.DISPATCHING},
    CompletionState.DISPATCHING: {CompletionState.STREAMING, CompletionState.COMPLETE},
    CompletionState.STREAMING: {CompletionState.DONE, CompletionState.ABORTED},
    CompletionState.COMPLETE: {CompletionState.DONE},
    CompletionState.DONE: set(),
    CompletionState.ABORTED: set(),
}


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def usage_to_dict(usage: Any) -> Optional[Dict[str, Any]]:
    """Normalize an SDK usage object (or plain dict) to a dict of token counts."""
    if usage is None:
        return None
    if isinstance(usage, dict):
        return dict(usage)
    return {
        "prompt_tokens": getattr(usage, "prompt_tokens", None),
        "completion_tokens": getattr(usage, "completion_tokens", None),
        "total_tokens": getattr(usage, "total_tokens", None),
    }


class CompletionTimer:
    """
    Timing accumulators for one completion call.

    First-token and first-content times are frozen the first time they are
    observed; completion time is recomputed on every snapshot.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.start_time = clock()
        self.first_token_ms = 0
        self.first_token_seen = False
        self.first_content_time: Optional[float] = None

    def elapsed_ms(self) -> int:
        return int((self._clock() - self.start_time) * 1000)

    def observe_chunk(self, has_content: bool) -> None:
        if not self.first_token_seen:
            self.first_token_seen = True
            self.first_token_ms = self.elapsed_ms()
        if self.first_content_time is None and has_content:
            self.first_content_time = self._clock()

    @property
    def thinking_ms(self) -> int:
        if self.first_content_time is None:
            return 0
        return int((self.first_content_time - self.start_time) * 1000)

    def stream_metrics(self, usage: Optional[Dict[str, Any]]) -> CompletionMetrics:
        return CompletionMetrics(
            completion_tokens=(usage or {}).get("completion_tokens"),
            time_completion_millsec=self.elapsed_ms(),
            time_first_token_millsec=self.first_token_ms,
            time_thinking_millsec=self.thinking_ms,
        )

    def final_metrics(self, usage: Optional[Dict[str, Any]]) -> CompletionMetrics:
        # No stream, so there is no meaningful first-token latency
        return CompletionMetrics(
            completion_tokens=(usage or {}).get("completion_tokens"),
            time_completion_millsec=self.elapsed_ms(),
            time_first_token_millsec=0,
        )


class CompletionRun:
    """
    State and timing for one completion call.

    The provider builds the request, calls ``dispatch()`` right before the
    vendor call, then hands the result to ``complete()`` or ``stream()``.
    """

    def __init__(self, model_id: str, clock: Callable[[], float] = time.monotonic):
        self.model_id = model_id
        self.state = CompletionState.BUILDING
        self._clock = clock
        self.timer: Optional[CompletionTimer] = None

    def transition(self, state: CompletionState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid completion transition {self.state.value} -> {state.value}")
        logger.debug("completion %s: %s -> %s", self.model_id, self.state.value, state.value)
        self.state = state

    def dispatch(self) -> CompletionTimer:
        self.transition(CompletionState.DISPATCHING)
        self.timer = CompletionTimer(self._clock)
        return self.timer

    def complete(self, response: Any) -> CompletionChunk:
        """Convert a non-streamed response into a single event."""
        self.transition(CompletionState.COMPLETE)
        message = response.choices[0].message if response.choices else None
        usage = usage_to_dict(getattr(response, "usage", None))

        chunk = CompletionChunk(
            text=_str_or_none(getattr(message, "content", None)) or "",
            reasoning_content=_str_or_none(getattr(message, "reasoning_content", None)),
            usage=usage,
            metrics=self.timer.final_metrics(usage),
        )
        self.transition(CompletionState.DONE)
        logger.debug("completion %s finished in %d ms", self.model_id, chunk.metrics.time_completion_millsec)
        return chunk

    async def stream(
        self,
        stream: AsyncIterator[Any],
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[CompletionChunk]:
        """
        Consume vendor chunks and yield one normalized event per chunk.

        The cancellation token is checked as each chunk arrives; once it is
        set, consumption stops without emitting anything further. The vendor
        stream is left for its own lifecycle to close.
        """
        self.transition(CompletionState.STREAMING)
        timer = self.timer
        usage: Optional[Dict[str, Any]] = None

        async for chunk in stream:
            if cancel_token is not None and cancel_token.cancelled:
                self.transition(CompletionState.ABORTED)
                logger.debug("completion %s aborted after %d ms", self.model_id, timer.elapsed_ms())
                return

            choices = getattr(chunk, "choices", None) or []
            delta = choices[0].delta if choices else None
            text = _str_or_none(getattr(delta, "content", None)) or ""
            reasoning = _str_or_none(getattr(delta, "reasoning_content", None)) or ""

            timer.observe_chunk(has_content=bool(text))

            # Usage usually arrives only on the last chunk; keep the latest seen
            chunk_usage = usage_to_dict(getattr(chunk, "usage", None))
            if chunk_usage is not None:
                usage = chunk_usage

            yield CompletionChunk(
                text=text,
                reasoning_content=reasoning,
                usage=usage,
                metrics=timer.stream_metrics(usage),
            )

        self.transition(CompletionState.DONE)
        logger.debug(
            "completion %s streamed in %d ms (first token %d ms, thinking %d ms)",
            self.model_id, timer.elapsed_ms(), timer.first_token_ms, timer.thinking_ms,
        )
