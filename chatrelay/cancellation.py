import asyncio
from typing import Optional


class CancellationToken:
    """
    Cooperative cancellation signal passed explicitly into a call.

    Streaming consumers poll ``cancelled`` between chunks. Callers that need
    to cancel an in-flight transport request await ``wait()`` alongside it.
    """

    def __init__(self):
        self._event: Optional[asyncio.Event] = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    def reset(self) -> None:
        """Clear the signal so the token can be reused for the next call."""
        self._cancelled = False
        if self._event is not None:
            self._event.clear()

    async def wait(self) -> None:
        # Event is created lazily so the token can be built outside a running loop
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()
