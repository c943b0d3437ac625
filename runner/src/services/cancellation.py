"""
Cooperative cancellation for pipeline runs.
"""

import asyncio

from runner.src.errors import PipelineStopped

class CancelToken:
    """
    One-shot stop signal shared by a single run.

    The token is set once by the caller and never cleared; a new run gets a
    new token.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        self._event.set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise PipelineStopped()

    async def wait(self):
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """
        Sleep for `seconds` or until cancelled.
        Returns True if the sleep was cut short by cancellation.
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False
