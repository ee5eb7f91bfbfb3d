import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

import openai

from sentinel.errors import ErrorKind, classify_error
from sentinel.types import LlmResponse

logger = logging.getLogger("sentinel.llm")

QUOTA_MESSAGE = (
    "LLM quota exceeded or rate-limited. Raise LLM_MIN_INTERVAL_SEC to reduce "
    "calls or check the provider's billing and quota settings."
)


def _reject_closed(fut: asyncio.Future) -> None:
    if not fut.done():
        fut.set_result(
            LlmResponse(status="error", text="LLM queue closed", error_kind=ErrorKind.TRANSIENT.value)
        )


class Completer(Protocol):
    async def complete(
        self, prompt: str, history: Optional[List[Dict[str, str]]] = None
    ) -> str: ...


def error_kind(exc: BaseException) -> ErrorKind:
    if isinstance(exc, openai.RateLimitError):
        return ErrorKind.QUOTA
    return classify_error(exc)


class LlmRequestQueue:
    """Serializes calls to the language model.

    One worker drains a FIFO queue, keeps at least ``min_interval`` seconds
    between calls, and retries failures with exponential backoff (longer for
    quota errors). Callers always get an ``LlmResponse``; terminal failures
    come back with ``status="error"`` instead of raising.
    """

    def __init__(
        self,
        llm: Completer,
        min_interval: float = 2.0,
        max_attempts: int = 3,
        base_backoff: float = 0.5,
        quota_multiplier: float = 4.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        jitter: Callable[[], float] = lambda: random.uniform(0.0, 0.2),
    ):
        self.llm = llm
        self.min_interval = min_interval
        self.max_attempts = max_attempts
        self.base_backoff = base_backoff
        self.quota_multiplier = quota_multiplier
        self.sleep = sleep
        self.clock = clock
        self.jitter = jitter
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._last_call: float | None = None

    @classmethod
    def from_settings(cls, llm: Completer, s) -> "LlmRequestQueue":
        return cls(llm, min_interval=s.llm_min_interval_sec, max_attempts=s.llm_max_attempts)

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def submit(
        self, prompt: str, history: Optional[List[Dict[str, str]]] = None
    ) -> LlmResponse:
        fut = asyncio.get_running_loop().create_future()
        await self._queue.put((prompt, history, fut))
        self._ensure_worker()
        return await fut

    async def close(self) -> None:
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        while not self._queue.empty():
            _, _, fut = self._queue.get_nowait()
            self._queue.task_done()
            _reject_closed(fut)

    async def _run(self) -> None:
        while True:
            prompt, history, fut = await self._queue.get()
            try:
                resp = await self._call(prompt, history)
            except asyncio.CancelledError:
                _reject_closed(fut)
                raise
            else:
                if not fut.done():
                    fut.set_result(resp)
            finally:
                self._queue.task_done()

    async def _throttle(self) -> None:
        if self._last_call is not None:
            wait = self.min_interval - (self.clock() - self._last_call)
            if wait > 0:
                await self.sleep(wait)
        self._last_call = self.clock()

    async def _call(self, prompt: str, history) -> LlmResponse:
        await self._throttle()
        delay = self.base_backoff
        for attempt in range(1, self.max_attempts + 1):
            try:
                text = await self.llm.complete(prompt, history)
                return LlmResponse(status="success", text=text)
            except Exception as e:
                kind = error_kind(e)
                logger.warning(
                    f"[llm] attempt {attempt}/{self.max_attempts} failed ({kind.value}): {e}"
                )
                if attempt == self.max_attempts:
                    if kind == ErrorKind.QUOTA:
                        return LlmResponse(status="error", text=QUOTA_MESSAGE, error_kind=kind.value)
                    return LlmResponse(
                        status="error", text=f"LLM request failed: {e}", error_kind=kind.value
                    )
                extra = delay * self.quota_multiplier if kind == ErrorKind.QUOTA else 0.0
                await self.sleep(delay + extra + self.jitter())
                delay *= 2
        return LlmResponse(status="error", text="LLM request failed", error_kind=ErrorKind.TRANSIENT.value)
