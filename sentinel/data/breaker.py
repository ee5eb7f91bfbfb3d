import logging
import time
from typing import Callable

from sentinel.types import CircuitBreakerState

logger = logging.getLogger("sentinel.data")


class CircuitBreaker:
    """Consecutive-failure breaker.

    Opens after ``threshold`` failures in a row. While open, callers should
    fail fast until ``reset_sec`` has passed since the last failure; any
    success closes it immediately.
    """

    def __init__(
        self,
        threshold: int = 5,
        reset_sec: float = 60.0,
        clock: Callable[[], float] = time.time,
        name: str = "breaker",
    ):
        self.threshold = threshold
        self.reset_sec = reset_sec
        self.clock = clock
        self.name = name
        self.state = CircuitBreakerState()

    @property
    def is_open(self) -> bool:
        return self.state.circuit_open

    def allow(self) -> bool:
        """True when a call may go out. Closes the breaker once the window has elapsed."""
        if not self.state.circuit_open:
            return True
        if self.clock() - self.state.last_failure_at > self.reset_sec:
            logger.info(f"[{self.name}] reset window elapsed, closing circuit")
            self.state = CircuitBreakerState()
            return True
        return False

    def record_success(self) -> None:
        if self.state.failure_count or self.state.circuit_open:
            logger.debug(f"[{self.name}] success, circuit closed")
        self.state = CircuitBreakerState()

    def record_failure(self) -> None:
        self.state.failure_count += 1
        self.state.last_failure_at = self.clock()
        if self.state.failure_count >= self.threshold and not self.state.circuit_open:
            self.state.circuit_open = True
            logger.warning(
                f"[{self.name}] circuit opened after {self.state.failure_count} consecutive failures"
            )
