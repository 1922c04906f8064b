"""Rate-limited call gate for Generator calls."""

import logging
import time
from enum import Enum
from typing import Callable, Iterator, NamedTuple, Optional

from ..config import GateConfig
from ..errors import RateLimitedError

logger = logging.getLogger(__name__)


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


class GateEvent(NamedTuple):
    """One observable step of a gated call."""

    label: str
    attempt: int
    outcome: AttemptOutcome
    wait_ms: int = 0
    error: Optional[BaseException] = None


GateObserver = Callable[[GateEvent], None]


def iter_attempts(max_retries: int) -> Iterator[int]:
    """Attempt numbers for one call: the first try plus ``max_retries`` retries."""
    return iter(range(1, max_retries + 2))


class CallGate:
    """
    Bounded linear retry around a zero-argument Generator invocation.

    Only RateLimitedError is retried; the wait before retry ``n`` is
    ``initial_backoff_ms * n``. Calls share no state, so one call backing off
    never holds up another.
    """

    def __init__(
        self,
        initial_backoff_ms: int = 1000,
        max_retries: int = 100,
        sleep: Callable[[float], None] = time.sleep,
        observer: Optional[GateObserver] = None,
    ) -> None:
        if initial_backoff_ms < 0 or max_retries < 0:
            raise ValueError("initial_backoff_ms and max_retries must be non-negative")
        self.initial_backoff_ms = initial_backoff_ms
        self.max_retries = max_retries
        self._sleep = sleep
        self._observer = observer

    @classmethod
    def from_config(cls, gate_config: GateConfig, **kwargs) -> "CallGate":
        return cls(
            initial_backoff_ms=gate_config.initial_backoff_ms,
            max_retries=gate_config.max_retries,
            **kwargs,
        )

    def _emit(self, event: GateEvent) -> None:
        if self._observer is not None:
            self._observer(event)

    def call(
        self,
        operation: Callable[[], str],
        *,
        initial_backoff_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
        label: str = "generate",
    ) -> str:
        """
        Run ``operation`` until it succeeds, fails fatally, or runs out of retries.

        Args:
            operation: Zero-argument callable returning generated text
            initial_backoff_ms: Per-call override of the backoff unit
            max_retries: Per-call override of the retry limit
            label: Context for log lines (stage, URL, file name)

        Returns:
            The text returned by ``operation``

        Raises:
            RateLimitedError: When every allowed attempt was rate limited
            Exception: Any non rate-limit failure, unchanged
        """
        backoff_ms = self.initial_backoff_ms if initial_backoff_ms is None else initial_backoff_ms
        retries = self.max_retries if max_retries is None else max_retries

        last_error: Optional[RateLimitedError] = None
        for attempt in iter_attempts(retries):
            logger.debug("%s: attempt %d/%d", label, attempt, retries + 1)
            try:
                text = operation()
            except RateLimitedError as e:
                last_error = e
                if attempt > retries:
                    self._emit(GateEvent(label, attempt, AttemptOutcome.FATAL, error=e))
                    break
                wait_ms = backoff_ms * attempt
                logger.warning(
                    "%s: rate limited (attempt %d/%d), waiting %.1fs",
                    label, attempt, retries + 1, wait_ms / 1000,
                )
                self._emit(GateEvent(label, attempt, AttemptOutcome.RETRYABLE, wait_ms, e))
                self._sleep(wait_ms / 1000)
                continue
            except Exception as e:
                logger.error("%s: failed on attempt %d: %s", label, attempt, e)
                self._emit(GateEvent(label, attempt, AttemptOutcome.FATAL, error=e))
                raise

            self._emit(GateEvent(label, attempt, AttemptOutcome.SUCCESS))
            return text

        logger.error("%s: still rate limited after %d retries", label, retries)
        raise last_error
