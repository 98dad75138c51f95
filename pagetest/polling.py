# ================================================================================
# Polling Module
# ================================================================================
#
# Retry-until-timeout machinery shared by assertions and element actions.
#
# A Poller is a small explicit state machine:
#
#   POLLING --predicate true--> SUCCEEDED
#   POLLING --deadline passed--> FAILED      (raises ExpectationFailed)
#   POLLING --task cancelled--> CANCELLED    (re-raises CancelledError)
#
# Every attempt probes the live target again; nothing observed in a previous
# attempt is reused. The sleep between attempts is clipped to the remaining
# time, so failure is reported no later than timeout + one poll interval.
#
# Usage:
#   title = await poll_until(page.title, lambda t: "Foo" in t, timeout_ms=2000)
#
# ================================================================================

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from loguru import logger

from pagetest.errors import ChannelError, ExpectationFailed


T = TypeVar("T")


class PollState(str, Enum):
    """States of a Poller."""
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollConfig:
    """
    Configuration for polling.

    Attributes:
        timeout_ms: Total time budget
        interval_ms: Initial sleep between attempts
        multiplier: Interval growth factor (1.0 keeps the interval fixed)
        max_interval_ms: Upper bound for a grown interval
    """
    timeout_ms: int = 5000
    interval_ms: int = 100
    multiplier: float = 1.0
    max_interval_ms: int = 1000


class Poller(Generic[T]):
    """
    Polls a probe until a predicate holds or the deadline passes.

    Transient ChannelErrors raised by the probe are recorded and retried;
    every other exception propagates immediately.
    """

    def __init__(
        self,
        probe: Callable[[], Awaitable[T]],
        predicate: Callable[[T], bool],
        config: PollConfig,
        description: str = "condition",
        expected: Any = None,
    ):
        self._probe = probe
        self._predicate = predicate
        self.config = config
        self.description = description
        self.expected = expected

        self.state = PollState.POLLING
        self.attempts = 0
        self.last_observed: Optional[T] = None
        self.last_error: Optional[str] = None
        self.elapsed_ms = 0

    async def run(self) -> T:
        """
        Run the poll loop.

        Returns:
            The observed value that satisfied the predicate

        Raises:
            ExpectationFailed: If the deadline passes first
            asyncio.CancelledError: If the awaiting task is cancelled
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + self.config.timeout_ms / 1000
        interval = self.config.interval_ms / 1000
        max_interval = max(self.config.max_interval_ms / 1000, interval)

        try:
            while True:
                self.attempts += 1
                remaining = deadline - loop.time()

                try:
                    observed = await asyncio.wait_for(
                        self._probe(), timeout=max(remaining, interval)
                    )
                except asyncio.TimeoutError:
                    self.last_error = "probe did not answer before the deadline"
                except ChannelError as e:
                    self.last_error = str(e)
                    logger.debug(f"Attempt {self.attempts} for {self.description} failed: {e}")
                else:
                    self.last_observed = observed
                    self.last_error = None
                    if self._predicate(observed):
                        self.state = PollState.SUCCEEDED
                        self.elapsed_ms = int((loop.time() - started) * 1000)
                        logger.debug(
                            f"{self.description} satisfied after {self.attempts} attempts "
                            f"({self.elapsed_ms}ms)"
                        )
                        return observed

                remaining = deadline - loop.time()
                if remaining <= 0:
                    self.state = PollState.FAILED
                    self.elapsed_ms = int((loop.time() - started) * 1000)
                    raise ExpectationFailed(
                        self.description,
                        expected=self.expected,
                        actual=self.last_observed,
                        attempts=self.attempts,
                        elapsed_ms=self.elapsed_ms,
                        last_error=self.last_error,
                    )

                await asyncio.sleep(min(interval, remaining))
                interval = min(interval * self.config.multiplier, max_interval)

        except asyncio.CancelledError:
            self.state = PollState.CANCELLED
            self.elapsed_ms = int((loop.time() - started) * 1000)
            logger.debug(f"Polling cancelled: {self.description}")
            raise


async def poll_until(
    probe: Callable[[], Awaitable[T]],
    predicate: Callable[[T], bool],
    *,
    timeout_ms: int = 5000,
    poll_interval_ms: int = 100,
    description: str = "condition",
    expected: Any = None,
    multiplier: float = 1.0,
    max_interval_ms: int = 1000,
) -> T:
    """
    Re-probe a target until `predicate(observed)` is true.

    Args:
        probe: Coroutine function reading the live value
        predicate: Check applied to each observed value
        timeout_ms: Total time budget in milliseconds
        poll_interval_ms: Sleep between attempts in milliseconds
        description: Human-readable description for logs and errors
        expected: Expected value or pattern, reported on failure
        multiplier: Interval growth factor
        max_interval_ms: Upper bound for the grown interval

    Returns:
        The first observed value satisfying the predicate

    Raises:
        ExpectationFailed: Carrying the last observed value
    """
    config = PollConfig(
        timeout_ms=timeout_ms,
        interval_ms=poll_interval_ms,
        multiplier=multiplier,
        max_interval_ms=max_interval_ms,
    )
    poller = Poller(probe, predicate, config, description=description, expected=expected)
    return await poller.run()


__all__ = [
    "PollState",
    "PollConfig",
    "Poller",
    "poll_until",
]
