"""Cancellation context shared by a single probe invocation."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto
from typing import Optional

logger = logging.getLogger("wait-for-tcp")


class StopReason(Enum):
    """Why a probe context was cancelled."""

    USER_STOP = auto()
    DEADLINE_EXCEEDED = auto()


class ProbeStopped(Exception):
    """Raised inside the probe loop once its context is done."""

    def __init__(self, reason: StopReason) -> None:
        super().__init__(reason.name.lower())
        self.reason = reason


class ProbeContext:
    """Explicit stop signal plus an optional deadline.

    The deadline is measured from :meth:`start`, which the poller calls on
    entry and ``async with`` calls on enter. The first cause to fire is kept.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        if timeout is not None and timeout < 0:
            raise ValueError("timeout cannot be negative")
        self._timeout = timeout
        self._event = asyncio.Event()
        self._reason: Optional[StopReason] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._started = False

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    @property
    def reason(self) -> Optional[StopReason]:
        return self._reason

    @property
    def done(self) -> bool:
        return self._reason is not None

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        if self._timeout is None or self.done:
            return
        if self._timeout == 0:
            self._cancel(StopReason.DEADLINE_EXCEEDED)
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._timeout, self._cancel, StopReason.DEADLINE_EXCEEDED)

    def stop(self) -> None:
        """Request a graceful stop."""

        self._cancel(StopReason.USER_STOP)

    def _cancel(self, reason: StopReason) -> None:
        if self._reason is not None:
            return
        self._reason = reason
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._event.set()
        logger.debug("Probe context cancelled", extra={"fields": {"reason": reason.name.lower()}})

    async def wait(self) -> StopReason:
        await self._event.wait()
        if self._reason is None:
            raise RuntimeError("stop event set without a reason")
        return self._reason

    def raise_if_done(self) -> None:
        if self._reason is not None:
            raise ProbeStopped(self._reason)

    def close(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def __aenter__(self) -> "ProbeContext":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()
