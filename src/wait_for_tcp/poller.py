"""Connect-retry loop that waits for a TCP target to accept connections."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Dict, Optional

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_never, wait_fixed

from .__about__ import __version__
from .config import ProbeConfig, split_address
from .context import ProbeContext, ProbeStopped, StopReason
from .durations import format_duration
from .reporting import Level, Reporter

logger = logging.getLogger("wait-for-tcp")

# The IDNA codec rejects malformed host labels with UnicodeError before any
# socket call, so it counts as a resolution failure.
DIAL_ERRORS = (OSError, asyncio.TimeoutError, UnicodeError)


class DeadlineExceededError(TimeoutError):
    """Raised when the probe deadline expires before the target is ready."""


def describe_dial_error(address: str, exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return f"dial tcp {address}: i/o timeout"
    return f"dial tcp {address}: {exc}"


class ReadinessPoller:
    """Probe ``config.target_address`` until it accepts a connection.

    One poller serves one invocation; concurrent probes use separate pollers
    and contexts.
    """

    def __init__(self, config: ProbeConfig, reporter: Reporter) -> None:
        self._config = config
        self._reporter = reporter

    def _fields(self, **extra: Any) -> Dict[str, Any]:
        if not self._config.verbose:
            return {}
        fields: Dict[str, Any] = {
            "target_name": self._config.target_name,
            "target_address": self._config.target_address,
            "interval": format_duration(self._config.interval),
            "dial_timeout": format_duration(self._config.dial_timeout),
            "version": __version__,
        }
        fields.update(extra)
        return fields

    async def _connect(self) -> asyncio.StreamWriter:
        host, port = split_address(self._config.target_address)
        timeout = self._config.dial_timeout or None
        _, writer = await asyncio.wait_for(asyncio.open_connection(host or None, port), timeout=timeout)
        return writer

    async def _close(self, writer: asyncio.StreamWriter) -> None:
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()

    async def _dial(self, ctx: ProbeContext) -> asyncio.StreamWriter:
        """Open one connection, aborting the attempt if ``ctx`` fires first.

        Only the connect races the context; the caller owns the returned
        writer and closes it.
        """

        dial = asyncio.ensure_future(self._connect())
        stopped = asyncio.ensure_future(ctx.wait())
        try:
            await asyncio.wait({dial, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopped.cancel()
            if not dial.done():
                dial.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await dial
        if dial.cancelled():
            ctx.raise_if_done()
        # A dial that completed wins over a concurrent stop.
        return dial.result()

    async def _pause(self, ctx: ProbeContext, seconds: float) -> None:
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(ctx.wait(), timeout=seconds)
        ctx.raise_if_done()

    def _report_failure(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        if outcome is None:
            raise RuntimeError("before_sleep called without an attempt outcome")
        exc = outcome.exception()
        cause = describe_dial_error(self._config.target_address, exc)
        logger.debug(
            "Connection attempt failed",
            extra={"fields": {"attempt": retry_state.attempt_number, "error": cause}},
        )
        self._reporter.report(
            Level.WARN,
            f"{self._config.target_name} is not ready ✗",
            self._fields(error=cause),
        )

    async def run(self, ctx: ProbeContext) -> None:
        """Return once the target is ready or ``ctx`` is stopped.

        Raises :class:`DeadlineExceededError` when the context deadline fires
        first. Connection failures are reported, never raised.
        """

        ctx.start()
        self._reporter.report(
            Level.INFO,
            f"Waiting for {self._config.target_name} to become ready...",
            self._fields(),
        )

        async def _sleep(seconds: float) -> None:
            await self._pause(ctx, seconds)

        retrying = AsyncRetrying(
            sleep=_sleep,
            retry=retry_if_exception_type(DIAL_ERRORS),
            wait=wait_fixed(self._config.interval),
            stop=stop_never,
            before_sleep=self._report_failure,
        )
        writer: Optional[asyncio.StreamWriter] = None
        try:
            async for attempt in retrying:
                with attempt:
                    ctx.raise_if_done()
                    writer = await self._dial(ctx)
        except ProbeStopped as exc:
            if exc.reason is StopReason.USER_STOP:
                logger.debug("Probe stopped before target became ready")
                return
            raise DeadlineExceededError(
                f"timed out waiting for {self._config.target_name} ({self._config.target_address})"
            ) from exc

        self._reporter.report(
            Level.INFO,
            f"{self._config.target_name} is ready ✓",
            self._fields(),
        )
        if writer is not None:
            await self._close(writer)


async def wait_for_target(config: ProbeConfig, ctx: ProbeContext, reporter: Reporter) -> None:
    """Convenience wrapper around :meth:`ReadinessPoller.run`."""

    await ReadinessPoller(config, reporter).run(ctx)
