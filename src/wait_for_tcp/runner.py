"""Process-level glue: configuration, OS signals and the overall deadline."""

from __future__ import annotations

import asyncio
import logging
import signal
from contextlib import contextmanager
from typing import Iterator, Optional

from .config import DEFAULTS, ConfigDefaults, Lookup, load_config
from .context import ProbeContext
from .poller import wait_for_target
from .reporting import Reporter

logger = logging.getLogger("wait-for-tcp")

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@contextmanager
def stop_on_signals(ctx: ProbeContext) -> Iterator[None]:
    """Route SIGINT/SIGTERM to ``ctx.stop`` while the block runs."""

    loop = asyncio.get_running_loop()
    installed = []
    for signum in STOP_SIGNALS:
        try:
            loop.add_signal_handler(signum, ctx.stop)
        except (NotImplementedError, RuntimeError):  # pragma: no cover - Windows loops, non-main threads
            logger.debug("Signal handlers unavailable; relying on explicit stop")
            break
        installed.append(signum)
    try:
        yield
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)


async def run(
    lookup: Lookup,
    reporter: Reporter,
    *,
    timeout: Optional[float] = None,
    defaults: ConfigDefaults = DEFAULTS,
) -> None:
    """Load the configuration and wait for the target.

    Configuration errors are raised before any connection attempt. Returns
    normally on readiness or on SIGINT/SIGTERM.
    """

    config = load_config(lookup, defaults)
    async with ProbeContext(timeout=timeout) as ctx:
        with stop_on_signals(ctx):
            await wait_for_target(config, ctx, reporter)
