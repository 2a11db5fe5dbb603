"""Headless orchestrator loop.

Runs the pipeline without the HTTP surface:

    python -m forge.worker

Catches up on briefs already in ``evaluating`` one at a time, then polls
every ``FORGE_POLL_INTERVAL_SECONDS`` for briefs with work waiting and
dispatches each one as its own task. SIGINT/SIGTERM stop polling and wait
for active pipelines.
"""

from __future__ import annotations

import asyncio
import signal

from forge.core.config import Settings, get_settings
from forge.core.exceptions import StoreError
from forge.core.logging import configure_logging, get_logger
from forge.oracle import create_oracle
from forge.oracle.protocols import OracleProtocol
from forge.pipeline.runner import PipelineRunner, create_runner
from forge.store import create_store
from forge.store.protocols import StoreProtocol


logger = get_logger(__name__)


async def poll_forever(runner: PipelineRunner, interval: float, stop: asyncio.Event) -> None:
    """Poll until ``stop`` is set. Store errors are logged and retried next tick."""
    while not stop.is_set():
        try:
            scheduled = await runner.poll_once()
        except StoreError as e:
            logger.warning("poll_failed", error=str(e), operation=e.operation)
        else:
            if scheduled:
                logger.info("briefs_scheduled", brief_ids=scheduled, active=runner.active_count)
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except TimeoutError:
            continue


async def run_worker(
    settings: Settings | None = None,
    store: StoreProtocol | None = None,
    oracle: OracleProtocol | None = None,
    stop: asyncio.Event | None = None,
) -> None:
    settings = settings or get_settings()
    owned: list[object] = []
    if store is None:
        store = create_store(settings)
        owned.append(store)
    if oracle is None:
        oracle = create_oracle(settings)
        owned.append(oracle)
    stop = stop or asyncio.Event()
    runner = create_runner(settings, store, oracle)

    logger.info(
        "worker_started",
        poll_interval=settings.poll_interval_seconds,
        oracle_backend=settings.oracle_backend,
        store_backend=settings.store_backend,
    )
    try:
        await runner.catch_up()
        await poll_forever(runner, settings.poll_interval_seconds, stop)
    finally:
        await runner.shutdown()
        for resource in owned:
            close = getattr(resource, "close", None)
            if close is not None:
                await close()
        logger.info("worker_stopped")


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))


async def _main() -> None:
    stop = asyncio.Event()
    _install_signal_handlers(stop)
    await run_worker(stop=stop)


def main() -> None:
    configure_logging()
    asyncio.run(_main())


if __name__ == "__main__":
    main()
