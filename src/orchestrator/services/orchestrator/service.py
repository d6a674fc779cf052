"""Orchestrator process.

Boots the ledger, both chain clients, the two watchers, one settlement
worker per direction, the retry sweep and the status API, and runs them
concurrently until SIGINT / SIGTERM.
"""

import asyncio
import logging
import signal
from datetime import datetime, timezone
from typing import Any

import uvicorn
from sqlalchemy.ext.asyncio import AsyncEngine

from orchestrator import __version__
from orchestrator.core.config import Settings, get_settings
from orchestrator.core.exceptions import OrchestratorError
from orchestrator.infrastructure.blockchain.events import EventType
from orchestrator.main import create_app
from orchestrator.services.event_handlers.handlers import (
    DepositIntentHandler,
    RedemptionIntentHandler,
)
from orchestrator.services.event_handlers.worker import SettlementWorker
from orchestrator.services.event_listener.watcher import EventWatcher, WatcherConfig
from orchestrator.services.ledger.store import LedgerStore
from orchestrator.services.orchestrator.factory import (
    create_chain_contexts,
    create_clients,
    create_ledger,
    create_transport,
)
from orchestrator.services.orchestrator.sweeper import RetrySweeper
from orchestrator.services.settlement.base import ChainContext, SettlementPolicy
from orchestrator.services.settlement.deposit import DepositPipeline
from orchestrator.services.settlement.redemption import RedemptionPipeline

logger = logging.getLogger(__name__)


class Orchestrator:
    """Settlement orchestrator process."""

    def __init__(self, settings: Settings | None = None):
        """Initialize orchestrator.

        Args:
            settings: Settings (defaults to cached settings)
        """
        self.settings = settings or get_settings()
        self.started_at: datetime | None = None

        self.engine: AsyncEngine | None = None
        self.ledger: LedgerStore | None = None
        self.source: ChainContext | None = None
        self.destination: ChainContext | None = None
        self.transport: Any = None

        self.watchers: dict[str, EventWatcher] = {}
        self.workers: dict[str, SettlementWorker] = {}
        self.sweeper: RetrySweeper | None = None
        self._api_server: uvicorn.Server | None = None
        self._stop_event = asyncio.Event()

    async def setup(self) -> None:
        """Build every component from settings.

        Raises:
            ConfigurationError: Operator key or contract addresses missing
        """
        settings = self.settings
        settings.require_contracts()

        self.engine, self.ledger = await create_ledger(settings)
        self.source, self.destination = create_chain_contexts(settings, create_clients(settings))
        self.transport = create_transport(settings, self.source, self.destination)

        policy = SettlementPolicy.from_settings(settings)
        pipeline_args = dict(
            ledger=self.ledger,
            transport=self.transport,
            source=self.source,
            destination=self.destination,
            vault_address=settings.vault_address,
            treasury_address=settings.treasury_address,
            policy=policy,
        )
        deposit_handler = DepositIntentHandler(DepositPipeline(**pipeline_args))
        redemption_handler = RedemptionIntentHandler(RedemptionPipeline(**pipeline_args))

        deposit_queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=settings.queue_size)
        redemption_queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=settings.queue_size)

        for name, event_type, queue, handler in (
            ("deposits", EventType.DEPOSIT_INTENT, deposit_queue, deposit_handler),
            ("redemptions", EventType.REDEMPTION_INTENT, redemption_queue, redemption_handler),
        ):
            self.watchers[name] = EventWatcher(
                name=name,
                client=self.source.client,
                config=WatcherConfig(
                    contract_address=settings.vault_address,
                    event_type=event_type,
                    poll_interval=settings.poll_interval,
                    backfill_blocks=settings.backfill_blocks,
                    max_blocks_per_query=settings.max_blocks_per_query,
                    confirmation_blocks=settings.confirmation_blocks,
                ),
                queue=queue,
            )
            self.workers[name] = SettlementWorker(name, queue, handler)

        self.sweeper = RetrySweeper(
            ledger=self.ledger,
            deposit_queue=deposit_queue,
            redemption_queue=redemption_queue,
            max_retries=settings.max_retries,
            interval=settings.retry_sweep_interval,
        )

    async def preflight(self) -> None:
        """Check both chains answer and log operator balances.

        Raises:
            OrchestratorError: A chain is unreachable
        """
        for ctx in (self.source, self.destination):
            try:
                block = await ctx.client.get_block_number()
                native = await ctx.client.get_balance(ctx.operator)
                usdc = await ctx.operator_balance()
            except Exception as e:
                raise OrchestratorError(f"{ctx.client.name} unreachable: {e}") from e

            logger.info(
                f"{ctx.client.name}: block {block}, operator {ctx.operator} "
                f"holds {native} wei native, {usdc} USDC base units"
            )

    async def run(self) -> None:
        """Run until a shutdown signal arrives."""
        await self.setup()
        await self.preflight()
        self._install_signal_handlers()
        self.started_at = datetime.now(timezone.utc)

        watcher_tasks = [
            asyncio.create_task(w.run(), name=f"watcher-{n}") for n, w in self.watchers.items()
        ]
        tasks = [
            *(asyncio.create_task(w.run(), name=f"worker-{n}") for n, w in self.workers.items()),
            asyncio.create_task(self.sweeper.run(), name="retry-sweep"),
        ]
        if self.settings.api_enabled:
            tasks.append(asyncio.create_task(self._serve_api(), name="status-api"))

        logger.info(
            f"Orchestrator {__version__} running: {self.settings.source_chain_name} -> "
            f"{self.settings.destination_chain_name}"
        )

        await self._stop_event.wait()
        logger.info("Shutting down, waiting for in-flight settlements")
        await self.shutdown(watcher_tasks, tasks)

    def request_stop(self) -> None:
        """Signal every loop to stop."""
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        for watcher in self.watchers.values():
            watcher.stop()
        for worker in self.workers.values():
            worker.stop()
        if self.sweeper:
            self.sweeper.stop()
        if self._api_server:
            self._api_server.should_exit = True

    async def shutdown(
        self, watcher_tasks: list[asyncio.Task], tasks: list[asyncio.Task]
    ) -> None:
        """Wait for in-flight work to finish, then release resources.

        Watchers may be blocked on a full queue, so they are cancelled; events
        they had not queued are replayed by the next backfill.
        """
        for task in watcher_tasks:
            task.cancel()
        await asyncio.gather(*watcher_tasks, return_exceptions=True)

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for task, result in zip(tasks, results):
            if isinstance(result, Exception):
                logger.error(f"Task {task.get_name()} ended with error: {result}")

        if self.transport is not None and hasattr(self.transport, "close"):
            await self.transport.close()
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("Orchestrator stopped")

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except NotImplementedError:
                # Not available on Windows event loops
                pass

    async def _serve_api(self) -> None:
        config = uvicorn.Config(
            create_app(self, self.settings),
            host=self.settings.api_host,
            port=self.settings.api_port,
            log_config=None,
            lifespan="off",
        )
        # uvicorn captures SIGINT/SIGTERM while serving and re-raises them on
        # exit, so they still reach request_stop through the loop handlers
        self._api_server = uvicorn.Server(config)
        await self._api_server.serve()

    async def get_status(self) -> dict[str, Any]:
        """Snapshot of watchers, workers and ledger counts."""
        watchers = {
            name: await watcher.get_sync_status() for name, watcher in self.watchers.items()
        }
        workers = {
            name: {
                "queue_depth": worker.queue.qsize(),
                "events_processed": worker.handler.stats.events_processed,
                "events_failed": worker.handler.stats.events_failed,
                "retries_processed": worker.handler.stats.retries_processed,
                "last_error": worker.handler.stats.last_error,
            }
            for name, worker in self.workers.items()
        }
        summary = await self.ledger.summary() if self.ledger else None
        return {
            "version": __version__,
            "environment": self.settings.environment,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "source_chain": self.settings.source_chain_name,
            "destination_chain": self.settings.destination_chain_name,
            "watchers": watchers,
            "workers": workers,
            "retry_sweeps": self.sweeper.sweeps if self.sweeper else 0,
            "ledger": summary.model_dump() if summary else {},
        }
