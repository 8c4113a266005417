"""Wiring of storage, provider and services into a ready orchestrator."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from barvault.core.data.providers import AlpacaBarsClient
from barvault.core.data.storage import BarVaultDuckDBFactory, DuckDBBarStore, DuckDBFactoryConfig
from barvault.core.monitoring import get_pipeline_metrics
from barvault.core.services import DuckDBMarketCalendar, JobTracker, MarketDataOrchestrator

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

    from barvault.core.config import BarVaultConfig


@dataclass
class Pipeline:
    """Live resources for one process run."""

    config: BarVaultConfig
    conn: DuckDBPyConnection
    client: AlpacaBarsClient
    store: DuckDBBarStore
    tracker: JobTracker
    calendar: DuckDBMarketCalendar
    orchestrator: MarketDataOrchestrator


@asynccontextmanager
async def open_pipeline(config: BarVaultConfig, **orchestrator_kwargs: Any) -> AsyncIterator[Pipeline]:
    """Open the database and HTTP client for ``config`` and close both on exit."""

    factory = BarVaultDuckDBFactory(DuckDBFactoryConfig.from_storage(config.storage))
    conn = factory.create_connection()
    client = AlpacaBarsClient.from_config(config.provider)
    try:
        store = DuckDBBarStore(conn)
        tracker = JobTracker(conn)
        calendar = DuckDBMarketCalendar(conn)
        orchestrator = MarketDataOrchestrator(
            config.pipeline,
            store=store,
            client=client,
            tracker=tracker,
            calendar=calendar,
            metrics=get_pipeline_metrics(),
            **orchestrator_kwargs,
        )
        yield Pipeline(config, conn, client, store, tracker, calendar, orchestrator)
    finally:
        await client.close()
        conn.close()


__all__ = ["Pipeline", "open_pipeline"]
