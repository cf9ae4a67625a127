"""
Main entry point for ChurchBook
Wires the local store, offline queue and synchronizer and serves the HTTP API
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from churchbook import __version__
from churchbook.api import records, sync
from churchbook.api.dependencies import APIAuthenticator
from churchbook.api.error_handling import register_exception_handlers
from churchbook.config.config_loader import load_config
from churchbook.core.connectivity import ConnectivityMonitor, ConnectivityWatcher
from churchbook.core.database import DatabaseService
from churchbook.core.local_store import LocalStore
from churchbook.core.logging_manager import setup_logging
from churchbook.core.mock_remote import MockRemoteService
from churchbook.core.offline_queue import OfflineQueue
from churchbook.core.remote_service import RemoteDataService
from churchbook.core.repository import (
    ExpenseRepository, IncomeRepository, MemberRepository, SectorRepository
)
from churchbook.core.scheduler import SyncScheduler
from churchbook.core.supabase_adapter import SupabaseAdapter
from churchbook.core.synchronizer import MAX_RETRIES, Synchronizer

logger = logging.getLogger(__name__)


def create_remote_service(config: Dict[str, Any]) -> RemoteDataService:
    """Supabase when configured, the in-memory service otherwise"""
    remote_config = config.get('remote', {})
    if remote_config.get('mock'):
        logger.info("Using in-memory remote service (remote.mock)")
        return MockRemoteService(config)

    adapter = SupabaseAdapter(config)
    if not adapter.is_configured:
        logger.warning("Supabase credentials missing, falling back to in-memory remote service")
        return MockRemoteService(config)
    return adapter


class ChurchBookServices:
    """Owns every long-lived component and their lifecycle"""

    def __init__(self, config: Dict[str, Any], remote: Optional[RemoteDataService] = None,
                 database: Optional[DatabaseService] = None,
                 connectivity: Optional[ConnectivityMonitor] = None):
        self.config = config
        db_config = config.get('database', {})
        sync_config = config.get('sync', {})
        connectivity_config = config.get('connectivity', {})

        self.database = database or DatabaseService(
            db_config.get('url', 'sqlite+aiosqlite:///./data/churchbook.db'),
            echo=db_config.get('echo', False)
        )
        self.store = LocalStore(self.database)
        self.queue = OfflineQueue(self.database)
        self.remote = remote or create_remote_service(config)

        self.connectivity = connectivity or ConnectivityMonitor(
            initial_online=connectivity_config.get('initial_online', True),
            probe=self.remote.health_check,
            probe_interval=connectivity_config.get('probe_interval', 15)
        )

        self.synchronizer = Synchronizer(
            self.queue, self.store, self.remote, self.connectivity,
            max_retries=sync_config.get('max_retries', MAX_RETRIES)
        )
        self.watcher = ConnectivityWatcher(self.connectivity, self.synchronizer)
        self.scheduler = SyncScheduler(
            self.synchronizer, self.connectivity,
            interval_seconds=sync_config.get('interval_seconds', 30),
            max_interval_seconds=sync_config.get('max_interval_seconds', 600)
        )

        repository_args = (self.store, self.queue, self.remote, self.connectivity)
        self.repositories = {
            repository.collection.value: repository
            for repository in (
                MemberRepository(*repository_args),
                IncomeRepository(*repository_args),
                ExpenseRepository(*repository_args),
                SectorRepository(*repository_args)
            )
        }

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> 'ChurchBookServices':
        return cls(config if config is not None else load_config())

    async def startup(self, background: bool = True):
        """Create tables and start connectivity watching and periodic sync"""
        await self.database.create_tables()
        self.watcher.start()

        if background:
            await self.connectivity.start()
            if self.config.get('sync', {}).get('auto_sync', True):
                await self.scheduler.start()

        logger.info(f"ChurchBook services started (online={self.connectivity.is_online()})")

    async def shutdown(self):
        await self.scheduler.stop()
        await self.connectivity.stop()
        self.watcher.dispose()
        await self.watcher.wait_idle()
        await self.remote.close()
        await self.database.close()
        logger.info("ChurchBook services stopped")


def create_app(config: Optional[Dict[str, Any]] = None,
               services: Optional[ChurchBookServices] = None) -> FastAPI:
    """Build the FastAPI application"""
    config = config if config is not None else load_config()
    services = services or ChurchBookServices(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting ChurchBook v{__version__}...")
        await services.startup()
        yield
        logger.info("Shutting down ChurchBook...")
        await services.shutdown()

    app = FastAPI(
        title="ChurchBook",
        description="Church administration backend with offline write queue and Supabase sync",
        version=__version__,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get('api', {}).get('cors_origins', ["*"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"]
    )

    app.state.services = services
    app.state.authenticator = APIAuthenticator(
        config.get('api', {}).get('api_key', 'development-key-change-in-production')
    )
    register_exception_handlers(app)

    app.include_router(sync.router, prefix="/api/v1/sync", tags=["Synchronization"])
    app.include_router(records.members_router, prefix="/api/v1/members", tags=["Members"])
    app.include_router(records.income_router, prefix="/api/v1/income", tags=["Income"])
    app.include_router(records.expenses_router, prefix="/api/v1/expenses", tags=["Expenses"])
    app.include_router(records.sectors_router, prefix="/api/v1/sectors", tags=["Sectors"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint (no auth required)"""
        database_ok = await services.database.health_check()
        return {
            "status": "healthy" if database_ok else "degraded",
            "version": __version__,
            "database": "connected" if database_ok else "error",
            "online": services.connectivity.is_online(),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return app


def main():
    """Run the API server"""
    config = load_config()
    setup_logging(config)
    api_config = config.get('api', {})

    uvicorn.run(
        create_app(config),
        host=api_config.get('host', '0.0.0.0'),
        port=api_config.get('port', 8080),
        log_config=None
    )


if __name__ == "__main__":
    main()
