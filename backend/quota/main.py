from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .routers import quotas as quotas_router
from .services.quota_manager import QuotaManager, Refresher
from .services.scheduler import QuotaCleanupScheduler
from .services.upstream import QuotaFetcher, make_http_fetcher
from .storage.json_store import JSONStore


def create_app(
    settings: Optional[Settings] = None,
    fetcher: Optional[QuotaFetcher] = None,
    refresher: Optional[Refresher] = None,
) -> FastAPI:
    settings = settings or get_settings()
    store = JSONStore(settings.data_file_path, ttl_ms=settings.cleanup_ttl_ms)
    manager = QuotaManager(
        store,
        settings,
        fetcher=fetcher or make_http_fetcher(settings),
        refresher=refresher,
    )
    scheduler = QuotaCleanupScheduler(manager)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        await scheduler.start()
        yield
        # Shutdown
        await scheduler.stop()
        manager.close()

    app = FastAPI(title="Quota Cache API", lifespan=lifespan)

    app.state.settings = settings
    app.state.store = store
    app.state.quota_manager = manager
    app.state.scheduler = scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_origin_regex=settings.cors_allow_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(quotas_router.router)

    return app


app = create_app()
