from contextlib import asynccontextmanager

from fastapi import FastAPI
from linkcache_app.config import settings
from linkcache_app.dependencies import build_services
from linkcache_app.logging_config import setup_logging
from linkcache_app.api.v1 import cache, links, redirect, users


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Own the service lifecycle.

    Services pre-set on app.state (tests) are used as-is; otherwise they are
    built from settings. The reconciliation loop starts in production (or
    when SYNC_AUTOSTART is set) and pending visits are flushed on shutdown.
    """
    setup_logging(settings.log_level)
    services = getattr(app.state, "services", None)
    owns_services = services is None
    if owns_services:
        services = build_services()
        app.state.services = services

    if settings.sync_enabled:
        services.sync.start()

    yield

    try:
        await services.sync.stop()
    finally:
        await services.links.close()
        if owns_services:
            await services.kv.close()
            del app.state.services


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Link shortener backend with a cache-aside / write-behind visit tracking layer",
    debug=settings.debug,
    lifespan=lifespan,
)


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.environment}




######## Include routers
app.include_router(links.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(cache.router, prefix="/api/v1")
app.include_router(redirect.router)
