"""
Licensing service: exposes HQ license checks to the host application.
"""

from typing import Dict, Optional

from fastapi import HTTPException, Request

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config

from .cache.redis_cache import RedisCacheStore
from .cache.store import CacheStore, MemoryCacheStore
from .hq.coordinator import LicenseCoordinator
from .hq.models import RequestContext


def build_cache_store(config: ServiceConfig) -> CacheStore:
    """Create the cache store selected by ``cache_backend``."""
    if config.cache_backend == "redis":
        store = RedisCacheStore(config.redis_url)
        store.start()
        return store
    return MemoryCacheStore()


def request_context(request: Request) -> RequestContext:
    """Extract the requester facts HQ is told about."""
    return RequestContext(
        ip=request.client.host if request.client else None,
        host=request.url.hostname,
        port=request.url.port
    )


class LicensingService(BaseService):
    """Licensing service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, cache_store: Optional[CacheStore] = None):
        super().__init__("licensing", 8020, config=config or get_config("licensing", 8020))

        self.cache_store = cache_store or build_cache_store(self.config)
        self.coordinator = LicenseCoordinator(self.config, self.cache_store, metrics=self.metrics)

        self._setup_licensing_routes()

    def _setup_licensing_routes(self):
        """Set up licensing-specific routes."""

        @self.app.get("/")
        def root():
            """Root endpoint."""
            return {
                "service": "licensing",
                "message": "Licensing Service",
                "version": "1.0.0",
                "product_version": self.config.product_version,
                "cache_key": self.coordinator.cache_key()
            }

        @self.app.get("/license")
        def check_license(request: Request):
            """Return the current verdict, verifying with HQ when none is cached."""
            return self.coordinator.check(request_context(request))

        @self.app.get("/license/cached")
        def cached_license():
            """Return the cached verdict without contacting HQ."""
            verdict = self.coordinator.current_cached_verdict()
            if verdict is None:
                raise HTTPException(status_code=404, detail="No cached license verdict")
            return verdict

        @self.app.post("/license/refresh")
        def refresh_license(request: Request):
            """Discard the cached verdict and verify with HQ."""
            return self.coordinator.force_refresh(request_context(request))

        @self.app.delete("/license/cache")
        def clear_license_cache():
            """Delete the cached verdict."""
            self.coordinator.clear()
            self.logger.info("License cache cleared", cache_key=self.coordinator.cache_key())
            return {"cleared": True}

    def _check_dependencies(self) -> Dict[str, str]:
        healthy = getattr(self.cache_store, "health_check", lambda: True)()
        return {"cache_store": "ok" if healthy else "error"}


def create_app(config: Optional[ServiceConfig] = None, cache_store: Optional[CacheStore] = None):
    """Create the licensing FastAPI application."""
    return LicensingService(config=config, cache_store=cache_store).app


if __name__ == "__main__":
    LicensingService().run()
