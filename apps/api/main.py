# FastAPI entrypoint with API key authentication, key administration and health routes

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from loguru import logger

from apps.api.settings import APIConfig
from apps.logging_config import configure_logging
from auth.cache_manager import InMemoryRateLimiter
from auth.errors import AuthError, PersistenceError
from auth.key_manager import APIKeyManager
from auth.key_store import APIKeyStore
from auth.rbac_dependencies import Permissions, get_auth_context, require_permission
from auth.schemas import APIKeySummary, AuthContext, CreateAPIKeyRequest, IssuedKey
from auth.security_middleware import (
    APIKeyAuthMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
)
from storage.relational.database import DatabaseConfig, DatabaseManager

API_VERSION = "1.0.0"


def build_key_manager(config: APIConfig) -> APIKeyManager:
    db = DatabaseManager(DatabaseConfig(config.database_url))
    return APIKeyManager(APIKeyStore(db))


def not_found(message: str) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "Not Found", "message": message})


def create_app(config: Optional[APIConfig] = None, key_manager: Optional[APIKeyManager] = None) -> FastAPI:
    config = config or APIConfig()
    key_manager = key_manager or build_key_manager(config)
    db = key_manager.store.db

    app = FastAPI(
        title="BroHelp API",
        description="Content automation API protected by API keys",
        version=API_VERSION,
    )
    app.state.config = config
    app.state.key_manager = key_manager

    # ==================== MIDDLEWARE STACK ====================
    # Added innermost first: the auth gate runs after logging and rate limiting,
    # and before any route.

    app.add_middleware(
        APIKeyAuthMiddleware,
        key_manager=key_manager,
        auth_disabled=config.auth_disabled,
        public_paths=(config.health_path,),
    )
    app.add_middleware(
        RateLimitMiddleware,
        limiter=InMemoryRateLimiter(config.rate_limit_max_requests, config.rate_limit_window_seconds),
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key"],
    )

    # ==================== ERROR HANDLERS ====================

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal Server Error", "message": "Storage operation failed"},
        )

    # ==================== PERMISSIONS ====================

    require_read = require_permission(Permissions.READ, auth_disabled=config.auth_disabled)
    require_admin = require_permission(Permissions.ADMIN, auth_disabled=config.auth_disabled)

    # ==================== HEALTH (PUBLIC) ====================

    @app.get(config.health_path)
    async def health_check():
        """Health check endpoint for monitoring. Never requires an API key."""
        database_ok = await run_in_threadpool(db.health_check)
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": API_VERSION,
            "database": "ok" if database_ok else "unavailable",
        }

    @app.get("/")
    async def root():
        return {
            "message": "BroHelp API",
            "status": "running",
            "docs_url": "/docs",
            "health": config.health_path,
        }

    @app.get("/api/auth/whoami")
    async def whoami(context: Optional[AuthContext] = Depends(require_read)):
        """Return the identity resolved for the presented API key."""
        context = context or AuthContext()
        return {
            "name": context.name,
            "permissions": sorted(context.permissions),
            "bypassed": context.bypassed,
        }

    # ==================== KEY ADMINISTRATION (ADMIN) ====================

    keys_router = APIRouter(prefix="/api/keys", tags=["api-keys"], dependencies=[Depends(require_admin)])

    @keys_router.get("", response_model=List[APIKeySummary])
    async def list_keys():
        return await run_in_threadpool(key_manager.list_keys)

    @keys_router.post("", status_code=201, response_model=IssuedKey)
    async def create_key(data: CreateAPIKeyRequest, context: Optional[AuthContext] = Depends(get_auth_context)):
        issued = await run_in_threadpool(key_manager.issue, data.name, data.permissions)
        actor = context.name if context else None
        logger.info(f"API key {issued.id} created via API by {actor!r}")
        return issued

    @keys_router.post("/{key_id}/revoke")
    async def revoke_key(key_id: int):
        if not await run_in_threadpool(key_manager.revoke, key_id):
            return not_found(f"API key {key_id} not found")
        return {"id": key_id, "revoked": True}

    @keys_router.delete("/{key_id}")
    async def delete_key(key_id: int):
        if not await run_in_threadpool(key_manager.delete, key_id):
            return not_found(f"API key {key_id} not found")
        return {"id": key_id, "deleted": True}

    app.include_router(keys_router)

    # ==================== STARTUP / SHUTDOWN ====================

    @app.on_event("startup")
    async def startup_event():
        """Initialize on startup."""
        configure_logging(config.log_level, config.log_dir, config.environment)
        key_manager.store.ensure_schema()
        logger.info("API key schema ready")
        if config.auth_disabled:
            logger.warning("API_AUTH_DISABLED is set: authentication and permission checks are OFF")

    @app.on_event("shutdown")
    async def shutdown_event():
        db.dispose()

    return app


def run(host: Optional[str] = None, port: Optional[int] = None):
    import uvicorn

    config = APIConfig()
    uvicorn.run(
        "apps.api.main:create_app",
        factory=True,
        host=host or config.host,
        port=port or config.port,
    )


if __name__ == "__main__":
    run()
