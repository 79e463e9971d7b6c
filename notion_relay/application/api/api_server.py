from typing import Optional
from datetime import datetime
from fastapi import FastAPI
import structlog

from notion_relay.application.api.route.webhook import router as webhook_router
from notion_relay.application.api.runtime import RelayRuntime, build_runtime
from notion_relay.infrastructure.config.settings import Settings
from notion_relay.infrastructure.observability.logging import setup_logging, metrics

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None, runtime: Optional[RelayRuntime] = None) -> FastAPI:
    """Build the webhook application; the runtime is wired at startup unless given"""

    settings = settings or Settings.from_env()
    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(title="Notion Relay")
    app.state.settings = settings
    app.state.runtime = runtime

    @app.on_event("startup")
    async def startup_event():
        if app.state.runtime is None:
            app.state.runtime = build_runtime(settings)
        logger.info("Relay started", allowed_users=len(settings.allowed_user_ids))

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.runtime is not None:
            await app.state.runtime.close()
        logger.info("Relay shutdown")

    app.include_router(webhook_router)

    @app.get("/api/keepalive")
    async def keepalive():
        """Pinged by cron to keep the instance warm"""
        return {"status": "alive", "timestamp": datetime.utcnow().isoformat()}

    @app.get("/health")
    async def health_check():
        runtime = app.state.runtime
        return {
            "status": "healthy",
            "sessions": runtime.stats() if runtime else {},
            "metrics": metrics.summary(),
            "timestamp": datetime.utcnow().isoformat()
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
