"""
Sports Rankings - FastAPI server

Rankings, result entry, bulk import and player merge over Supabase.
"""
from fastapi import FastAPI
from loguru import logger

from .config import get_settings, setup_logging
from .router import router as rankings_router


# FastAPI app
app = FastAPI(
    title="Sports Rankings",
    description="Rolling and lifetime rankings, bulk result import, player merge",
    version="1.0.0"
)

app.include_router(rankings_router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    """Logging setup"""
    setup_logging("server")
    settings = get_settings()
    logger.info(
        f"Server started - window {settings.rolling_window_days} days, "
        f"default organization {settings.default_organization_id or '-'}"
    )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Server stopped")


@app.get("/api/status")
async def api_status():
    """Service status"""
    settings = get_settings()
    return {
        "status": "ok",
        "rolling_window_days": settings.rolling_window_days,
        "expiring_within_days": settings.expiring_within_days,
    }


# ==================== Run ====================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.server:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level="info"
    )
