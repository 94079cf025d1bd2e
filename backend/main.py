import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import (
    upload_router,
    history_router,
    market_router,
    comparison_router,
    export_router,
    admin_router,
    feed_router,
    register_error_handlers,
)
from core import get_engine, get_settings
from services import get_price_feed

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    feed = get_price_feed()
    if settings.feed_url:
        feed.start(settings.feed_assets)
    yield
    if feed.is_running:
        feed.stop()

app = FastAPI(
    title="Carbon Market Analytics API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(upload_router, prefix="/api")
app.include_router(history_router, prefix="/api")
app.include_router(market_router, prefix="/api")
app.include_router(comparison_router, prefix="/api")
app.include_router(export_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(feed_router, prefix="/api")

@app.get("/")
async def root():
    return {
        "name": "Carbon Market Analytics API",
        "version": "1.0.0",
        "docs": "/docs",
    }

@app.get("/health")
async def health():
    from execution import get_order_engine
    from audit import get_audit_log

    stats = get_engine().stats()
    feed = get_price_feed()

    return {
        "status": "healthy",
        "engine": {
            "samples_ingested": stats["samples_ingested"],
            "samples_rejected": stats["samples_rejected"],
            "assets": stats["assets"],
            "persistent": stats["persistent"],
            "uptime_seconds": round(stats["uptime_seconds"], 2)
        },
        "orders": get_order_engine().stats()["total_orders"],
        "audit_entries": len(get_audit_log()),
        "price_feed": {
            "is_running": feed.is_running,
            "assets": feed.stats.assets,
            "samples_received": feed.stats.samples_received
        }
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
