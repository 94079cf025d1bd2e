"""
API Routers
"""
from .upload import router as upload_router
from .history import router as history_router
from .market import router as market_router
from .comparison import router as comparison_router
from .export import router as export_router
from .admin import router as admin_router
from .feed import router as feed_router
from .errors import register_error_handlers

__all__ = [
    "upload_router",
    "history_router",
    "market_router",
    "comparison_router",
    "export_router",
    "admin_router",
    "feed_router",
    "register_error_handlers",
]
