from pageflow.api.http.health import router as health_router
from pageflow.api.http.auth import router as auth_router
from pageflow.api.http.pages import router as pages_router
from pageflow.api.http.blocks import router as blocks_router
from pageflow.api.http.comments import router as comments_router

__all__ = [
    "health_router",
    "auth_router",
    "pages_router",
    "blocks_router",
    "comments_router"
]
