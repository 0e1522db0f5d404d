from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    """Liveness check with a glimpse at the realtime relay"""
    return {
        "status": "ok",
        "sessions": len(request.app.state.directory),
        "rooms": request.app.state.registry.room_count()
    }
