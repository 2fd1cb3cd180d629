"""Health check endpoint."""

from fastapi import APIRouter, Request

from services.amenities.store.memory import MemoryStore

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    store = getattr(request.app.state, "store", None)
    return {
        "success": True,
        "data": {
            "status": "healthy" if store is not None else "starting",
            "version": request.app.state.settings.app_version,
            "store": "memory" if isinstance(store, MemoryStore) else ("sql" if store else None),
        },
        "requestId": request.state.request_id,
    }
