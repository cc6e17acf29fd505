"""FastAPI routes for the GitHub events sync."""

from typing import Any

from fastapi import APIRouter, HTTPException

from ..common import MisconfiguredError, RemoteActionError, StoreError, SyncInProgressError
from .worker import get_event_sync_worker

sync_router = APIRouter(prefix="/api/events", tags=["events"])


@sync_router.get("/sync-status")
async def sync_status() -> dict[str, Any]:
    """Status of the latest GitHub events sync."""
    status = get_event_sync_worker().status
    return {"ok": True, "source": "github", "status": status.model_dump(mode="json")}


@sync_router.post("/sync")
async def sync_now() -> dict[str, Any]:
    """Run one GitHub events sync immediately."""
    try:
        saved, total = await get_event_sync_worker().sync_once()
    except SyncInProgressError as e:
        raise HTTPException(status_code=409, detail={"ok": False, "message": str(e)})
    except (MisconfiguredError, StoreError) as e:
        raise HTTPException(status_code=500, detail={"ok": False, "message": f"sync github events failed: {e}"})
    except RemoteActionError as e:
        raise HTTPException(status_code=502, detail={"ok": False, "message": f"sync github events failed: {e}"})

    return {"ok": True, "source": "github", "saved": saved, "total": total}
