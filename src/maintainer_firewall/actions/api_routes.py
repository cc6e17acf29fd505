"""FastAPI routes for action failures."""

from typing import Any

from fastapi import APIRouter, HTTPException

from ..common import ActionValidationError, FailureNotFoundError, RemoteActionError, StoreError
from .runner import get_action_runner

failures_router = APIRouter(prefix="/api/action-failures", tags=["action-failures"])


@failures_router.post("/{failure_id}/retry")
async def retry_action_failure(failure_id: int) -> dict[str, Any]:
    """
    Retry a terminal action failure once.

    Args:
        failure_id: ID of the action failure to retry.
    """
    if failure_id <= 0:
        raise HTTPException(status_code=400, detail={"ok": False, "message": "invalid failure id"})

    runner = get_action_runner()
    try:
        failure = await runner.retry_failure(failure_id)
    except FailureNotFoundError:
        raise HTTPException(status_code=404, detail={"ok": False, "message": "failure not found"})
    except ActionValidationError as e:
        raise HTTPException(status_code=400, detail={"ok": False, "message": f"retry failed: {e}"})
    except RemoteActionError as e:
        raise HTTPException(status_code=502, detail={"ok": False, "message": f"retry failed: {e}"})
    except StoreError as e:
        raise HTTPException(status_code=500, detail={"ok": False, "message": str(e)})

    return {
        "ok": True,
        "message": "retry succeeded",
        "failure": failure.model_dump(mode="json"),
    }
