"""GitHub webhook endpoint."""

import logging
from typing import Any

from fastapi import APIRouter, Header, HTTPException, Request

from ..common import InvalidPayloadError, InvalidSignatureError, MisconfiguredError, StoreError
from .service import get_intake_service

logger = logging.getLogger("maintainer_firewall.webhook")

webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _reject(status_code: int, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"ok": False, "message": message})


@webhook_router.post("/github")
async def handle_github_webhook(
    request: Request,
    x_github_event: str | None = Header(None, alias="X-GitHub-Event"),
    x_github_delivery: str | None = Header(None, alias="X-GitHub-Delivery"),
    x_hub_signature_256: str | None = Header(None, alias="X-Hub-Signature-256"),
) -> dict[str, Any]:
    """
    Handle incoming GitHub webhooks.

    Verifies the signature, stores the event once per delivery ID, and turns
    matching rules into alerts and label/comment actions.
    """
    payload = await request.body()

    try:
        result = await get_intake_service().receive(
            raw_body=payload,
            signature_header=x_hub_signature_256,
            event_type_header=x_github_event,
            delivery_id_header=x_github_delivery,
        )
    except MisconfiguredError as e:
        logger.error(f"Webhook rejected, service misconfigured: {e}")
        raise _reject(500, str(e))
    except InvalidSignatureError as e:
        logger.warning(f"Webhook rejected ({x_github_event}, {x_github_delivery}): {e}")
        raise _reject(401, str(e))
    except InvalidPayloadError as e:
        logger.warning(f"Webhook rejected ({x_github_event}, {x_github_delivery}): {e}")
        raise _reject(400, str(e))
    except StoreError as e:
        logger.exception(f"Failed to persist {x_github_event} webhook {x_github_delivery}")
        raise _reject(500, f"failed to persist event: {e}")

    event = result.event
    return {
        "ok": True,
        "message": f"webhook accepted (action={event.action})",
        "event": event.event_type,
        "delivery_id": event.delivery_id,
        "duplicate": result.duplicate,
        "suggested_actions": [s.model_dump(mode="json") for s in result.suggestions],
    }
