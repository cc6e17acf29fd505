"""Webhook intake: signature verification, idempotent event recording, rule evaluation."""

from .service import IntakeResult, IntakeService, get_intake_service, set_intake_service
from .signature import require_valid_signature, verify_signature
from .webhook_handler import webhook_router

__all__ = [
    "IntakeResult",
    "IntakeService",
    "get_intake_service",
    "set_intake_service",
    "require_valid_signature",
    "verify_signature",
    "webhook_router",
]
