"""Periodic import of the GitHub user events feed."""

from .api_routes import sync_router
from .worker import EventSyncWorker, get_event_sync_worker, set_event_sync_worker

__all__ = [
    "EventSyncWorker",
    "get_event_sync_worker",
    "set_event_sync_worker",
    "sync_router",
]
