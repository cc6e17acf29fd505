"""Remote action execution with bounded retry."""

from .api_routes import failures_router
from .dispatcher import ActionDispatcher, get_action_dispatcher
from .github_executor import GitHubActionExecutor, get_action_executor, set_action_executor
from .public_api import (
    # Models
    ActionAttempt,
    CommentAction,
    LabelAction,
    RemoteAction,
    # ABC interfaces
    ActionExecutor,
    EventSource,
    # Constructors
    action_from_payload,
    build_action,
)
from .runner import ActionRunner, RetryPolicy, get_action_runner, set_action_runner

__all__ = [
    # Public API - Models
    "ActionAttempt",
    "CommentAction",
    "LabelAction",
    "RemoteAction",
    "action_from_payload",
    "build_action",
    # Public API - Interfaces
    "ActionExecutor",
    "EventSource",
    # Implementations
    "GitHubActionExecutor",
    "get_action_executor",
    "set_action_executor",
    # Retry and dispatch
    "ActionRunner",
    "RetryPolicy",
    "get_action_runner",
    "set_action_runner",
    "ActionDispatcher",
    "get_action_dispatcher",
    # Routers
    "failures_router",
]
