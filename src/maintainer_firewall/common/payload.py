"""Field extraction from GitHub webhook payloads."""

from typing import Any

UNKNOWN = "unknown"

# Event type -> payload key holding the issue or pull request the event is about
TARGET_KEYS = {
    "issues": "issue",
    "pull_request": "pull_request",
}


def nested_string(payload: dict[str, Any], parent: str, key: str, default: str = UNKNOWN) -> str:
    """Stripped string at payload[parent][key], or default when absent or blank."""
    container = payload.get(parent)
    if not isinstance(container, dict):
        return default
    value = container.get(key)
    if not isinstance(value, str) or not value.strip():
        return default
    return value.strip()


def extract_repository_full_name(payload: dict[str, Any]) -> str:
    return nested_string(payload, "repository", "full_name")


def extract_sender_login(payload: dict[str, Any]) -> str:
    return nested_string(payload, "sender", "login")


def extract_action(payload: dict[str, Any]) -> str:
    action = payload.get("action")
    return action if isinstance(action, str) else ""


def _target(event_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    key = TARGET_KEYS.get(event_type.strip().lower())
    if key is None:
        return {}
    target = payload.get(key)
    return target if isinstance(target, dict) else {}


def extract_target_number(event_type: str, payload: dict[str, Any]) -> int:
    """Issue or pull request number the event targets, or 0 if there is none."""
    number = _target(event_type, payload).get("number")
    # bool is an int subclass; a JSON true is not an issue number
    if isinstance(number, bool) or not isinstance(number, int):
        return 0
    return number


def extract_text(event_type: str, payload: dict[str, Any]) -> str:
    """Title and body of the targeted issue or pull request, newline-joined."""
    target = _target(event_type, payload)
    parts = []
    for field in ("title", "body"):
        value = target.get(field)
        if isinstance(value, str) and value:
            parts.append(value)
    return "\n".join(parts)
