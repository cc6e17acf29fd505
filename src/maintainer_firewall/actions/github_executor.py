"""GitHub API implementation of the action executor."""

import re
from typing import Any

import httpx

from ..common import ActionValidationError, MisconfiguredError, RecentEvent, RemoteActionError
from ..common.payload import UNKNOWN, nested_string
from ..config import settings
from .public_api import ActionExecutor, EventSource


class GitHubActionExecutor(ActionExecutor, EventSource):
    """
    GitHub implementation of the action executor interface.

    Each action is exactly one authenticated POST:
    - labels:   POST /repos/{repo}/issues/{number}/labels    {"labels": [label]}
    - comments: POST /repos/{repo}/issues/{number}/comments  {"body": text}

    Preconditions are checked before any request is built, so invalid input
    never costs a network call. Any non-2xx status, transport error or
    timeout surfaces as RemoteActionError.

    The same client lists the token owner's recent events
    (GET /user, then GET /users/{login}/events) for the events sync.
    """

    REPOSITORY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._token = (token if token is not None else settings.github_token).strip()
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.github_api_url,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {self._token}",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout or settings.github_request_timeout_seconds,
            transport=transport,
        )

    def check_label(self, repo: str, number: int, label: str) -> None:
        self._check_target(repo, number)
        if not label or not label.strip():
            raise ActionValidationError("empty label")

    def check_comment(self, repo: str, number: int, body: str) -> None:
        self._check_target(repo, number)
        if not body or not body.strip():
            raise ActionValidationError("empty comment")

    async def apply_label(self, repo: str, number: int, label: str) -> None:
        """Add a label to an issue or pull request."""
        self.check_label(repo, number, label)
        await self._post(f"/repos/{repo}/issues/{number}/labels", {"labels": [label]})

    async def add_comment(self, repo: str, number: int, body: str) -> None:
        """Add a comment to an issue or pull request."""
        self.check_comment(repo, number, body)
        await self._post(f"/repos/{repo}/issues/{number}/comments", {"body": body})

    async def list_recent_events(self) -> list[RecentEvent]:
        """List up to 100 recent events of the token owner."""
        if not self._token:
            raise MisconfiguredError("github token is not configured")

        user = await self._get_json("/user")
        login = user.get("login") if isinstance(user, dict) else None
        if not isinstance(login, str) or not login.strip():
            raise RemoteActionError("github user login is empty")

        items = await self._get_json(f"/users/{login.strip()}/events", params={"per_page": 100})
        if not isinstance(items, list):
            raise RemoteActionError("decode github events: expected a JSON array")
        return [self._to_recent_event(item) for item in items if isinstance(item, dict)]

    @staticmethod
    def _to_recent_event(item: dict[str, Any]) -> RecentEvent:
        event_id = item.get("id")
        # The events API sends ids as strings; tolerate numbers
        if isinstance(event_id, int) and not isinstance(event_id, bool):
            event_id = str(event_id)
        if not isinstance(event_id, str) or not event_id.strip():
            event_id = UNKNOWN
        event_type = item.get("type")
        return RecentEvent(
            delivery_id=f"gh-{event_id.strip()}",
            event_type=event_type.strip() if isinstance(event_type, str) else "",
            action=nested_string(item, "payload", "action"),
            repository_full_name=nested_string(item, "repo", "name"),
            sender_login=nested_string(item, "actor", "login"),
            payload=item,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    def _check_target(self, repo: str, number: int) -> None:
        if not self._token:
            raise ActionValidationError("github token is not configured")
        if not repo or not repo.strip() or repo.strip() == UNKNOWN:
            raise ActionValidationError("invalid repository full name")
        if not self.REPOSITORY_PATTERN.match(repo):
            raise ActionValidationError(f"malformed repository full name: {repo!r}")
        if number <= 0:
            raise ActionValidationError("invalid issue/pull_request number")

    async def _post(self, path: str, body: dict) -> None:
        await self._send("POST", path, json=body)

    async def _get_json(self, path: str, params: dict | None = None) -> Any:
        response = await self._send("GET", path, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise RemoteActionError(f"decode {path}: {e}") from e

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteActionError(f"timeout: {e!r}") from e
        except httpx.HTTPError as e:
            raise RemoteActionError(f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise RemoteActionError(response.text[:200], status=response.status_code)
        return response


# Global instance
_executor: ActionExecutor | None = None


def get_action_executor() -> ActionExecutor:
    """Get the global action executor instance."""
    global _executor
    if _executor is None:
        _executor = GitHubActionExecutor()
    return _executor


async def set_action_executor(executor: ActionExecutor) -> None:
    """Set the global action executor instance (for testing)."""
    global _executor
    if _executor is not None:
        await _executor.close()
    _executor = executor
