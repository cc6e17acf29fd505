"""Tests for the GitHub action executor."""

import json

import httpx
import pytest

from maintainer_firewall.actions import GitHubActionExecutor
from maintainer_firewall.common import ActionValidationError, MisconfiguredError, RemoteActionError


class RecordingTransport:
    """httpx transport handler that records requests and returns a canned reply."""

    def __init__(self, status_code=201, body=None, error=None):
        self.status_code = status_code
        self.body = body if body is not None else {}
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error(f"simulated {self.error.__name__}", request=request)
        return httpx.Response(self.status_code, json=self.body)


def make_executor(handler, token="ghp_test"):
    return GitHubActionExecutor(
        token=token,
        base_url="https://api.github.test",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


class TestGitHubActionExecutor:
    """Tests for GitHubActionExecutor."""

    @pytest.mark.asyncio
    async def test_apply_label(self):
        handler = RecordingTransport(status_code=200, body=[{"name": "priority-high"}])
        executor = make_executor(handler)

        await executor.apply_label("octo/repo", 42, "priority-high")

        request = handler.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/repos/octo/repo/issues/42/labels"
        assert request.headers["Authorization"] == "Bearer ghp_test"
        assert json.loads(request.content) == {"labels": ["priority-high"]}
        await executor.close()

    @pytest.mark.asyncio
    async def test_add_comment(self):
        handler = RecordingTransport(status_code=201, body={"id": 1})
        executor = make_executor(handler)

        await executor.add_comment("octo/repo", 7, "Thanks for the report!")

        request = handler.requests[0]
        assert request.url.path == "/repos/octo/repo/issues/7/comments"
        assert json.loads(request.content) == {"body": "Thanks for the report!"}
        await executor.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "token,repo,number,label",
        [
            ("", "octo/repo", 1, "bug"),
            ("ghp_test", "", 1, "bug"),
            ("ghp_test", "unknown", 1, "bug"),
            ("ghp_test", "not a repo", 1, "bug"),
            ("ghp_test", "octo/repo", 0, "bug"),
            ("ghp_test", "octo/repo", -3, "bug"),
            ("ghp_test", "octo/repo", 1, "  "),
        ],
    )
    async def test_invalid_label_input_sends_nothing(self, token, repo, number, label):
        handler = RecordingTransport()
        executor = make_executor(handler, token=token)

        with pytest.raises(ActionValidationError):
            executor.check_label(repo, number, label)
        with pytest.raises(ActionValidationError):
            await executor.apply_label(repo, number, label)

        assert handler.requests == []
        await executor.close()

    @pytest.mark.asyncio
    async def test_empty_comment_sends_nothing(self):
        handler = RecordingTransport()
        executor = make_executor(handler)

        with pytest.raises(ActionValidationError, match="empty comment"):
            await executor.add_comment("octo/repo", 1, "")

        assert handler.requests == []
        await executor.close()

    @pytest.mark.asyncio
    async def test_non_2xx_is_remote_error(self):
        handler = RecordingTransport(status_code=500, body={"message": "Server Error"})
        executor = make_executor(handler)

        with pytest.raises(RemoteActionError) as exc_info:
            await executor.apply_label("octo/repo", 42, "priority-high")

        assert exc_info.value.status == 500
        assert "Server Error" in exc_info.value.detail
        await executor.close()

    @pytest.mark.asyncio
    async def test_not_found_is_remote_error(self):
        executor = make_executor(RecordingTransport(status_code=404, body={"message": "Not Found"}))

        with pytest.raises(RemoteActionError) as exc_info:
            await executor.add_comment("octo/repo", 42, "hello")

        assert exc_info.value.status == 404
        await executor.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [httpx.ConnectError, httpx.ReadTimeout])
    async def test_transport_errors_are_remote_errors(self, error):
        executor = make_executor(RecordingTransport(error=error))

        with pytest.raises(RemoteActionError) as exc_info:
            await executor.apply_label("octo/repo", 42, "priority-high")

        assert exc_info.value.status is None
        await executor.close()


class EventsFeed:
    """httpx handler serving GET /user and the user's events feed."""

    def __init__(self, login="octocat", events=None, events_status=200):
        self.login = login
        self.events = events if events is not None else []
        self.events_status = events_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/user":
            return httpx.Response(200, json={"login": self.login})
        return httpx.Response(self.events_status, json=self.events)


class TestListRecentEvents:
    """Tests for GitHubActionExecutor.list_recent_events."""

    @pytest.mark.asyncio
    async def test_maps_feed_items(self):
        feed = EventsFeed(
            events=[
                {
                    "id": "40012",
                    "type": "IssuesEvent",
                    "actor": {"login": "octocat"},
                    "repo": {"name": "octo/repo"},
                    "payload": {"action": "opened"},
                },
                {"id": "", "type": "PushEvent", "payload": {}},
            ]
        )
        executor = make_executor(feed)

        events = await executor.list_recent_events()

        assert [r.url.path for r in feed.requests] == ["/user", "/users/octocat/events"]
        assert feed.requests[1].url.params["per_page"] == "100"
        assert feed.requests[1].headers["Authorization"] == "Bearer ghp_test"
        first, second = events
        assert first.delivery_id == "gh-40012"
        assert first.event_type == "IssuesEvent"
        assert first.action == "opened"
        assert first.repository_full_name == "octo/repo"
        assert first.sender_login == "octocat"
        assert first.payload["repo"] == {"name": "octo/repo"}
        assert second.delivery_id == "gh-unknown"
        assert second.action == "unknown"
        assert second.repository_full_name == "unknown"
        await executor.close()

    @pytest.mark.asyncio
    async def test_missing_token_sends_nothing(self):
        feed = EventsFeed()
        executor = make_executor(feed, token="")

        with pytest.raises(MisconfiguredError):
            await executor.list_recent_events()

        assert feed.requests == []
        await executor.close()

    @pytest.mark.asyncio
    async def test_empty_login_is_remote_error(self):
        feed = EventsFeed(login="  ")
        executor = make_executor(feed)

        with pytest.raises(RemoteActionError, match="login is empty"):
            await executor.list_recent_events()

        assert len(feed.requests) == 1
        await executor.close()

    @pytest.mark.asyncio
    async def test_feed_error_status(self):
        executor = make_executor(EventsFeed(events={"message": "Bad credentials"}, events_status=401))

        with pytest.raises(RemoteActionError) as exc_info:
            await executor.list_recent_events()

        assert exc_info.value.status == 401
        await executor.close()

    @pytest.mark.asyncio
    async def test_non_array_feed_is_rejected(self):
        executor = make_executor(EventsFeed(events={"unexpected": True}))

        with pytest.raises(RemoteActionError, match="expected a JSON array"):
            await executor.list_recent_events()
        await executor.close()
