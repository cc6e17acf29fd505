"""Public API for the actions module.

This module defines the executor interface, the closed set of remote
actions, and the attempt state machine. Implementation modules import from
here, not the other way around.
"""

from abc import ABC, abstractmethod
from typing import Annotated, Any, Literal, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ..common import ActionStatus, RecentEvent, Suggestion, SuggestionType

# =============================================================================
# Service Interface (ABC)
# =============================================================================


class ActionExecutor(ABC):
    """Performs single remote actions against the issue tracker."""

    @abstractmethod
    def check_label(self, repo: str, number: int, label: str) -> None:
        """
        Validate label input without touching the network.

        Raises:
            ActionValidationError: If the call can never succeed.
        """
        pass

    @abstractmethod
    def check_comment(self, repo: str, number: int, body: str) -> None:
        """
        Validate comment input without touching the network.

        Raises:
            ActionValidationError: If the call can never succeed.
        """
        pass

    @abstractmethod
    async def apply_label(self, repo: str, number: int, label: str) -> None:
        """
        Add a label to an issue or pull request. Re-applying is a no-op remotely.

        Args:
            repo: Repository in owner/name format.
            number: Issue or pull request number.
            label: Label name.

        Raises:
            ActionValidationError: Input is invalid; no request was sent.
            RemoteActionError: The API did not return 2xx.
        """
        pass

    @abstractmethod
    async def add_comment(self, repo: str, number: int, body: str) -> None:
        """
        Add a comment to an issue or pull request. Re-posting duplicates it.

        Args:
            repo: Repository in owner/name format.
            number: Issue or pull request number.
            body: Comment text.

        Raises:
            ActionValidationError: Input is invalid; no request was sent.
            RemoteActionError: The API did not return 2xx.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass


class EventSource(ABC):
    """Lists recent activity from the issue tracker."""

    @abstractmethod
    async def list_recent_events(self) -> list[RecentEvent]:
        """
        List the authenticated user's recent events, newest first.

        Raises:
            MisconfiguredError: No credential is configured; no request was sent.
            RemoteActionError: The API did not return a usable 2xx response.
        """
        pass


# =============================================================================
# Actions
# =============================================================================


class LabelAction(BaseModel):
    """Apply one label to one issue or pull request."""

    kind: Literal[SuggestionType.LABEL] = SuggestionType.LABEL
    repository_full_name: str
    number: int
    label: str

    @property
    def idempotent(self) -> bool:
        return True

    def check(self, executor: ActionExecutor) -> None:
        executor.check_label(self.repository_full_name, self.number, self.label)

    async def perform(self, executor: ActionExecutor) -> None:
        await executor.apply_label(self.repository_full_name, self.number, self.label)

    def payload(self) -> dict[str, Any]:
        return {"labels": [self.label]}


class CommentAction(BaseModel):
    """Post one comment on one issue or pull request."""

    kind: Literal[SuggestionType.COMMENT] = SuggestionType.COMMENT
    repository_full_name: str
    number: int
    body: str

    @property
    def idempotent(self) -> bool:
        return False

    def check(self, executor: ActionExecutor) -> None:
        executor.check_comment(self.repository_full_name, self.number, self.body)

    async def perform(self, executor: ActionExecutor) -> None:
        await executor.add_comment(self.repository_full_name, self.number, self.body)

    def payload(self) -> dict[str, Any]:
        return {"body": self.body}


RemoteAction = Annotated[Union[LabelAction, CommentAction], Field(discriminator="kind")]


def build_action(suggestion: Suggestion, repo: str, number: int) -> LabelAction | CommentAction:
    """Turn a rule suggestion into the remote action it asks for."""
    if suggestion.suggestion_type == SuggestionType.LABEL:
        return LabelAction(repository_full_name=repo, number=number, label=suggestion.suggestion_value)
    if suggestion.suggestion_type == SuggestionType.COMMENT:
        return CommentAction(repository_full_name=repo, number=number, body=suggestion.suggestion_value)
    raise ValueError(f"unsupported suggestion type: {suggestion.suggestion_type}")


def action_from_payload(
    kind: SuggestionType, repo: str, number: int, payload: dict[str, Any]
) -> LabelAction | CommentAction:
    """Rebuild an action from the payload stored with an action failure."""
    if kind == SuggestionType.LABEL:
        labels = payload.get("labels") or [""]
        return LabelAction(repository_full_name=repo, number=number, label=str(labels[0]))
    if kind == SuggestionType.COMMENT:
        return CommentAction(repository_full_name=repo, number=number, body=str(payload.get("body", "")))
    raise ValueError(f"unsupported action kind: {kind}")


# =============================================================================
# Attempt state machine
# =============================================================================


class ActionAttempt(BaseModel):
    """
    Execution state of one action for one alert.

    pending -> succeeded | failed. ``pending`` spans the whole retry loop and
    ``attempt_count`` counts remote calls made. Terminal states are final.
    """

    id: UUID = Field(default_factory=uuid4)
    alert_id: int | None = None
    delivery_id: str
    action: RemoteAction
    status: ActionStatus = ActionStatus.PENDING
    attempt_count: int = 0
    last_error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != ActionStatus.PENDING

    def record_try(self) -> None:
        self._require_pending()
        self.attempt_count += 1

    def record_error(self, error: str) -> None:
        self._require_pending()
        self.last_error = error

    def mark_succeeded(self) -> None:
        self._require_pending()
        self.status = ActionStatus.SUCCEEDED
        self.last_error = None

    def mark_failed(self, error: str) -> None:
        self._require_pending()
        self.status = ActionStatus.FAILED
        self.last_error = error

    def _require_pending(self) -> None:
        if self.is_terminal:
            raise RuntimeError(f"attempt {self.id} is already {self.status.value}")
