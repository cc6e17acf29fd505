"""Error taxonomy for Maintainer Firewall."""


class MaintainerFirewallError(Exception):
    """Base class for all errors raised by this package."""


class InvalidSignatureError(MaintainerFirewallError):
    """Webhook signature is absent, malformed, or does not match the body."""


class MisconfiguredError(MaintainerFirewallError):
    """A required secret or credential is not configured."""


class InvalidPayloadError(MaintainerFirewallError):
    """Webhook body is not a JSON object."""


class ActionValidationError(MaintainerFirewallError):
    """Action input can never succeed; raised before any network call."""


class RemoteActionError(MaintainerFirewallError):
    """The issue tracker API call did not return 2xx."""

    def __init__(self, detail: str, status: int | None = None):
        self.detail = detail
        self.status = status
        if status is None:
            super().__init__(f"github api request failed: {detail}")
        else:
            super().__init__(f"github api status {status}: {detail}")


class StoreError(MaintainerFirewallError):
    """Local persistence failed."""


class FailureNotFoundError(MaintainerFirewallError, LookupError):
    """No action failure exists with the requested id."""


class SyncInProgressError(MaintainerFirewallError):
    """An events sync was requested while another one is running."""
