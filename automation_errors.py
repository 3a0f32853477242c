"""Failures raised by the browser automation layer.

Everything here derives from AutomationError so the catalog cache can turn
any of them into a failed load result without catching unrelated bugs.
"""

from __future__ import annotations


class AutomationError(Exception):
    """Base class for browser session, navigation and lock failures."""


class LaunchFailure(AutomationError):
    """The browser process or its context could not be created."""


class ChallengeDetected(AutomationError):
    """The target site showed an anti-automation challenge."""

    def __init__(self, message: str = "CAPTCHA/Challenge detected. Cannot proceed in headless mode") -> None:
        super().__init__(message)


class TimeoutExceeded(AutomationError):
    """A bounded wait expired; `step` names the navigation step."""

    def __init__(self, step: str, timeout_ms: int | None = None) -> None:
        self.step = step
        self.timeout_ms = timeout_ms
        detail = f" after {timeout_ms}ms" if timeout_ms is not None else ""
        super().__init__(f"Timed out at step '{step}'{detail}")


class NavigationError(AutomationError):
    """A page operation failed for a reason other than a timeout (e.g. net::ERR_*)."""

    def __init__(self, step: str, detail: str) -> None:
        self.step = step
        super().__init__(f"Navigation failed at step '{step}': {detail}")


class BrowserBusyError(AutomationError):
    """Raised when another fetch holds the shared browser session."""
