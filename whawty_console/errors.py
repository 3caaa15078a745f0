"""Error taxonomy for the console, plus plain-language messages for the CLI."""

from __future__ import annotations

from typing import Optional


class ConsoleError(Exception):
    """Base class for every failure the console reports to the user."""

    heading = "Error"

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationFailure(ConsoleError):
    """Bad credentials at login, or the service sent an unusable login response."""

    heading = "Error logging in"


class AuthorizationExpired(ConsoleError):
    """An authenticated call was answered with 401; the session is gone."""

    heading = "Authentication failure"

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message, status_code)


class ValidationFailure(ConsoleError):
    """Local input check failed. Never reaches the network."""

    heading = "Invalid input"


class ApiFailure(ConsoleError):
    """Any other non-success or mis-shaped response from the service."""

    heading = "API Error"


# Map transport errors to (friendly_message, recovery_steps)
_ERRORS: dict[str, tuple[str, list[str]]] = {
    "ConnectError": (
        "We couldn't reach the credential service.",
        [
            "Check that the service is running and WHAWTY_BASE_URL points at it",
            "Try opening the service URL in a browser or with curl",
            "If you're behind a proxy, check the HTTP(S)_PROXY variables",
        ],
    ),
    "TimeoutException": (
        "The service took too long to answer.",
        [
            "The service might be busy, try again in a moment",
            "Increase the timeout: python -m whawty_console --timeout 60 ...",
        ],
    ),
    "JSONDecodeError": (
        "The service sent a response we couldn't read.",
        [
            "Make sure WHAWTY_BASE_URL points at the whawty web API, not another site",
        ],
    ),
    "PermissionError": (
        "We don't have permission to access the session file.",
        [
            "Check the owner and mode of the file named in the error (should be 0600)",
            "Point WHAWTY_STORAGE_PATH at a directory you own",
        ],
    ),
    "KeyboardInterrupt": (
        "You stopped the command, that's fine.",
        ["Just run it again whenever you're ready."],
    ),
}


def friendly_error(exc: BaseException, context: str = "") -> str:
    """Return a user-friendly error message with recovery steps."""
    etype = type(exc).__name__
    match: Optional[tuple[str, list[str]]] = None

    # Walk the MRO so subclasses (httpx.ConnectTimeout -> TimeoutException) match
    for base in type(exc).__mro__:
        match = _ERRORS.get(base.__name__)
        if match:
            break

    if match:
        msg, steps = match
    else:
        msg = "Something unexpected went wrong."
        steps = ["Try running the command again"]

    lines = [f"{msg}"]
    if context:
        lines.append(f"  (while {context})")
    lines.append("")
    for i, step in enumerate(steps, 1):
        lines.append(f"  {i}. {step}")
    lines.append("")
    lines.append(f"  Technical detail: {etype}: {exc}")
    return "\n".join(lines)
