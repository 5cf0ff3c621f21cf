"""Error types and fetch-error categorisation for oncall-report."""

from __future__ import annotations


class OnCallReportError(Exception):
    """Base class for every error the CLI reports to the user."""


class ConfigError(OnCallReportError):
    """Missing or malformed configuration, or a missing required flag."""


class ParseError(OnCallReportError, ValueError):
    """A date or timestamp string did not match the expected format."""

    def __init__(self, value: str, expected: str):
        self.value = value
        self.expected = expected
        super().__init__(f"cannot parse {value!r} as {expected}")


class FetchError(OnCallReportError):
    """A schedule could not be fetched or decoded.

    Recoverable per shift: multi-shift reports log it and drop that shift.
    """

    def __init__(
        self,
        message: str,
        shift_id: str = "",
        status_code: int | None = None,
        category: str | None = None,
    ):
        super().__init__(message)
        self.shift_id = shift_id
        self.status_code = status_code
        self.category = category or categorize_error(self)[0]


def categorize_error(exception: Exception) -> tuple[str, str]:
    """Categorize an exception into error type and appropriate message."""
    error_str = str(exception)
    exception_type = type(exception).__name__
    status_code = getattr(exception, "status_code", None)

    # Authentication/Authorization errors
    if status_code in (401, 403) or any(
        keyword in error_str.lower()
        for keyword in ["401", "unauthorized", "authentication", "forbidden"]
    ):
        return "authentication_error", f"Authentication failed: {error_str}"

    # Network/Connection errors
    if any(
        keyword in exception_type.lower()
        for keyword in ["connect", "timeout", "network", "transport"]
    ):
        return "network_error", f"Network error: {error_str}"

    # HTTP errors
    if status_code is not None:
        if 400 <= status_code < 500:
            return "client_error", f"Client error: {error_str}"
        if status_code >= 500:
            return "server_error", f"Server error: {error_str}"

    # Decode errors
    if any(keyword in exception_type.lower() for keyword in ["validation", "json", "decode"]):
        return "validation_error", f"Invalid response: {error_str}"

    return "execution_error", f"Request failed: {error_str}"
