"""Exception types for scrollback.

This module defines the exception hierarchy used across the extractor, the
scrape engine and the RPC bridge. Soft, per-item failures never raise; the
types below cover structural assumption violations in snapshots,
session-fatal preconditions, and protocol-level errors that the bridge turns
into error envelopes.
"""

from typing import Any


class ScrollbackException(Exception):
    """Base class for all scrollback errors.

    Carries a human-readable message plus an optional context dict that is
    rendered below the message for debugging.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the failure.
            context: Optional dict of additional context (selector, counts, etc).
        """
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context.

        Returns:
            Formatted error message string.
        """
        parts = [self.message]

        if self.context:
            parts.append("Context:")
            for key, value in self.context.items():
                parts.append(f"  {key}: {value}")

        return "\n".join(parts)


class HTMLStructuralAssumptionException(ScrollbackException):
    """Raised when a DOM snapshot doesn't match expectations.

    This exception is raised when XPath or CSS selectors return a different
    number of elements than expected. This usually indicates that the host
    page's markup has changed.

    Attributes:
        selector: The XPath or CSS selector that was used.
        selector_type: Type of selector ("xpath" or "css").
        is_element_query: True if querying for elements, False for strings/attributes.
    """

    def __init__(
        self,
        selector: str,
        selector_type: str,
        description: str,
        expected_min: int,
        expected_max: int | None,
        actual_count: int,
        is_element_query: bool = True,
    ) -> None:
        """Initialize the exception.

        Args:
            selector: The XPath or CSS selector that was used.
            selector_type: Type of selector ("xpath" or "css").
            description: Human-readable description of what was being selected.
            expected_min: Minimum number of elements expected.
            expected_max: Maximum number of elements expected (None = unlimited).
            actual_count: Actual number of elements found.
            is_element_query: True if querying for elements (default), False for strings.
        """
        self.selector = selector
        self.selector_type = selector_type
        self.description = description
        self.expected_min = expected_min
        self.expected_max = expected_max
        self.actual_count = actual_count
        self.is_element_query = is_element_query

        if expected_max is None:
            expected_str = f"at least {expected_min}"
        elif expected_min == expected_max:
            expected_str = f"exactly {expected_min}"
        else:
            expected_str = f"between {expected_min} and {expected_max}"

        message = (
            f"HTML structure mismatch: Expected {expected_str} "
            f"elements for '{description}', but found {actual_count}"
        )

        context = {
            "selector": selector,
            "selector_type": selector_type,
            "expected_min": expected_min,
            "expected_max": expected_max
            if expected_max is not None
            else "unlimited",
            "actual_count": actual_count,
            "is_element_query": is_element_query,
        }

        super().__init__(message, context)


class HostPageError(ScrollbackException):
    """Raised when an action on the live page fails.

    Wraps browser automation errors so callers never depend on the browser
    library. Within a scrape these are per-iteration failures: the
    iteration yields nothing and the loop continues.
    """

    def __init__(self, action: str, reason: str) -> None:
        """Initialize the exception.

        Args:
            action: The page action that failed (e.g. "scroll_to_top").
            reason: Underlying error text.
        """
        self.action = action
        self.reason = reason
        super().__init__(
            f"Host page action '{action}' failed: {reason}",
            {"action": action},
        )


# =============================================================================
# Session errors
# =============================================================================


class SessionError(ScrollbackException):
    """Base class for errors that end or prevent a scrape session."""


class NoScrollContainerError(SessionError):
    """Raised when no scrollable message list exists at session start.

    This is the only unrecoverable condition for a session: it is reported
    once and the session never enters the running state.
    """

    def __init__(self, candidates: list[str]) -> None:
        """Initialize the exception.

        Args:
            candidates: The container selectors that were tried.
        """
        self.candidates = candidates
        super().__init__(
            "error: no chat open (no scrollable message container found)",
            {"candidates": ", ".join(candidates)},
        )


class SessionAlreadyRunningError(SessionError):
    """Raised when an interactive start is requested while one is running."""

    def __init__(self) -> None:
        super().__init__("Already running")


class ItemNotFoundError(ScrollbackException):
    """Raised when no list item matches a requested name.

    Attributes:
        name: The name that was searched for.
    """

    def __init__(self, name: str, available: list[str] | None = None) -> None:
        """Initialize the exception.

        Args:
            name: The requested item name.
            available: Names that were visible when the lookup failed.
        """
        self.name = name
        self.available = available or []
        message = f"No chat matching '{name}' found in the visible list"
        if self.available:
            message += f" (visible: {', '.join(self.available)})"
        super().__init__(message)

    def _format_message(self) -> str:
        # Kept to a single line; the bridge forwards it verbatim.
        return self.message


# =============================================================================
# Protocol errors
# =============================================================================


class RpcError(ScrollbackException):
    """Error that maps onto a structured RPC error response.

    Attributes:
        code: Numeric error code placed in the error envelope.
    """

    code: int = -32000

    def __init__(self, message: str, code: int | None = None) -> None:
        if code is not None:
            self.code = code
        super().__init__(message)


class InvalidRequestError(RpcError):
    """The envelope parsed as JSON but is not a valid request."""

    code = -32600


class MethodNotFoundError(RpcError):
    """The envelope names a method that is not in the method table."""

    code = -32601

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__("unknown method")


class InvalidParamsError(RpcError):
    """The params object failed validation for the requested method."""

    code = -32602
