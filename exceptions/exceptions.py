"""
Custom exceptions for the FlowUI engine.

These exceptions are intentionally simple and descriptive.
They are used across:

  - core/flows/
  - core/actions/
  - core/api/
  - runtime/

Placing them at the project root (exceptions/) avoids circular imports
and keeps exception types consistent across modules.
"""


class StructureError(Exception):
    """
    Raised when a flow descriptor or an action descriptor is malformed.

    `field` names the offending field (dotted for nested fields, e.g.
    "screens.login" or "onSuccess.screen").
    """

    def __init__(self, field, details=None, source=None):
        self.field = field
        self.details = details or "Invalid structure."
        self.source = source
        msg = f"Invalid field '{field}': {self.details}"
        if source:
            msg += f" (source: {source})"
        super().__init__(msg)


class CallbackNotFoundError(Exception):
    """
    Raised when a callback is executed by a name that was never registered.
    """

    def __init__(self, name):
        self.name = name
        super().__init__(f"Callback not registered: {name}")


class NetworkError(Exception):
    """
    Raised by the network collaborator when a request cannot complete
    (connection failure, timeout, invalid response).
    """

    def __init__(self, message, url=None):
        self.url = url
        msg = f"Network error: {message}"
        if url:
            msg += f" ({url})"
        super().__init__(msg)


class ApiError(Exception):
    """
    Raised when the server answered with an error status code.

    The decoded response body (if any) is kept on `body` so that
    onError continuations can inspect it.
    """

    def __init__(self, status_code, url, body=None):
        self.status_code = status_code
        self.url = url
        self.body = body
        super().__init__(f"API error {status_code} for {url}")


class ValidationError(Exception):
    """
    Raised by custom handlers to signal invalid user input.

    Example:
        raise ValidationError("Email is required", errors={"email": "required"})
    """

    def __init__(self, message, errors=None):
        self.errors = errors or {}
        super().__init__(message)


class CacheMiss(Exception):
    """Internal signal that a flow is not cached yet."""

    def __init__(self, key):
        self.key = key
        super().__init__(f"Flow not cached: {key}")


class FlowNotFoundError(Exception):
    """
    Raised when a flow is neither cached nor registered with a source path.
    """

    def __init__(self, flow_id):
        self.flow_id = flow_id
        super().__init__(f"Flow not found or configured: {flow_id}")


class NavigationError(Exception):
    """
    Raised when navigation cannot be applied, e.g. the stack is not
    initialized yet or the target screen does not exist in the flow.
    """
