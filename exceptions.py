# exceptions.py
from typing import Any, Iterable, Optional


class DataLayerError(Exception):
    """Base for everything the fetch/mutation layer hands back to the operator."""


class FetchError(DataLayerError):
    """A read did not produce a value."""


class MutationError(DataLayerError):
    """A status/cancel mutation did not go through."""


class InvalidTransition(MutationError):
    """
    Local rejection: the acting role may not move the order to the requested
    status. Never reaches the network.
    """
    def __init__(
        self,
        order_id: str,
        current: Any,
        attempted: Any,
        allowed: Optional[Iterable[Any]] = None,
    ):
        self.order_id = order_id
        self.current = current
        self.attempted = attempted
        self.allowed = sorted((getattr(s, "value", s) for s in (allowed or ())))
        cur = getattr(current, "value", current)
        att = getattr(attempted, "value", attempted)
        super().__init__(
            f"Order {order_id}: cannot move {cur} -> {att} "
            f"(allowed: {', '.join(self.allowed) or 'none'})"
        )


class Busy(MutationError):
    """A mutation for this order is already in flight."""
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} is being updated, please wait.")


class NetworkFailure(FetchError, MutationError):
    """Transport-level failure. Nothing local was changed; the operator may retry."""
    retryable = True

    def __init__(self, message: str, *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ServerRejection(FetchError, MutationError):
    """
    Non-2xx response, or a 2xx whose envelope reports failure. The server's own
    message is kept verbatim for display.
    """
    def __init__(
        self,
        server_message: str,
        *,
        status_code: Optional[int] = None,
        raw_body: Any = None,
    ):
        super().__init__(server_message)
        self.server_message = server_message
        self.status_code = status_code
        self.raw_body = raw_body


class MalformedEnvelope(FetchError, MutationError):
    """Response matched neither known success shape nor a failure shape."""
    def __init__(self, message: str, *, raw_body: Any = None):
        super().__init__(message)
        self.raw_body = raw_body
