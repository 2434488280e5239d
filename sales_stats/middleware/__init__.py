from .middleware_interface import (
    MessageMiddleware,
    MessageMiddlewareQueue,
    MessageMiddlewareExchange,
    MessageMiddlewareMessageError,
    MessageMiddlewareDisconnectedError,
    MessageMiddlewareCloseError,
    MessageMiddlewareDeleteError,
)
from .local_middleware import LocalBroker, LocalMessageQueue, LocalMessageExchange

__all__ = [
    "MessageMiddleware",
    "MessageMiddlewareQueue",
    "MessageMiddlewareExchange",
    "MessageMiddlewareMessageError",
    "MessageMiddlewareDisconnectedError",
    "MessageMiddlewareCloseError",
    "MessageMiddlewareDeleteError",
    "LocalBroker",
    "LocalMessageQueue",
    "LocalMessageExchange",
]
