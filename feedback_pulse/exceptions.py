"""Project-wide custom exception types."""


class FeedbackPulseError(RuntimeError):
    """Base class for errors raised inside feedback-pulse."""


class TransportError(FeedbackPulseError):
    """Raised when the push channel or the polling endpoint cannot be reached.

    Callers log it and fall back (reconnect, polling or a *False* result);
    it never reaches subscribers.
    """


class MalformedEventError(ValueError):
    """Raised when a server message is not a ``{type, payload, timestamp}`` envelope."""

    def __init__(self, message: str) -> None:  # noqa: D401 – simple constructor
        super().__init__(message)
