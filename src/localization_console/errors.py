from typing import Optional


class ConsoleError(Exception):
    """Base class for every failure raised by the console."""


class NetworkError(ConsoleError):
    """The request never produced a response."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class HttpError(ConsoleError):
    """The service answered with a non-2xx status."""

    def __init__(self, status: int, body: str, message: Optional[str] = None):
        super().__init__(message or f"HTTP {status}: {body}")
        self.status = status
        self.body = body


class FetchError(HttpError):
    """A request failed or its response body could not be read."""


class ValidationError(HttpError):
    """A write was rejected with a 4xx; the user can correct the input."""


class NotFoundError(HttpError):
    def __init__(self, body: str = "", message: Optional[str] = None):
        super().__init__(404, body, message or "Translation key not found")


class AggregateUiError(ConsoleError):
    """A message ready to be shown in a banner or next to a control."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    @classmethod
    def from_exception(cls, exc: BaseException, fallback: str = "Something went wrong") -> "AggregateUiError":
        if isinstance(exc, AggregateUiError):
            return exc
        message = str(exc) or fallback
        return cls(message, cause=exc)
