from typing import Optional

from pydantic import ValidationError


class SuggestionError(Exception):
    """Base class for every failure that ends a suggestion request."""


class MissingCredential(SuggestionError):
    def __init__(self, env_var: str):
        super().__init__(f"{env_var} not set")
        self.env_var = env_var


class TransportError(SuggestionError):
    """The remote call failed: network fault, timeout, non-2xx status or an unreadable envelope."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class EmptyCompletion(SuggestionError):
    def __init__(self, message: str = "The AI returned no suggestion."):
        super().__init__(message)


class MalformedSuggestion(SuggestionError):
    """
    The model answered, but its text could not be decoded into a suggestion.

    The normalized text is kept so the caller can show what the model actually said.
    """

    def __init__(self, error: Exception, text: str):
        super().__init__(f"The AI returned a malformed suggestion: {_describe(error)}")
        self.error = error
        self.text = text


def _describe(error: Exception) -> str:
    # Keep the message on one line; pydantic reports are multi-line.
    if isinstance(error, ValidationError) and error.errors():
        first = error.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        return f"{location}: {first['msg']}" if location else first["msg"]
    message = str(error)
    return message.splitlines()[0] if message else type(error).__name__
