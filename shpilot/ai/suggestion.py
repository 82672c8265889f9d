import re

from typing import Tuple
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import MalformedSuggestion
from .llm import CompletionProvider

FENCE = "```"

# An opening fence may carry a language tag glued to it, e.g. ```json
_LEADING_FENCE = re.compile(r"^```[\w+.-]*")


class StructuredSuggestion(BaseModel):
    """Represents a command suggestion from the AI."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    command: str
    description: str = ""
    notes: str = ""

    @field_validator("command")
    @classmethod
    def _command_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("command must not be empty")
        return value


def normalize_fence(raw_text: str) -> str:
    """
    Strips the markdown code fence a model sometimes wraps around its answer.

    At most one leading fence (with an optional language tag) and one trailing
    fence are removed. Fences inside the body are left alone.

    Running it twice gives the same result unless the output itself starts or
    ends with a fence (e.g. a doubly fenced answer): only one marker per side
    is stripped, so a second pass would remove the inner one.
    """
    text = raw_text.strip()
    text = _LEADING_FENCE.sub("", text, count=1).strip()
    if text.endswith(FENCE):
        text = text[: -len(FENCE)].strip()
    return text


def decode_structured_suggestion(normalized_text: str) -> StructuredSuggestion:
    try:
        return StructuredSuggestion.model_validate_json(normalized_text)
    except ValidationError as e:
        raise MalformedSuggestion(e, normalized_text) from e


def suggest_command(
    prompt: str, provider: CompletionProvider
) -> Tuple[StructuredSuggestion, str]:
    """
    Asks the provider for a suggestion and decodes it.

    Returns the suggestion along with the fence-normalized text it was decoded
    from, so callers can display what the model said. There is a single
    attempt: any failure propagates as a `SuggestionError`.
    """
    raw_text = provider.request_completion(prompt)
    normalized_text = normalize_fence(raw_text)
    return decode_structured_suggestion(normalized_text), normalized_text
