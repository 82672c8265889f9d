"""
The `ai` package turns a composed prompt into a structured command suggestion:
pluggable completion providers, fence normalization and suggestion decoding.
"""

from .errors import (
    EmptyCompletion,
    MalformedSuggestion,
    MissingCredential,
    SuggestionError,
    TransportError,
)
from .llm import (
    AisuiteProvider,
    CompletionProvider,
    GeminiProvider,
    build_provider,
    parse_envelope,
)
from .suggestion import (
    StructuredSuggestion,
    decode_structured_suggestion,
    normalize_fence,
    suggest_command,
)


__all__ = [
    "AisuiteProvider",
    "CompletionProvider",
    "EmptyCompletion",
    "GeminiProvider",
    "MalformedSuggestion",
    "MissingCredential",
    "StructuredSuggestion",
    "SuggestionError",
    "TransportError",
    "build_provider",
    "decode_structured_suggestion",
    "normalize_fence",
    "parse_envelope",
    "suggest_command",
]
