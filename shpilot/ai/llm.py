import os
import aisuite
import requests

from abc import ABC, abstractmethod
from typing import List, Mapping, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config import DEFAULT_TIMEOUT, ConfigError, RunConfig
from .errors import EmptyCompletion, MissingCredential, TransportError

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
GEMINI_DEFAULT_MODEL = "gemini-2.0-flash"
AISUITE_DEFAULT_MODEL = "openai:gpt-4o-mini"

SYSTEM_MESSAGE = "You are a helpful assistant that suggests accurate shell commands based on input and context."


##############################################################################
# Gemini generateContent envelope


class Part(BaseModel):
    text: Optional[str] = None


class Content(BaseModel):
    role: Optional[str] = None
    parts: List[Part] = Field(default_factory=list)


class GenerationConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response_mime_type: Optional[str] = Field(default=None, alias="responseMimeType")


class GenerateContentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contents: List[Content]
    generation_config: Optional[GenerationConfig] = Field(
        default=None, alias="generationConfig"
    )

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Candidate(BaseModel):
    content: Optional[Content] = None


class GenerateContentResponse(BaseModel):
    candidates: List[Candidate] = Field(default_factory=list)


def parse_envelope(body: Union[str, bytes]) -> str:
    """Returns the first text fragment of the first candidate in a generateContent response."""
    try:
        response = GenerateContentResponse.model_validate_json(body)
    except ValidationError as e:
        raise TransportError(f"Unexpected response from the AI service: {e.error_count()} validation error(s)") from e

    if not response.candidates:
        raise EmptyCompletion("The AI returned no candidates.")

    content = response.candidates[0].content
    if content is None or not content.parts:
        raise EmptyCompletion("The AI returned a candidate with no content.")

    text = content.parts[0].text
    if not text:
        raise EmptyCompletion()
    return text


##############################################################################


def resolve_credential(env_var: str, environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    value = environ.get(env_var, "").strip()
    if not value:
        raise MissingCredential(env_var)
    return value


class CompletionProvider(ABC):
    """
    A remote model able to turn a prompt into a raw text completion.

    Everything after the completion (fence stripping, decoding) is shared by
    all providers, so implementations only deal with their own wire format.
    """

    @property
    @abstractmethod
    def credential_env_var(self) -> str:
        pass

    @abstractmethod
    def request_completion(self, prompt: str) -> str:
        pass


class GeminiProvider(CompletionProvider):
    credential_env_var = "GEMINI_API_KEY"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        verbose: bool = False,
    ):
        self.api_key = api_key
        self.model = model or GEMINI_DEFAULT_MODEL
        self.timeout = timeout
        self.verbose = verbose

    @property
    def url(self) -> str:
        return GEMINI_ENDPOINT.format(model=self.model)

    def build_request(self, prompt: str) -> GenerateContentRequest:
        return GenerateContentRequest(
            contents=[Content(role="user", parts=[Part(text=prompt)])],
            generation_config=GenerationConfig(response_mime_type="application/json"),
        )

    def send(self, prompt: str) -> str:
        """Posts the prompt and returns the raw response body."""
        try:
            # The key goes in a header so it never shows up in error messages.
            response = requests.post(
                self.url,
                headers={
                    "Content-Type": "application/json",
                    "x-goog-api-key": self.api_key,
                },
                json=self.build_request(prompt).to_payload(),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise TransportError(f"The AI service did not answer within {self.timeout}s.") from e
        except requests.RequestException as e:
            raise TransportError(f"Could not reach the AI service: {e}") from e

        if self.verbose:
            print(f"→ Raw AI response body: {response.text}")

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"The AI service answered with HTTP {response.status_code} {response.reason or ''}".rstrip(),
                status_code=response.status_code,
            )
        return response.text

    def request_completion(self, prompt: str) -> str:
        return parse_envelope(self.send(prompt))


class AisuiteProvider(CompletionProvider):
    """
    Talks to any provider aisuite supports, using a `provider:model` identifier
    such as `openai:gpt-4o-mini`.
    """

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.model = model or AISUITE_DEFAULT_MODEL
        self.provider_name = aisuite_provider_name(self.model)
        self.client = aisuite.Client(
            {self.provider_name: {"api_key": api_key, "timeout": timeout}}
        )

    @property
    def credential_env_var(self) -> str:
        return aisuite_credential_env_var(self.model)

    def request_completion(self, prompt: str) -> str:
        messages = [
            {"role": "system", "content": SYSTEM_MESSAGE},
            {"role": "user", "content": prompt},
        ]
        try:
            response = self.client.chat.completions.create(
                model=self.model, messages=messages
            )
        except Exception as e:
            # aisuite surfaces whatever the underlying SDK raises.
            raise TransportError(f"Could not get a completion from {self.provider_name}: {e}") from e

        if not response.choices:
            raise EmptyCompletion("The AI returned no choices.")
        content = response.choices[0].message.content
        if not content:
            raise EmptyCompletion()
        return content


def aisuite_provider_name(model: str) -> str:
    provider, sep, name = model.partition(":")
    if not sep or not provider or not name:
        raise ConfigError(
            f"Invalid aisuite model '{model}'. Use the 'provider:model' form, e.g. '{AISUITE_DEFAULT_MODEL}'."
        )
    return provider


def aisuite_credential_env_var(model: str) -> str:
    return f"{aisuite_provider_name(model).upper()}_API_KEY"


def build_provider(
    config: RunConfig, environ: Optional[Mapping[str, str]] = None
) -> CompletionProvider:
    """
    Creates the provider named in the config.

    The credential is resolved first, so a missing key fails before any
    client is created or any request is made.
    """
    if config.provider == "gemini":
        api_key = resolve_credential(GeminiProvider.credential_env_var, environ)
        return GeminiProvider(
            api_key, model=config.model, timeout=config.timeout, verbose=config.verbose
        )

    if config.provider == "aisuite":
        model = config.model or AISUITE_DEFAULT_MODEL
        api_key = resolve_credential(aisuite_credential_env_var(model), environ)
        return AisuiteProvider(api_key, model=model, timeout=config.timeout)

    raise ConfigError(f"Unknown provider '{config.provider}'.")
