import json
import unittest
import requests
from unittest.mock import MagicMock, patch

from shpilot.ai import llm
from shpilot.ai.errors import EmptyCompletion, MissingCredential, TransportError
from shpilot.ai.llm import (
    AisuiteProvider,
    GeminiProvider,
    build_provider,
    parse_envelope,
    resolve_credential,
)
from shpilot.config import ConfigError, RunConfig


def _envelope(*texts) -> str:
    return json.dumps(
        {"candidates": [{"content": {"role": "model", "parts": [{"text": t} for t in texts]}}]}
    )


def _http_response(status_code=200, text="", reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.reason = reason
    return response


class TestParseEnvelope(unittest.TestCase):
    """Tests for extracting the completion text from a generateContent response."""

    def test_returns_first_text_of_first_candidate(self):
        body = json.dumps(
            {
                "candidates": [
                    {"content": {"parts": [{"text": "first"}, {"text": "second"}]}},
                    {"content": {"parts": [{"text": "other candidate"}]}},
                ]
            }
        )
        self.assertEqual(parse_envelope(body), "first")

    def test_accepts_bytes(self):
        self.assertEqual(parse_envelope(_envelope("hi").encode()), "hi")

    def test_empty_candidates_is_empty_completion(self):
        with self.assertRaises(EmptyCompletion):
            parse_envelope('{"candidates": []}')

    def test_missing_candidates_is_empty_completion(self):
        with self.assertRaises(EmptyCompletion):
            parse_envelope('{"promptFeedback": {"blockReason": "SAFETY"}}')

    def test_candidate_without_parts_is_empty_completion(self):
        with self.assertRaises(EmptyCompletion):
            parse_envelope('{"candidates": [{"content": {"parts": []}}]}')
        with self.assertRaises(EmptyCompletion):
            parse_envelope('{"candidates": [{"finishReason": "SAFETY"}]}')

    def test_empty_text_is_empty_completion(self):
        with self.assertRaises(EmptyCompletion):
            parse_envelope(_envelope(""))

    def test_invalid_body_is_transport_error(self):
        with self.assertRaises(TransportError):
            parse_envelope("<html>oops</html>")
        with self.assertRaises(TransportError):
            parse_envelope('{"candidates": "nope"}')


class TestResolveCredential(unittest.TestCase):
    def test_returns_value(self):
        self.assertEqual(resolve_credential("KEY", {"KEY": " secret "}), "secret")

    def test_missing_or_blank_raises(self):
        for environ in ({}, {"KEY": ""}, {"KEY": "  "}):
            with self.subTest(environ=environ):
                with self.assertRaises(MissingCredential) as cm:
                    resolve_credential("KEY", environ)
                self.assertEqual(cm.exception.env_var, "KEY")
                self.assertEqual(str(cm.exception), "KEY not set")


class TestGeminiProvider(unittest.TestCase):
    """Tests for the Gemini REST provider."""

    def setUp(self):
        self.provider = GeminiProvider("test-key", model="gemini-test", timeout=12)

    @patch("shpilot.ai.llm.requests.post")
    def test_request_completion_success(self, mock_post):
        mock_post.return_value = _http_response(text=_envelope('{"command": "ls"}'))

        result = self.provider.request_completion("list files")

        self.assertEqual(result, '{"command": "ls"}')
        mock_post.assert_called_once()
        url = mock_post.call_args.args[0]
        kwargs = mock_post.call_args.kwargs
        self.assertEqual(
            url,
            "https://generativelanguage.googleapis.com/v1beta/models/gemini-test:generateContent",
        )
        self.assertEqual(kwargs["headers"]["x-goog-api-key"], "test-key")
        self.assertEqual(kwargs["timeout"], 12)
        self.assertNotIn("test-key", url)

        payload = kwargs["json"]
        self.assertEqual(
            payload["contents"], [{"role": "user", "parts": [{"text": "list files"}]}]
        )
        self.assertEqual(payload["generationConfig"], {"responseMimeType": "application/json"})

    @patch("shpilot.ai.llm.requests.post")
    def test_non_2xx_is_transport_error(self, mock_post):
        mock_post.return_value = _http_response(
            status_code=429, text='{"error": {}}', reason="Too Many Requests"
        )

        with self.assertRaises(TransportError) as cm:
            self.provider.send("prompt")

        self.assertEqual(cm.exception.status_code, 429)
        self.assertIn("429", str(cm.exception))

    @patch("shpilot.ai.llm.requests.post", side_effect=requests.ConnectionError("refused"))
    def test_connection_failure_is_transport_error(self, mock_post):
        with self.assertRaises(TransportError) as cm:
            self.provider.send("prompt")
        self.assertIsNone(cm.exception.status_code)

    @patch("shpilot.ai.llm.requests.post", side_effect=requests.Timeout())
    def test_timeout_is_transport_error(self, mock_post):
        with self.assertRaises(TransportError) as cm:
            self.provider.send("prompt")
        self.assertIn("12", str(cm.exception))

    @patch("shpilot.ai.llm.requests.post")
    def test_verbose_prints_raw_body(self, mock_post):
        mock_post.return_value = _http_response(text=_envelope("x"))
        provider = GeminiProvider("k", verbose=True)

        with patch("builtins.print") as mock_print:
            provider.send("prompt")

        mock_print.assert_called_once()
        self.assertIn("Raw AI response body", mock_print.call_args.args[0])

    def test_default_model(self):
        self.assertEqual(GeminiProvider("k").model, llm.GEMINI_DEFAULT_MODEL)


class TestAisuiteProvider(unittest.TestCase):
    """Tests for the aisuite-backed provider."""

    @patch("shpilot.ai.llm.aisuite.Client")
    def test_request_completion_success(self, MockClient):
        mock_client = MockClient.return_value
        mock_message = MagicMock()
        mock_message.content = '{"command": "ls"}'
        mock_client.chat.completions.create.return_value = MagicMock(
            choices=[MagicMock(message=mock_message)]
        )

        provider = AisuiteProvider("sk-test", model="openai:gpt-test", timeout=5)
        result = provider.request_completion("list files")

        self.assertEqual(result, '{"command": "ls"}')
        MockClient.assert_called_once_with({"openai": {"api_key": "sk-test", "timeout": 5}})
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "openai:gpt-test")
        self.assertEqual(kwargs["messages"][-1], {"role": "user", "content": "list files"})
        self.assertEqual(provider.credential_env_var, "OPENAI_API_KEY")

    @patch("shpilot.ai.llm.aisuite.Client")
    def test_sdk_error_is_transport_error(self, MockClient):
        MockClient.return_value.chat.completions.create.side_effect = RuntimeError("401")

        with self.assertRaises(TransportError):
            AisuiteProvider("sk", model="openai:m").request_completion("p")

    @patch("shpilot.ai.llm.aisuite.Client")
    def test_empty_content_is_empty_completion(self, MockClient):
        mock_message = MagicMock()
        mock_message.content = None
        MockClient.return_value.chat.completions.create.return_value = MagicMock(
            choices=[MagicMock(message=mock_message)]
        )

        with self.assertRaises(EmptyCompletion):
            AisuiteProvider("sk", model="openai:m").request_completion("p")

    def test_model_without_provider_is_config_error(self):
        with self.assertRaises(ConfigError):
            AisuiteProvider("sk", model="gpt-4o")


class TestBuildProvider(unittest.TestCase):
    def test_builds_gemini(self):
        config = RunConfig(query="q", provider="gemini", model="gemini-x", timeout=3, verbose=True)
        provider = build_provider(config, {"GEMINI_API_KEY": "key"})

        self.assertIsInstance(provider, GeminiProvider)
        self.assertEqual(provider.api_key, "key")
        self.assertEqual(provider.model, "gemini-x")
        self.assertEqual(provider.timeout, 3)
        self.assertTrue(provider.verbose)

    def test_missing_gemini_key(self):
        with self.assertRaises(MissingCredential) as cm:
            build_provider(RunConfig(query="q"), {})
        self.assertEqual(cm.exception.env_var, "GEMINI_API_KEY")

    @patch("shpilot.ai.llm.aisuite.Client")
    def test_builds_aisuite_with_provider_key(self, MockClient):
        config = RunConfig(query="q", provider="aisuite", model="anthropic:claude-test")
        provider = build_provider(config, {"ANTHROPIC_API_KEY": "ak"})

        self.assertIsInstance(provider, AisuiteProvider)
        MockClient.assert_called_once_with({"anthropic": {"api_key": "ak", "timeout": 30.0}})

    @patch("shpilot.ai.llm.aisuite.Client")
    def test_missing_aisuite_key_creates_no_client(self, MockClient):
        config = RunConfig(query="q", provider="aisuite")

        with self.assertRaises(MissingCredential) as cm:
            build_provider(config, {"GEMINI_API_KEY": "unused"})

        self.assertEqual(cm.exception.env_var, "OPENAI_API_KEY")
        MockClient.assert_not_called()

    def test_unknown_provider(self):
        with self.assertRaises(ConfigError):
            build_provider(RunConfig(query="q", provider="nope"), {})
