import json
import unittest
from unittest.mock import Mock, patch

import requests

from cleftdetect.ai.guidance import PHOTO_TIPS, GeminiGuidanceClient, MockGuidanceClient
from cleftdetect.errors import EmptyQuery, ServiceError


def _gemini_response(text: str) -> Mock:
    mock_response = Mock()
    mock_response.json.return_value = {
        "candidates": [{"content": {"parts": [{"text": text}]}}]
    }
    mock_response.raise_for_status.return_value = None
    return mock_response


class GeminiGuidanceClientTests(unittest.TestCase):
    def test_request_guidance_builds_payload_and_parses_reply(self) -> None:
        client = GeminiGuidanceClient(api_key="test-key")
        reply = _gemini_response(json.dumps({"guidance": "  Use daylight near a window.  "}))

        with patch("cleftdetect.ai.guidance.requests.post", return_value=reply) as post:
            advice = client.request_guidance("  How do I photograph a moving baby?  ")

        self.assertEqual(advice, "Use daylight near a window.")
        post.assert_called_once()
        url, kwargs = post.call_args
        self.assertTrue(url[0].endswith("models/gemini-2.5-flash:generateContent"))
        self.assertEqual(kwargs["params"], {"key": "test-key"})
        payload = kwargs["json"]
        self.assertEqual(payload["generationConfig"]["responseMimeType"], "application/json")
        prompt = payload["contents"][0]["parts"][0]["text"]
        self.assertIn("User Query: How do I photograph a moving baby?", prompt)
        self.assertIn("'guidance'", prompt)

    def test_empty_and_whitespace_queries_never_hit_the_network(self) -> None:
        client = GeminiGuidanceClient(api_key="test-key")
        with patch("cleftdetect.ai.guidance.requests.post") as post:
            for query in ("", "   ", "\n\t"):
                with self.subTest(query=query):
                    with self.assertRaises(EmptyQuery):
                        client.request_guidance(query)
        post.assert_not_called()

    def test_transport_failure_surfaces_generic_message(self) -> None:
        client = GeminiGuidanceClient(api_key="test-key")
        error = requests.ConnectionError("upstream 10.0.0.7 refused: secret-token")

        with patch("cleftdetect.ai.guidance.requests.post", side_effect=error) as post:
            with self.assertRaises(ServiceError) as ctx:
                client.request_guidance("Lighting tips?")

        post.assert_called_once()
        self.assertEqual(
            ctx.exception.user_message,
            "Failed to get guidance. Please check your connection and try again.",
        )
        self.assertNotIn("secret-token", ctx.exception.user_message)

    def test_provider_error_status_is_service_error(self) -> None:
        client = GeminiGuidanceClient(api_key="test-key")
        reply = Mock()
        reply.raise_for_status.side_effect = requests.HTTPError("500 Server Error")

        with patch("cleftdetect.ai.guidance.requests.post", return_value=reply):
            with self.assertRaises(ServiceError):
                client.request_guidance("Lighting tips?")

    def test_malformed_replies_are_service_errors(self) -> None:
        client = GeminiGuidanceClient(api_key="test-key")
        for text in ("not json", json.dumps({"advice": "wrong field"}), json.dumps({"guidance": " "})):
            with self.subTest(text=text):
                with patch(
                    "cleftdetect.ai.guidance.requests.post",
                    return_value=_gemini_response(text),
                ):
                    with self.assertRaises(ServiceError):
                        client.request_guidance("Angles?")

        empty = Mock()
        empty.json.return_value = {"candidates": []}
        empty.raise_for_status.return_value = None
        with patch("cleftdetect.ai.guidance.requests.post", return_value=empty):
            with self.assertRaises(ServiceError):
                client.request_guidance("Angles?")

    def test_missing_api_key_fails_without_request(self) -> None:
        client = GeminiGuidanceClient(api_key="")
        with patch("cleftdetect.ai.guidance.requests.post") as post:
            with self.assertRaises(ServiceError):
                client.request_guidance("Angles?")
        post.assert_not_called()


class MockGuidanceClientTests(unittest.TestCase):
    def test_echoes_tips(self) -> None:
        advice = MockGuidanceClient().request_guidance(" framing ")
        self.assertIn('"framing"', advice)
        for tip in PHOTO_TIPS:
            self.assertIn(tip, advice)

    def test_rejects_blank_query(self) -> None:
        with self.assertRaises(EmptyQuery):
            MockGuidanceClient().request_guidance("  ")


if __name__ == "__main__":
    unittest.main()
