from dataclasses import replace
from types import SimpleNamespace
from unittest.mock import patch

import httpx
import pytest

from app.config import settings
from app.errors import UpstreamProcessingError
from app.services import ai
from mocks import FakeHTTPXResponse, gemini_response

_configured = replace(settings, ai_api_key="test-key", ai_model="test-model")


class TestParsing:
    def test_parse_plain_array(self):
        assert ai.parse_string_array('["Policy", " Memo "]') == ["Policy", "Memo"]

    def test_parse_array_inside_fences(self):
        text = 'Here you go:\n```json\n["Policy"]\n```'
        assert ai.parse_string_array(text) == ["Policy"]

    def test_parse_drops_blank_entries(self):
        assert ai.parse_string_array('["", "Policy", "  "]') == ["Policy"]

    def test_parse_rejects_non_json(self):
        with pytest.raises(UpstreamProcessingError):
            ai.parse_string_array("no categories today")

    def test_parse_rejects_non_strings(self):
        with pytest.raises(UpstreamProcessingError):
            ai.parse_string_array("[1, 2]")

    def test_parse_unique_keeps_order(self):
        assert ai.parse_unique(["b", "a", "b"]) == ["b", "a"]


class TestGenerate:
    def test_not_configured(self):
        with patch("app.services.ai.settings", replace(settings, ai_api_key="")):
            with pytest.raises(UpstreamProcessingError) as exc:
                ai.generate_string_array("prompt")
        assert "not configured" in str(exc.value)

    @patch("app.services.ai.settings", _configured)
    @patch("app.services.ai.httpx.post")
    def test_posts_prompt_with_schema(self, mock_post):
        mock_post.return_value = gemini_response(["Policy"])
        assert ai.generate_string_array("classify this") == ["Policy"]

        args, kwargs = mock_post.call_args
        assert args[0].endswith("/models/test-model:generateContent")
        assert kwargs["params"] == {"key": "test-key"}
        assert kwargs["json"]["contents"][0]["parts"][0]["text"] == "classify this"
        assert kwargs["json"]["generationConfig"]["responseSchema"]["type"] == "ARRAY"

    @patch("app.services.ai.settings", _configured)
    @patch("app.services.ai.httpx.post")
    def test_http_error(self, mock_post):
        mock_post.return_value = gemini_response([], status_code=503)
        with pytest.raises(UpstreamProcessingError):
            ai.generate_string_array("prompt")

    @patch("app.services.ai.settings", _configured)
    @patch("app.services.ai.httpx.post")
    def test_transport_error(self, mock_post):
        mock_post.side_effect = httpx.ConnectError("refused")
        with pytest.raises(UpstreamProcessingError):
            ai.generate_string_array("prompt")

    @patch("app.services.ai.settings", _configured)
    @patch("app.services.ai.httpx.post")
    def test_missing_candidates(self, mock_post):
        mock_post.return_value = FakeHTTPXResponse({"candidates": []})
        with pytest.raises(UpstreamProcessingError):
            ai.generate_string_array("prompt")


class TestCategorize:
    @patch("app.services.ai.settings", _configured)
    @patch("app.services.ai.httpx.post")
    def test_categorize_dedupes(self, mock_post):
        mock_post.return_value = gemini_response(["Policy", "Memo", "Policy"])
        categories = ai.categorize("Leave policy", "https://example.com/f", "application/pdf")
        assert categories == ["Policy", "Memo"]
        prompt = mock_post.call_args.kwargs["json"]["contents"][0]["parts"][0]["text"]
        assert "Leave policy" in prompt
        assert "Press Release" in prompt

    @patch("app.services.ai.settings", _configured)
    @patch("app.services.ai.httpx.post")
    def test_categorize_empty_is_failure(self, mock_post):
        mock_post.return_value = gemini_response([])
        with pytest.raises(UpstreamProcessingError):
            ai.categorize("Blank", "https://example.com/f", "application/pdf")


class TestSuggestRecipients:
    @patch("app.services.ai.settings", _configured)
    @patch("app.services.ai.httpx.post")
    def test_roster_in_prompt(self, mock_post):
        mock_post.return_value = gemini_response(["u-2"])
        roster = [
            SimpleNamespace(
                id="u-2",
                name="Bob",
                email="bob@example.com",
                department=SimpleNamespace(name="Sales"),
            ),
            SimpleNamespace(id="u-3", name=None, email="x@example.com", department=None),
        ]
        assert ai.suggest_recipients("Deck", "https://example.com/f", "u-1", roster) == ["u-2"]
        prompt = mock_post.call_args.kwargs["json"]["contents"][0]["parts"][0]["text"]
        assert "User ID: u-2, Name: Bob, Email: bob@example.com, Department: Sales" in prompt
        assert "User ID: u-3, Name: N/A" in prompt
        assert "(User ID: u-1)" in prompt
