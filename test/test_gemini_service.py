"""Tests for Gemini response parsing and error wrapping."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from services.errors import UpstreamError
from services.gemini_service import GeminiService, parse_reply


def _response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def _text(text):
    return SimpleNamespace(text=text, function_call=None)


def _call(name, **args):
    return SimpleNamespace(text="", function_call=SimpleNamespace(name=name, args=args))


class TestParseReply:
    def test_text_only(self) -> None:
        reply = parse_reply(_response(_text("こんにちは")))
        assert reply.text == "こんにちは"
        assert reply.tool_call is None

    def test_function_call_after_text(self) -> None:
        reply = parse_reply(_response(_text("開始します"), _call("startReadingSession", bookTitle="Sapiens")))
        assert reply.tool_call.name == "startReadingSession"
        assert reply.tool_call.args == {"bookTitle": "Sapiens"}

    def test_empty_function_call_is_ignored(self) -> None:
        part = SimpleNamespace(text="hi", function_call=SimpleNamespace(name="", args={}))
        assert parse_reply(_response(part)).tool_call is None

    def test_no_candidates(self) -> None:
        reply = parse_reply(SimpleNamespace(candidates=[]))
        assert reply.text == ""
        assert reply.tool_call is None


class TestGeminiService:
    def test_requires_api_key(self) -> None:
        with patch("services.gemini_service.GEMINI_API_KEY", ""):
            with pytest.raises(ValueError):
                GeminiService()

    def test_transport_error_becomes_upstream_error(self) -> None:
        with patch("services.gemini_service.genai") as genai:
            genai.GenerativeModel.return_value.generate_content.side_effect = RuntimeError("503")
            service = GeminiService(api_key="test-key")
            with pytest.raises(UpstreamError):
                service.chat([{"role": "user", "parts": ["hi"]}], system_instruction="sys")

    def test_chat_passes_tools_and_system_instruction(self) -> None:
        with patch("services.gemini_service.genai") as genai:
            genai.GenerativeModel.return_value.generate_content.return_value = _response(_text("ok"))
            service = GeminiService(api_key="test-key")
            tools = [{"function_declarations": []}]

            reply = service.chat([{"role": "user", "parts": ["hi"]}], system_instruction="sys", tools=tools)

            kwargs = genai.GenerativeModel.call_args.kwargs
            assert kwargs["system_instruction"] == "sys"
            assert kwargs["tools"] is tools
            assert reply.text == "ok"
            genai.configure.assert_called_once_with(api_key="test-key")
