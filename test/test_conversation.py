"""Tests for the in-memory chat conversation."""

from unittest.mock import MagicMock

from models.book import FunctionCall
from services.chat_service import ChatResult
from services.conversation import ERROR_REPLY, ChatConversation
from services.errors import UpstreamError

USER = "user-1"


def _conversation(store, session, result=None, error=None, on_books_updated=None):
    resolver = MagicMock()
    if error:
        resolver.resolve.side_effect = error
    else:
        resolver.resolve.return_value = result
    return ChatConversation(resolver, store, session, on_books_updated=on_books_updated)


class TestChatConversation:
    def test_text_turn_is_recorded(self, store, session) -> None:
        chat = _conversation(store, session, ChatResult(response="「Deep Work」はいかがですか？"))

        reply = chat.send("おすすめは？", [])

        assert reply.role == "assistant"
        assert [m.role for m in chat.messages] == ["user", "assistant"]
        assert chat.resolver.resolve.call_args.args[2] == []

    def test_history_excludes_current_message(self, store, session) -> None:
        chat = _conversation(store, session, ChatResult(response="ok"))
        chat.send("一つ目", [])
        chat.send("二つ目", [])

        history = chat.resolver.resolve.call_args.args[2]
        assert [m.content for m in history] == ["一つ目", "ok"]

    def test_blank_message_is_ignored(self, store, session) -> None:
        chat = _conversation(store, session, ChatResult(response="ok"))
        assert chat.send("   ", []) is None
        assert chat.messages == []
        chat.resolver.resolve.assert_not_called()

    def test_function_call_is_applied(self, store, session) -> None:
        book_id = store.add_book(USER, title="Deep Work")
        call = FunctionCall(name="startReadingSession", book_id=book_id, book_title="Deep Work",
                            payload={"action": "startReading"})
        refreshed = MagicMock()
        chat = _conversation(store, session, ChatResult(function_call=call), on_books_updated=refreshed)

        reply = chat.send("はい、読みます", store.get_books(USER))

        assert store.get_book(USER, book_id).is_reading
        assert chat.last_tool_result.success
        assert "読書を開始しました" in reply.content
        refreshed.assert_called_once()

    def test_failed_function_call_is_reported(self, store, session) -> None:
        call = FunctionCall(name="stopReadingSession", book_id="missing", book_title="X",
                            payload={"action": "stopReading"})
        refreshed = MagicMock()
        chat = _conversation(store, session, ChatResult(function_call=call), on_books_updated=refreshed)

        reply = chat.send("読み終わった", [])

        assert not chat.last_tool_result.success
        assert "失敗しました" in reply.content
        refreshed.assert_not_called()

    def test_resolver_error_becomes_apology(self, store, session) -> None:
        chat = _conversation(store, session, error=UpstreamError("503"))
        assert chat.send("こんにちは", []).content == ERROR_REPLY
        assert len(chat.messages) == 2

    def test_clear(self, store, session) -> None:
        chat = _conversation(store, session, ChatResult(response="ok"))
        chat.send("hi", [])
        chat.clear()
        assert chat.messages == []
        assert chat.last_tool_result is None
