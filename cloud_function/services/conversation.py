"""
In-memory chat conversation that applies resolved tool calls through the store.

Part of the client-side presentation model (with services/bookshelf.py): it
keeps the message history a chat screen shows. The /chat handler is
stateless and does not use it.
"""
from typing import Callable, List, Optional, Sequence

from models.book import Book, Message, ToolResult
from services.chat_service import ChatResolver, apply_function_call

ERROR_REPLY = "申し訳ありません。エラーが発生しました。もう一度お試しください。"


class ChatConversation:
    def __init__(self, resolver: ChatResolver, store, session,
                 on_books_updated: Optional[Callable[[], None]] = None):
        self.resolver = resolver
        self.store = store
        self.session = session
        self.on_books_updated = on_books_updated
        self.messages: List[Message] = []
        self.last_tool_result: Optional[ToolResult] = None

    def send(self, text: str, books: Sequence[Book]) -> Optional[Message]:
        """Runs one turn and returns the assistant message appended to the history."""
        if not text or not text.strip():
            return None

        history = list(self.messages)
        self.messages.append(Message(role="user", content=text))
        self.last_tool_result = None

        try:
            result = self.resolver.resolve(text, books, history)
        except Exception as e:
            print(f"Chat error: {e}")
            return self._reply(ERROR_REPLY)

        if result.function_call is None:
            return self._reply(result.response or "")

        tool_result = apply_function_call(self.store, self.session.user_id, result.function_call)
        self.last_tool_result = tool_result
        if tool_result.success and self.on_books_updated:
            self.on_books_updated()
        return self._reply(tool_result.message)

    def _reply(self, content: str) -> Message:
        message = Message(role="assistant", content=content)
        self.messages.append(message)
        return message

    def clear(self):
        self.messages = []
        self.last_tool_result = None
