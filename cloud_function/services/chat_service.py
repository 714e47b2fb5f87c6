"""
Chat Service - Bookshelf-aware reading advisor with function calling.

Flow of one chat turn:
1. The user's shelf is rendered into a context block inside the system instruction.
2. History + the new message go to Gemini together with the tool declarations.
3. A tool call is resolved to a shelf book by title containment; an
   unresolvable title turns into a clarification question, never an action.
4. Otherwise the model's text is returned as-is.

Applying a resolved call (the actual Firestore write) is the caller's job,
see ``apply_function_call``.
"""
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from config import APP_TIMEZONE
from models.book import Book, FunctionCall, Message, ToolResult
from models.timestamps import utc_now
from services.gemini_service import GeminiService
from services.reading_timer import format_reading_minutes, format_reading_time

START_READING = "startReadingSession"
STOP_READING = "stopReadingSession"
UPDATE_READ_STATUS = "updateBookReadStatus"

_BOOK_TITLE_PARAM = {
    "type": "STRING",
    "description": "対象の本のタイトル（部分一致で検索）",
}

TOOLS = [
    {
        "function_declarations": [
            {
                "name": START_READING,
                "description": (
                    "指定した本の読書を開始し、読書時間の計測を始めます。"
                    "ユーザーが「はい」「読みます」「その本を読む」「今から読む」などと"
                    "本を読むことに同意した場合に使用します。"
                    "直前のAIの応答で提案された本に対して使用してください。"
                ),
                "parameters": {
                    "type": "OBJECT",
                    "properties": {"bookTitle": _BOOK_TITLE_PARAM},
                    "required": ["bookTitle"],
                },
            },
            {
                "name": STOP_READING,
                "description": (
                    "読書中の本の読書時間の計測を終了し、読書時間を記録します。"
                    "ユーザーが「読み終わった」「今日はここまで」「読書をやめる」などと"
                    "言った場合に使用します。"
                ),
                "parameters": {
                    "type": "OBJECT",
                    "properties": {"bookTitle": _BOOK_TITLE_PARAM},
                    "required": ["bookTitle"],
                },
            },
            {
                "name": UPDATE_READ_STATUS,
                "description": (
                    "本を読了または未読に変更します。"
                    "ユーザーが「読了にして」「未読に戻して」などと依頼した場合に使用します。"
                ),
                "parameters": {
                    "type": "OBJECT",
                    "properties": {
                        "bookTitle": _BOOK_TITLE_PARAM,
                        "isRead": {
                            "type": "BOOLEAN",
                            "description": "読了にする場合はtrue、未読に戻す場合はfalse",
                        },
                    },
                    "required": ["bookTitle", "isRead"],
                },
            },
        ]
    }
]

NO_ANSWER_TEXT = "申し訳ありません。回答を生成できませんでした。"
EMPTY_SHELF_TEXT = "まだ本が登録されていません。"


@dataclass
class ChatResult:
    response: Optional[str] = None
    function_call: Optional[FunctionCall] = None

    def to_dict(self) -> Dict:
        if self.function_call is not None:
            return {"functionCall": self.function_call.to_dict()}
        return {"response": self.response or ""}


_SUBTITLE_SEPARATORS = re.compile(r"\s*(?:[:：]|\s[-‐–—]\s)\s*")


def title_variants(title: str) -> List[str]:
    """
    The lowercased title, followed by its main title and subtitle when the
    title is written as "Main: Subtitle" (or "Main - Subtitle").
    """
    full = title.strip().lower()
    if not full:
        return []
    segments = [s for s in _SUBTITLE_SEPARATORS.split(full) if len(s) >= 2]
    return [full] + [s for s in segments if s != full]


def find_book_by_title(books: Sequence[Book], search_title: str) -> Optional[Book]:
    """
    First book whose title contains the argument or is contained in it,
    case-insensitively. No ranking among several matches.

    Only when no full title matches, a second pass accepts a book whose
    main-title or subtitle segment appears in the argument as whole words.
    """
    needle = (search_title or "").strip().lower()
    if not needle:
        return None

    shelf = [(book, title_variants(book.title)) for book in books]
    shelf = [(book, variants) for book, variants in shelf if variants]

    for book, variants in shelf:
        if needle in variants[0] or variants[0] in needle:
            return book

    for book, variants in shelf:
        if any(re.search(rf"\b{re.escape(segment)}\b", needle) for segment in variants[1:]):
            return book
    return None


def action_payload(tool_name: str, args: Dict) -> Optional[Dict]:
    """Action descriptor for a declared tool, None for anything else."""
    if tool_name == START_READING:
        return {"action": "startReading"}
    if tool_name == STOP_READING:
        return {"action": "stopReading"}
    if tool_name == UPDATE_READ_STATUS:
        is_read = args.get("isRead", True)
        if isinstance(is_read, str):
            is_read = is_read.strip().lower() not in ("false", "0", "no")
        return {"action": "updateReadStatus", "newStatus": bool(is_read)}
    return None


def format_date(value: Optional[datetime], tz: ZoneInfo) -> str:
    if value is None:
        return ""
    local = value.astimezone(tz)
    return f"{local.year}/{local.month}/{local.day}"


def build_book_line(book: Book, tz: ZoneInfo) -> str:
    line = f"- ID:{book.id} 「{book.title}」"
    if book.author:
        line += f" (著者: {book.author})"
    if book.genre:
        line += f" [ジャンル: {book.genre}]"
    registered = format_date(book.created_at, tz)
    if registered:
        line += f" [登録日: {registered}]"
    last_read = format_date(book.last_read_at, tz)
    if last_read:
        line += f" [最終読書日: {last_read}]"
    line += f" [読書時間: {format_reading_minutes(book.total_reading_seconds // 60)}]"
    if book.is_reading:
        line += " [読書中]"
    line += " - " + ("読了" if book.is_read else "未読")
    return line


def build_books_context(books: Sequence[Book], tz: ZoneInfo) -> str:
    if not books:
        return EMPTY_SHELF_TEXT
    return "\n".join(build_book_line(book, tz) for book in books)


def build_system_prompt(books: Sequence[Book], now: datetime, tz: ZoneInfo) -> str:
    unread = sum(1 for b in books if not b.is_read)
    read = len(books) - unread

    return f"""あなたは読書アドバイザーのAIアシスタントです。
ユーザーの本棚にある本の情報をもとに、読書に関するアドバイスや提案を行います。
親しみやすく、簡潔に回答してください。

## 今日の日付
{format_date(now, tz)}

## ユーザーの本棚情報
登録冊数: {len(books)}冊
未読（積読）: {unread}冊
読了: {read}冊

### 本の一覧
{build_books_context(books, tz)}

## 回答のルール
- ユーザーの本棚にある本をもとに回答してください
- 「本日登録」「最近登録」などの質問には、登録日を確認して回答してください
- 「最近読んでいない」などの質問には、最終読書日が古い本や読書時間が少ない本を提案してください
- 「今週どれくらい読んだ？」などの質問には、読書時間を集計して回答してください
- 本棚にない本をおすすめする場合は、その旨を伝えてください
- 回答は日本語で、2-3文程度で簡潔にしてください

## ツールの使用について
- 本を提案した後、ユーザーが読書に同意した場合は {START_READING} を使用してください
- 読書の終了を伝えられた場合は {STOP_READING} を使用してください
- 読了・未読の変更を依頼された場合は {UPDATE_READ_STATUS} を使用してください
- ツールを使用する際は、直前に話題にした本のタイトルを本棚のタイトルと照合して指定してください

## 本を提案した後の対応
本を提案した後は、「この本を今から読みますか？」と聞いてください。ユーザーが同意したら読書を開始できます。"""


def build_contents(history: Sequence[Message], message: str) -> List[Dict]:
    contents = [
        {"role": "user" if m.role == "user" else "model", "parts": [m.content]}
        for m in history
    ]
    contents.append({"role": "user", "parts": [message]})
    return contents


def not_found_reply(book_title: str) -> str:
    return f"「{book_title}」という本が本棚に見つかりませんでした。正確なタイトルを教えてください。"


class ChatResolver:
    def __init__(self, gemini: GeminiService, clock: Callable[[], datetime] = utc_now,
                 timezone_name: str = APP_TIMEZONE):
        self.gemini = gemini
        self.clock = clock
        self.tz = ZoneInfo(timezone_name)

    def resolve(self, message: str, books: Sequence[Book],
                history: Sequence[Message] = ()) -> ChatResult:
        """
        One chat turn.

        Raises:
            UpstreamError: the Gemini call failed (not retried).
        """
        reply = self.gemini.chat(
            build_contents(history, message),
            system_instruction=build_system_prompt(books, self.clock(), self.tz),
            tools=TOOLS,
        )

        if reply.tool_call is not None:
            return self._resolve_tool_call(reply.tool_call.name, reply.tool_call.args, books)

        return ChatResult(response=reply.text or NO_ANSWER_TEXT)

    def _resolve_tool_call(self, name: str, args: Dict, books: Sequence[Book]) -> ChatResult:
        payload = action_payload(name, args)
        if payload is None:
            print(f"Warning: model called undeclared tool {name}")
            return ChatResult(response=NO_ANSWER_TEXT)

        book_title = str(args.get("bookTitle") or "")
        book = find_book_by_title(books, book_title)
        if book is None:
            return ChatResult(response=not_found_reply(book_title))

        return ChatResult(function_call=FunctionCall(
            name=name, book_id=book.id, book_title=book.title, payload=payload,
        ))


def apply_function_call(store, user_id: str, call: FunctionCall) -> ToolResult:
    """
    Performs the write a resolved call asks for and phrases the outcome for
    the conversation. Failures are reported, not raised.
    """
    title = call.book_title
    try:
        if call.action == "startReading":
            store.start_reading(user_id, call.book_id)
            message = f"「{title}」の読書を開始しました！読書時間を計測しています。"
        elif call.action == "stopReading":
            elapsed = store.stop_reading(user_id, call.book_id)
            message = f"「{title}」の読書を終了しました（{format_reading_time(elapsed)}）。お疲れさまでした！"
        elif call.action == "updateReadStatus":
            new_status = bool(call.payload.get("newStatus"))
            store.update_book_read_status(user_id, call.book_id, new_status)
            message = f"「{title}」を{'読了' if new_status else '未読'}に更新しました！"
        else:
            return ToolResult(success=False, message=f"不明な操作です: {call.action}", book_title=title)
    except Exception as e:
        print(f"Failed to apply {call.name} to {call.book_id}: {e}")
        return ToolResult(
            success=False,
            message=f"「{title}」の更新に失敗しました。もう一度お試しください。",
            book_title=title,
        )

    return ToolResult(success=True, message=message, book_title=title)
