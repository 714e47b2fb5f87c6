"""
Chat handler.

Request:
{
    "message": "今日読むべき本は？",
    "books": [{"id": "...", "title": "...", ...}],
    "history": [{"role": "user" | "assistant", "content": "..."}],
    "userId": "optional, must match the signed-in user",
    "executeFunction": {"name": "...", "bookId": "...", "bookTitle": "...", "action": "..."}
}

Response: {"response": str} | {"functionCall": {...}} | {"error": str}
With executeFunction the call is applied server-side and the outcome comes
back as {"response": str, "toolResult": {...}}.
"""
from handlers.common import RequestContext, get_json, json_response
from models.book import Book, FunctionCall, Message
from services.chat_service import action_payload, apply_function_call

CHAT_ERROR = "チャットの処理中にエラーが発生しました"


def chat(request, ctx: RequestContext):
    data = get_json(request)

    execute = data.get("executeFunction")
    if isinstance(execute, dict):
        return _execute_function(data, execute, ctx)

    message = str(data.get("message") or "")
    if not message.strip():
        return json_response({"error": "メッセージを入力してください"}, 400)

    books = [Book.from_dict(b) for b in data.get("books") or [] if isinstance(b, dict)]
    history = [Message.from_dict(m) for m in data.get("history") or [] if isinstance(m, dict)]

    try:
        ctx.logger.log_stage("chat", "started", books=len(books), history=len(history))
        result = ctx.services.resolver.resolve(message, books, history)
    except Exception as e:
        ctx.logger.log_error("chat", str(e))
        return json_response({"error": CHAT_ERROR}, 500)

    if result.function_call is not None:
        ctx.logger.log_stage("chat", "function_call",
                             tool=result.function_call.name, book_id=result.function_call.book_id)
    else:
        ctx.logger.log_stage("chat", "completed")
    return json_response(result.to_dict())


def _execute_function(data, execute, ctx: RequestContext):
    if ctx.session is None:
        return json_response({"error": "ログインが必要です"}, 401)
    requested_user = data.get("userId")
    if requested_user and requested_user != ctx.session.user_id:
        return json_response({"error": "他のユーザーの本棚は操作できません"}, 403)

    call = FunctionCall.from_dict(execute)
    if not call.book_id:
        return json_response({"error": "bookId is required"}, 400)
    if call.action is None:
        payload = action_payload(call.name, execute) or {}
        call.payload["action"] = payload.get("action")
    if call.action == "updateReadStatus":
        # newStatus, or the tool's own isRead argument; never defaulted
        new_status = execute.get("newStatus", execute.get("isRead"))
        if not isinstance(new_status, bool):
            return json_response({"error": "newStatus must be a boolean"}, 400)
        call.payload["newStatus"] = new_status

    result = apply_function_call(ctx.services.store, ctx.session.user_id, call)
    ctx.logger.log_stage("execute_function", "completed" if result.success else "failed",
                         tool=call.name, book_id=call.book_id)
    return json_response({"response": result.message, "toolResult": result.to_dict()})
