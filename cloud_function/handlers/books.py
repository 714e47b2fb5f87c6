"""
Book handlers - shelf CRUD, reading-session transitions and cover uploads.

All routes here require a signed-in session; validation and not-found
errors propagate to main.py, which maps them to 400/404/409.
"""
from handlers.common import RequestContext, get_json, json_response, text_field
from models.timestamps import to_iso


def list_books(request, ctx: RequestContext):
    books = ctx.services.store.get_books(ctx.user_id)
    ctx.logger.log_metric("books_listed", len(books))
    return json_response({"books": [b.to_dict() for b in books]})


def add_book(request, ctx: RequestContext):
    data = get_json(request)
    book_id = ctx.services.store.add_book(
        ctx.user_id,
        title=text_field(data, "title") or "",
        author=text_field(data, "author"),
        genre=text_field(data, "genre"),
        cover_image_url=text_field(data, "coverImageUrl") or "",
        is_read=bool(data.get("isRead", False)),
    )
    ctx.logger.info("Book created", book_id=book_id)
    return json_response({"id": book_id}, 201)


def update_book(request, ctx: RequestContext):
    data = get_json(request)
    book_id = ctx.params["book_id"]
    ctx.services.store.update_book(
        ctx.user_id, book_id,
        title=text_field(data, "title"),
        author=text_field(data, "author"),
        genre=text_field(data, "genre"),
    )
    return json_response({"status": "ok", "id": book_id})


def delete_book(request, ctx: RequestContext):
    book_id = ctx.params["book_id"]
    ctx.services.store.delete_book(ctx.user_id, book_id)
    ctx.logger.info("Book deleted", book_id=book_id)
    return json_response({"status": "ok", "id": book_id})


def update_read_status(request, ctx: RequestContext):
    data = get_json(request)
    if not isinstance(data.get("isRead"), bool):
        raise ValueError("isRead must be a boolean")
    book_id = ctx.params["book_id"]
    ctx.services.store.update_book_read_status(ctx.user_id, book_id, data["isRead"])
    return json_response({"status": "ok", "id": book_id, "isRead": data["isRead"]})


def start_reading(request, ctx: RequestContext):
    book_id = ctx.params["book_id"]
    started_at = ctx.services.store.start_reading(ctx.user_id, book_id)
    ctx.logger.log_stage("reading_session", "started", book_id=book_id)
    return json_response({"id": book_id, "startedAt": to_iso(started_at)})


def stop_reading(request, ctx: RequestContext):
    book_id = ctx.params["book_id"]
    store = ctx.services.store
    elapsed = store.stop_reading(ctx.user_id, book_id)
    book = store.get_book(ctx.user_id, book_id)
    ctx.logger.log_stage("reading_session", "stopped", book_id=book_id, elapsed_seconds=elapsed)
    return json_response({
        "id": book_id,
        "elapsedSeconds": elapsed,
        "totalReadingSeconds": book.total_reading_seconds,
    })


def upload_cover(request, ctx: RequestContext):
    data = get_json(request)
    image = data.get("imageBase64")
    if not image:
        raise ValueError("画像が必要です")
    url = ctx.services.gcs.upload_book_image_base64(
        ctx.user_id, image, file_name=str(data.get("fileName") or "book-cover.jpg"),
    )
    return json_response({"url": url})


def register_book(request, ctx: RequestContext):
    """
    Photo-to-shelf in one call: read the cover, upload it, create the book.
    Fields sent in the body take precedence over what the model extracted.
    """
    data = get_json(request)
    image = data.get("imageBase64")
    if not image:
        raise ValueError("画像が必要です")

    ctx.logger.log_stage("cover_analysis", "started")
    info = ctx.services.vision.analyze_cover(image)
    ctx.logger.log_stage("cover_analysis", "completed", extracted_title=info.get("title"))

    title = (text_field(data, "title") or info.get("title") or "").strip()
    if not title:
        raise ValueError("タイトルを読み取れませんでした。タイトルを入力してください")

    url = ctx.services.gcs.upload_book_image_base64(ctx.user_id, image)
    store = ctx.services.store
    book_id = store.add_book(
        ctx.user_id,
        title=title,
        author=text_field(data, "author") or info.get("author"),
        genre=text_field(data, "genre") or info.get("genre"),
        cover_image_url=url,
    )
    book = store.get_book(ctx.user_id, book_id)
    ctx.logger.info("Book registered from cover", book_id=book_id)
    return json_response({"id": book_id, "book": book.to_dict()}, 201)
