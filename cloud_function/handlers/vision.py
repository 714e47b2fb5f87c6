from handlers.common import RequestContext, get_json, json_response
from services.errors import UpstreamError


def analyze_book(request, ctx: RequestContext):
    """POST {imageBase64} -> {title, author, genre} | {error}."""
    data = get_json(request)
    image = data.get("imageBase64")
    if not image:
        return json_response({"error": "画像が必要です"}, 400)

    try:
        info = ctx.services.vision.analyze_cover(image)
    except ValueError as e:
        ctx.logger.warning("Rejected cover image", error=str(e))
        return json_response({"error": "画像の形式が正しくありません"}, 400)
    except UpstreamError as e:
        ctx.logger.log_error("analyze_book", str(e))
        return json_response({"error": "AIの解析に失敗しました"}, 500)
    except Exception as e:
        ctx.logger.log_error("analyze_book", str(e))
        return json_response({"error": "解析中にエラーが発生しました"}, 500)

    ctx.logger.log_stage("analyze_book", "completed", title=info.get("title"))
    return json_response(info)
