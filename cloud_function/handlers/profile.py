from handlers.common import RequestContext, get_json, json_response
from services.bookshelf import shelf_stats


def sign_in(request, ctx: RequestContext):
    created = ctx.services.auth.sign_in(ctx.session)
    profile = ctx.services.store.get_user_profile(ctx.user_id)
    ctx.logger.info("User signed in", created=created)
    return json_response({
        "profile": profile.to_dict() if profile else None,
        "created": created,
    })


def sign_out(request, ctx: RequestContext):
    user_id = ctx.user_id
    ctx.services.auth.sign_out(ctx.session)
    ctx.logger.info("User signed out", signed_out_user=user_id)
    return json_response({"status": "signed_out"})


def get_profile(request, ctx: RequestContext):
    store = ctx.services.store
    profile = store.get_user_profile(ctx.user_id)
    books = store.get_books(ctx.user_id)
    return json_response({
        "profile": profile.to_dict() if profile else None,
        "stats": shelf_stats(books),
    })


def list_recommendations(request, ctx: RequestContext):
    recs = ctx.services.store.get_recommendations(ctx.user_id)
    return json_response({"recommendations": [r.to_dict() for r in recs]})


def add_recommendation(request, ctx: RequestContext):
    data = get_json(request)
    rec_id = ctx.services.store.add_recommendation(
        ctx.user_id,
        title=str(data.get("title") or ""),
        author=str(data.get("author") or ""),
        amazon_url=str(data.get("amazonUrl") or ""),
        reason=str(data.get("reason") or ""),
    )
    return json_response({"id": rec_id}, 201)
