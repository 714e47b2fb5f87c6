"""
Main Entry Point - Router for the Reading Tracker Cloud Function.

This module provides HTTP endpoints for:
1. analyze_book - Extracts title/author/genre from a cover photo (Gemini vision).
2. chat - Bookshelf-aware reading advisor with function calling.
3. books/* - Shelf CRUD and reading-session start/stop (Firestore).
4. upload_cover / register_book - Cover upload to GCS, photo-to-shelf registration.
5. sign_in / sign_out / profile / recommendations - User records.

Architecture:
- A single deployed function routes by path and method.
- Signed-in routes get a Session built from the Firebase ID token; it is
  passed to the handler through the RequestContext.
- Service clients are created lazily on first use and reused across
  requests served by the same instance.
"""
import re
import sys
from typing import Callable, List, NamedTuple, Optional

import functions_framework

from handlers import books, chat, profile, vision
from handlers.common import RequestContext, json_response
from services.auth_service import AuthService
from services.chat_service import ChatResolver
from services.errors import AuthError, BookNotFoundError, InvalidStateError, UpstreamError
from services.firestore_service import FirestoreService
from services.gcs_service import GcsService
from services.gemini_service import GeminiService
from services.logging_service import RequestLogger
from services.vision_service import VisionService

print("DEBUG: main.py - all modules imported successfully", file=sys.stderr)


class AppServices:
    """Lazily constructed service clients shared by the handlers."""

    def __init__(self):
        self._store = None
        self._gcs = None
        self._gemini = None
        self._vision = None
        self._resolver = None
        self._auth = None

    @property
    def store(self) -> FirestoreService:
        if self._store is None:
            self._store = FirestoreService()
        return self._store

    @property
    def gcs(self) -> GcsService:
        if self._gcs is None:
            self._gcs = GcsService()
        return self._gcs

    @property
    def gemini(self) -> GeminiService:
        if self._gemini is None:
            try:
                self._gemini = GeminiService()
            except ValueError as e:
                # Missing API key -> 500, not 400
                raise UpstreamError(str(e)) from e
        return self._gemini

    @property
    def vision(self) -> VisionService:
        if self._vision is None:
            self._vision = VisionService(self.gemini)
        return self._vision

    @property
    def resolver(self) -> ChatResolver:
        if self._resolver is None:
            self._resolver = ChatResolver(self.gemini)
        return self._resolver

    @property
    def auth(self) -> AuthService:
        if self._auth is None:
            self._auth = AuthService(self.store)
        return self._auth


class Route(NamedTuple):
    method: str
    pattern: "re.Pattern"
    handler: Callable
    auth: str  # "required" | "optional" | "none"


def _route(method: str, path: str, handler: Callable, auth: str = "required") -> Route:
    return Route(method, re.compile(rf"(?:.*/)?{path}"), handler, auth)


BOOK_ID = r"books/(?P<book_id>[A-Za-z0-9_-]+)"

ROUTES: List[Route] = [
    _route("POST", "analyze_book", vision.analyze_book, auth="none"),
    _route("POST", "chat", chat.chat, auth="optional"),
    _route("POST", "sign_in", profile.sign_in),
    _route("POST", "sign_out", profile.sign_out),
    _route("GET", "profile", profile.get_profile),
    _route("GET", "recommendations", profile.list_recommendations),
    _route("POST", "recommendations", profile.add_recommendation),
    _route("POST", "upload_cover", books.upload_cover),
    _route("POST", "register_book", books.register_book),
    _route("GET", "books", books.list_books),
    _route("POST", "books", books.add_book),
    _route("POST", f"{BOOK_ID}/read_status", books.update_read_status),
    _route("POST", f"{BOOK_ID}/start_reading", books.start_reading),
    _route("POST", f"{BOOK_ID}/stop_reading", books.stop_reading),
    _route("PATCH", BOOK_ID, books.update_book),
    _route("DELETE", BOOK_ID, books.delete_book),
]

_services: Optional[AppServices] = None


def get_services() -> AppServices:
    global _services
    if _services is None:
        _services = AppServices()
    return _services


def match_route(method: str, path: str):
    """Returns (route, params), or (None, allowed_methods) when nothing matches."""
    allowed = []
    for route in ROUTES:
        match = route.pattern.fullmatch(path)
        if not match:
            continue
        if route.method == method:
            return route, match.groupdict()
        allowed.append(route.method)
    return None, allowed


@functions_framework.http
def main_http_entry(request):
    """
    Main HTTP entry point that routes requests based on path and method.
    Enables Single-Function deployment for multiple handlers.
    """
    path = request.path.strip("/")
    if not path:
        return json_response({"status": "ok", "message": "reading tracker is running"})

    route, params = match_route(request.method, path)
    if route is None:
        if params:
            return json_response({"error": f"Method {request.method} not allowed for /{path}"}, 405)
        return json_response({"error": f"Path /{path} not found"}, 404)

    logger = RequestLogger(route=path)
    services = get_services()
    ctx = RequestContext(services=services, logger=logger, params=params)

    try:
        if route.auth == "required":
            ctx.session = services.auth.authenticate(request)
        elif route.auth == "optional":
            ctx.session = services.auth.optional_session(request)
        if ctx.session is not None:
            logger.bind_user(ctx.session.user_id)

        return route.handler(request, ctx)

    except AuthError as e:
        logger.warning("Unauthorized request", error=str(e))
        return json_response({"error": "ログインが必要です"}, 401)
    except BookNotFoundError as e:
        logger.warning("Book not found", book_id=e.book_id)
        return json_response({"error": "本が見つかりませんでした"}, 404)
    except InvalidStateError as e:
        logger.warning("Invalid state", error=str(e))
        return json_response({"error": str(e)}, 409)
    except ValueError as e:
        logger.warning("Validation failed", error=str(e))
        return json_response({"error": str(e)}, 400)
    except UpstreamError as e:
        logger.log_error(path, str(e))
        return json_response({"error": "処理に失敗しました。しばらくしてからもう一度お試しください"}, 500)
    except Exception as e:
        logger.log_error(path, str(e))
        import traceback
        traceback.print_exc()
        return json_response({"error": "処理に失敗しました。しばらくしてからもう一度お試しください"}, 500)


# Entry point alias for Cloud Functions
router = main_http_entry
