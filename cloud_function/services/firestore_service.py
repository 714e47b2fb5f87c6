"""
Firestore Service - Per-user book storage and the reading-session transitions.

Document layout:
    users/{uid}                          profile
    users/{uid}/books/{bookId}           books
    users/{uid}/recommendations/{recId}  saved recommendations
"""
from datetime import datetime
from typing import Callable, List, Optional

from google.cloud import firestore

from config import PROJECT_ID
from models.book import (
    Book, Recommendation, UserProfile, DEFAULT_AUTHOR, DEFAULT_GENRE, legacy_total_seconds,
)
from models.timestamps import to_datetime, utc_now
from services.errors import BookNotFoundError, InvalidStateError
from services.logging_service import get_logger
from services.reading_timer import accumulate


class FirestoreService:
    def __init__(self, client: Optional[firestore.Client] = None,
                 clock: Callable[[], datetime] = utc_now):
        self._client = client
        self.clock = clock

    @property
    def client(self) -> firestore.Client:
        if self._client is None:
            self._client = firestore.Client(project=PROJECT_ID or None)
        return self._client

    def _user(self, user_id: str):
        if not user_id:
            raise ValueError("user_id is required")
        return self.client.collection("users").document(user_id)

    def _books(self, user_id: str):
        return self._user(user_id).collection("books")

    def _book_snapshot(self, user_id: str, book_id: str):
        ref = self._books(user_id).document(book_id)
        snap = ref.get()
        if not snap.exists:
            raise BookNotFoundError(book_id)
        return ref, snap

    # === Books ===

    def add_book(self, user_id: str, title: str, author: Optional[str] = None,
                 genre: Optional[str] = None, cover_image_url: str = "",
                 is_read: bool = False) -> str:
        """Creates a book and returns its generated id."""
        title = (title or "").strip()
        if not title:
            raise ValueError("タイトルを入力してください")

        ref = self._books(user_id).document()
        ref.set({
            "title": title,
            "author": (author or "").strip() or DEFAULT_AUTHOR,
            "genre": (genre or "").strip() or DEFAULT_GENRE,
            "coverImageUrl": cover_image_url or "",
            "isRead": bool(is_read),
            "totalReadingSeconds": 0,
            "lastReadAt": None,
            "currentReadingStartedAt": None,
            "createdAt": firestore.SERVER_TIMESTAMP,
        })
        get_logger().info("Book added", user_id=user_id, book_id=ref.id)
        return ref.id

    def get_books(self, user_id: str) -> List[Book]:
        """All books of the user, newest registration first."""
        query = self._books(user_id).order_by("createdAt", direction=firestore.Query.DESCENDING)
        return [Book.from_dict(doc.to_dict() or {}, book_id=doc.id) for doc in query.stream()]

    def get_book(self, user_id: str, book_id: str) -> Book:
        _, snap = self._book_snapshot(user_id, book_id)
        return Book.from_dict(snap.to_dict() or {}, book_id=snap.id)

    def update_book(self, user_id: str, book_id: str, title: Optional[str] = None,
                    author: Optional[str] = None, genre: Optional[str] = None):
        """Edits the descriptive fields. Only the fields that are passed change."""
        updates = {}
        if title is not None:
            if not title.strip():
                raise ValueError("タイトルを入力してください")
            updates["title"] = title.strip()
        if author is not None:
            updates["author"] = author.strip()
        if genre is not None:
            updates["genre"] = genre.strip()
        if not updates:
            return

        ref, _ = self._book_snapshot(user_id, book_id)
        ref.update(updates)

    def update_book_read_status(self, user_id: str, book_id: str, is_read: bool):
        ref, _ = self._book_snapshot(user_id, book_id)
        ref.update({"isRead": bool(is_read)})

    def delete_book(self, user_id: str, book_id: str):
        ref, _ = self._book_snapshot(user_id, book_id)
        ref.delete()

    # === Reading sessions ===

    def start_reading(self, user_id: str, book_id: str) -> datetime:
        """
        Starts a session. The check and the write are not transactional: two
        racing starts both succeed and the later start time wins.
        """
        ref, snap = self._book_snapshot(user_id, book_id)
        data = snap.to_dict() or {}
        if to_datetime(data.get("currentReadingStartedAt")) is not None:
            raise InvalidStateError("この本はすでに読書中です")

        now = self.clock()
        ref.update({"currentReadingStartedAt": now})
        get_logger().info("Reading started", user_id=user_id, book_id=book_id)
        return now

    def stop_reading(self, user_id: str, book_id: str) -> int:
        """Ends the active session and returns its elapsed whole seconds."""
        ref, snap = self._book_snapshot(user_id, book_id)
        data = snap.to_dict() or {}
        started_at = to_datetime(data.get("currentReadingStartedAt"))
        if started_at is None:
            raise InvalidStateError("読書が開始されていません")

        now = self.clock()
        elapsed, total = accumulate(legacy_total_seconds(data), started_at, now)
        ref.update({
            "totalReadingSeconds": total,
            "totalReadingMinutes": firestore.DELETE_FIELD,
            "lastReadAt": now,
            "currentReadingStartedAt": None,
        })
        get_logger().info("Reading stopped", user_id=user_id, book_id=book_id,
                          elapsed_seconds=elapsed, total_seconds=total)
        return elapsed

    # === Profiles ===

    def create_or_update_user_profile(self, user_id: str, display_name: str,
                                      email: str, photo_url: str) -> bool:
        """Returns True when the profile was created (first login)."""
        ref = self._user(user_id)
        data = {"displayName": display_name or "", "email": email or "", "photoURL": photo_url or ""}
        if not ref.get().exists:
            ref.set({**data, "createdAt": firestore.SERVER_TIMESTAMP})
            return True
        ref.update(data)
        return False

    def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        snap = self._user(user_id).get()
        if not snap.exists:
            return None
        return UserProfile.from_dict(snap.to_dict() or {})

    # === Recommendations ===

    def add_recommendation(self, user_id: str, title: str, author: str = "",
                           amazon_url: str = "", reason: str = "") -> str:
        if not (title or "").strip():
            raise ValueError("タイトルを入力してください")
        ref = self._user(user_id).collection("recommendations").document()
        ref.set({
            "title": title.strip(),
            "author": author or "",
            "amazonUrl": amazon_url or "",
            "reason": reason or "",
            "createdAt": firestore.SERVER_TIMESTAMP,
        })
        return ref.id

    def get_recommendations(self, user_id: str) -> List[Recommendation]:
        query = (self._user(user_id).collection("recommendations")
                 .order_by("createdAt", direction=firestore.Query.DESCENDING))
        return [Recommendation.from_dict(doc.to_dict() or {}, doc.id) for doc in query.stream()]
