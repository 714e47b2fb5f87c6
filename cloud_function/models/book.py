from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from models.timestamps import to_datetime, to_iso

DEFAULT_AUTHOR = "著者不明"
DEFAULT_GENRE = "未分類"


def legacy_total_seconds(data: Dict[str, Any]) -> int:
    """
    Reading time in seconds, honoring records written before the switch to
    seconds: a missing or zero totalReadingSeconds falls back to
    totalReadingMinutes * 60.
    """
    seconds = data.get("totalReadingSeconds")
    if seconds:
        return int(seconds)
    minutes = data.get("totalReadingMinutes")
    if minutes:
        return int(minutes) * 60
    return 0


@dataclass
class Book:
    id: str
    title: str
    author: str = DEFAULT_AUTHOR
    genre: str = DEFAULT_GENRE
    cover_image_url: str = ""
    is_read: bool = False
    created_at: Optional[datetime] = None
    last_read_at: Optional[datetime] = None
    total_reading_seconds: int = 0
    current_reading_started_at: Optional[datetime] = None

    @property
    def is_reading(self) -> bool:
        return self.current_reading_started_at is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], book_id: Optional[str] = None) -> "Book":
        """Builds a Book from a Firestore document or a client JSON object."""
        return cls(
            id=str(book_id if book_id is not None else data.get("id", "")),
            title=str(data.get("title") or ""),
            author=str(data.get("author") or ""),
            genre=str(data.get("genre") or ""),
            cover_image_url=str(data.get("coverImageUrl") or ""),
            is_read=bool(data.get("isRead", False)),
            created_at=to_datetime(data.get("createdAt")),
            last_read_at=to_datetime(data.get("lastReadAt")),
            total_reading_seconds=legacy_total_seconds(data),
            current_reading_started_at=to_datetime(data.get("currentReadingStartedAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """API representation (camelCase, ISO timestamps)."""
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "genre": self.genre,
            "coverImageUrl": self.cover_image_url,
            "isRead": self.is_read,
            "createdAt": to_iso(self.created_at),
            "lastReadAt": to_iso(self.last_read_at),
            "totalReadingSeconds": self.total_reading_seconds,
            "currentReadingStartedAt": to_iso(self.current_reading_started_at),
            "isReading": self.is_reading,
        }


@dataclass
class Message:
    role: str  # "user" | "assistant"
    content: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        role = "user" if data.get("role") == "user" else "assistant"
        return cls(role=role, content=str(data.get("content") or ""))

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class FunctionCall:
    """A tool invocation resolved to a concrete book on the shelf."""
    name: str
    book_id: str
    book_title: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def action(self) -> Optional[str]:
        return self.payload.get("action")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FunctionCall":
        payload = {k: v for k, v in data.items() if k not in ("name", "bookId", "bookTitle")}
        return cls(
            name=str(data.get("name") or ""),
            book_id=str(data.get("bookId") or ""),
            book_title=str(data.get("bookTitle") or ""),
            payload=payload,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "bookId": self.book_id,
            "bookTitle": self.book_title,
            **self.payload,
        }


@dataclass
class ToolResult:
    success: bool
    message: str
    book_title: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "message": self.message, "bookTitle": self.book_title}


@dataclass
class UserProfile:
    display_name: str
    email: str
    photo_url: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls(
            display_name=str(data.get("displayName") or ""),
            email=str(data.get("email") or ""),
            photo_url=str(data.get("photoURL") or ""),
            created_at=to_datetime(data.get("createdAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "displayName": self.display_name,
            "email": self.email,
            "photoURL": self.photo_url,
            "createdAt": to_iso(self.created_at),
        }


@dataclass
class Recommendation:
    id: str
    title: str
    author: str
    amazon_url: str = ""
    reason: str = ""
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], rec_id: str) -> "Recommendation":
        return cls(
            id=rec_id,
            title=str(data.get("title") or ""),
            author=str(data.get("author") or ""),
            amazon_url=str(data.get("amazonUrl") or ""),
            reason=str(data.get("reason") or ""),
            created_at=to_datetime(data.get("createdAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "amazonUrl": self.amazon_url,
            "reason": self.reason,
            "createdAt": to_iso(self.created_at),
        }
