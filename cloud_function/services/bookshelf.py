"""
Bookshelf - client-side state of one user's shelf.

Part of the client-side presentation model (with services/conversation.py):
the state a shelf screen holds between requests. The HTTP handlers do not
use it; a client embeds it on top of FirestoreService.

Writes are optimistic: the local book is changed first, the store is
called, and a failed store call applies the compensating change that puts
the exact previous field values back.
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from models.book import Book
from models.timestamps import utc_now
from services.errors import BookNotFoundError
from services.reading_timer import format_clock, live_elapsed, sort_books


def shelf_stats(books: Sequence[Book]) -> Dict[str, int]:
    read = sum(1 for b in books if b.is_read)
    return {
        "totalBooks": len(books),
        "readBooks": read,
        "unreadBooks": len(books) - read,
        "genres": len({b.genre for b in books if b.genre}),
        "readingNow": sum(1 for b in books if b.is_reading),
        "totalReadingSeconds": sum(b.total_reading_seconds for b in books),
    }


@dataclass
class LocalMutation:
    """A tentative field change on a local Book together with its inverse."""
    book: Book
    changes: Dict[str, Any]
    previous: Dict[str, Any] = field(default_factory=dict)

    def apply(self):
        self.previous = {name: getattr(self.book, name) for name in self.changes}
        for name, value in self.changes.items():
            setattr(self.book, name, value)

    def revert(self):
        for name, value in self.previous.items():
            setattr(self.book, name, value)


class Bookshelf:
    def __init__(self, store, session, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.session = session
        self.clock = clock
        self.books: List[Book] = []

    def refresh(self) -> List[Book]:
        self.books = self.store.get_books(self.session.user_id)
        return self.books

    def get(self, book_id: str) -> Book:
        for book in self.books:
            if book.id == book_id:
                return book
        raise BookNotFoundError(book_id)

    def ordered(self) -> List[Book]:
        return sort_books(self.books)

    def has_active_session(self) -> bool:
        return any(b.is_reading for b in self.books)

    def live_elapsed(self, book_id: str) -> int:
        return live_elapsed(self.get(book_id), self.clock())

    def timer_label(self, book_id: str) -> str:
        return format_clock(self.live_elapsed(book_id))

    def stats(self) -> Dict[str, int]:
        return shelf_stats(self.books)

    def _optimistic(self, book: Book, changes: Dict[str, Any], remote: Callable[[], Any]):
        mutation = LocalMutation(book, changes)
        mutation.apply()
        try:
            return remote()
        except Exception:
            mutation.revert()
            raise

    def toggle_read(self, book_id: str) -> bool:
        book = self.get(book_id)
        new_status = not book.is_read
        self._optimistic(
            book, {"is_read": new_status},
            lambda: self.store.update_book_read_status(self.session.user_id, book_id, new_status),
        )
        return new_status

    def start_reading(self, book_id: str) -> datetime:
        book = self.get(book_id)
        started_at = self._optimistic(
            book, {"current_reading_started_at": self.clock()},
            lambda: self.store.start_reading(self.session.user_id, book_id),
        )
        book.current_reading_started_at = started_at
        return started_at

    def stop_reading(self, book_id: str) -> int:
        book = self.get(book_id)
        now = self.clock()
        previous_total = book.total_reading_seconds
        elapsed = self._optimistic(
            book,
            {
                "total_reading_seconds": previous_total + live_elapsed(book, now),
                "last_read_at": now,
                "current_reading_started_at": None,
            },
            lambda: self.store.stop_reading(self.session.user_id, book_id),
        )
        # The store's figure is authoritative
        book.total_reading_seconds = previous_total + elapsed
        return elapsed


class ElapsedTicker:
    """
    Re-renders the shelf every ``interval`` seconds while a session is
    active. Display only: it never writes, and it stops itself once no book
    is being read.

    ``on_tick`` runs outside the lock, so it may call ``cancel()``. A tick
    that was already due when the ticker was cancelled does not reschedule.
    """

    def __init__(self, shelf: Bookshelf, on_tick: Callable[[List[Book]], None], interval: float = 1.0):
        self.shelf = shelf
        self.on_tick = on_tick
        self.interval = interval
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._cancelled = False
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._timer is not None

    def start(self):
        with self._lock:
            if self._timer is None and self.shelf.has_active_session():
                self._cancelled = False
                self._schedule()

    def cancel(self):
        with self._lock:
            self._cancelled = True
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _schedule(self):
        if self._timer is not None:
            self._timer.cancel()
        self._generation += 1
        self._timer = threading.Timer(self.interval, self.tick, args=(self._generation,))
        self._timer.daemon = True
        self._timer.start()

    def _stale(self, generation: Optional[int]) -> bool:
        return self._cancelled or (generation is not None and generation != self._generation)

    def tick(self, generation: Optional[int] = None):
        """One refresh. ``generation`` identifies the timer that fired; None for a direct call."""
        with self._lock:
            if self._stale(generation):
                return
            if not self.shelf.has_active_session():
                self._timer = None
                return
            books = self.shelf.ordered()

        self.on_tick(books)

        with self._lock:
            if not self._stale(generation):
                self._schedule()
