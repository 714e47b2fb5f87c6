"""
Reading-session timer arithmetic.

Pure functions only: the store performs the writes, the bookshelf model
recomputes the projection once per second for display.
"""
import math
from datetime import datetime
from typing import Iterable, List, Optional

from models.book import Book


def elapsed_seconds(started_at: datetime, now: datetime) -> int:
    """Whole seconds between two instants; a negative span (clock skew) counts as 0."""
    return max(0, math.floor((now - started_at).total_seconds()))


def live_elapsed(book: Book, now: datetime) -> int:
    """Elapsed time of the in-progress session, 0 when none is active."""
    if book.current_reading_started_at is None:
        return 0
    return elapsed_seconds(book.current_reading_started_at, now)


def accumulate(total_seconds: int, started_at: datetime, now: datetime) -> tuple:
    """Returns (elapsed, new_total) for a session ending at ``now``."""
    elapsed = elapsed_seconds(started_at, now)
    return elapsed, total_seconds + elapsed


def sort_key(book: Book):
    last_read = book.last_read_at.timestamp() if book.last_read_at else None
    return (
        0 if book.is_reading else 1,
        -last_read if last_read is not None else math.inf,
        -book.total_reading_seconds,
    )


def sort_books(books: Iterable[Book]) -> List[Book]:
    """
    Active sessions first, then most recently read (never read = earliest),
    then most accumulated reading time.
    """
    return sorted(books, key=sort_key)


def format_reading_time(seconds: Optional[int]) -> str:
    if not seconds:
        return "0秒"
    if seconds < 60:
        return f"{seconds}秒"
    if seconds < 3600:
        return f"{seconds // 60}分{seconds % 60}秒"
    hours = seconds // 3600
    mins = (seconds % 3600) // 60
    if mins == 0:
        return f"{hours}時間"
    return f"{hours}時間{mins}分"


def format_reading_minutes(minutes: Optional[int]) -> str:
    if not minutes:
        return "0分"
    if minutes < 60:
        return f"{minutes}分"
    hours = minutes // 60
    mins = minutes % 60
    if mins == 0:
        return f"{hours}時間"
    return f"{hours}時間{mins}分"


def format_clock(seconds: int) -> str:
    """HH:MM:SS (or MM:SS under an hour) for the running-timer display."""
    hours, rest = divmod(max(0, seconds), 3600)
    mins, secs = divmod(rest, 60)
    if hours:
        return f"{hours:d}:{mins:02d}:{secs:02d}"
    return f"{mins:02d}:{secs:02d}"
