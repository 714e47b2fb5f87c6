
import os
import sys
from datetime import datetime, timezone

from google.cloud import firestore

# Add cloud_function to sys.path
sys.path.append(os.path.join(os.path.dirname(__file__), '../cloud_function'))

from models.book import Book
from services.reading_timer import elapsed_seconds, format_reading_time

PROJECT_ID = os.environ.get("GCP_PROJECT_ID", "")
# Sessions running longer than this are probably forgotten timers
THRESHOLD_HOURS = float(os.environ.get("SESSION_THRESHOLD_HOURS", "6"))


def check_active_sessions(threshold_hours=THRESHOLD_HOURS):
    client = firestore.Client(project=PROJECT_ID or None)
    now = datetime.now(timezone.utc)

    print(f"Checking active reading sessions (threshold: {threshold_hours}h)...")

    stale = []
    for doc in client.collection_group("books").stream():
        data = doc.to_dict() or {}
        book = Book.from_dict(data, book_id=doc.id)
        if not book.is_reading:
            continue

        elapsed = elapsed_seconds(book.current_reading_started_at, now)
        user_id = doc.reference.parent.parent.id

        print(f"User: {user_id}")
        print(f"  Book: {book.title} ({book.id})")
        print(f"  Started: {book.current_reading_started_at.isoformat()}")
        print(f"  Running: {format_reading_time(elapsed)}")
        print("-" * 30)

        if elapsed > threshold_hours * 3600:
            stale.append((user_id, book.id))

    print(f"\n{len(stale)} session(s) over threshold")
    return stale


if __name__ == "__main__":
    check_active_sessions()
