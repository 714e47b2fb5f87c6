"""Exceptions shared by the services and mapped to HTTP status codes in main.py."""


class InvalidStateError(Exception):
    """A state transition was requested from the wrong state (e.g. stop without start)."""


class BookNotFoundError(LookupError):
    """The requested book does not exist on the user's shelf."""

    def __init__(self, book_id: str):
        super().__init__(f"Book not found: {book_id}")
        self.book_id = book_id


class UpstreamError(Exception):
    """An external dependency (Gemini, Firestore, GCS) failed."""


class AuthError(Exception):
    """The request carries no valid identity."""
