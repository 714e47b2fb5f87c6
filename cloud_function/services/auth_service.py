"""
Authentication - Firebase ID token verification and the per-request Session.

The session is created after a successful verification and passed
explicitly to every handler that needs the user; nothing is kept in module
state between requests.
"""
from typing import Callable, Optional

import google.auth.transport.requests
from google.oauth2 import id_token

from config import FIREBASE_PROJECT_ID
from services.errors import AuthError, InvalidStateError


class Session:
    def __init__(self, user_id: str, display_name: str = "", email: str = "", photo_url: str = ""):
        if not user_id:
            raise AuthError("Session requires a user id")
        self._user_id = user_id
        self.display_name = display_name
        self.email = email
        self.photo_url = photo_url
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def user_id(self) -> str:
        if not self._active:
            raise InvalidStateError("Session has been signed out")
        return self._user_id

    def close(self):
        self._active = False

    def __repr__(self):
        return f"Session(user_id={self._user_id!r}, active={self._active})"


def bearer_token(request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class AuthService:
    def __init__(self, store, verifier: Optional[Callable[[str], dict]] = None,
                 audience: str = FIREBASE_PROJECT_ID):
        """
        Args:
            store: FirestoreService used for the profile record
            verifier: Optional callable(token) -> claims; defaults to Firebase verification
            audience: Firebase project id the token must be issued for
        """
        self.store = store
        self.audience = audience
        self._verifier = verifier or self._verify_firebase_token
        self._transport = None

    def _verify_firebase_token(self, token: str) -> dict:
        if self._transport is None:
            self._transport = google.auth.transport.requests.Request()
        return id_token.verify_firebase_token(token, self._transport, audience=self.audience or None)

    def authenticate(self, request) -> Session:
        """Builds a Session from the request's bearer token or raises AuthError."""
        token = bearer_token(request)
        if not token:
            raise AuthError("ログインが必要です")
        try:
            claims = self._verifier(token)
        except Exception as e:
            raise AuthError(f"Invalid ID token: {e}") from e
        if not claims:
            raise AuthError("Invalid ID token")

        return Session(
            user_id=claims.get("user_id") or claims.get("sub") or "",
            display_name=claims.get("name") or "",
            email=claims.get("email") or "",
            photo_url=claims.get("picture") or "",
        )

    def optional_session(self, request) -> Optional[Session]:
        """Session when the request is signed in, None when its token is missing or rejected."""
        if bearer_token(request) is None:
            return None
        try:
            return self.authenticate(request)
        except AuthError as e:
            print(f"Warning: ignoring rejected token on optional route: {e}")
            return None

    def sign_in(self, session: Session) -> bool:
        """Persists the profile; True when this was the user's first login."""
        return self.store.create_or_update_user_profile(
            session.user_id,
            display_name=session.display_name,
            email=session.email,
            photo_url=session.photo_url,
        )

    def sign_out(self, session: Session):
        session.close()
