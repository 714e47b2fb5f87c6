"""Tests for bearer-token authentication and the Session lifecycle."""

from types import SimpleNamespace

import pytest

from services.auth_service import AuthService, Session, bearer_token
from services.errors import AuthError, InvalidStateError

CLAIMS = {"user_id": "user-1", "name": "読書 太郎", "email": "taro@example.com", "picture": "https://p/1.png"}


def _request(authorization=None):
    headers = {"Authorization": authorization} if authorization is not None else {}
    return SimpleNamespace(headers=headers)


def _auth(store, claims=CLAIMS, error=None) -> AuthService:
    def verifier(token):
        if error:
            raise error
        assert token == "good-token"
        return claims
    return AuthService(store, verifier=verifier)


class TestBearerToken:
    @pytest.mark.parametrize("header,expected", [
        ("Bearer abc", "abc"),
        ("bearer  abc ", "abc"),
        ("Basic abc", None),
        ("Bearer ", None),
        ("", None),
    ])
    def test_parse(self, header, expected) -> None:
        assert bearer_token(_request(header)) == expected

    def test_missing_header(self) -> None:
        assert bearer_token(_request()) is None


class TestAuthService:
    def test_authenticate(self, store) -> None:
        session = _auth(store).authenticate(_request("Bearer good-token"))
        assert session.user_id == "user-1"
        assert session.display_name == "読書 太郎"
        assert session.photo_url == "https://p/1.png"

    def test_sub_claim_fallback(self, store) -> None:
        session = _auth(store, claims={"sub": "uid-9"}).authenticate(_request("Bearer good-token"))
        assert session.user_id == "uid-9"

    def test_missing_token(self, store) -> None:
        with pytest.raises(AuthError):
            _auth(store).authenticate(_request())

    def test_rejected_token(self, store) -> None:
        with pytest.raises(AuthError):
            _auth(store, error=ValueError("expired")).authenticate(_request("Bearer good-token"))

    def test_claims_without_user(self, store) -> None:
        with pytest.raises(AuthError):
            _auth(store, claims={"email": "x@example.com"}).authenticate(_request("Bearer good-token"))

    def test_optional_session(self, store) -> None:
        auth = _auth(store)
        assert auth.optional_session(_request()) is None
        assert auth.optional_session(_request("Bearer good-token")).user_id == "user-1"

    def test_optional_session_ignores_rejected_token(self, store) -> None:
        auth = _auth(store, error=ValueError("expired"))
        assert auth.optional_session(_request("Bearer good-token")) is None

    def test_sign_in_creates_profile_once(self, store) -> None:
        auth = _auth(store)
        session = auth.authenticate(_request("Bearer good-token"))

        assert auth.sign_in(session) is True
        assert auth.sign_in(session) is False
        assert store.get_user_profile("user-1").email == "taro@example.com"

    def test_sign_out_closes_session(self, store) -> None:
        auth = _auth(store)
        session = auth.authenticate(_request("Bearer good-token"))
        auth.sign_out(session)

        assert not session.active
        with pytest.raises(InvalidStateError):
            session.user_id


def test_session_requires_user_id() -> None:
    with pytest.raises(AuthError):
        Session(user_id="")
