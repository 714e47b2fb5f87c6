import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from services.auth_service import Session
from services.errors import AuthError
from services.logging_service import RequestLogger

JSON_HEADERS = {"Content-Type": "application/json; charset=utf-8"}


def json_response(payload: Any, status: int = 200):
    return json.dumps(payload, ensure_ascii=False), status, JSON_HEADERS


def get_json(request) -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@dataclass
class RequestContext:
    services: Any
    logger: RequestLogger
    session: Optional[Session] = None
    params: Dict[str, str] = field(default_factory=dict)

    @property
    def user_id(self) -> str:
        if self.session is None:
            raise AuthError("ログインが必要です")
        return self.session.user_id


def text_field(data: Dict[str, Any], key: str) -> Optional[str]:
    """String value of an optional body field; None when absent, ValueError when not a string."""
    value = data.get(key)
    if value is None or isinstance(value, str):
        return value
    raise ValueError(f"{key} must be a string")
