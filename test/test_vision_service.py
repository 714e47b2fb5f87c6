"""Tests for cover extraction."""

import base64
from unittest.mock import MagicMock

import pytest

from services.errors import UpstreamError
from services.gcs_service import decode_image_base64
from services.vision_service import VisionService, parse_book_info

IMAGE = base64.b64encode(b"\xff\xd8\xff\xe0fake-jpeg").decode()


def _vision(reply_text=None, error=None) -> VisionService:
    gemini = MagicMock()
    gemini.vision_model_name = "gemini-2.5-flash"
    if error:
        gemini.generate_text.side_effect = error
    else:
        gemini.generate_text.return_value = reply_text
    return VisionService(gemini)


class TestParseBookInfo:
    def test_fenced_json(self) -> None:
        text = '```json\n{"title": "人を動かす", "author": "D・カーネギー", "genre": "自己啓発"}\n```'
        assert parse_book_info(text) == {"title": "人を動かす", "author": "D・カーネギー", "genre": "自己啓発"}

    def test_no_json(self) -> None:
        assert parse_book_info("表紙が読み取れませんでした") == {"title": "", "author": "", "genre": ""}

    def test_malformed_json(self) -> None:
        assert parse_book_info('{"title": "x", ') == {"title": "", "author": "", "genre": ""}

    def test_extra_and_missing_keys(self) -> None:
        assert parse_book_info('{"title": "T", "isbn": "123"}') == {"title": "T", "author": "", "genre": ""}


class TestAnalyzeCover:
    def test_sends_image_and_prompt(self) -> None:
        vision = _vision('{"title":"T","author":"A","genre":"G"}')
        info = vision.analyze_cover(f"data:image/png;base64,{IMAGE}")

        content = vision.gemini.generate_text.call_args.args[0]
        assert content[0]["mime_type"] == "image/png"
        assert content[0]["data"].startswith(b"\xff\xd8")
        assert info == {"title": "T", "author": "A", "genre": "G"}

    def test_unparseable_reply_returns_empty_record(self) -> None:
        assert _vision("").analyze_cover(IMAGE) == {"title": "", "author": "", "genre": ""}

    def test_invalid_base64(self) -> None:
        with pytest.raises(ValueError):
            _vision("{}").analyze_cover("not base64!!")

    def test_upstream_failure(self) -> None:
        with pytest.raises(UpstreamError):
            _vision(error=UpstreamError("500")).analyze_cover(IMAGE)


def test_decode_defaults_to_jpeg() -> None:
    data, content_type = decode_image_base64(IMAGE)
    assert content_type == "image/jpeg"
    assert data.startswith(b"\xff\xd8")
