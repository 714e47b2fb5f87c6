"""Tests for the GCS-backed configuration loader."""

import json
from unittest.mock import MagicMock

from services.config_loader import ConfigLoader


def _client(document=None, error=None):
    client = MagicMock()
    blob = client.bucket.return_value.blob.return_value
    if error:
        blob.exists.side_effect = error
    else:
        blob.exists.return_value = document is not None
        blob.download_as_text.return_value = json.dumps(document or {})
    return client


class TestConfigLoader:
    def test_dot_path_lookup(self) -> None:
        loader = ConfigLoader("bucket", client=_client({"gemini": {"chat_model": "gemini-2.0-flash"}}))
        assert loader.get("gemini.chat_model") == "gemini-2.0-flash"
        assert loader.get("gemini.vision_model", "fallback") == "fallback"

    def test_defaults_when_document_missing(self) -> None:
        loader = ConfigLoader("bucket", client=_client())
        assert loader.get("app.timezone") == "Asia/Tokyo"
        assert loader.get("chat.max_output_tokens") == 512

    def test_defaults_when_storage_fails(self) -> None:
        loader = ConfigLoader("bucket", client=_client(error=RuntimeError("403")))
        assert loader.get("vision.temperature") == 0.1

    def test_cache_ttl(self) -> None:
        client = _client({"app": {"timezone": "UTC"}})
        loader = ConfigLoader("bucket", cache_ttl=300, client=client)

        loader.get("app.timezone")
        loader.get("app.timezone")

        assert client.bucket.return_value.blob.return_value.download_as_text.call_count == 1
