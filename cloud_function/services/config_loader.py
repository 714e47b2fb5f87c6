"""
Configuration Loader Service - Loads config from GCS with caching.

Settings that operators tune without redeploying (model ids, generation
parameters, display timezone) live in a JSON document in GCS. Environment
variables remain the fallback.
"""
import json
import time
from typing import Any, Optional
from google.cloud import storage


class ConfigLoader:
    """Loads configuration from GCS with local cache and fallback."""

    def __init__(self, bucket_name: str, config_path: str = "config/system_config.json",
                 cache_ttl: int = 0, client: Optional[storage.Client] = None):
        """
        Initialize the config loader.

        Args:
            bucket_name: GCS bucket name
            config_path: Path to config file in GCS (default: config/system_config.json)
            cache_ttl: Cache TTL in seconds. 0 = no caching (default).
            client: Optional pre-built storage client
        """
        self.bucket_name = bucket_name
        self.config_path = config_path
        self._cache = None
        self._cache_time = None
        self.CACHE_TTL = cache_ttl
        self._client = client

    def _get_storage_client(self):
        """Lazy initialization of storage client."""
        if self._client is None:
            self._client = storage.Client()
        return self._client

    def get_config(self, force_refresh: bool = False) -> dict:
        """
        Returns cached or fresh config from GCS.

        Args:
            force_refresh: If True, bypasses cache and reloads from GCS
        """
        if not force_refresh and self.CACHE_TTL > 0 and self._cache is not None:
            if self._cache_time and (time.time() - self._cache_time) < self.CACHE_TTL:
                return self._cache

        try:
            client = self._get_storage_client()
            bucket = client.bucket(self.bucket_name)
            blob = bucket.blob(self.config_path)

            if not blob.exists():
                print(f"Warning: Config file {self.config_path} not found in GCS. Using defaults.")
                return self._get_default_config()

            config = json.loads(blob.download_as_text())

            self._cache = config
            self._cache_time = time.time()

            print(f"Config loaded from GCS: {self.config_path}")
            return config

        except Exception as e:
            print(f"Error loading config from GCS: {e}. Using defaults/cache.")
            return self._cache if self._cache else self._get_default_config()

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get nested config value using dot notation.

        Example:
            >>> loader.get('gemini.chat_model', 'gemini-2.5-flash')
        """
        config = self.get_config()

        value = config
        for key in key_path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def _get_default_config(self) -> dict:
        """Fallback used when the GCS config is unavailable."""
        return {
            "version": "1.0",
            "gemini": {
                "chat_model": "gemini-2.5-flash",
                "vision_model": "gemini-2.5-flash"
            },
            "chat": {
                "temperature": 0.7,
                "max_output_tokens": 512
            },
            "vision": {
                "temperature": 0.1,
                "max_output_tokens": 1024
            },
            "app": {
                "timezone": "Asia/Tokyo"
            }
        }
