import os

# === Configuration ===
PROJECT_ID = os.environ.get("GCP_PROJECT_ID", "")
# Audience used when verifying Firebase ID tokens
FIREBASE_PROJECT_ID = os.environ.get("FIREBASE_PROJECT_ID", PROJECT_ID)

# Bucket holding config/system_config.json
BUCKET_NAME = os.environ.get("GCS_BUCKET_NAME", "")
# Bucket for uploaded cover images (users/{uid}/books/...)
IMAGES_BUCKET_NAME = os.environ.get(
    "IMAGES_BUCKET_NAME",
    f"{PROJECT_ID}.firebasestorage.app" if PROJECT_ID else ""
)

# API Key
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")

ENABLE_CLOUD_LOGGING = os.environ.get("ENABLE_CLOUD_LOGGING", "true").lower() not in ("0", "false", "no")

# === GCS-based Configuration Loader ===
# Load dynamic configuration from GCS (with caching and env fallback)
_config_loader = None

def get_config_loader():
    """Get or create the global config loader instance."""
    global _config_loader
    if _config_loader is None and BUCKET_NAME:
        from services.config_loader import ConfigLoader
        _config_loader = ConfigLoader(BUCKET_NAME)
    return _config_loader

# Load configuration with GCS priority and env fallback
def get_config_value(key_path: str, env_var: str = None, default=None):
    """
    Get configuration value with priority: GCS config > ENV var > default.

    Args:
        key_path: Dot-notation path in GCS config (e.g., 'gemini.chat_model')
        env_var: Optional environment variable name to check as fallback
        default: Default value if not found
    """
    loader = get_config_loader()

    if loader:
        value = loader.get(key_path)
        if value is not None:
            return value

    if env_var:
        env_value = os.environ.get(env_var)
        if env_value is not None:
            return env_value

    return default

# === Gemini Configuration ===
CHAT_MODEL = get_config_value(
    "gemini.chat_model",
    "CHAT_MODEL",
    "gemini-2.5-flash"
)

# Model for cover extraction (must support image input)
VISION_MODEL = get_config_value(
    "gemini.vision_model",
    "VISION_MODEL",
    "gemini-2.5-flash"
)

CHAT_TEMPERATURE = float(get_config_value(
    "chat.temperature",
    "CHAT_TEMPERATURE",
    "0.7"
))

CHAT_MAX_OUTPUT_TOKENS = int(get_config_value(
    "chat.max_output_tokens",
    "CHAT_MAX_OUTPUT_TOKENS",
    "512"
))

VISION_TEMPERATURE = float(get_config_value(
    "vision.temperature",
    "VISION_TEMPERATURE",
    "0.1"
))

VISION_MAX_OUTPUT_TOKENS = int(get_config_value(
    "vision.max_output_tokens",
    "VISION_MAX_OUTPUT_TOKENS",
    "1024"
))

# Dates in the chat context are rendered in this timezone
APP_TIMEZONE = get_config_value(
    "app.timezone",
    "APP_TIMEZONE",
    "Asia/Tokyo"
)
