"""
Cover extraction - reads title/author/genre from a photographed book cover.

The model is asked for bare JSON; anything it returns that does not contain
a parseable object yields an empty record instead of an error.
"""
import json
import re
from typing import Dict

from config import VISION_TEMPERATURE, VISION_MAX_OUTPUT_TOKENS
from services.gcs_service import decode_image_base64
from services.gemini_service import GeminiService

EXTRACTION_PROMPT = """本の表紙画像から以下のJSON形式で情報を抽出:
{"title":"タイトル","author":"著者","genre":"ジャンル"}
JSONのみ出力。"""

FIELDS = ("title", "author", "genre")


def empty_book_info() -> Dict[str, str]:
    return {key: "" for key in FIELDS}


def parse_book_info(text: str) -> Dict[str, str]:
    """Takes the outermost {...} span of the reply and keeps the three known fields."""
    match = re.search(r"\{[\s\S]*\}", text or "")
    if not match:
        return empty_book_info()
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return empty_book_info()
    if not isinstance(data, dict):
        return empty_book_info()

    info = empty_book_info()
    for key in FIELDS:
        value = data.get(key)
        if isinstance(value, str):
            info[key] = value.strip()
        elif value is not None:
            info[key] = str(value)
    return info


class VisionService:
    def __init__(self, gemini: GeminiService):
        self.gemini = gemini

    def analyze_cover(self, image_base64: str) -> Dict[str, str]:
        """
        Args:
            image_base64: Cover image, optionally as a data URI

        Returns:
            {"title", "author", "genre"}; all empty when nothing could be read.

        Raises:
            ValueError: when the image is missing or not base64
            UpstreamError: when the Gemini call fails
        """
        data, mime_type = decode_image_base64(image_base64)
        print(f"Analyzing cover image: {len(data)} bytes ({mime_type})")

        text = self.gemini.generate_text(
            [{"mime_type": mime_type, "data": data}, EXTRACTION_PROMPT],
            model_name=self.gemini.vision_model_name,
            generation_config={
                "temperature": VISION_TEMPERATURE,
                "max_output_tokens": VISION_MAX_OUTPUT_TOKENS,
            },
        )

        info = parse_book_info(text)
        if not any(info.values()):
            print("No JSON found in vision response, returning empty record")
        return info
