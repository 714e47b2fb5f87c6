import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import google.generativeai as genai

from config import (
    GEMINI_API_KEY, CHAT_MODEL, VISION_MODEL,
    CHAT_TEMPERATURE, CHAT_MAX_OUTPUT_TOKENS,
)
from services.errors import UpstreamError


@dataclass
class ToolInvocation:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelReply:
    text: str = ""
    tool_call: Optional[ToolInvocation] = None


def parse_reply(response) -> ModelReply:
    """
    Extracts the first function call and the first part's text from a
    generate_content response. ``response.text`` is not used because it
    raises when the reply only carries a function call.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ModelReply()

    content = getattr(candidates[0], "content", None)
    parts = list(getattr(content, "parts", None) or [])

    tool_call = None
    for part in parts:
        fn = getattr(part, "function_call", None)
        if fn is not None and getattr(fn, "name", ""):
            tool_call = ToolInvocation(name=fn.name, args=dict(fn.args or {}))
            break

    text = getattr(parts[0], "text", "") if parts else ""
    return ModelReply(text=text or "", tool_call=tool_call)


class GeminiService:
    def __init__(self, api_key: Optional[str] = None):
        key = api_key or GEMINI_API_KEY
        if not key:
            print("ERROR: GEMINI_API_KEY not found", file=sys.stderr)
            raise ValueError("GEMINI_API_KEY is not set.")
        genai.configure(api_key=key)
        self.chat_model_name = CHAT_MODEL
        self.vision_model_name = VISION_MODEL

    def generate_text(self, content: Any, model_name: Optional[str] = None,
                      generation_config: Optional[Dict] = None) -> str:
        """Single round-trip, no retry. Returns the reply text ('' when empty)."""
        model = genai.GenerativeModel(
            model_name=model_name or self.vision_model_name,
            generation_config=generation_config,
        )
        try:
            response = model.generate_content(content)
        except Exception as e:
            print(f"  Gemini API error: {e}", file=sys.stderr)
            raise UpstreamError(f"Gemini API error: {e}") from e

        return parse_reply(response).text

    def chat(self, contents: List[Dict], system_instruction: str,
             tools: Optional[List[Dict]] = None, model_name: Optional[str] = None,
             generation_config: Optional[Dict] = None) -> ModelReply:
        """Sends the whole conversation with the tool declarations in one request."""
        model = genai.GenerativeModel(
            model_name=model_name or self.chat_model_name,
            system_instruction=system_instruction,
            tools=tools,
            generation_config=generation_config or {
                "temperature": CHAT_TEMPERATURE,
                "max_output_tokens": CHAT_MAX_OUTPUT_TOKENS,
            },
        )
        try:
            response = model.generate_content(contents)
        except Exception as e:
            print(f"  Gemini API error: {e}", file=sys.stderr)
            raise UpstreamError(f"Gemini API error: {e}") from e

        return parse_reply(response)
