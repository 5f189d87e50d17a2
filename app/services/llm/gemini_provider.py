import base64
from typing import Optional

import httpx

from app.logging_config import get_logger
from app.services.llm.base import ChatPrompt, LLMProvider

logger = get_logger("llm.gemini")

IMAGE_FETCH_TIMEOUT_SECONDS = 15.0


def fetch_image_as_base64(url: str) -> tuple[Optional[str], str]:
    """Download an image and return (base64 data, mime type); data is None on failure."""
    try:
        with httpx.Client(timeout=IMAGE_FETCH_TIMEOUT_SECONDS, follow_redirects=True) as client:
            response = client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"Error fetching image: {e}")
        return None, "image/jpeg"

    if response.status_code != 200 or not response.content:
        logger.error(f"Error fetching image: status={response.status_code}")
        return None, "image/jpeg"

    mime_type = (response.headers.get("content-type") or "image/jpeg").split(";")[0].strip()
    if not mime_type.startswith("image/"):
        mime_type = "image/jpeg"
    return base64.b64encode(response.content).decode("ascii"), mime_type


class GeminiProvider(LLMProvider):
    vendor = "gemini"
    default_model = "gemini-2.5-flash"
    supports_images = True

    base_url = "https://generativelanguage.googleapis.com/v1beta/models"

    def endpoint(self) -> str:
        return f"{self.base_url}/{self.model}:generateContent"

    def build_request(self, prompt: ChatPrompt, *, temperature: float, max_tokens: int) -> dict:
        parts: list[dict] = [{"text": f"{prompt.system}\n\n{prompt.user}"}]
        if prompt.image_url:
            data, mime_type = fetch_image_as_base64(prompt.image_url)
            if data:
                parts.append({"inlineData": {"mimeType": mime_type, "data": data}})
        return {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }

    def authenticate(self, headers: dict, params: dict) -> None:
        params["key"] = self.api_key

    def extract_text(self, data: dict) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        if not parts:
            return ""
        text = parts[0].get("text")
        return text if isinstance(text, str) else ""
