from typing import Any

from app.services.llm.base import ChatPrompt, LLMProvider


class ChatCompletionsProvider(LLMProvider):
    """Vendors speaking the OpenAI chat-completions dialect."""

    base_url: str = ""
    supports_images = True

    def endpoint(self) -> str:
        return self.base_url

    def build_request(self, prompt: ChatPrompt, *, temperature: float, max_tokens: int) -> dict:
        user_content: Any = prompt.user
        if prompt.image_url:
            user_content = [
                {"type": "text", "text": prompt.user},
                {"type": "image_url", "image_url": {"url": prompt.image_url}},
            ]
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": user_content},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    def authenticate(self, headers: dict, params: dict) -> None:
        headers["Authorization"] = f"Bearer {self.api_key}"

    def extract_text(self, data: dict) -> str:
        choices = data.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        content = message.get("content")
        return content if isinstance(content, str) else ""


class OpenAIProvider(ChatCompletionsProvider):
    vendor = "openai"
    base_url = "https://api.openai.com/v1/chat/completions"
    default_model = "gpt-4o-mini"


class OpenRouterProvider(ChatCompletionsProvider):
    vendor = "openrouter"
    base_url = "https://openrouter.ai/api/v1/chat/completions"
    default_model = "openrouter/auto"

    REFERER = "https://balasinaja.com"
    TITLE = "BalasinAja Autoreply"

    def authenticate(self, headers: dict, params: dict) -> None:
        super().authenticate(headers, params)
        headers["HTTP-Referer"] = self.REFERER
        headers["X-Title"] = self.TITLE


class DeepSeekProvider(ChatCompletionsProvider):
    vendor = "deepseek"
    base_url = "https://api.deepseek.com/v1/chat/completions"
    default_model = "deepseek-chat"
    supports_images = False


class LovableProvider(ChatCompletionsProvider):
    vendor = "lovable"
    base_url = "https://api.lovable.app/v1/ai/chat"
    default_model = "google/gemini-2.5-flash"
