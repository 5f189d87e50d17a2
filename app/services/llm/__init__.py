from typing import Optional

from app.services.llm.base import ChatPrompt, LLMError, LLMProvider, LLMResponse
from app.services.llm.chat_completions import (
    ChatCompletionsProvider,
    DeepSeekProvider,
    LovableProvider,
    OpenAIProvider,
    OpenRouterProvider,
)
from app.services.llm.gemini_provider import GeminiProvider

PROVIDERS: dict[str, type[LLMProvider]] = {
    "lovable": LovableProvider,
    "openai": OpenAIProvider,
    "openrouter": OpenRouterProvider,
    "deepseek": DeepSeekProvider,
    "gemini": GeminiProvider,
}


def get_provider_class(vendor: Optional[str]) -> Optional[type[LLMProvider]]:
    return PROVIDERS.get((vendor or "").strip().lower())


__all__ = [
    "PROVIDERS",
    "ChatCompletionsProvider",
    "ChatPrompt",
    "DeepSeekProvider",
    "GeminiProvider",
    "LLMError",
    "LLMProvider",
    "LLMResponse",
    "LovableProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "get_provider_class",
]
