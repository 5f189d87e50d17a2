from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

from app.logging_config import get_logger

logger = get_logger("llm")

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 512


class LLMError(Exception):
    """Vendor call failed or returned an unusable payload."""


@dataclass
class ChatPrompt:
    system: str
    user: str
    image_url: Optional[str] = None


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[dict] = None


@dataclass
class PreparedRequest:
    url: str
    headers: dict
    params: dict
    json: dict


class LLMProvider(ABC):
    """One AI vendor: how to shape, authenticate and read a completion call.

    Prompt assembly is shared; subclasses only describe the wire format.
    """

    vendor: str = ""
    default_model: str = ""
    supports_images: bool = False

    def __init__(self, api_key: str, model: Optional[str] = None, timeout_seconds: float = 60.0):
        self.api_key = api_key
        self.model = model or self.default_model
        self.timeout_seconds = timeout_seconds

    @abstractmethod
    def endpoint(self) -> str:
        """Vendor URL for a completion call."""

    @abstractmethod
    def build_request(self, prompt: ChatPrompt, *, temperature: float, max_tokens: int) -> dict:
        """JSON body for the completion call."""

    @abstractmethod
    def authenticate(self, headers: dict, params: dict) -> None:
        """Attach credentials to the outgoing request in place."""

    @abstractmethod
    def extract_text(self, data: dict) -> str:
        """Pull the completion text out of a decoded response body."""

    def prepare(
        self,
        prompt: ChatPrompt,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> PreparedRequest:
        if prompt.image_url and not self.supports_images:
            logger.debug(f"{self.vendor} does not accept images, sending text only")
            prompt = ChatPrompt(system=prompt.system, user=prompt.user)

        headers = {"Content-Type": "application/json"}
        params: dict = {}
        self.authenticate(headers, params)
        return PreparedRequest(
            url=self.endpoint(),
            headers=headers,
            params=params,
            json=self.build_request(prompt, temperature=temperature, max_tokens=max_tokens),
        )

    def generate(
        self,
        prompt: ChatPrompt,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> LLMResponse:
        request = self.prepare(prompt, temperature=temperature, max_tokens=max_tokens)
        logger.debug(f"{self.vendor} request: model={self.model}")

        with httpx.Client(timeout=self.timeout_seconds) as client:
            response = client.post(request.url, headers=request.headers, params=request.params, json=request.json)

        logger.debug(f"{self.vendor} response status: {response.status_code}")
        if response.status_code != 200:
            raise LLMError(f"{self.vendor} API error: {response.status_code} - {response.text[:500]}")

        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(f"{self.vendor} returned non-JSON body") from e
        if not isinstance(data, dict):
            raise LLMError(f"{self.vendor} returned unexpected body type {type(data).__name__}")

        return LLMResponse(
            content=(self.extract_text(data) or "").strip(),
            model=data.get("model") or self.model,
            usage=data.get("usage") or data.get("usageMetadata"),
        )
