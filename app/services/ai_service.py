from typing import Iterable, Optional

import httpx

from app.config import settings
from app.logging_config import get_logger
from app.services.llm import ChatPrompt, LLMError, LLMProvider, get_provider_class
from app.services.settings_service import AISettings, DEFAULT_SYSTEM_PROMPT

logger = get_logger("ai_service")

REPLY_STYLE_PREAMBLE = (
    "You are the assistant behind a WhatsApp autoresponder. Keep replies concise, friendly, and helpful. "
    "Answer in the language of the user message (likely Indonesian). Prefer answers suggested in the "
    "knowledge base when relevant. Avoid heavy Markdown formatting."
)

HISTORY_HEADER = "=== Riwayat Percakapan (dari lama ke baru) ==="
HISTORY_FOOTER = "=== Akhir Riwayat ==="
USER_LABEL = "Pengguna"
ASSISTANT_LABEL = "Asisten"


def format_history_block(history: Optional[Iterable]) -> str:
    """Render inbox rows (newest first) as an oldest-first transcript."""
    rows = list(history or [])
    if not rows:
        return ""

    lines = []
    for row in reversed(rows):
        inbound = getattr(row, "inbox_message", None)
        reply = getattr(row, "reply_message", None)
        if inbound:
            lines.append(f"{USER_LABEL}: {inbound}")
        if reply:
            lines.append(f"{ASSISTANT_LABEL}: {reply}")

    if not lines:
        return ""
    body = "\n".join(lines)
    return f"\n\n{HISTORY_HEADER}\n{body}\n{HISTORY_FOOTER}\n\n"


def build_user_prompt(question: str, context: str = "", history_block: str = "") -> str:
    if context:
        return (
            f"Gunakan knowledge base berikut untuk menjawab:\n\n{context}{history_block}\n"
            f"Pertanyaan saat ini: {question}"
        )
    return f"{history_block}Pertanyaan: {question}"


def build_system_prompt(system_prompt: Optional[str]) -> str:
    base = (system_prompt or "").strip() or DEFAULT_SYSTEM_PROMPT
    return f"{base}\n\n{REPLY_STYLE_PREAMBLE}"


def build_chat_prompt(
    ai: AISettings,
    question: str,
    context: str = "",
    history: Optional[Iterable] = None,
    image_url: Optional[str] = None,
) -> ChatPrompt:
    return ChatPrompt(
        system=build_system_prompt(ai.system_prompt),
        user=build_user_prompt(question, context, format_history_block(history)),
        image_url=image_url or None,
    )


def get_llm_provider(ai: AISettings) -> Optional[LLMProvider]:
    """Instantiate the tenant's vendor adapter, or None when it cannot be used."""
    provider_class = get_provider_class(ai.vendor)
    if provider_class is None:
        logger.warning(f"AI vendor not configured or unknown: {ai.vendor}")
        return None

    api_key = ai.api_key
    if not api_key and provider_class.vendor == "lovable":
        api_key = settings.lovable_api_key or ""
    if not api_key:
        logger.error(f"AI API key not configured for vendor: {ai.vendor}")
        return None

    return provider_class(api_key=api_key, model=ai.model, timeout_seconds=settings.ai_timeout_seconds)


def generate_ai_reply(
    ai: AISettings,
    question: str,
    context: str = "",
    history: Optional[Iterable] = None,
    image_url: Optional[str] = None,
) -> str:
    """Ask the configured vendor for a reply.

    Returns "" when nothing usable came back, including vendor errors.
    """
    provider = get_llm_provider(ai)
    if provider is None:
        return ""

    prompt = build_chat_prompt(ai, question, context, history, image_url)
    logger.info(
        "Calling AI vendor",
        extra={"context": {"vendor": provider.vendor, "model": provider.model, "has_image": bool(image_url)}},
    )

    try:
        response = provider.generate(prompt)
    except (LLMError, httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"Error generating AI reply: {e}")
        return ""
    except (KeyError, TypeError, AttributeError, IndexError) as e:
        logger.error(f"Malformed AI vendor response: {e}")
        return ""

    if not response.content:
        logger.warning(f"{provider.vendor} returned an empty completion")
    return response.content
