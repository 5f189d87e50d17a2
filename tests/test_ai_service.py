from types import SimpleNamespace
from unittest.mock import Mock, patch

import httpx

from app.services.ai_service import (
    ASSISTANT_LABEL,
    HISTORY_FOOTER,
    HISTORY_HEADER,
    REPLY_STYLE_PREAMBLE,
    USER_LABEL,
    build_chat_prompt,
    build_system_prompt,
    build_user_prompt,
    format_history_block,
    generate_ai_reply,
    get_llm_provider,
)
from app.services.llm import LLMError, LLMResponse, LovableProvider, OpenAIProvider
from app.services.settings_service import DEFAULT_SYSTEM_PROMPT, AISettings


def make_inbox_row(inbox_message, reply_message=None):
    return SimpleNamespace(inbox_message=inbox_message, reply_message=reply_message)


class TestFormatHistoryBlock:
    def test_empty_history(self):
        assert format_history_block([]) == ""
        assert format_history_block(None) == ""

    def test_renders_oldest_first(self):
        history = [make_inbox_row("kedua", "balasan kedua"), make_inbox_row("pertama", "balasan pertama")]

        block = format_history_block(history)

        assert block.startswith(f"\n\n{HISTORY_HEADER}\n")
        assert block.endswith(f"{HISTORY_FOOTER}\n\n")
        assert block.index(f"{USER_LABEL}: pertama") < block.index(f"{USER_LABEL}: kedua")
        assert f"{ASSISTANT_LABEL}: balasan pertama" in block

    def test_unanswered_messages_have_no_assistant_line(self):
        block = format_history_block([make_inbox_row("halo")])
        assert ASSISTANT_LABEL not in block


class TestBuildPrompts:
    def test_user_prompt_with_context(self):
        prompt = build_user_prompt("Jam buka?", "Q: a\nA: b", "")
        assert prompt == "Gunakan knowledge base berikut untuk menjawab:\n\nQ: a\nA: b\nPertanyaan saat ini: Jam buka?"

    def test_user_prompt_without_context(self):
        assert build_user_prompt("Jam buka?") == "Pertanyaan: Jam buka?"

    def test_system_prompt_appends_style(self):
        prompt = build_system_prompt("Kamu CS toko kue.")
        assert prompt == f"Kamu CS toko kue.\n\n{REPLY_STYLE_PREAMBLE}"

    def test_blank_system_prompt_uses_default(self):
        assert build_system_prompt("  ").startswith(DEFAULT_SYSTEM_PROMPT)

    def test_chat_prompt_carries_image(self):
        prompt = build_chat_prompt(AISettings(), "apa ini?", image_url="https://cdn/x.jpg")
        assert prompt.image_url == "https://cdn/x.jpg"
        assert prompt.user == "Pertanyaan: apa ini?"


class TestGetLLMProvider:
    def test_unknown_vendor(self):
        assert get_llm_provider(AISettings(vendor="unknown", api_key="k")) is None

    def test_missing_key(self):
        assert get_llm_provider(AISettings(vendor="openai", api_key="")) is None

    @patch("app.services.ai_service.settings")
    def test_lovable_falls_back_to_service_key(self, mock_settings):
        mock_settings.lovable_api_key = "service-key"
        mock_settings.ai_timeout_seconds = 60

        provider = get_llm_provider(AISettings(vendor="lovable"))

        assert isinstance(provider, LovableProvider)
        assert provider.api_key == "service-key"

    def test_model_is_passed_through(self):
        provider = get_llm_provider(AISettings(vendor="openai", api_key="k", model="gpt-4o"))
        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4o"


class TestGenerateAIReply:
    @patch("app.services.ai_service.get_llm_provider")
    def test_returns_provider_content(self, mock_get_provider):
        provider = Mock(vendor="openai", model="gpt-4o-mini")
        provider.generate.return_value = LLMResponse(content="Buka jam 8", model="gpt-4o-mini")
        mock_get_provider.return_value = provider

        reply = generate_ai_reply(AISettings(vendor="openai", api_key="k"), "Jam buka?", "Q: x\nA: y")

        assert reply == "Buka jam 8"
        prompt = provider.generate.call_args[0][0]
        assert "Pertanyaan saat ini: Jam buka?" in prompt.user

    @patch("app.services.ai_service.get_llm_provider")
    def test_no_provider_returns_empty(self, mock_get_provider):
        mock_get_provider.return_value = None
        assert generate_ai_reply(AISettings(vendor="x"), "halo") == ""

    @patch("app.services.ai_service.get_llm_provider")
    def test_vendor_error_returns_empty(self, mock_get_provider):
        provider = Mock(vendor="openai", model="m")
        provider.generate.side_effect = LLMError("500")
        mock_get_provider.return_value = provider

        assert generate_ai_reply(AISettings(vendor="openai", api_key="k"), "halo") == ""

    @patch("app.services.ai_service.get_llm_provider")
    def test_network_error_returns_empty(self, mock_get_provider):
        provider = Mock(vendor="openai", model="m")
        provider.generate.side_effect = httpx.ReadTimeout("timeout")
        mock_get_provider.return_value = provider

        assert generate_ai_reply(AISettings(vendor="openai", api_key="k"), "halo") == ""

    @patch("app.services.ai_service.get_llm_provider")
    def test_malformed_url_returns_empty(self, mock_get_provider):
        provider = Mock(vendor="gemini", model="m")
        provider.generate.side_effect = httpx.InvalidURL("Invalid port: ':1'")
        mock_get_provider.return_value = provider

        ai = AISettings(vendor="gemini", api_key="k")
        assert generate_ai_reply(ai, "apa ini?", "", [], "http://[::1") == ""
