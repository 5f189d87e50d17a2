from types import SimpleNamespace
from unittest.mock import Mock
from uuid import uuid4

from app.services.knowledge_service import (
    ENTRY_SEPARATOR,
    build_knowledge_context,
    format_knowledge_context,
)


def _entry(question, answer):
    return SimpleNamespace(question=question, answer=answer)


class TestFormatKnowledgeContext:
    def test_returns_empty_string_for_no_entries(self):
        assert format_knowledge_context([]) == ""

    def test_formats_pairs_with_separator(self):
        entries = [_entry("Jam buka?", "08.00 - 17.00"), _entry("Alamat?", "Jl. Merdeka 1")]

        result = format_knowledge_context(entries)

        assert result == "Q: Jam buka?\nA: 08.00 - 17.00" + ENTRY_SEPARATOR + "Q: Alamat?\nA: Jl. Merdeka 1"

    def test_skips_blank_entries(self):
        result = format_knowledge_context([_entry("", ""), _entry("Harga?", "50rb")])
        assert result == "Q: Harga?\nA: 50rb"

    def test_truncates_to_max_chars(self):
        entries = [_entry("q" * 50, "a" * 50) for _ in range(10)]

        result = format_knowledge_context(entries, max_chars=120)

        assert len(result) == 120

    def test_default_limit_is_8000_chars(self):
        entries = [_entry("q" * 500, "a" * 500) for _ in range(20)]
        assert len(format_knowledge_context(entries)) == 8000


class TestBuildKnowledgeContext:
    def test_reads_entries_for_tenant(self):
        mock_db = Mock()
        mock_db.query().filter().order_by().all.return_value = [_entry("Ongkir?", "Gratis")]

        result = build_knowledge_context(mock_db, uuid4())

        assert result == "Q: Ongkir?\nA: Gratis"
