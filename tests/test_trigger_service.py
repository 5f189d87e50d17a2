from types import SimpleNamespace
from unittest.mock import Mock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex

from app.models import Autoreply
from app.services.trigger_service import find_trigger, normalize_trigger_text, render_trigger_content


def _compile(clause):
    return str(clause.compile(dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}))


def _match_clause(mock_db):
    """The trigger comparison passed to .filter(), rendered as SQL."""
    return _compile(mock_db.query.return_value.filter.call_args[0][1])


class TestNormalizeTriggerText:
    def test_trims_and_lowercases(self):
        assert normalize_trigger_text("  HaLo  ") == "halo"

    def test_none_is_empty(self):
        assert normalize_trigger_text(None) == ""


class TestFindTrigger:
    def test_empty_text_skips_query(self):
        mock_db = Mock()

        assert find_trigger(mock_db, uuid4(), "   ") is None
        mock_db.query.assert_not_called()

    def test_returns_first_match(self):
        mock_db = Mock()
        autoreply = SimpleNamespace(trigger="halo", content="Hai {NAME}")
        mock_db.query().filter().order_by().first.return_value = autoreply

        assert find_trigger(mock_db, uuid4(), "HALO") is autoreply

    def test_returns_none_without_match(self):
        mock_db = Mock()
        mock_db.query().filter().order_by().first.return_value = None

        assert find_trigger(mock_db, uuid4(), "harga") is None

    def test_padded_uppercase_message_compares_exactly(self):
        mock_db = Mock()

        find_trigger(mock_db, uuid4(), "  INFO ")

        assert _match_clause(mock_db) == "lower(trim(autoreplies.trigger)) = 'info'"

    def test_longer_message_is_not_a_substring_match(self):
        mock_db = Mock()

        find_trigger(mock_db, uuid4(), "info please")

        clause = _match_clause(mock_db)
        assert clause == "lower(trim(autoreplies.trigger)) = 'info please'"
        assert "LIKE" not in clause.upper()

    def test_scoped_to_tenant(self):
        mock_db = Mock()
        user_id = uuid4()

        find_trigger(mock_db, user_id, "info")

        tenant_clause = mock_db.query.return_value.filter.call_args[0][0]
        assert tenant_clause.left.key == "user_id"
        assert tenant_clause.right.value == user_id

    def test_oldest_trigger_wins_ties(self):
        mock_db = Mock()

        find_trigger(mock_db, uuid4(), "info")

        order = mock_db.query.return_value.filter.return_value.order_by.call_args[0]
        assert [column.key for column in order] == ["created_at", "id"]


class TestAutoreplyUniqueness:
    @pytest.fixture
    def index(self):
        return next(i for i in Autoreply.__table__.indexes if i.name == "autoreplies_user_id_trigger_ci_key")

    def test_unique_on_normalized_trigger(self, index):
        ddl = str(CreateIndex(index).compile(dialect=postgresql.dialect()))

        assert index.unique is True
        assert "CREATE UNIQUE INDEX autoreplies_user_id_trigger_ci_key ON autoreplies" in ddl
        assert "lower(trim(" in ddl

    def test_no_case_sensitive_constraint_remains(self):
        names = {constraint.name for constraint in Autoreply.__table__.constraints}
        assert "autoreplies_user_id_trigger_key" not in names


class TestRenderTriggerContent:
    def test_replaces_every_placeholder(self):
        result = render_trigger_content("Hai {NAME} ({PHONE}), {NAME}!", phone="628123", name="Siti")
        assert result == "Hai Siti (628123), Siti!"

    def test_missing_name_becomes_empty(self):
        assert render_trigger_content("Hai {NAME}", phone="628", name="") == "Hai "
