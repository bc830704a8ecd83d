"""Testes unitários para a montagem de WIQL."""
import pytest

from buildmaster_tfs.utils.wiql import WiqlQuery, quote_field, quote_literal


class TestQuoteLiteral:
    """Testes para quote_literal."""

    def test_text_in_single_quotes(self):
        assert quote_literal("1.0") == "'1.0'"

    def test_single_quote_doubled(self):
        assert quote_literal("O'Brien") == "'O''Brien'"

    def test_int_unquoted(self):
        assert quote_literal(42) == "42"

    def test_list_for_in(self):
        assert quote_literal(["Active", "New"]) == "('Active', 'New')"

    def test_empty_list_rejected(self):
        with pytest.raises(ValueError):
            quote_literal([])

    def test_bool_rejected(self):
        with pytest.raises(ValueError):
            quote_literal(True)


class TestQuoteField:
    """Testes para quote_field."""

    def test_reference_name(self):
        assert quote_field("Custom.ReleaseNumber") == "[Custom.ReleaseNumber]"

    @pytest.mark.parametrize("bad", ["", "System.Id] = 1 OR [System.Id", "Release Number", "a'b"])
    def test_invalid_names_rejected(self, bad):
        with pytest.raises(ValueError):
            quote_field(bad)


class TestWiqlQuery:
    """Testes para WiqlQuery."""

    def test_select_only(self):
        q = WiqlQuery(["System.Id", "System.Title"])
        assert q.render() == "SELECT [System.Id], [System.Title] FROM WorkItems"

    def test_conditions_joined_with_and_in_order(self):
        q = (
            WiqlQuery(["System.Id"])
            .where("System.TeamProject", "=", "Web")
            .where("System.AreaPath", "under", "Web\\Api")
            .order_by("System.Id")
        )
        assert q.render() == (
            "SELECT [System.Id] FROM WorkItems "
            "WHERE [System.TeamProject] = 'Web' AND [System.AreaPath] UNDER 'Web\\Api' "
            "ORDER BY [System.Id] ASC"
        )

    def test_injection_attempt_stays_literal(self):
        q = WiqlQuery(["System.Id"]).where("Custom.Release", "=", "1.0' OR [System.Id] > '0")
        assert "WHERE [Custom.Release] = '1.0'' OR [System.Id] > ''0'" in q.render()

    def test_unknown_operator_rejected(self):
        with pytest.raises(ValueError):
            WiqlQuery(["System.Id"]).where("System.Id", "LIKE", "1")

    def test_descending_order(self):
        q = WiqlQuery(["System.Id"]).order_by("System.ChangedDate", descending=True)
        assert q.render().endswith("ORDER BY [System.ChangedDate] DESC")

    def test_requires_fields(self):
        with pytest.raises(ValueError):
            WiqlQuery([])
