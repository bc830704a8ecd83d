"""
Testes de integração: leitura no TFS (conexão, categorias, issues).
Requer .env com TFS_BASE_URL e credenciais. Execute com: pytest -m integration
Não alteramos dados no TFS (apenas leitura) para evitar efeitos colaterais.
"""
import pytest

pytest.importorskip("buildmaster_tfs")


@pytest.mark.integration
class TestTfsIntegration:
    """Testes de integração com o TFS (somente leitura)."""

    @pytest.fixture(scope="class")
    def provider(self):
        """Só roda se URL e credenciais estiverem configuradas (via .env)."""
        from buildmaster_tfs.config import settings
        from buildmaster_tfs.services.issue_tracking_provider import TfsIssueTrackingProvider
        try:
            settings.validate_connection_settings()
        except ValueError as e:
            pytest.skip(f"TFS não configurado no .env: {e}")
        return TfsIssueTrackingProvider()

    def test_validate_connection(self, provider):
        provider.validate_connection()

    def test_categories(self, provider):
        categories = provider.get_categories()
        assert isinstance(categories, list)
        for collection in categories:
            assert collection.category_type == "Collection"
            assert all(p.category_type == "Project" for p in collection.subcategories)

    def test_get_issues(self, provider):
        issues = provider.get_issues("0.0.0-integration")
        assert isinstance(issues, list)
        for issue in issues[:3]:
            assert issue.issue_id
            assert isinstance(provider.is_issue_closed(issue), bool)
