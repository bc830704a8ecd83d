"""Configuração pytest e fixtures."""
import sys
from contextlib import nullcontext
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Garante que backend está no path
_backend = Path(__file__).resolve().parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: testes que exigem .env (servidor TFS real)")


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def tfs():
    """Conexão TFS falsa (MagicMock) entregue pela fábrica a cada open()."""
    return MagicMock()


@pytest.fixture
def connection_factory(tfs):
    """Fábrica de conexões que abre sempre a conexão falsa, como context manager."""
    factory = MagicMock()
    factory.open.side_effect = lambda: nullcontext(tfs)
    return factory
