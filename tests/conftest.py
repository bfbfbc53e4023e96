"""
Root test configuration.

Test organization:
- unit/        Fast, isolated, no I/O, mocked dependencies
- integration/ Component boundaries (HTTP app, database engines)

Run specific levels:
    pytest tests/unit -v
    pytest tests/integration -v
    pytest tests -v
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from minerador.schemas.cnpj import Company
from minerador.services.cnpj_cache import CnpjCacheOrchestrator
from minerador.services.local_cache import MemoryCacheStore


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast isolated tests")
    config.addinivalue_line("markers", "integration: Component boundary tests")
    config.addinivalue_line("markers", "slow: Tests that take > 1s")


@pytest.fixture
def make_company():
    """Factory de empresas ativas com dados completos."""

    def factory(cnpj: str = "11222333000181", **overrides) -> Company:
        data = {
            "cnpj": cnpj,
            "razao_social": "EMPRESA TESTE LTDA",
            "nome_fantasia": "TESTE",
            "situacao_cadastral": "ATIVA",
            "uf": "SP",
            "municipio": "SAO PAULO",
            "capital_social": 50000.0,
            "porte": "ME",
            "data_inicio_atividade": "2020-01-15",
            "cnae_fiscal": "6201501",
            "logradouro": "RUA DAS FLORES",
            "bairro": "CENTRO",
            "telefone": "11 99999-0000",
            "email": "contato@teste.com.br",
        }
        data.update(overrides)
        return Company(**data)

    return factory


@pytest.fixture
def memory_store():
    return MemoryCacheStore()


@pytest.fixture
def orchestrator(memory_store):
    return CnpjCacheOrchestrator(memory_store)
