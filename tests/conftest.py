from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from estoque_scan.domain.models import Ator
from estoque_scan.infra.docstore import DocumentStore
from estoque_scan.usecases.produtos import criar_produto


class Relogio:
    """Relógio de teste: avança um segundo a cada leitura."""

    def __init__(self, inicio=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)):
        self.atual = inicio

    def __call__(self):
        self.atual += timedelta(seconds=1)
        return self.atual


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "estoque_test.sqlite")


@pytest.fixture
def relogio() -> Relogio:
    return Relogio()


@pytest.fixture
def store(db_path, relogio):
    with DocumentStore(db_path, relogio=relogio) as s:
        yield s


@pytest.fixture
def ator() -> Ator:
    return Ator(user_id="u1", user_name="Ana")


@pytest.fixture
def seed_produto(store):
    def _seed(sku="ABC", quantity=10, unit_price=2.0, **extra):
        dados = {"sku": sku, "name": extra.pop("name", f"Produto {sku}"),
                 "quantity": quantity, "unit_price": unit_price}
        dados.update(extra)
        return criar_produto(store, dados)
    return _seed
