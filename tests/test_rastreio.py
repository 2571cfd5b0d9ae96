from datetime import timedelta

import pytest

from estoque_scan.domain.errors import CodigoVazio, NaoAutenticado
from estoque_scan.domain.models import Ator, FiltrosRastreio, ProdutoRastreio
from estoque_scan.infra.repositories import RastreioRepo
from estoque_scan.usecases.rastreio import excluir_rastreio, listar_rastreios, salvar_rastreio


def _codigos(pagina):
    return [r.code for r in pagina.records]


def test_salvar_rastreio_completo(store, ator):
    rec = salvar_rastreio(
        store, "  BR1  ", ator,
        product_sku="ABC", product_name=" Camiseta ", stock_movement_id="mov1",
        products=[ProdutoRastreio(sku="ABC", name="Camiseta", quantity=2, scanned_sku="ABC"),
                  ProdutoRastreio(sku="  ")],
    )
    assert rec.id
    assert rec.code == "BR1"
    assert rec.product_name == "Camiseta"
    assert rec.stock_movement_id == "mov1"
    assert [p.sku for p in rec.products] == ["ABC"]
    assert rec.products[0].quantity == 2


def test_salvar_rastreio_sem_usuario(store):
    with pytest.raises(NaoAutenticado):
        salvar_rastreio(store, "BR1", None)


def test_salvar_rastreio_codigo_vazio(store, ator):
    with pytest.raises(CodigoVazio):
        salvar_rastreio(store, "   ", ator)


def test_listar_mais_recentes_primeiro_com_cursor(store, ator):
    for i in range(5):
        salvar_rastreio(store, f"BR{i}", ator)

    p1 = listar_rastreios(store, FiltrosRastreio(limit=2))
    assert _codigos(p1) == ["BR4", "BR3"]
    assert p1.next_cursor is not None

    p2 = listar_rastreios(store, FiltrosRastreio(limit=2, start_after=p1.next_cursor))
    assert _codigos(p2) == ["BR2", "BR1"]

    p3 = listar_rastreios(store, FiltrosRastreio(limit=2, start_after=p2.next_cursor))
    assert _codigos(p3) == ["BR0"]
    assert p3.next_cursor is None


def test_listar_por_usuario(store, ator):
    salvar_rastreio(store, "BR1", ator)
    salvar_rastreio(store, "BR2", Ator(user_id="u2", user_name="Bia"))
    pagina = listar_rastreios(store, FiltrosRastreio(user_id="u2"))
    assert _codigos(pagina) == ["BR2"]


def test_listar_por_prefixo_sem_diferenciar_caixa(store, ator):
    for code in ["BR100", "BR200", "GC100", "123456789-01"]:
        salvar_rastreio(store, code, ator)
    pagina = listar_rastreios(store, FiltrosRastreio(code="br"))
    assert sorted(_codigos(pagina)) == ["BR100", "BR200"]


def test_listar_por_periodo(store, ator, relogio):
    inicio = relogio.atual
    salvar_rastreio(store, "BR1", ator)
    meio = relogio.atual
    salvar_rastreio(store, "BR2", ator)
    salvar_rastreio(store, "GC3", ator)

    pagina = listar_rastreios(store, FiltrosRastreio(inicio=meio + timedelta(milliseconds=1)))
    assert _codigos(pagina) == ["GC3", "BR2"]

    pagina = listar_rastreios(store, FiltrosRastreio(inicio=inicio, fim=meio))
    assert _codigos(pagina) == ["BR1"]


def test_prefixo_com_periodo_filtra_em_memoria(store, ator, relogio):
    salvar_rastreio(store, "BR1", ator)
    corte = relogio.atual
    salvar_rastreio(store, "BR2", ator)
    salvar_rastreio(store, "BR3", ator)

    pagina = listar_rastreios(store, FiltrosRastreio(code="BR", inicio=corte + timedelta(milliseconds=1)))
    assert _codigos(pagina) == ["BR3", "BR2"]


def test_excluir_rastreio(store, ator):
    rec = salvar_rastreio(store, "BR1", ator)
    excluir_rastreio(store, rec.id)
    assert RastreioRepo(store).query() == []
    with pytest.raises(CodigoVazio):
        excluir_rastreio(store, "  ")
