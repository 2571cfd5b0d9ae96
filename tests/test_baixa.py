import threading

import pytest

from estoque_scan.domain.errors import (
    EstoqueInsuficiente,
    NaoAutenticado,
    ProdutoNaoEncontrado,
    QuantidadeInvalida,
    TipoErro,
)
from estoque_scan.domain.models import Ator
from estoque_scan.domain.policies import round2
from estoque_scan.infra.docstore import DocumentStore
from estoque_scan.infra.repositories import MovimentoCodec, MovimentoRepo, ProdutoRepo
from estoque_scan.usecases.registrar_saida import run_baixa, run_entrada


def _movimentos(store):
    return [MovimentoCodec.from_doc(s) for s in MovimentoRepo(store).query()]


def test_baixa_simples(store, seed_produto, ator):
    p = seed_produto("ABC", quantity=10, unit_price=2.0)
    res = run_baixa(store, "ABC", 3, ator)

    assert res.effective_qty == 3
    assert res.product.quantity == 7

    atual = ProdutoRepo(store).get(p.id)
    assert atual.quantity == 7
    assert atual.total_value == 14.0

    [mov] = _movimentos(store)
    assert mov.id == res.movement_id
    assert (mov.qty, mov.effective_qty, mov.multiplier) == (3, 3, 1)
    assert mov.type == "out"
    assert mov.product_id == p.id
    assert mov.scanned_sku == "ABC"
    assert mov.parent_sku == "ABC"
    assert mov.user_id == "u1" and mov.user_name == "Ana"
    assert mov.unit_price == 2.0
    assert mov.total_value == 6.0
    assert mov.timestamp is not None


def test_baixa_por_kit_debita_produto_pai(store, seed_produto, ator):
    p = seed_produto("PARENT", quantity=20, unit_price=5.0,
                     kits=[{"sku": "KIT-3PACK", "multiplier": 3, "label": "3-pack"}])
    res = run_baixa(store, "KIT-3PACK", 2, ator)

    assert res.effective_qty == 6
    assert res.kit.sku == "KIT-3PACK"
    assert ProdutoRepo(store).get(p.id).quantity == 14

    [mov] = _movimentos(store)
    assert mov.scanned_sku == "KIT-3PACK"
    assert mov.parent_sku == "PARENT"
    assert mov.sku == "PARENT"
    assert mov.multiplier == 3
    assert mov.effective_qty == 6
    assert mov.qty == 6


def test_estoque_insuficiente_nao_grava_nada(store, seed_produto, ator):
    p = seed_produto("ABC", quantity=2)
    with pytest.raises(EstoqueInsuficiente) as exc:
        run_baixa(store, "ABC", 5, ator)
    assert exc.value.tipo is TipoErro.INSUFFICIENT_STOCK
    assert exc.value.detalhes == {"disponivel": 2, "solicitado": 5}
    assert ProdutoRepo(store).get(p.id).quantity == 2
    assert _movimentos(store) == []


def test_baixa_zera_estoque(store, seed_produto, ator):
    p = seed_produto("ABC", quantity=3, unit_price=1.5)
    run_baixa(store, "ABC", 3, ator)
    atual = ProdutoRepo(store).get(p.id)
    assert atual.quantity == 0
    assert atual.total_value == 0.0


def test_quantidade_fracionada_truncada(store, seed_produto, ator):
    seed_produto("ABC", quantity=10)
    assert run_baixa(store, "ABC", 2.9, ator).effective_qty == 2
    assert run_baixa(store, "ABC", 0.5, ator).effective_qty == 1


@pytest.mark.parametrize("actor", [None, Ator(user_id=""), Ator(user_id="   ")])
def test_sem_usuario(store, seed_produto, actor):
    seed_produto("ABC")
    with pytest.raises(NaoAutenticado):
        run_baixa(store, "ABC", 1, actor)
    assert _movimentos(store) == []


def test_nome_de_usuario_padrao(store, seed_produto):
    seed_produto("ABC")
    run_baixa(store, "ABC", 1, Ator(user_id="u9"))
    assert _movimentos(store)[0].user_name == "desconhecido"


@pytest.mark.parametrize("qtd", [0, -2, "abc", None, 10**400])
def test_quantidade_invalida(store, seed_produto, ator, qtd):
    seed_produto("ABC")
    with pytest.raises(QuantidadeInvalida):
        run_baixa(store, "ABC", qtd, ator)


def test_produto_nao_encontrado(store, ator):
    with pytest.raises(ProdutoNaoEncontrado) as exc:
        run_baixa(store, "XYZ999", 1, ator)
    assert exc.value.detalhes["code"] == "XYZ999"


def test_total_value_consistente_com_preco_quebrado(store, seed_produto, ator):
    p = seed_produto("ABC", quantity=7, unit_price=3.335)
    run_baixa(store, "ABC", 2, ator)
    atual = ProdutoRepo(store).get(p.id)
    assert atual.total_value == round2(5 * 3.335)
    [mov] = _movimentos(store)
    assert mov.unit_price == round2(3.335)
    assert mov.total_value == round2(2 * round2(3.335))


def test_entrada(store, seed_produto, ator):
    p = seed_produto("PARENT", quantity=1, unit_price=5.0, kits=[{"sku": "K2", "multiplier": 2}])
    res = run_entrada(store, "K2", 3, ator)
    assert res.effective_qty == 6
    atual = ProdutoRepo(store).get(p.id)
    assert atual.quantity == 7
    assert atual.total_value == 35.0
    [mov] = _movimentos(store)
    assert mov.type == "in"
    assert mov.scanned_sku == "K2"


def test_baixas_concorrentes_nunca_deixam_estoque_negativo(db_path, seed_produto):
    p = seed_produto("ABC", quantity=10, unit_price=2.0)
    sucessos, falhas, erros = [], [], []
    barreira = threading.Barrier(8)

    def worker(n):
        with DocumentStore(db_path, tentativas=20, backoff=0.005) as s:
            barreira.wait()
            for _ in range(3):
                try:
                    run_baixa(s, "ABC", 1, Ator(user_id=f"u{n}", user_name=f"Op {n}"))
                    sucessos.append(n)
                except EstoqueInsuficiente:
                    falhas.append(n)
                except Exception as e:  # pragma: no cover
                    erros.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert erros == []
    assert len(sucessos) == 10
    assert len(falhas) == 14

    with DocumentStore(db_path) as s:
        atual = ProdutoRepo(s).get(p.id)
        assert atual.quantity == 0
        assert atual.total_value == 0.0
        movs = _movimentos(s)
        assert len(movs) == len(sucessos)
        assert sum(m.effective_qty for m in movs) == 10
