import sqlite3
from datetime import datetime, timezone

import pytest

from estoque_scan.domain.errors import FalhaTransacao, ProdutoNaoEncontrado
from estoque_scan.infra.docstore import (
    SERVER_TIMESTAMP,
    DocumentStore,
    end_at,
    from_iso,
    limit,
    order_by,
    start_after,
    start_at,
    to_iso,
    where,
)


def _seed_itens(store, n=5):
    for i in range(n):
        store.set_doc(store.doc("itens", f"id{i}"), {
            "n": i,
            "grupo": "par" if i % 2 == 0 else "impar",
            "tags": [f"t{i}", "todos"],
            "nome": f"item-{i}",
        })


def _ids(snaps):
    return [s.id for s in snaps]


def test_to_iso_e_from_iso():
    dt = datetime(2024, 1, 2, 3, 4, 5, 6000, tzinfo=timezone.utc)
    assert to_iso(dt) == "2024-01-02T03:04:05.006000Z"
    assert from_iso(to_iso(dt)) == dt
    # sem fuso = UTC
    assert to_iso(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05.000000Z"
    assert from_iso("lixo") is None
    assert from_iso(None) is None


def test_store_nao_conectado(db_path):
    store = DocumentStore(db_path)
    with pytest.raises(FalhaTransacao):
        store.get_doc(store.doc("itens", "x"))


def test_set_get_update_delete(store):
    ref = store.doc("itens", "a")
    assert not store.get_doc(ref).exists

    store.set_doc(ref, {"nome": "A", "qtd": 1})
    snap = store.get_doc(ref)
    assert snap.exists and snap.to_dict() == {"nome": "A", "qtd": 1}

    store.update_doc(ref, {"qtd": 5})
    assert store.get_doc(ref).get("qtd") == 5
    assert store.get_doc(ref).get("nome") == "A"

    store.delete_doc(ref)
    assert not store.get_doc(ref).exists


def test_update_documento_inexistente(store):
    with pytest.raises(FalhaTransacao):
        store.update_doc(store.doc("itens", "nao-existe"), {"qtd": 1})


def test_add_doc_gera_id(store):
    r1 = store.add_doc("itens", {"n": 1})
    r2 = store.add_doc(store.collection("itens"), {"n": 2})
    assert r1.id != r2.id
    assert r1.path == f"itens/{r1.id}"


def test_server_timestamp_usa_relogio(store, relogio):
    ref = store.add_doc("itens", {"criado": SERVER_TIMESTAMP, "sub": {"em": SERVER_TIMESTAMP}})
    data = store.get_doc(ref).to_dict()
    assert data["criado"] == to_iso(relogio.atual)
    assert data["sub"]["em"] == data["criado"]


def test_query_where_igual_e_array_contains(store):
    _seed_itens(store)
    pares = store.get_docs(store.query("itens", where("grupo", "==", "par")))
    assert _ids(pares) == ["id0", "id2", "id4"]

    com_tag = store.get_docs(store.query("itens", where("tags", "array-contains", "t3")))
    assert _ids(com_tag) == ["id3"]

    todos = store.get_docs(store.query("itens", where("tags", "array-contains", "todos")))
    assert len(todos) == 5


def test_query_faixa_ordem_e_limite(store):
    _seed_itens(store)
    q = store.query("itens", where("n", ">=", 1), where("n", "<", 4), order_by("n", "desc"), limit(2))
    assert _ids(store.get_docs(q)) == ["id3", "id2"]


def test_query_start_after_pagina(store):
    _seed_itens(store)
    pagina1 = store.get_docs(store.query("itens", order_by("n", "desc"), limit(2)))
    assert _ids(pagina1) == ["id4", "id3"]
    pagina2 = store.get_docs(store.query("itens", order_by("n", "desc"), start_after(pagina1[-1]), limit(2)))
    assert _ids(pagina2) == ["id2", "id1"]
    pagina3 = store.get_docs(store.query("itens", order_by("n", "desc"), start_after(pagina2[-1]), limit(2)))
    assert _ids(pagina3) == ["id0"]


def test_start_after_desempata_por_id(store):
    for i in range(4):
        store.set_doc(store.doc("itens", f"x{i}"), {"ts": "mesmo"})
    p1 = store.get_docs(store.query("itens", order_by("ts", "desc"), limit(2)))
    p2 = store.get_docs(store.query("itens", order_by("ts", "desc"), start_after(p1[-1]), limit(2)))
    assert _ids(p1) + _ids(p2) == ["x3", "x2", "x1", "x0"]


def test_query_prefixo_com_start_at_end_at(store):
    for i, nome in enumerate(["BR1", "BR2", "BX1", "GC1"]):
        store.set_doc(store.doc("itens", f"c{i}"), {"codigo": nome})
    q = store.query("itens", order_by("codigo"), start_at("BR"), end_at("BR\uf8ff"))
    assert [s.get("codigo") for s in store.get_docs(q)] == ["BR1", "BR2"]


def test_order_by_exclui_documentos_sem_campo(store):
    store.set_doc(store.doc("itens", "a"), {"n": 1})
    store.set_doc(store.doc("itens", "b"), {"outro": 1})
    assert _ids(store.get_docs(store.query("itens", order_by("n")))) == ["a"]


def test_nome_de_campo_invalido(store):
    with pytest.raises(ValueError):
        store.get_docs(store.query("itens", where("n'); DROP TABLE documents; --", "==", 1)))


def test_operador_invalido():
    with pytest.raises(ValueError):
        where("n", "!=", 1)
    with pytest.raises(ValueError):
        order_by("n", "up")


def test_transacao_devolve_resultado_e_aplica_escritas(store):
    ref = store.doc("itens", "a")
    store.set_doc(ref, {"qtd": 10})

    def corpo(tx):
        atual = tx.get(ref).get("qtd")
        tx.update(ref, {"qtd": atual - 3})
        # escritas pendentes não são visíveis dentro da própria transação
        assert tx.get(ref).get("qtd") == 10
        return atual - 3

    assert store.run_transaction(corpo) == 7
    assert store.get_doc(ref).get("qtd") == 7


def test_transacao_erro_de_dominio_desfaz_tudo(store):
    ref = store.doc("itens", "a")
    store.set_doc(ref, {"qtd": 10})

    def corpo(tx):
        tx.update(ref, {"qtd": 0})
        tx.set(store.doc("itens", "b"), {"qtd": 1})
        raise ProdutoNaoEncontrado()

    with pytest.raises(ProdutoNaoEncontrado):
        store.run_transaction(corpo)
    assert store.get_doc(ref).get("qtd") == 10
    assert not store.get_doc(store.doc("itens", "b")).exists
    assert not store.conn.in_transaction


def test_transacao_reexecuta_em_lock(db_path, relogio):
    bloqueador = sqlite3.connect(db_path, isolation_level=None)
    with DocumentStore(db_path, tentativas=5, backoff=0.01, timeout=0.01, relogio=relogio) as store:
        ref = store.doc("itens", "a")
        store.set_doc(ref, {"qtd": 1})

        chamadas = []

        def corpo(tx):
            chamadas.append(1)
            if len(chamadas) == 1:
                # leitor concorrente segura o lock compartilhado: o COMMIT falha
                bloqueador.execute("BEGIN")
                bloqueador.execute("SELECT * FROM documents").fetchall()
            elif bloqueador.in_transaction:
                bloqueador.execute("ROLLBACK")
            tx.update(ref, {"qtd": len(chamadas) + 1})

        store.run_transaction(corpo)
        assert len(chamadas) == 2
        assert store.get_doc(ref).get("qtd") == 3
    bloqueador.close()


def test_transacao_esgota_tentativas(db_path):
    bloqueador = sqlite3.connect(db_path, isolation_level=None)
    with DocumentStore(db_path, tentativas=2, backoff=0.001, timeout=0.01) as store:
        bloqueador.execute("BEGIN IMMEDIATE")
        try:
            with pytest.raises(FalhaTransacao):
                store.set_doc(store.doc("itens", "a"), {"qtd": 1})
        finally:
            bloqueador.execute("ROLLBACK")
            bloqueador.close()
