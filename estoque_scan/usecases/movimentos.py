# estoque_scan/usecases/movimentos.py
"""
UC: Livro de movimentações (leitura, exportação e estorno).

- listar_movimentos(): página ordenada por timestamp decrescente, com
  filtros e cursor opaco (último documento lido).
- exportar_movimentos(): percorre as páginas até o limite de registros.
- excluir_movimento(): apaga o movimento e compensa o estoque do produto
  na mesma transação.
- listar_usuarios_movimento(): usuários presentes no livro (para filtros).

Observação: o estorno é uma correção manual de um único lançamento; não
reconstrói estados intermediários.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from estoque_scan.config import DEFAULTS
from estoque_scan.domain.errors import EstoqueError, MovimentoNaoEncontrado
from estoque_scan.domain.models import (
    FiltrosMovimento,
    Movimento,
    PaginaMovimentos,
    Produto,
)
from estoque_scan.domain.policies import quantidade_compensada, round2, valor_total
from estoque_scan.infra.docstore import DocumentStore, Transaction, limit, order_by, start_after, where
from estoque_scan.infra.logger import log_saida, log_system_event, log_transaction
from estoque_scan.infra.repositories import MovimentoCodec, MovimentoRepo, ProdutoRepo


def _trim(v: Optional[str]) -> str:
    return v.strip() if isinstance(v, str) else ""


def _carregar_produtos(store: DocumentStore, ids: List[str]) -> Dict[str, Produto]:
    repo = ProdutoRepo(store)
    out: Dict[str, Produto] = {}
    for pid in dict.fromkeys(i for i in ids if i):
        p = repo.get(pid)
        if p is not None:
            out[pid] = p
    return out


def _enriquecer(m: Movimento, produto: Optional[Produto]) -> Movimento:
    m.product_name = produto.name if produto else ""
    if m.unit_price is not None:
        m.unit_price = round2(m.unit_price)
    elif produto is not None:
        m.unit_price = round2(produto.unit_price)
    if m.total_value is not None:
        m.total_value = round2(abs(m.total_value))
    if not m.total_value and m.unit_price is not None:
        qtd = abs(m.effective_qty if m.effective_qty is not None else m.qty)
        calculado = round2(qtd * m.unit_price)
        if calculado > 0:
            m.total_value = calculado
    return m


def listar_movimentos(store: DocumentStore, filtros: Optional[FiltrosMovimento] = None) -> PaginaMovimentos:
    filtros = filtros or FiltrosMovimento()
    constraints = []
    if filtros.tipo:
        constraints.append(where("type", "==", filtros.tipo))
    sku = _trim(filtros.sku)
    if sku:
        constraints.append(where("sku", "==", sku))
    scanned = _trim(filtros.scanned_sku)
    if scanned:
        constraints.append(where("scannedSku", "==", scanned))
    if filtros.user_id:
        constraints.append(where("userId", "==", filtros.user_id))
    if filtros.inicio:
        constraints.append(where("timestamp", ">=", filtros.inicio))
    if filtros.fim:
        constraints.append(where("timestamp", "<=", filtros.fim))
    constraints.append(order_by("timestamp", "desc"))
    page_limit = filtros.limit or DEFAULTS.page_limit
    if filtros.start_after is not None:
        constraints.append(start_after(filtros.start_after))
    constraints.append(limit(page_limit))

    snaps = MovimentoRepo(store).query(*constraints)
    movements = [MovimentoCodec.from_doc(s) for s in snaps]
    produtos = _carregar_produtos(store, [m.product_id for m in movements])
    movements = [_enriquecer(m, produtos.get(m.product_id)) for m in movements]

    next_cursor = snaps[-1] if len(snaps) == page_limit else None
    return PaginaMovimentos(movements=movements, next_cursor=next_cursor)


def exportar_movimentos(
    store: DocumentStore,
    filtros: Optional[FiltrosMovimento] = None,
    max_records: int = DEFAULTS.export_max,
) -> List[Movimento]:
    filtros = filtros or FiltrosMovimento()
    cursor = filtros.start_after
    coletados: List[Movimento] = []

    while len(coletados) < max_records:
        pagina = listar_movimentos(store, FiltrosMovimento(
            limit=min(DEFAULTS.export_page, max_records - len(coletados)),
            start_after=cursor,
            sku=filtros.sku,
            scanned_sku=filtros.scanned_sku,
            user_id=filtros.user_id,
            tipo=filtros.tipo,
            inicio=filtros.inicio,
            fim=filtros.fim,
        ))
        coletados.extend(pagina.movements)
        if pagina.next_cursor is None or not pagina.movements:
            break
        cursor = pagina.next_cursor

    log_system_event("export_movements", {"rows": len(coletados), "max": max_records})
    return coletados[:max_records]


def excluir_movimento(store: DocumentStore, movement_id: str) -> Optional[Produto]:
    """Apaga o movimento e desfaz seu efeito no estoque.

    Returns:
        O produto após a compensação, ou None se o produto não existe mais
        (nesse caso o movimento é apagado sem compensação).

    Raises:
        MovimentoNaoEncontrado: o movimento não existe.
    """
    movimentos = MovimentoRepo(store)
    produtos = ProdutoRepo(store)

    def _corpo(tx: Transaction) -> Optional[Produto]:
        mov = movimentos.get_in(tx, movement_id)
        if mov is None:
            raise MovimentoNaoEncontrado(movement_id=movement_id)

        qtd = mov.effective_qty if mov.effective_qty is not None else mov.qty
        produto = None
        if mov.product_id and qtd > 0:
            produto = produtos.get_in(tx, mov.product_id)
            if produto is not None:
                produto.quantity = quantidade_compensada(produto.quantity, mov.type, qtd)
                produto.total_value = valor_total(produto.quantity, produto.unit_price)
                produtos.update_stock_in(tx, produto.id, produto.quantity, produto.total_value)
                log_saida("undo", mov.sku, qtd, tipo=mov.type, product_id=produto.id)
        movimentos.delete_in(tx, movement_id)
        return produto

    try:
        produto = store.run_transaction(_corpo)
    except EstoqueError as e:
        log_transaction("excluir_movimento", {"movement_id": movement_id}, error=f"{e.tipo.value}: {e}")
        raise
    log_transaction("excluir_movimento", {"movement_id": movement_id},
                    result={"product_id": produto.id if produto else None})
    return produto


def listar_usuarios_movimento(
    store: DocumentStore,
    max_registros: Optional[int] = None,
) -> List[Dict[str, str]]:
    """Usuários distintos dos movimentos mais recentes, ordenados pelo nome.

    Lê no máximo `max_registros` movimentos (padrão `DEFAULTS.usuarios_max`);
    usuários que só aparecem em lançamentos mais antigos ficam de fora.
    """
    n = max_registros or DEFAULTS.usuarios_max
    vistos: Dict[str, str] = {}
    for snap in MovimentoRepo(store).query(order_by("timestamp", "desc"), limit(n)):
        m = MovimentoCodec.from_doc(snap)
        if m.user_id and m.user_id not in vistos:
            vistos[m.user_id] = m.user_name or DEFAULTS.usuario_padrao
    return sorted(({"id": k, "name": v} for k, v in vistos.items()), key=lambda u: u["name"].lower())
