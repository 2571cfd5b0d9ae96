# estoque_scan/usecases/produtos.py
"""
UC: Cadastro de produtos e kits.

O resolvedor assume que cada código (SKU de produto ou de kit) aponta para
um único produto. Essa unicidade é garantida aqui, na escrita:
- o SKU do produto não pode existir como SKU nem como kit de outro produto;
- cada SKU de kit não pode existir como SKU de produto (inclusive o próprio)
  nem como kit de outro produto, nem se repetir na mesma lista.

`kitSkus` é sempre reconstruído a partir de `kits`, e `totalValue` é sempre
recalculado quando quantidade ou preço mudam.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from estoque_scan.domain.errors import CodigoVazio, ProdutoNaoEncontrado, SkuDuplicado
from estoque_scan.domain.models import KitAlias, Produto
from estoque_scan.domain.policies import normalizar_codigo, normalizar_kits, valor_total
from estoque_scan.infra.docstore import DocumentStore, Transaction
from estoque_scan.infra.logger import log_database_operation, log_system_event
from estoque_scan.infra.repositories import PRODUCTS, ProdutoRepo


@dataclass
class ConflitoKit:
    sku: str
    product_ids: List[str]
    motivo: str  # "kit_em_varios_produtos" | "kit_igual_a_sku"


def _nao_negativo(valor: Any, inteiro: bool = False):
    try:
        num = float(valor or 0)
    except (TypeError, ValueError):
        num = 0.0
    num = max(0.0, num)
    return int(num) if inteiro else num


def _texto_opcional(valor: Any) -> Optional[str]:
    s = valor.strip() if isinstance(valor, str) else ""
    return s or None


def _validar_unicidade(
    tx: Transaction,
    repo: ProdutoRepo,
    product_id: str,
    sku: str,
    kits: List[KitAlias],
) -> None:
    def outros(ps: List[Produto]) -> List[Produto]:
        return [p for p in ps if p.id != product_id]

    if outros(repo.find_all_by_sku(sku, tx)):
        raise SkuDuplicado("Ja existe um produto com este SKU.", sku=sku)
    if outros(repo.find_all_by_kit_sku(sku, tx)):
        raise SkuDuplicado("SKU ja usado como kit de outro produto.", sku=sku)

    vistos = set()
    for kit in kits:
        if kit.sku == sku:
            raise SkuDuplicado("SKU do kit igual ao SKU do produto.", sku=kit.sku)
        if kit.sku in vistos:
            raise SkuDuplicado("SKU de kit repetido.", sku=kit.sku)
        vistos.add(kit.sku)
        if repo.find_all_by_sku(kit.sku, tx):
            raise SkuDuplicado("SKU do kit ja e SKU de um produto.", sku=kit.sku)
        if outros(repo.find_all_by_kit_sku(kit.sku, tx)):
            raise SkuDuplicado("SKU do kit ja usado por outro produto.", sku=kit.sku)


def _gravar_em(tx: Transaction, repo: ProdutoRepo, produto: Produto) -> Produto:
    produto.kits = normalizar_kits(produto.kits)
    produto.kit_skus = [k.sku for k in produto.kits]
    produto.total_value = valor_total(produto.quantity, produto.unit_price)
    _validar_unicidade(tx, repo, produto.id, produto.sku, produto.kits)
    repo.set_in(tx, produto)
    log_database_operation(PRODUCTS, "SET", 1, id=produto.id, sku=produto.sku)
    return produto


def criar_produto(store: DocumentStore, dados: Dict[str, Any]) -> Produto:
    """Cria um produto a partir de um dicionário de formulário.

    Chaves aceitas: sku, name, unit_price, quantity, category, supplier,
    estoque_minimo, kits (lista de dicts ou KitAlias).
    """
    produto = Produto(
        id=ProdutoRepo(store).ref().id,
        sku=normalizar_codigo(dados.get("sku")),
        name=(dados.get("name") or "").strip(),
        unit_price=_nao_negativo(dados.get("unit_price")),
        quantity=_nao_negativo(dados.get("quantity"), inteiro=True),
        category=_texto_opcional(dados.get("category")),
        supplier=_texto_opcional(dados.get("supplier")),
        estoque_minimo=(
            _nao_negativo(dados["estoque_minimo"], inteiro=True)
            if dados.get("estoque_minimo") is not None else None
        ),
        kits=list(dados.get("kits") or []),
    )
    repo = ProdutoRepo(store)
    salvo = store.run_transaction(lambda tx: _gravar_em(tx, repo, produto))
    log_system_event("product_created", {"id": salvo.id, "sku": salvo.sku})
    return salvo


def atualizar_produto(store: DocumentStore, product_id: str, alteracoes: Dict[str, Any]) -> Produto:
    """Aplica alterações parciais e recalcula o valor total (numa transação)."""
    repo = ProdutoRepo(store)

    def _corpo(tx: Transaction) -> Produto:
        atual = repo.get_in(tx, product_id)
        if atual is None:
            raise ProdutoNaoEncontrado(product_id=product_id)
        _aplicar(atual, alteracoes)
        return _gravar_em(tx, repo, atual)

    salvo = store.run_transaction(_corpo)
    log_system_event("product_updated", {"id": salvo.id, "campos": sorted(alteracoes)})
    return salvo


def _aplicar(atual: Produto, alteracoes: Dict[str, Any]) -> None:
    if "sku" in alteracoes:
        atual.sku = normalizar_codigo(alteracoes["sku"])
    if "name" in alteracoes:
        atual.name = (alteracoes["name"] or "").strip()
    if "unit_price" in alteracoes:
        atual.unit_price = _nao_negativo(alteracoes["unit_price"])
    if "quantity" in alteracoes:
        atual.quantity = _nao_negativo(alteracoes["quantity"], inteiro=True)
    for campo in ("category", "supplier"):
        if campo in alteracoes:
            setattr(atual, campo, _texto_opcional(alteracoes[campo]))
    if "estoque_minimo" in alteracoes:
        v = alteracoes["estoque_minimo"]
        atual.estoque_minimo = _nao_negativo(v, inteiro=True) if v is not None else None
    if "kits" in alteracoes:
        atual.kits = list(alteracoes["kits"] or [])


def definir_kits(store: DocumentStore, product_id: str, kits: Iterable[Any]) -> Produto:
    """Substitui a lista de kits do produto (e o `kitSkus` correspondente)."""
    return atualizar_produto(store, product_id, {"kits": list(kits)})


def listar_produtos(store: DocumentStore) -> List[Produto]:
    return sorted(ProdutoRepo(store).get_all(), key=lambda p: p.sku)


def excluir_produto(store: DocumentStore, product_id: str) -> None:
    if not (product_id or "").strip():
        raise CodigoVazio("Produto invalido.")
    repo = ProdutoRepo(store)
    store.delete_doc(repo.ref(product_id))
    log_system_event("product_deleted", {"id": product_id})


def verificar_kits(store: DocumentStore) -> List[ConflitoKit]:
    """Auditoria dos dados já gravados: aponta códigos ambíguos para o resolvedor."""
    produtos = ProdutoRepo(store).get_all()
    por_sku: Dict[str, List[str]] = {}
    por_kit: Dict[str, List[str]] = {}
    for p in produtos:
        por_sku.setdefault(p.sku, []).append(p.id)
        for sku in dict.fromkeys(p.kit_skus):
            por_kit.setdefault(sku, []).append(p.id)

    conflitos: List[ConflitoKit] = []
    for sku, ids in sorted(por_kit.items()):
        if len(ids) > 1:
            conflitos.append(ConflitoKit(sku, ids, "kit_em_varios_produtos"))
        if sku in por_sku:
            conflitos.append(ConflitoKit(sku, por_sku[sku] + ids, "kit_igual_a_sku"))
    if conflitos:
        log_system_event("kit_conflicts", {"total": len(conflitos)}, level="warning")
    return conflitos
