# estoque_scan/usecases/resolver_sku.py
"""
UC: Resolver um código lido (SKU ou kit) para o produto pai.

Ordem de busca:
1. produto cujo `sku` é exatamente o código (sempre vence);
2. produto cujo `kitSkus` contém o código -> kit correspondente em `kits`.

Se nada for encontrado, devolve None e o chamador decide o fallback
(código de rastreio).
"""

from __future__ import annotations

from typing import Optional

from estoque_scan.domain.errors import CodigoVazio
from estoque_scan.domain.models import CodigoResolvido, Produto
from estoque_scan.domain.policies import normalizar_codigo
from estoque_scan.infra.docstore import DocumentStore
from estoque_scan.infra.logger import log_system_event
from estoque_scan.infra.repositories import ProdutoRepo


def resolver_codigo(store: DocumentStore, code: str) -> Optional[CodigoResolvido]:
    try:
        sanitized = normalizar_codigo(code)
    except CodigoVazio:
        return None

    repo = ProdutoRepo(store)

    parent = repo.find_by_sku(sanitized)
    if parent is not None:
        return CodigoResolvido(product=parent, kit=None, sanitized_sku=sanitized)

    owner = repo.find_by_kit_sku(sanitized)
    if owner is None:
        return None

    kit = owner.kit_por_sku(sanitized)
    if kit is None:
        # kitSkus fora de sincronia com kits
        log_system_event("kit_sku_out_of_sync", {"product_id": owner.id, "sku": sanitized}, level="warning")
        return None

    return CodigoResolvido(product=owner, kit=kit, sanitized_sku=sanitized)


def buscar_produto_por_sku(store: DocumentStore, code: str) -> Optional[Produto]:
    """Produto pai do código (direto ou via kit), sem o kit."""
    resolved = resolver_codigo(store, code)
    return resolved.product if resolved else None
