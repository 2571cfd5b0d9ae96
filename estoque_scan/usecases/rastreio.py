# estoque_scan/usecases/rastreio.py
"""
UC: Códigos de rastreio.
- registrar_rastreio_fallback(): usado quando o código lido não é produto
  nem kit; se o matcher reconhecer o formato, grava o rastreio.
- salvar_rastreio(): grava um rastreio (opcionalmente ligado a produto(s)
  ou a um movimento).
- listar_rastreios(): paginação por cursor, filtro por usuário, prefixo do
  código e período.
- excluir_rastreio()
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional

from estoque_scan.config import DEFAULTS
from estoque_scan.domain.errors import CodigoNaoReconhecido, CodigoVazio, FalhaTransacao, NaoAutenticado
from estoque_scan.domain.models import (
    Ator,
    FiltrosRastreio,
    PaginaRastreios,
    ProdutoRastreio,
    Rastreio,
)
from estoque_scan.domain.policies import normalizar_codigo, normalizar_rastreio
from estoque_scan.adapters.parsers import parse_tracking_code
from estoque_scan.infra.docstore import (
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
from estoque_scan.infra.logger import log_rastreio, log_system_event
from estoque_scan.infra.repositories import RastreioCodec, RastreioRepo


Matcher = Callable[[str], Optional[str]]

# Sufixo alto do BMP usado para fechar a faixa de prefixo
_FIM_PREFIXO = "\uf8ff"


def _trim(v: Optional[str]) -> Optional[str]:
    s = v.strip() if isinstance(v, str) else ""
    return s or None


def salvar_rastreio(
    store: DocumentStore,
    code: str,
    actor: Optional[Ator],
    product_sku: Optional[str] = None,
    product_name: Optional[str] = None,
    stock_movement_id: Optional[str] = None,
    products: Optional[Iterable[ProdutoRastreio]] = None,
) -> Rastreio:
    """Grava um código de rastreio e devolve o registro persistido."""
    if actor is None or not (actor.user_id or "").strip():
        raise NaoAutenticado()
    sanitized = normalizar_codigo(code)

    rec = Rastreio(
        id="",
        code=sanitized,
        code_normalized=normalizar_rastreio(sanitized),
        user_id=actor.user_id,
        user_name=(actor.user_name or "").strip() or DEFAULTS.usuario_padrao,
        product_sku=_trim(product_sku),
        product_name=_trim(product_name),
        stock_movement_id=_trim(stock_movement_id),
        products=[p for p in (products or []) if _trim(p.sku)],
    )
    salvo = RastreioRepo(store).insert(rec)
    if salvo is None:
        raise FalhaTransacao("Falha ao registrar o codigo de rastreamento.")
    log_rastreio("insert", salvo.code, id=salvo.id, user_id=salvo.user_id)
    return salvo


def registrar_rastreio_fallback(
    store: DocumentStore,
    code: str,
    actor: Optional[Ator],
    matcher: Matcher = parse_tracking_code,
) -> Rastreio:
    """Tenta interpretar `code` como rastreio e grava o registro.

    Raises:
        CodigoNaoReconhecido: o matcher rejeitou o código.
    """
    tracking = matcher(code)
    if not tracking:
        log_rastreio("reject", str(code))
        raise CodigoNaoReconhecido(code=code)
    log_system_event("tracking_fallback", {"code": tracking})
    return salvar_rastreio(store, tracking, actor)


def listar_rastreios(store: DocumentStore, filtros: Optional[FiltrosRastreio] = None) -> PaginaRastreios:
    """Lista rastreios, mais recentes primeiro.

    Com busca por prefixo de código, a consulta é ordenada pelo código
    normalizado; o período é então aplicado em memória e o resultado é
    reordenado por data de criação.
    """
    filtros = filtros or FiltrosRastreio()
    constraints = []
    user_id = _trim(filtros.user_id)
    if user_id:
        constraints.append(where("userId", "==", user_id))

    prefixo = (_trim(filtros.code) or "").upper()
    if prefixo:
        constraints += [order_by("codeNormalized"), start_at(prefixo), end_at(prefixo + _FIM_PREFIXO)]
    else:
        constraints.append(order_by("createdAt", "desc"))
        if filtros.inicio:
            constraints.append(where("createdAt", ">=", filtros.inicio))
        if filtros.fim:
            constraints.append(where("createdAt", "<=", filtros.fim))

    if filtros.start_after is not None:
        constraints.append(start_after(filtros.start_after))
    page_limit = filtros.limit or DEFAULTS.page_limit
    constraints.append(limit(page_limit))

    snaps = RastreioRepo(store).query(*constraints)
    records: List[Rastreio] = [RastreioCodec.from_doc(s) for s in snaps]

    if prefixo and (filtros.inicio or filtros.fim):
        def _no_periodo(r: Rastreio) -> bool:
            if r.created_at is None:
                return True
            if filtros.inicio and r.created_at < _aware(filtros.inicio):
                return False
            if filtros.fim and r.created_at > _aware(filtros.fim):
                return False
            return True

        records = [r for r in records if _no_periodo(r)]
        records.sort(key=lambda r: r.created_at.timestamp() if r.created_at else 0, reverse=True)

    next_cursor = snaps[-1] if len(snaps) == page_limit else None
    return PaginaRastreios(records=records, next_cursor=next_cursor)


def excluir_rastreio(store: DocumentStore, record_id: str) -> None:
    if not _trim(record_id):
        raise CodigoVazio("Codigo invalido.")
    RastreioRepo(store).delete(record_id.strip())
    log_rastreio("delete", record_id)


def _aware(dt):
    return from_iso(to_iso(dt))
