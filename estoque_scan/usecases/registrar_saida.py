# estoque_scan/usecases/registrar_saida.py
"""
UC: Registrar BAIXA (saída) de estoque a partir de um código lido.
- run_baixa(): resolve o código (SKU ou kit), valida e debita o produto pai
  numa única transação e grava o movimento `out`.
- run_entrada(): mesmo fluxo no sentido inverso (movimento `in`).

Obs.:
- A quantidade atual é relida DENTRO da transação; checar antes e gravar
  depois reabriria a corrida entre duas leituras simultâneas.
- Validações locais (usuário, quantidade, código vazio) acontecem antes de qualquer
  acesso ao banco.
- Nenhuma reexecução além da feita pelo próprio run_transaction.
"""

from __future__ import annotations

from typing import Any, Optional

from estoque_scan.config import DEFAULTS
from estoque_scan.domain.errors import (
    EstoqueError,
    EstoqueInsuficiente,
    NaoAutenticado,
    ProdutoNaoEncontrado,
)
from estoque_scan.domain.models import (
    TIPO_ENTRADA,
    TIPO_SAIDA,
    Ator,
    CodigoResolvido,
    Movimento,
    Produto,
    ResultadoBaixa,
)
from estoque_scan.domain.policies import (
    normalizar_codigo,
    quantidade_efetiva,
    round2,
    validar_quantidade,
    valor_total,
)
from estoque_scan.infra.docstore import DocumentStore, Transaction
from estoque_scan.infra.logger import log_saida, log_system_event, log_transaction
from estoque_scan.infra.repositories import MovimentoRepo, ProdutoRepo
from estoque_scan.usecases.resolver_sku import resolver_codigo


def _validar_ator(actor: Optional[Ator]) -> Ator:
    if actor is None or not (actor.user_id or "").strip():
        raise NaoAutenticado()
    nome = (actor.user_name or "").strip() or DEFAULTS.usuario_padrao
    return Ator(user_id=actor.user_id, user_name=nome)


def _movimentar(
    store: DocumentStore,
    code: str,
    requested_qty: Any,
    actor: Optional[Ator],
    tipo: str,
) -> ResultadoBaixa:
    actor = _validar_ator(actor)
    qtd_base = validar_quantidade(requested_qty)
    sanitized = normalizar_codigo(code)

    resolved: Optional[CodigoResolvido] = resolver_codigo(store, sanitized)
    if resolved is None:
        raise ProdutoNaoEncontrado("Produto nao encontrado para este SKU.", code=code)

    kit = resolved.kit
    effective = quantidade_efetiva(qtd_base, kit)
    log_saida("request", resolved.sanitized_sku, effective, tipo=tipo, multiplier=resolved.multiplier)

    produtos = ProdutoRepo(store)
    movimentos = MovimentoRepo(store)
    product_id = resolved.product.id
    movement_id = movimentos.ref().id

    def _corpo(tx: Transaction) -> Produto:
        atual = produtos.get_in(tx, product_id)
        if atual is None:
            raise ProdutoNaoEncontrado("Produto nao encontrado.", product_id=product_id)

        if tipo == TIPO_SAIDA:
            if atual.quantity < effective:
                raise EstoqueInsuficiente(
                    "Estoque insuficiente para essa saida.",
                    disponivel=atual.quantity,
                    solicitado=effective,
                )
            nova_qtd = atual.quantity - effective
        else:
            nova_qtd = atual.quantity + effective

        novo_total = valor_total(nova_qtd, atual.unit_price)
        produtos.update_stock_in(tx, product_id, nova_qtd, novo_total)

        preco = round2(atual.unit_price)
        movimentos.insert_in(tx, Movimento(
            id=movement_id,
            product_id=product_id,
            sku=atual.sku,
            type=tipo,
            qty=effective,
            user_id=actor.user_id,
            user_name=actor.user_name,
            unit_price=preco,
            total_value=round2(effective * preco),
            parent_sku=atual.sku,
            scanned_sku=resolved.sanitized_sku,
            multiplier=resolved.multiplier,
            effective_qty=effective,
        ))

        atual.quantity = nova_qtd
        atual.total_value = novo_total
        return atual

    produto = store.run_transaction(_corpo)

    log_saida("commit", resolved.sanitized_sku, effective, tipo=tipo, product_id=product_id, movement_id=movement_id)
    return ResultadoBaixa(
        product=produto,
        kit=kit,
        effective_qty=effective,
        scanned_sku=resolved.sanitized_sku,
        movement_id=movement_id,
    )


def run_baixa(store: DocumentStore, code: str, requested_qty: Any, actor: Optional[Ator]) -> ResultadoBaixa:
    """Debita `requested_qty` (x multiplicador do kit) do produto identificado por `code`.

    Raises:
        NaoAutenticado, QuantidadeInvalida, CodigoVazio: validação local, nada foi gravado.
        ProdutoNaoEncontrado: o chamador pode tentar o fallback de rastreio.
        EstoqueInsuficiente: regra de negócio; nada foi gravado.
        FalhaTransacao: erro do banco (resultado pode ser ambíguo; consulte o livro).
    """
    log_system_event("baixa_start", {"code": code, "qty": requested_qty})
    dados = {"code": code, "qty": requested_qty, "user_id": getattr(actor, "user_id", None)}
    try:
        res = _movimentar(store, code, requested_qty, actor, TIPO_SAIDA)
    except EstoqueError as e:
        log_transaction("baixa", dados, error=f"{e.tipo.value}: {e}")
        log_system_event("baixa_error", {"tipo": e.tipo.value, "code": code}, level="warning")
        raise
    log_transaction("baixa", dados, result={"effective_qty": res.effective_qty, "movement_id": res.movement_id})
    return res


def run_entrada(store: DocumentStore, code: str, requested_qty: Any, actor: Optional[Ator]) -> ResultadoBaixa:
    """Credita `requested_qty` (x multiplicador do kit) no produto identificado por `code`."""
    log_system_event("entrada_start", {"code": code, "qty": requested_qty})
    dados = {"code": code, "qty": requested_qty, "user_id": getattr(actor, "user_id", None)}
    try:
        res = _movimentar(store, code, requested_qty, actor, TIPO_ENTRADA)
    except EstoqueError as e:
        log_transaction("entrada", dados, error=f"{e.tipo.value}: {e}")
        raise
    log_transaction("entrada", dados, result={"effective_qty": res.effective_qty, "movement_id": res.movement_id})
    return res
