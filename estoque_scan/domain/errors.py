"""
Erros de domínio do motor de baixa.

Cada erro carrega um discriminador estável (`tipo`) para que a camada de
apresentação escolha a mensagem sem inspecionar o texto da exceção.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class TipoErro(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    INVALID_QUANTITY = "invalid_quantity"
    PRODUCT_NOT_FOUND = "product_not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"
    UNRECOGNIZED_CODE = "unrecognized_code"
    MOVEMENT_NOT_FOUND = "movement_not_found"
    TRANSACTION_FAILED = "transaction_failed"
    EMPTY_CODE = "empty_code"
    DUPLICATE_SKU = "duplicate_sku"


# Mensagens curtas exibidas ao usuário, uma por tipo
MENSAGENS_USUARIO = {
    TipoErro.UNAUTHENTICATED: "Usuario nao autenticado.",
    TipoErro.INVALID_QUANTITY: "Informe uma quantidade valida.",
    TipoErro.PRODUCT_NOT_FOUND: "Produto nao encontrado.",
    TipoErro.INSUFFICIENT_STOCK: "Estoque insuficiente.",
    TipoErro.UNRECOGNIZED_CODE: "Codigo nao suportado.",
    TipoErro.MOVEMENT_NOT_FOUND: "Movimento nao encontrado.",
    TipoErro.TRANSACTION_FAILED: "Falha ao gravar no banco.",
    TipoErro.EMPTY_CODE: "Informe um codigo valido.",
    TipoErro.DUPLICATE_SKU: "SKU ja cadastrado.",
}


class EstoqueError(Exception):
    """Base de todos os erros do sistema."""

    tipo: TipoErro = TipoErro.TRANSACTION_FAILED

    def __init__(self, mensagem: Optional[str] = None, **detalhes):
        self.detalhes = detalhes
        super().__init__(mensagem or self.mensagem_usuario)

    @property
    def mensagem_usuario(self) -> str:
        return MENSAGENS_USUARIO[self.tipo]

    def to_dict(self) -> dict:
        return {"tipo": self.tipo.value, "mensagem": str(self), **self.detalhes}


class NaoAutenticado(EstoqueError):
    tipo = TipoErro.UNAUTHENTICATED


class QuantidadeInvalida(EstoqueError):
    tipo = TipoErro.INVALID_QUANTITY


class ProdutoNaoEncontrado(EstoqueError):
    tipo = TipoErro.PRODUCT_NOT_FOUND


class EstoqueInsuficiente(EstoqueError):
    tipo = TipoErro.INSUFFICIENT_STOCK


class CodigoNaoReconhecido(EstoqueError):
    tipo = TipoErro.UNRECOGNIZED_CODE


class MovimentoNaoEncontrado(EstoqueError):
    tipo = TipoErro.MOVEMENT_NOT_FOUND


class FalhaTransacao(EstoqueError):
    tipo = TipoErro.TRANSACTION_FAILED


class CodigoVazio(EstoqueError):
    tipo = TipoErro.EMPTY_CODE


class SkuDuplicado(EstoqueError):
    tipo = TipoErro.DUPLICATE_SKU
