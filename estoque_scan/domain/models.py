"""
Modelos (dataclasses) do domínio.

Observação importante:
- Os use cases só trabalham com estas dataclasses; a conversão de/para
  documentos do banco fica concentrada nos codecs de `infra.repositories`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional


TIPO_SAIDA = "out"
TIPO_ENTRADA = "in"


@dataclass
class Ator:
    """Usuário que executa a operação (referência fraca ao diretório externo)."""
    user_id: str
    user_name: str = ""


@dataclass
class KitAlias:
    """Código secundário que representa N unidades de um produto pai."""
    sku: str
    label: str = ""
    multiplier: int = 1


@dataclass
class Produto:
    """Item estocado."""
    id: str
    sku: str
    name: str = ""
    unit_price: float = 0.0
    quantity: int = 0
    total_value: float = 0.0
    category: Optional[str] = None
    supplier: Optional[str] = None
    estoque_minimo: Optional[int] = None
    kits: List[KitAlias] = field(default_factory=list)
    kit_skus: List[str] = field(default_factory=list)

    def kit_por_sku(self, sku: str) -> Optional[KitAlias]:
        for kit in self.kits:
            if kit.sku == sku:
                return kit
        return None


@dataclass
class Movimento:
    """Lançamento imutável do livro de movimentações."""
    id: str
    product_id: str
    sku: str
    type: str
    qty: int
    user_id: str
    user_name: str
    timestamp: Optional[datetime] = None
    unit_price: Optional[float] = None
    total_value: Optional[float] = None
    parent_sku: Optional[str] = None
    scanned_sku: Optional[str] = None
    multiplier: Optional[int] = None
    effective_qty: Optional[int] = None
    product_name: Optional[str] = None  # preenchido apenas na leitura


@dataclass
class ProdutoRastreio:
    """Item de um envio com vários produtos."""
    sku: str
    name: Optional[str] = None
    quantity: Optional[int] = None
    scanned_sku: Optional[str] = None


@dataclass
class Rastreio:
    """Código de rastreio de transportadora registrado na leitura."""
    id: str
    code: str
    code_normalized: str
    user_id: str
    user_name: str
    created_at: Optional[datetime] = None
    product_sku: Optional[str] = None
    product_name: Optional[str] = None
    stock_movement_id: Optional[str] = None
    products: List[ProdutoRastreio] = field(default_factory=list)


@dataclass
class CodigoResolvido:
    product: Produto
    kit: Optional[KitAlias]
    sanitized_sku: str

    @property
    def multiplier(self) -> int:
        return self.kit.multiplier if self.kit else 1


@dataclass
class ResultadoBaixa:
    product: Produto
    kit: Optional[KitAlias]
    effective_qty: int
    scanned_sku: str
    movement_id: str


@dataclass
class FiltrosMovimento:
    limit: Optional[int] = None
    start_after: Any = None
    sku: Optional[str] = None
    scanned_sku: Optional[str] = None
    user_id: Optional[str] = None
    tipo: Optional[str] = None
    inicio: Optional[datetime] = None
    fim: Optional[datetime] = None


@dataclass
class PaginaMovimentos:
    movements: List[Movimento]
    next_cursor: Any = None


@dataclass
class FiltrosRastreio:
    limit: Optional[int] = None
    start_after: Any = None
    user_id: Optional[str] = None
    code: Optional[str] = None
    inicio: Optional[datetime] = None
    fim: Optional[datetime] = None


@dataclass
class PaginaRastreios:
    records: List[Rastreio]
    next_cursor: Any = None
