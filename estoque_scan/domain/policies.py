"""
Políticas de cálculo e utilidades para a baixa de estoque.

Este módulo contém funções puras que encapsulam as regras de negócio de
normalização de códigos, cálculo de quantidade efetiva (com multiplicador
de kit), arredondamento monetário e compensação de movimentos excluídos.
Nenhuma função aqui acessa o banco.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Optional

from estoque_scan.domain.errors import CodigoVazio, QuantidadeInvalida
from estoque_scan.domain.models import TIPO_ENTRADA, TIPO_SAIDA, KitAlias

_CENTAVOS = Decimal("0.01")


def round2(valor: Any) -> float:
    """Arredonda para 2 casas decimais (meio para cima).

    Valores não numéricos ou não finitos resultam em ``0.0``.
    """
    try:
        num = float(valor)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(num):
        return 0.0
    return float(Decimal(repr(num)).quantize(_CENTAVOS, rounding=ROUND_HALF_UP))


def valor_total(quantidade: Any, preco_unitario: Any) -> float:
    """``round2(quantidade * preco_unitario)``, o valor persistido do produto."""
    return round2(float(quantidade or 0) * float(preco_unitario or 0))


def normalizar_codigo(raw: Any) -> str:
    """Normaliza um código lido ou digitado.

    Remove espaços nas pontas. Não altera maiúsculas/minúsculas: a busca por
    SKU é exata.

    Raises:
        CodigoVazio: se o código ficar vazio após o trim.
    """
    codigo = raw.strip() if isinstance(raw, str) else ""
    if not codigo:
        raise CodigoVazio()
    return codigo


def normalizar_rastreio(raw: Any) -> str:
    """Versão em maiúsculas usada para gravar e buscar códigos de rastreio."""
    return normalizar_codigo(raw).upper()


def validar_quantidade(qtd: Any) -> int:
    """Valida a quantidade solicitada e devolve a quantidade base inteira.

    A quantidade precisa ser um número finito maior que zero; frações são
    truncadas com piso mínimo de 1 (ex.: ``0.5`` vira ``1``, ``2.9`` vira ``2``).

    Raises:
        QuantidadeInvalida: para valores não numéricos, não finitos ou <= 0.
    """
    if isinstance(qtd, bool):
        raise QuantidadeInvalida()
    try:
        num = float(qtd)
    except (TypeError, ValueError, OverflowError):
        raise QuantidadeInvalida()
    if not math.isfinite(num) or num <= 0:
        raise QuantidadeInvalida()
    return math.floor(max(1.0, num))


def quantidade_efetiva(qtd_base: int, kit: Optional[KitAlias]) -> int:
    """Quantidade que efetivamente sai do estoque do produto pai."""
    multiplier = kit.multiplier if kit else 1
    efetiva = qtd_base * multiplier
    if efetiva <= 0:
        raise QuantidadeInvalida()
    return efetiva


def quantidade_compensada(atual: int, tipo: str, qtd: int) -> int:
    """Quantidade do produto após desfazer um movimento.

    - ``out``: devolve ``qtd`` ao estoque (sem teto).
    - ``in``: retira ``qtd``, com piso em zero.
    - outros tipos: não altera.
    """
    if tipo == TIPO_SAIDA:
        return atual + qtd
    if tipo == TIPO_ENTRADA:
        return max(0, atual - qtd)
    return atual


def normalizar_multiplicador(raw: Any) -> int:
    try:
        num = float(raw if raw is not None else 1)
    except (TypeError, ValueError, OverflowError):
        return 1
    if not math.isfinite(num):
        return 1
    return max(1, math.floor(num))


def normalizar_kits(kits: Any) -> List[KitAlias]:
    """Limpa uma lista de kits: descarta SKU vazio, apara textos e corrige o multiplicador."""
    if not isinstance(kits, (list, tuple)):
        return []
    out: List[KitAlias] = []
    for item in kits:
        if isinstance(item, KitAlias):
            sku, label, mult = item.sku, item.label, item.multiplier
        elif isinstance(item, dict):
            sku, label, mult = item.get("sku"), item.get("label"), item.get("multiplier")
        else:
            continue
        sku = sku.strip() if isinstance(sku, str) else ""
        if not sku:
            continue
        label = label.strip() if isinstance(label, str) else ""
        out.append(KitAlias(sku=sku, label=label, multiplier=normalizar_multiplicador(mult)))
    return out


def normalizar_kit_skus(raw: Any) -> List[str]:
    if not isinstance(raw, (list, tuple)):
        return []
    return [v.strip() for v in raw if isinstance(v, str) and v.strip()]
