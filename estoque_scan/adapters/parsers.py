"""
Utilidades de parsing para valores lidos no scanner ou digitados.

Este módulo fornece funções para interpretar:
- códigos de rastreio de transportadoras/marketplaces, usados quando o
  código lido não é um SKU cadastrado;
- a quantidade digitada no formulário de baixa.
"""

from __future__ import annotations

import re
from typing import Any, Optional

_NUM_RE = re.compile(r"[-+]?\d+(?:[.,]\d+)?")
_MAGALU_RE = re.compile(r"^\d{9}-\d{2}$")

# Prefixos (já em maiúsculas) aceitos como rastreio
PREFIXOS_RASTREIO = ("BR", "GC")


def parse_tracking_code(raw: Any) -> Optional[str]:
    """Identifica e normaliza códigos de rastreio suportados.

    Regras:
        - Mercado Livre: qualquer payload que comece com ``{`` (mantido como está).
        - Magazine Luiza: ``#########-##`` (mantido como está).
        - Shopee: começa com ``BR`` (sem diferenciar maiúsculas), devolvido em maiúsculas.
        - Shein: começa com ``GC`` (sem diferenciar maiúsculas), devolvido em maiúsculas.

    Exemplos:
        '{"id":"4455"}'  → '{"id":"4455"}'
        "123456789-01"   → "123456789-01"
        " br123x "       → "BR123X"
        "XYZ999"         → None

    Args:
        raw: Valor lido.

    Returns:
        O código normalizado ou None se não for um rastreio reconhecido.
    """
    if not isinstance(raw, str):
        return None
    s = raw.strip()
    if not s:
        return None
    if s.startswith("{"):
        return s
    if _MAGALU_RE.match(s):
        return s
    upper = s.upper()
    if upper.startswith(PREFIXOS_RASTREIO):
        return upper
    return None


def parse_quantidade_digitada(txt: Any) -> int:
    """Interpreta a quantidade do formulário de baixa.

    Usa o primeiro número encontrado, truncado para inteiro; valores
    ausentes, inválidos ou menores que 1 viram 1.

    Exemplos:
        "3"     → 3
        "2,7"   → 2
        "abc"   → 1
        "0"     → 1
    """
    if txt is None:
        return 1
    m = _NUM_RE.search(str(txt))
    if not m:
        return 1
    try:
        num = int(float(m.group(0).replace(",", ".")))
    except ValueError:
        return 1
    return max(1, num)
