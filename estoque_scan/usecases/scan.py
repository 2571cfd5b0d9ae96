# estoque_scan/usecases/scan.py
"""
UC: Processar uma leitura do scanner (ou código digitado).

Tenta a baixa; só quando o código não corresponde a nenhum produto/kit é
que o fallback de rastreio é tentado. Se o fallback também não reconhecer
o código, o erro de produto não encontrado da baixa é o que sobe.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from estoque_scan.domain.errors import CodigoNaoReconhecido, ProdutoNaoEncontrado
from estoque_scan.domain.models import Ator, Rastreio, ResultadoBaixa
from estoque_scan.adapters.parsers import parse_tracking_code
from estoque_scan.infra.docstore import DocumentStore
from estoque_scan.infra.logger import log_system_event, print_system
from estoque_scan.usecases.rastreio import Matcher, registrar_rastreio_fallback
from estoque_scan.usecases.registrar_saida import run_baixa


@dataclass
class ResultadoScan:
    tipo: str  # "baixa" | "rastreio"
    baixa: Optional[ResultadoBaixa] = None
    rastreio: Optional[Rastreio] = None


def processar_scan(
    store: DocumentStore,
    code: str,
    qty: Any,
    actor: Optional[Ator],
    matcher: Matcher = parse_tracking_code,
) -> ResultadoScan:
    try:
        baixa = run_baixa(store, code, qty, actor)
    except ProdutoNaoEncontrado as nao_encontrado:
        try:
            record = registrar_rastreio_fallback(store, code, actor, matcher=matcher)
        except CodigoNaoReconhecido:
            log_system_event("scan_unresolved", {"code": code}, level="warning")
            raise nao_encontrado from None
        print_system(f">> Codigo de rastreio {record.code} registrado.")
        return ResultadoScan(tipo="rastreio", rastreio=record)
    print_system(f">> Baixa registrada: {baixa.scanned_sku} x{baixa.effective_qty}")
    return ResultadoScan(tipo="baixa", baixa=baixa)
