# estoque_scan/adapters/exporters.py
"""
Exportação do livro de movimentos para planilha (XLSX) ou CSV via pandas.

As colunas seguem os nomes usados nas planilhas operacionais; datas saem
em horário UTC sem fuso (o Excel não aceita datetimes com tz).
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pandas as pd

from estoque_scan.domain.models import Movimento
from estoque_scan.infra.logger import log_file_operation


COLUNAS = {
    "timestamp": "Data",
    "type": "Tipo",
    "sku": "SKU",
    "scanned_sku": "SKU lido",
    "product_name": "Produto",
    "multiplier": "Multiplicador",
    "qty": "Quantidade",
    "unit_price": "Valor unitario",
    "total_value": "Valor total",
    "user_name": "Usuario",
    "user_id": "ID usuario",
    "id": "ID movimento",
}


def movimentos_para_dataframe(movimentos: Iterable[Movimento]) -> pd.DataFrame:
    rows = [{campo: getattr(m, campo) for campo in COLUNAS} for m in movimentos]
    df = pd.DataFrame(rows, columns=list(COLUNAS))
    if not df.empty:
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True).dt.tz_localize(None)
    return df.rename(columns=COLUNAS)


def exportar_arquivo(movimentos: Iterable[Movimento], path: str) -> int:
    """Grava XLSX (padrão) ou CSV conforme a extensão. Devolve o nº de linhas."""
    df = movimentos_para_dataframe(movimentos)
    destino = Path(path)
    if destino.suffix.lower() == ".csv":
        df.to_csv(destino, index=False, encoding="utf-8")
    else:
        df.to_excel(destino, index=False)
    log_file_operation("export", str(destino), rows_processed=len(df))
    return len(df)
