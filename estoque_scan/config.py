# estoque_scan/config.py
"""
Configurações globais e valores padrão do motor de baixa de estoque.
"""

import os
from dataclasses import dataclass


# Caminho padrão do banco de documentos (SQLite)
DB_PATH = os.environ.get("ESTOQUE_DB_PATH", os.path.join(os.getcwd(), "estoque.db"))


@dataclass
class DefaultConfig:
    """Valores padrão para parâmetros do sistema."""
    page_limit: int = 25          # Itens por página nas listagens
    export_max: int = 1000        # Limite de registros na exportação
    export_page: int = 200        # Tamanho de página usado na exportação
    usuario_padrao: str = "desconhecido"
    usuarios_max: int = 5000      # Movimentos recentes lidos para montar a lista de usuários
    tx_tentativas: int = 5        # Reexecuções da transação em caso de conflito
    tx_backoff: float = 0.05      # Backoff base (segundos) entre tentativas
    busy_timeout: float = 5.0     # Timeout do SQLite aguardando o lock


# Instância global dos valores padrão
DEFAULTS = DefaultConfig()
