# estoque_scan/infra/logger.py
"""
Sistema de logging para as operações do estoque.

Este módulo configura e fornece loggers para registrar todas as operações
críticas do sistema: baixas, rastreios e escritas no banco de documentos.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional


# Flag global para habilitar/desabilitar logging
ENABLE_LOGGING = False
# Flag global para habilitar/desabilitar prints/output
ENABLE_OUTPUT = False

def print_system(*args, **kwargs):
    """Print controlado pelo ENABLE_OUTPUT."""
    if ENABLE_OUTPUT:
        print(*args, **kwargs)

# Configuração base dos loggers
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logger(name: str, log_file: str, level: int = logging.INFO) -> logging.Logger:
    """
    Configura um logger específico com arquivo de saída.

    O handler de arquivo só é criado na primeira escrita (delay=True), então
    importar o módulo não cria os arquivos de log.

    Args:
        name: Nome do logger
        log_file: Caminho do arquivo de log
        level: Nível de logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Logger configurado
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    while logger.handlers:
        logger.removeHandler(logger.handlers[0])

    file_handler = logging.FileHandler(log_file, encoding='utf-8', delay=True)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger

# Diretório base para logs (na pasta do projeto)
BASE_DIR = Path(__file__).parent.parent
LOGS_DIR = Path(os.environ.get("ESTOQUE_LOGS_DIR", BASE_DIR / "logs"))

LOG_FILES = {
    "transactions": LOGS_DIR / "transactions.log",
    "saidas": LOGS_DIR / "saidas.log",
    "rastreios": LOGS_DIR / "rastreios.log",
    "database": LOGS_DIR / "database.log",
    "system": LOGS_DIR / "system.log",
}

# Loggers específicos para cada operação
transaction_logger = setup_logger('estoque_scan.transactions', str(LOG_FILES["transactions"]))
saida_logger = setup_logger('estoque_scan.saidas', str(LOG_FILES["saidas"]))
rastreio_logger = setup_logger('estoque_scan.rastreios', str(LOG_FILES["rastreios"]))
database_logger = setup_logger('estoque_scan.database', str(LOG_FILES["database"]))
system_logger = setup_logger('estoque_scan.system', str(LOG_FILES["system"]))

def _enabled() -> bool:
    return ENABLE_LOGGING or ENABLE_OUTPUT

def log_transaction(operation: str, data: Dict[str, Any], result: Optional[Any] = None, error: Optional[str] = None) -> None:
    """
    Registra uma transação completa no log.

    Args:
        operation: Tipo de operação (baixa, entrada, excluir_movimento, ...)
        data: Dados da transação
        result: Resultado da operação (opcional)
        error: Mensagem de erro (opcional)
    """
    if not _enabled():
        return
    if error:
        transaction_logger.error(f"TRANSACTION_FAILED: {operation} - {error} - Data: {data}")
    else:
        transaction_logger.info(f"TRANSACTION_SUCCESS: {operation} - Result: {result} - Data: {data}")

def log_saida(action: str, sku: str, quantidade: Any, **kwargs) -> None:
    """
    Log específico para baixas (saídas) e entradas de estoque.

    Args:
        action: Ação realizada (request, commit, reject, undo)
        sku: SKU lido
        quantidade: Quantidade movimentada
        **kwargs: Dados adicionais
    """
    if not _enabled():
        return
    log_data = {"action": action, "sku": sku, "quantidade": quantidade, **kwargs}
    saida_logger.info(f"SAIDA_{action.upper()}: {log_data}")

def log_rastreio(action: str, code: str, **kwargs) -> None:
    """Log específico para códigos de rastreio."""
    if not _enabled():
        return
    log_data = {"action": action, "code": code, **kwargs}
    rastreio_logger.info(f"RASTREIO_{action.upper()}: {log_data}")

def log_database_operation(collection: str, operation: str, affected_rows: int = 0, **kwargs) -> None:
    """
    Log específico para operações no banco de documentos.

    Args:
        collection: Nome da coleção
        operation: Operação (GET, QUERY, SET, UPDATE, DELETE, COMMIT, RETRY)
        affected_rows: Número de documentos afetados
        **kwargs: Dados adicionais
    """
    if not _enabled():
        return
    log_data = {"collection": collection, "operation": operation, "affected_rows": affected_rows, **kwargs}
    database_logger.info(f"DB_{operation}: {log_data}")

def log_system_event(event: str, details: Dict[str, Any] = None, level: str = "info") -> None:
    """
    Log para eventos do sistema.

    Args:
        event: Descrição do evento
        details: Detalhes adicionais (opcional)
        level: Nível do log (info, warning, error)
    """
    if not _enabled():
        return
    log_data = {"event": event, "details": details or {}}
    log_method = getattr(system_logger, level.lower(), system_logger.info)
    log_method(f"SYSTEM_EVENT: {event} - {log_data}")

def log_file_operation(operation: str, file_path: str, rows_processed: int = 0, **kwargs) -> None:
    """
    Log para operações de arquivo (exportação do livro de movimentos).

    Args:
        operation: Tipo de operação (export)
        file_path: Caminho do arquivo
        rows_processed: Número de linhas processadas
        **kwargs: Dados adicionais
    """
    if not _enabled():
        return
    log_data = {"operation": operation, "file_path": file_path, "rows_processed": rows_processed, **kwargs}
    system_logger.info(f"FILE_{operation.upper()}: {log_data}")

def get_log_summary(log_type: str = "transactions", lines: int = 100) -> Optional[str]:
    """
    Obtém um resumo dos logs recentes.

    Args:
        log_type: Tipo de log (transactions, saidas, rastreios, database, system)
        lines: Número de linhas a retornar

    Returns:
        Conteúdo do log como string
    """
    if not _enabled():
        return None

    log_file = LOG_FILES.get(log_type)
    if not log_file or not log_file.exists():
        return f"Log {log_type} não encontrado."

    try:
        with open(log_file, 'r', encoding='utf-8') as f:
            all_lines = f.readlines()
    except OSError as e:
        return f"Erro ao ler log {log_type}: {str(e)}"
    return ''.join(all_lines[-lines:])

