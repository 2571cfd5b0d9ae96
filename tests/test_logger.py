from pathlib import Path

import pytest

from estoque_scan.infra import logger
from estoque_scan.usecases.registrar_saida import run_baixa


@pytest.fixture
def logs_tmp(tmp_path: Path, monkeypatch):
    """Redireciona os loggers para arquivos temporários e liga o logging."""
    arquivos = {nome: tmp_path / f"{nome}.log" for nome in logger.LOG_FILES}
    monkeypatch.setattr(logger, "LOG_FILES", arquivos)
    for nome, attr in [("transactions", "transaction_logger"), ("saidas", "saida_logger"),
                       ("rastreios", "rastreio_logger"), ("database", "database_logger"),
                       ("system", "system_logger")]:
        monkeypatch.setattr(logger, attr, logger.setup_logger(f"test.{nome}", str(arquivos[nome])))
    monkeypatch.setattr(logger, "ENABLE_LOGGING", True)
    return arquivos


def test_logging_desligado_nao_escreve(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(logger, "ENABLE_LOGGING", False)
    monkeypatch.setattr(logger, "ENABLE_OUTPUT", False)
    logger.log_system_event("nada")
    assert logger.get_log_summary("system") is None


def test_log_transaction_sucesso_e_erro(logs_tmp):
    logger.log_transaction("baixa", {"code": "ABC"}, result={"effective_qty": 3})
    logger.log_transaction("baixa", {"code": "ABC"}, error="insufficient_stock: Estoque insuficiente")
    conteudo = logger.get_log_summary("transactions")
    assert "TRANSACTION_SUCCESS: baixa" in conteudo
    assert "TRANSACTION_FAILED: baixa - insufficient_stock" in conteudo


def test_logs_por_assunto(logs_tmp):
    logger.log_saida("commit", "KIT-3PACK", 6, product_id="p1")
    logger.log_rastreio("insert", "BR1", id="r1")
    logger.log_database_operation("products", "SET", 1, id="p1")
    logger.log_system_event("kit_conflicts", {"total": 2}, level="warning")
    logger.log_file_operation("export", "movs.xlsx", rows_processed=10)

    assert "SAIDA_COMMIT" in logs_tmp["saidas"].read_text(encoding="utf-8")
    assert "RASTREIO_INSERT" in logs_tmp["rastreios"].read_text(encoding="utf-8")
    assert "DB_SET" in logs_tmp["database"].read_text(encoding="utf-8")
    sistema = logs_tmp["system"].read_text(encoding="utf-8")
    assert "WARNING" in sistema and "kit_conflicts" in sistema
    assert "FILE_EXPORT" in sistema


def test_get_log_summary_arquivo_inexistente(logs_tmp):
    assert "não encontrado" in logger.get_log_summary("saidas")
    assert "não encontrado" in logger.get_log_summary("desconhecido")


def test_baixa_gera_logs(logs_tmp, store, seed_produto, ator):
    seed_produto("ABC", quantity=5)
    run_baixa(store, "ABC", 2, ator)
    saidas = logs_tmp["saidas"].read_text(encoding="utf-8")
    assert "SAIDA_REQUEST" in saidas and "SAIDA_COMMIT" in saidas
    assert "TRANSACTION_SUCCESS: baixa" in logs_tmp["transactions"].read_text(encoding="utf-8")
