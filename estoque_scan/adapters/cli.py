# estoque_scan/adapters/cli.py
"""
CLI do motor de baixa de estoque (Typer).

Comandos principais:
- migrate                   -> cria/atualiza o schema do banco de documentos
- produto add/list/kits/... -> cadastro de produtos e kits
- baixa <codigo>            -> leitura do scanner: baixa ou rastreio (fallback)
- entrada <codigo>          -> entrada de estoque
- mov list/export/delete    -> livro de movimentos
- rastreio list/delete      -> códigos de rastreio registrados
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from estoque_scan.config import DB_PATH, DEFAULTS
from estoque_scan.domain.errors import EstoqueError, TipoErro
from estoque_scan.domain.models import Ator, FiltrosMovimento, FiltrosRastreio, KitAlias
from estoque_scan.adapters.exporters import exportar_arquivo
from estoque_scan.adapters.parsers import parse_quantidade_digitada
from estoque_scan.infra.docstore import DocumentStore
from estoque_scan.infra.migrations import apply_migrations
from estoque_scan.usecases.movimentos import (
    excluir_movimento,
    exportar_movimentos,
    listar_movimentos,
    listar_usuarios_movimento,
)
from estoque_scan.usecases.produtos import (
    criar_produto,
    definir_kits,
    excluir_produto,
    listar_produtos,
    verificar_kits,
)
from estoque_scan.usecases.rastreio import excluir_rastreio, listar_rastreios
from estoque_scan.usecases.registrar_saida import run_entrada
from estoque_scan.usecases.scan import processar_scan


app = typer.Typer(help="Estoque: baixa por leitura de código")
console = Console()

# Código de saída por tipo de erro
EXIT_CODES = {
    TipoErro.UNAUTHENTICATED: 8,
    TipoErro.INVALID_QUANTITY: 3,
    TipoErro.PRODUCT_NOT_FOUND: 4,
    TipoErro.INSUFFICIENT_STOCK: 5,
    TipoErro.UNRECOGNIZED_CODE: 4,
    TipoErro.MOVEMENT_NOT_FOUND: 6,
    TipoErro.EMPTY_CODE: 3,
    TipoErro.DUPLICATE_SKU: 7,
    TipoErro.TRANSACTION_FAILED: 10,
}

DB_OPTION = typer.Option(DB_PATH, "--db", help="Caminho do banco SQLite")
DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]
QTD_HELP = "Quantidade (frações truncadas; texto sem número vira 1; zero ou negativo é rejeitado)"


# -----------------------
# util
# -----------------------

def _print_json(obj) -> None:
    typer.echo(json.dumps(obj, ensure_ascii=False, indent=2, default=str))


def _fmt(val: Any) -> str:
    if val is None:
        return ""
    if isinstance(val, float):
        return f"{val:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    if isinstance(val, datetime):
        return val.strftime("%d/%m/%Y %H:%M:%S")
    return str(val)


def _display_table(rows: List[Dict[str, Any]], title: str) -> None:
    """Exibe uma lista de dicionários em tabela Rich."""
    if not rows:
        console.print(Panel("Nenhum dado encontrado", title=title, border_style="yellow"))
        return
    table = Table(title=title, box=box.ROUNDED)
    columns = list(rows[0].keys())
    for column in columns:
        justify = "right" if column in ("qtd", "quantidade", "preco", "total", "mult") else "left"
        table.add_column(column, justify=justify)
    for row in rows:
        table.add_row(*[_fmt(row.get(c)) for c in columns])
    console.print(table)


def _executar(fn: Callable[[DocumentStore], Any], db_path: str) -> Any:
    """Abre o banco, executa `fn` e traduz erros de domínio para saída/exit code."""
    try:
        with DocumentStore(db_path) as store:
            return fn(store)
    except EstoqueError as e:
        console.print(f"[bold red]{e.mensagem_usuario}[/] [dim]({e.tipo.value})[/dim]")
        raise typer.Exit(code=EXIT_CODES.get(e.tipo, 1))


def _ator(user_id: Optional[str], nome: Optional[str]) -> Optional[Ator]:
    if not user_id:
        return None
    return Ator(user_id=user_id, user_name=nome or "")


def _quantidade(txt: str) -> Any:
    """Quantidade do --qtd: números <= 0 seguem crus para a validação do domínio."""
    try:
        num = float(txt.strip().replace(",", "."))
    except ValueError:
        return parse_quantidade_digitada(txt)
    return num if num <= 0 else parse_quantidade_digitada(txt)


def _parse_kit(txt: str) -> KitAlias:
    """Formato: SKU[:MULTIPLICADOR[:RÓTULO]]"""
    partes = txt.split(":", 2)
    sku = partes[0].strip()
    if not sku:
        raise typer.BadParameter(f"Kit inválido: {txt!r}")
    mult = partes[1] if len(partes) > 1 else "1"
    if not mult.strip().isdigit() or int(mult) < 1:
        raise typer.BadParameter(f"Multiplicador inválido em {txt!r}")
    label = partes[2].strip() if len(partes) > 2 else ""
    return KitAlias(sku=sku, label=label, multiplier=int(mult))


def _produto_row(p) -> Dict[str, Any]:
    return {
        "id": p.id,
        "sku": p.sku,
        "nome": p.name,
        "quantidade": p.quantity,
        "preco": p.unit_price,
        "total": p.total_value,
        "kits": ", ".join(f"{k.sku}x{k.multiplier}" for k in p.kits),
    }


def _mov_row(m) -> Dict[str, Any]:
    return {
        "id": m.id,
        "data": m.timestamp,
        "tipo": m.type,
        "sku": m.sku,
        "lido": m.scanned_sku or "",
        "mult": m.multiplier or 1,
        "qtd": m.qty,
        "total": m.total_value,
        "usuario": m.user_name,
    }


# -----------------------
# comandos de infra
# -----------------------

@app.command("migrate")
def cmd_migrate(db_path: str = DB_OPTION):
    """Aplica migrações no banco de documentos."""
    apply_migrations(db_path)
    typer.echo(f">> Migrações aplicadas em: {db_path}")


# -----------------------
# produtos
# -----------------------

produto_app = typer.Typer(help="Cadastro de produtos e kits.")
app.add_typer(produto_app, name="produto")


@produto_app.command("add")
def cmd_produto_add(
    sku: str = typer.Argument(..., help="SKU do produto"),
    nome: str = typer.Option("", "--nome"),
    preco: float = typer.Option(0.0, "--preco", help="Preço unitário"),
    quantidade: int = typer.Option(0, "--qtd", help="Estoque inicial"),
    categoria: Optional[str] = typer.Option(None, "--categoria"),
    fornecedor: Optional[str] = typer.Option(None, "--fornecedor"),
    minimo: Optional[int] = typer.Option(None, "--minimo", help="Estoque mínimo"),
    kit: List[str] = typer.Option([], "--kit", help="SKU[:MULT[:RÓTULO]] (repetível)"),
    db_path: str = DB_OPTION,
):
    """Cadastra um produto (com kits opcionais)."""
    kits = [_parse_kit(k) for k in kit]
    p = _executar(lambda s: criar_produto(s, {
        "sku": sku, "name": nome, "unit_price": preco, "quantity": quantidade,
        "category": categoria, "supplier": fornecedor, "estoque_minimo": minimo, "kits": kits,
    }), db_path)
    _display_table([_produto_row(p)], title="Produto Cadastrado")


@produto_app.command("list")
def cmd_produto_list(
    as_json: bool = typer.Option(False, "--json"),
    db_path: str = DB_OPTION,
):
    """Lista os produtos."""
    produtos = _executar(listar_produtos, db_path)
    if as_json:
        _print_json([asdict(p) for p in produtos])
        return
    _display_table([_produto_row(p) for p in produtos], title="Produtos")


@produto_app.command("kits")
def cmd_produto_kits(
    product_id: str = typer.Argument(..., help="ID do produto"),
    kit: List[str] = typer.Option([], "--kit", help="SKU[:MULT[:RÓTULO]] (repetível; vazio remove todos)"),
    db_path: str = DB_OPTION,
):
    """Substitui os kits de um produto."""
    kits = [_parse_kit(k) for k in kit]
    p = _executar(lambda s: definir_kits(s, product_id, kits), db_path)
    _display_table([_produto_row(p)], title="Kits Atualizados")


@produto_app.command("delete")
def cmd_produto_delete(product_id: str = typer.Argument(...), db_path: str = DB_OPTION):
    """Remove um produto."""
    _executar(lambda s: excluir_produto(s, product_id), db_path)
    typer.echo(">> Produto removido.")


@produto_app.command("auditar-kits")
def cmd_produto_auditar(db_path: str = DB_OPTION):
    """Aponta SKUs de kit ambíguos (em vários produtos ou iguais a um SKU)."""
    conflitos = _executar(verificar_kits, db_path)
    _display_table([asdict(c) for c in conflitos], title="Conflitos de Kit")
    if conflitos:
        raise typer.Exit(code=1)


# -----------------------
# movimentação
# -----------------------

@app.command("baixa")
def cmd_baixa(
    codigo: str = typer.Argument(..., help="Código lido (SKU, kit ou rastreio)"),
    quantidade: str = typer.Option("1", "--qtd", help=QTD_HELP),
    user_id: Optional[str] = typer.Option(None, "--user", envvar="ESTOQUE_USER_ID"),
    nome: Optional[str] = typer.Option(None, "--nome", envvar="ESTOQUE_USER_NAME"),
    db_path: str = DB_OPTION,
):
    """Processa uma leitura: baixa do produto ou registro de rastreio."""
    qtd = _quantidade(quantidade)
    res = _executar(lambda s: processar_scan(s, codigo, qtd, _ator(user_id, nome)), db_path)
    if res.tipo == "rastreio":
        console.print(Panel(f"Codigo {res.rastreio.code} registrado.", title="Rastreio", border_style="cyan"))
        return
    b = res.baixa
    linhas = [
        f"Produto: {b.product.sku} - {b.product.name}",
        f"Lido: {b.scanned_sku}" + (f" (kit x{b.kit.multiplier})" if b.kit else ""),
        f"Baixa: {b.effective_qty}",
        f"Estoque atual: {b.product.quantity}",
    ]
    console.print(Panel("\n".join(linhas), title="Baixa realizada", border_style="green"))


@app.command("entrada")
def cmd_entrada(
    codigo: str = typer.Argument(...),
    quantidade: str = typer.Option("1", "--qtd", help=QTD_HELP),
    user_id: Optional[str] = typer.Option(None, "--user", envvar="ESTOQUE_USER_ID"),
    nome: Optional[str] = typer.Option(None, "--nome", envvar="ESTOQUE_USER_NAME"),
    db_path: str = DB_OPTION,
):
    """Registra uma entrada de estoque."""
    qtd = _quantidade(quantidade)
    b = _executar(lambda s: run_entrada(s, codigo, qtd, _ator(user_id, nome)), db_path)
    console.print(Panel(
        f"Produto: {b.product.sku}\nEntrada: {b.effective_qty}\nEstoque atual: {b.product.quantity}",
        title="Entrada registrada", border_style="green",
    ))


# -----------------------
# livro de movimentos
# -----------------------

mov_app = typer.Typer(help="Livro de movimentos.")
app.add_typer(mov_app, name="mov")


def _filtros_mov(sku, lido, user_id, tipo, inicio, fim, limite=None) -> FiltrosMovimento:
    return FiltrosMovimento(limit=limite, sku=sku, scanned_sku=lido, user_id=user_id,
                            tipo=tipo, inicio=inicio, fim=fim)


@mov_app.command("list")
def cmd_mov_list(
    sku: Optional[str] = typer.Option(None, "--sku"),
    lido: Optional[str] = typer.Option(None, "--lido", help="SKU lido (kit)"),
    user_id: Optional[str] = typer.Option(None, "--user"),
    tipo: Optional[str] = typer.Option(None, "--tipo", help="out | in"),
    inicio: Optional[datetime] = typer.Option(None, "--inicio", formats=DATE_FORMATS),
    fim: Optional[datetime] = typer.Option(None, "--fim", formats=DATE_FORMATS),
    limite: int = typer.Option(DEFAULTS.page_limit, "--limit"),
    as_json: bool = typer.Option(False, "--json"),
    db_path: str = DB_OPTION,
):
    """Lista a primeira página de movimentos (mais recentes primeiro)."""
    pagina = _executar(lambda s: listar_movimentos(s, _filtros_mov(sku, lido, user_id, tipo, inicio, fim, limite)), db_path)
    if as_json:
        _print_json([asdict(m) for m in pagina.movements])
        return
    _display_table([_mov_row(m) for m in pagina.movements], title="Movimentos")


@mov_app.command("export")
def cmd_mov_export(
    arquivo: str = typer.Argument(..., help="Destino .xlsx ou .csv"),
    sku: Optional[str] = typer.Option(None, "--sku"),
    lido: Optional[str] = typer.Option(None, "--lido"),
    user_id: Optional[str] = typer.Option(None, "--user"),
    tipo: Optional[str] = typer.Option(None, "--tipo"),
    inicio: Optional[datetime] = typer.Option(None, "--inicio", formats=DATE_FORMATS),
    fim: Optional[datetime] = typer.Option(None, "--fim", formats=DATE_FORMATS),
    maximo: int = typer.Option(DEFAULTS.export_max, "--max"),
    db_path: str = DB_OPTION,
):
    """Exporta movimentos (até --max registros) para planilha."""
    movs = _executar(lambda s: exportar_movimentos(s, _filtros_mov(sku, lido, user_id, tipo, inicio, fim), maximo), db_path)
    n = exportar_arquivo(movs, arquivo)
    typer.echo(f">> {n} movimentos exportados para {arquivo}")


@mov_app.command("delete")
def cmd_mov_delete(movement_id: str = typer.Argument(...), db_path: str = DB_OPTION):
    """Exclui um movimento e estorna o estoque."""
    produto = _executar(lambda s: excluir_movimento(s, movement_id), db_path)
    if produto is None:
        typer.echo(">> Movimento excluído (produto inexistente, sem estorno).")
    else:
        typer.echo(f">> Movimento excluído. Estoque de {produto.sku}: {produto.quantity}")


@mov_app.command("usuarios")
def cmd_mov_usuarios(db_path: str = DB_OPTION):
    """Usuários que aparecem no livro de movimentos."""
    _display_table(_executar(listar_usuarios_movimento, db_path), title="Usuários")


# -----------------------
# rastreios
# -----------------------

rastreio_app = typer.Typer(help="Códigos de rastreio.")
app.add_typer(rastreio_app, name="rastreio")


@rastreio_app.command("list")
def cmd_rastreio_list(
    codigo: Optional[str] = typer.Option(None, "--codigo", help="Prefixo do código"),
    user_id: Optional[str] = typer.Option(None, "--user"),
    inicio: Optional[datetime] = typer.Option(None, "--inicio", formats=DATE_FORMATS),
    fim: Optional[datetime] = typer.Option(None, "--fim", formats=DATE_FORMATS),
    limite: int = typer.Option(DEFAULTS.page_limit, "--limit"),
    as_json: bool = typer.Option(False, "--json"),
    db_path: str = DB_OPTION,
):
    """Lista códigos de rastreio registrados."""
    filtros = FiltrosRastreio(limit=limite, user_id=user_id, code=codigo, inicio=inicio, fim=fim)
    pagina = _executar(lambda s: listar_rastreios(s, filtros), db_path)
    if as_json:
        _print_json([asdict(r) for r in pagina.records])
        return
    _display_table([
        {"id": r.id, "codigo": r.code, "usuario": r.user_name, "data": r.created_at, "produto": r.product_sku or ""}
        for r in pagina.records
    ], title="Rastreios")


@rastreio_app.command("delete")
def cmd_rastreio_delete(record_id: str = typer.Argument(...), db_path: str = DB_OPTION):
    """Remove um código de rastreio."""
    _executar(lambda s: excluir_rastreio(s, record_id), db_path)
    typer.echo(">> Rastreio removido.")


# Entry point opcional:
def main():
    app()


if __name__ == "__main__":
    main()
