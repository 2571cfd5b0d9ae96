# estoque_scan/infra/docstore.py
"""
Banco de documentos transacional sobre SQLite.

Cada documento é um JSON guardado na tabela `documents` (coleção, id, data).
A API segue o modelo de coleções/documentos:

- `collection(nome)` / `doc(colecao, id)` -> referências
- `query(colecao, where(...), order_by(...), start_after(...), limit(...))`
- `get_docs`, `get_doc`, `add_doc`, `update_doc`, `delete_doc`
- `run_transaction(fn)`: executa `fn(tx)` dentro de BEGIN IMMEDIATE e devolve
  o valor retornado por `fn`. Conflitos de lock reexecutam o corpo inteiro.
- `SERVER_TIMESTAMP`: sentinela substituída pelo horário do commit.

O cliente é criado explicitamente e tem ciclo de vida `connect()` / `close()`.
"""

from __future__ import annotations

import json
import re
import sqlite3
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from estoque_scan.config import DEFAULTS
from estoque_scan.domain.errors import FalhaTransacao
from estoque_scan.infra.db import open_connection
from estoque_scan.infra.migrations import apply_migrations
from estoque_scan.infra.logger import log_database_operation, log_system_event


ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
_CAMPO_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_OPERADORES = {"==": "=", ">=": ">=", "<=": "<=", ">": ">", "<": "<"}


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def to_iso(dt: datetime) -> str:
    """Serializa em UTC com microssegundos (ordem lexicográfica == cronológica).

    Datas sem fuso são tratadas como UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(ISO_FORMAT)


def from_iso(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.strptime(value, ISO_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


# -------------------------
# Referências e snapshots
# -------------------------

@dataclass(frozen=True)
class CollectionRef:
    name: str


@dataclass(frozen=True)
class DocRef:
    collection: str
    id: str

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.id}"


@dataclass
class DocSnapshot:
    ref: DocRef
    data: Optional[Dict[str, Any]]

    @property
    def id(self) -> str:
        return self.ref.id

    @property
    def exists(self) -> bool:
        return self.data is not None

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.data or {})

    def get(self, campo: str, default: Any = None) -> Any:
        return (self.data or {}).get(campo, default)


# -------------------------
# Restrições de consulta
# -------------------------

@dataclass(frozen=True)
class Where:
    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: str = "asc"


@dataclass(frozen=True)
class Limit:
    n: int


@dataclass(frozen=True)
class StartAfter:
    cursor: DocSnapshot


@dataclass(frozen=True)
class StartAt:
    value: Any


@dataclass(frozen=True)
class EndAt:
    value: Any


def where(campo: str, op: str, value: Any) -> Where:
    if op not in _OPERADORES and op != "array-contains":
        raise ValueError(f"Operador não suportado: {op}")
    return Where(campo, op, value)


def order_by(campo: str, direction: str = "asc") -> OrderBy:
    if direction not in ("asc", "desc"):
        raise ValueError(f"Direção inválida: {direction}")
    return OrderBy(campo, direction)


def limit(n: int) -> Limit:
    return Limit(int(n))


def start_after(cursor: DocSnapshot) -> StartAfter:
    return StartAfter(cursor)


def start_at(value: Any) -> StartAt:
    return StartAt(value)


def end_at(value: Any) -> EndAt:
    return EndAt(value)


@dataclass
class Query:
    collection: str
    constraints: Tuple[Any, ...] = field(default_factory=tuple)


def _nome_campo(nome: str) -> str:
    if not _CAMPO_RE.match(nome):
        raise ValueError(f"Nome de campo inválido: {nome!r}")
    return nome


def _campo(nome: str) -> str:
    """Expressão SQL para um campo de primeiro nível (literal, para usar os índices)."""
    return f"json_extract(data, '$.{_nome_campo(nome)}')"


def _encode(value: Any, agora: str) -> Any:
    if value is SERVER_TIMESTAMP:
        return agora
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, dict):
        return {k: _encode(v, agora) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v, agora) for v in value]
    return value


def _param(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso(value)
    return value


def _compilar(q: Query) -> Tuple[str, List[Any]]:
    conds = ["collection = ?"]
    params: List[Any] = [q.collection]
    ordens: List[OrderBy] = []
    cursor: Optional[DocSnapshot] = None
    inicio = fim = None
    n: Optional[int] = None

    for c in q.constraints:
        if isinstance(c, Where):
            if c.op == "array-contains":
                conds.append(f"EXISTS (SELECT 1 FROM json_each(data, '$.{_nome_campo(c.field)}') WHERE value = ?)")
                params.append(_param(c.value))
            else:
                conds.append(f"{_campo(c.field)} {_OPERADORES[c.op]} ?")
                params.append(_param(c.value))
        elif isinstance(c, OrderBy):
            ordens.append(c)
        elif isinstance(c, StartAfter):
            cursor = c.cursor
        elif isinstance(c, StartAt):
            inicio = c.value
        elif isinstance(c, EndAt):
            fim = c.value
        elif isinstance(c, Limit):
            n = c.n
        else:
            raise TypeError(f"Restrição desconhecida: {c!r}")

    if ordens:
        principal = ordens[0]
        expr = _campo(principal.field)
        desc = principal.direction == "desc"
        # Documentos sem o campo de ordenação ficam fora do resultado
        for o in ordens:
            conds.append(f"{_campo(o.field)} IS NOT NULL")
        if inicio is not None:
            conds.append(f"{expr} {'<=' if desc else '>='} ?")
            params.append(_param(inicio))
        if fim is not None:
            conds.append(f"{expr} {'>=' if desc else '<='} ?")
            params.append(_param(fim))
        if cursor is not None:
            op = "<" if desc else ">"
            conds.append(f"({expr} {op} ? OR ({expr} = ? AND id {op} ?))")
            valor = _param(cursor.get(principal.field))
            params.extend([valor, valor, cursor.id])
        order_sql = ", ".join(f"{_campo(o.field)} {o.direction.upper()}" for o in ordens)
        order_sql += f", id {'DESC' if desc else 'ASC'}"
    else:
        if cursor is not None:
            conds.append("id > ?")
            params.append(cursor.id)
        order_sql = "id ASC"

    sql = f"SELECT id, data FROM documents WHERE {' AND '.join(conds)} ORDER BY {order_sql}"
    if n is not None:
        sql += " LIMIT ?"
        params.append(n)
    return sql, params


def _is_lock_error(exc: sqlite3.Error) -> bool:
    msg = str(exc).lower()
    return isinstance(exc, sqlite3.OperationalError) and ("locked" in msg or "busy" in msg)


# -------------------------
# Transação
# -------------------------

class Transaction:
    """
    Leituras vão direto ao banco (já sob o lock do BEGIN IMMEDIATE);
    escritas ficam pendentes e são aplicadas no commit, com um único horário.
    """

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._escritas: List[Tuple[str, DocRef, Optional[Dict[str, Any]]]] = []

    def get(self, ref: DocRef) -> DocSnapshot:
        return self._store._ler(ref)

    def get_docs(self, q: Query) -> List[DocSnapshot]:
        return self._store._consultar(q)

    def set(self, ref: DocRef, data: Dict[str, Any]) -> "Transaction":
        self._escritas.append(("set", ref, dict(data)))
        return self

    def update(self, ref: DocRef, fields: Dict[str, Any]) -> "Transaction":
        self._escritas.append(("update", ref, dict(fields)))
        return self

    def delete(self, ref: DocRef) -> "Transaction":
        self._escritas.append(("delete", ref, None))
        return self

    def _aplicar(self, conn: sqlite3.Connection, agora: str) -> None:
        for op, ref, data in self._escritas:
            if op == "set":
                conn.execute(
                    "INSERT INTO documents (collection, id, data) VALUES (?, ?, ?) "
                    "ON CONFLICT(collection, id) DO UPDATE SET data = excluded.data",
                    (ref.collection, ref.id, json.dumps(_encode(data, agora), ensure_ascii=False)),
                )
            elif op == "update":
                row = conn.execute(
                    "SELECT data FROM documents WHERE collection = ? AND id = ?",
                    (ref.collection, ref.id),
                ).fetchone()
                if row is None:
                    raise FalhaTransacao(f"Documento inexistente: {ref.path}")
                atual = json.loads(row["data"])
                atual.update(_encode(data, agora))
                conn.execute(
                    "UPDATE documents SET data = ? WHERE collection = ? AND id = ?",
                    (json.dumps(atual, ensure_ascii=False), ref.collection, ref.id),
                )
            else:
                conn.execute(
                    "DELETE FROM documents WHERE collection = ? AND id = ?",
                    (ref.collection, ref.id),
                )
            log_database_operation(ref.collection, op.upper(), 1, id=ref.id)


# -------------------------
# Cliente
# -------------------------

class DocumentStore:
    """Cliente do banco de documentos. Deve ser conectado antes do uso."""

    def __init__(
        self,
        db_path: str,
        tentativas: int = DEFAULTS.tx_tentativas,
        backoff: float = DEFAULTS.tx_backoff,
        timeout: float = DEFAULTS.busy_timeout,
        relogio: Optional[Callable[[], datetime]] = None,
    ):
        self.db_path = db_path
        self.tentativas = max(1, int(tentativas))
        self.backoff = backoff
        self.timeout = timeout
        self.relogio = relogio or (lambda: datetime.now(timezone.utc))
        self._conn: Optional[sqlite3.Connection] = None

    # ciclo de vida

    def connect(self) -> "DocumentStore":
        if self._conn is None:
            apply_migrations(self.db_path)
            self._conn = open_connection(self.db_path, timeout=self.timeout)
            log_system_event("docstore_connect", {"db_path": self.db_path})
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            log_system_event("docstore_close", {"db_path": self.db_path})

    def __enter__(self) -> "DocumentStore":
        return self.connect()

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise FalhaTransacao("Banco de documentos não conectado.")
        return self._conn

    # referências

    def collection(self, name: str) -> CollectionRef:
        return CollectionRef(name)

    def doc(self, collection: Any, doc_id: Optional[str] = None) -> DocRef:
        nome = collection.name if isinstance(collection, CollectionRef) else str(collection)
        return DocRef(nome, doc_id or uuid.uuid4().hex)

    def query(self, collection: Any, *constraints: Any) -> Query:
        nome = collection.name if isinstance(collection, CollectionRef) else str(collection)
        return Query(nome, tuple(constraints))

    def server_timestamp(self) -> _ServerTimestamp:
        return SERVER_TIMESTAMP

    # leitura

    def _ler(self, ref: DocRef) -> DocSnapshot:
        row = self.conn.execute(
            "SELECT data FROM documents WHERE collection = ? AND id = ?",
            (ref.collection, ref.id),
        ).fetchone()
        return DocSnapshot(ref, json.loads(row["data"]) if row else None)

    def _consultar(self, q: Query) -> List[DocSnapshot]:
        sql, params = _compilar(q)
        rows = self.conn.execute(sql, params).fetchall()
        log_database_operation(q.collection, "QUERY", len(rows))
        return [DocSnapshot(DocRef(q.collection, r["id"]), json.loads(r["data"])) for r in rows]

    def get_doc(self, ref: DocRef) -> DocSnapshot:
        try:
            return self._ler(ref)
        except sqlite3.Error as exc:
            raise FalhaTransacao(str(exc)) from exc

    def get_docs(self, q: Query) -> List[DocSnapshot]:
        try:
            return self._consultar(q)
        except sqlite3.Error as exc:
            raise FalhaTransacao(str(exc)) from exc

    # escrita

    def add_doc(self, collection: Any, data: Dict[str, Any]) -> DocRef:
        ref = self.doc(collection)
        self.run_transaction(lambda tx: tx.set(ref, data))
        return ref

    def set_doc(self, ref: DocRef, data: Dict[str, Any]) -> None:
        self.run_transaction(lambda tx: tx.set(ref, data))

    def update_doc(self, ref: DocRef, fields: Dict[str, Any]) -> None:
        self.run_transaction(lambda tx: tx.update(ref, fields))

    def delete_doc(self, ref: DocRef) -> None:
        self.run_transaction(lambda tx: tx.delete(ref))

    def run_transaction(self, fn: Callable[[Transaction], Any]) -> Any:
        """
        Executa `fn(tx)` de forma atômica e devolve o seu resultado.

        Locks concorrentes (database is locked/busy) reexecutam o corpo inteiro
        com backoff exponencial. Esgotadas as tentativas, ou em qualquer outro
        erro do SQLite, levanta FalhaTransacao. Exceções de domínio levantadas
        por `fn` desfazem a transação e são propagadas sem alteração.
        """
        conn = self.conn
        ultimo: Optional[sqlite3.Error] = None
        for tentativa in range(self.tentativas):
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                if not _is_lock_error(exc):
                    raise FalhaTransacao(str(exc)) from exc
                ultimo = exc
                self._esperar(tentativa)
                continue
            try:
                tx = Transaction(self)
                resultado = fn(tx)
                tx._aplicar(conn, to_iso(self.relogio()))
                conn.execute("COMMIT")
                return resultado
            except sqlite3.Error as exc:
                self._rollback()
                if not _is_lock_error(exc):
                    raise FalhaTransacao(str(exc)) from exc
                ultimo = exc
                self._esperar(tentativa)
            except BaseException:
                self._rollback()
                raise
        log_system_event("transaction_retries_exhausted", {"tentativas": self.tentativas}, level="error")
        raise FalhaTransacao(f"Transação abortada após {self.tentativas} tentativas: {ultimo}")

    def _rollback(self) -> None:
        if self.conn.in_transaction:
            self.conn.execute("ROLLBACK")

    def _esperar(self, tentativa: int) -> None:
        log_database_operation("*", "RETRY", 0, tentativa=tentativa + 1)
        time.sleep(self.backoff * (2 ** tentativa))
