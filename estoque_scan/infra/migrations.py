# estoque_scan/infra/migrations.py
"""
Migrações de schema usando PRAGMA user_version.

V1: tabela única de documentos (coleção, id, JSON)
V2: índices de expressão para os campos consultados pelo núcleo
"""

from __future__ import annotations

from typing import List
from .db import connect


SCHEMA_V1: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS documents (
        collection TEXT NOT NULL,
        id TEXT NOT NULL,
        data TEXT NOT NULL,     -- JSON do documento
        PRIMARY KEY (collection, id)
    );
    """,
]

# Os campos precisam bater literalmente com as expressões geradas em docstore._campo()
SCHEMA_V2: List[str] = [
    "CREATE INDEX IF NOT EXISTS ix_doc_sku ON documents (collection, json_extract(data, '$.sku'));",
    "CREATE INDEX IF NOT EXISTS ix_doc_timestamp ON documents (collection, json_extract(data, '$.timestamp'));",
    "CREATE INDEX IF NOT EXISTS ix_doc_scanned ON documents (collection, json_extract(data, '$.scannedSku'));",
    "CREATE INDEX IF NOT EXISTS ix_doc_user ON documents (collection, json_extract(data, '$.userId'));",
    "CREATE INDEX IF NOT EXISTS ix_doc_code ON documents (collection, json_extract(data, '$.codeNormalized'));",
    "CREATE INDEX IF NOT EXISTS ix_doc_created ON documents (collection, json_extract(data, '$.createdAt'));",
]


def _apply_v1(conn) -> None:
    for sql in SCHEMA_V1:
        conn.executescript(sql)


def _apply_v2(conn) -> None:
    for sql in SCHEMA_V2:
        conn.execute(sql)


def apply_migrations(db_path: str) -> None:
    """Aplica migrações incrementais de acordo com PRAGMA user_version."""
    with connect(db_path) as conn:
        ver = conn.execute("PRAGMA user_version;").fetchone()[0] or 0

        if ver < 1:
            _apply_v1(conn)
            conn.execute("PRAGMA user_version = 1;")
            ver = 1

        if ver < 2:
            _apply_v2(conn)
            conn.execute("PRAGMA user_version = 2;")
            ver = 2
