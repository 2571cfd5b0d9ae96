# estoque_scan/infra/repositories.py
"""
Repositórios e codecs para as coleções do núcleo.

Codecs (fronteira única documento <-> dataclass):
- ProdutoCodec    (coleção `products`)
- MovimentoCodec  (coleção `stockMovements`)
- RastreioCodec   (coleção `trackingCodes`)

Repositórios:
- ProdutoRepo
- MovimentoRepo
- RastreioRepo

Os use cases nunca manipulam dicionários vindos do banco: tudo passa
pelos codecs abaixo.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from estoque_scan.domain.models import (
    TIPO_SAIDA,
    Movimento,
    Produto,
    ProdutoRastreio,
    Rastreio,
)
from estoque_scan.domain.policies import normalizar_kit_skus, normalizar_kits
from estoque_scan.infra.docstore import (
    DocRef,
    DocSnapshot,
    DocumentStore,
    Transaction,
    from_iso,
    limit,
    where,
)


PRODUCTS = "products"
STOCK_MOVEMENTS = "stockMovements"
TRACKING_CODES = "trackingCodes"


# -------------------------
# Helpers
# -------------------------

def _str(data: Dict[str, Any], key: str) -> str:
    val = data.get(key)
    return val if isinstance(val, str) else ""


def _opt_str(data: Dict[str, Any], key: str) -> Optional[str]:
    val = data.get(key)
    return val if isinstance(val, str) and val else None


def _num(data: Dict[str, Any], key: str, default: float = 0.0) -> float:
    val = data.get(key)
    if isinstance(val, bool):
        return default
    try:
        return float(val) if val is not None else default
    except (TypeError, ValueError):
        return default


def _opt_num(data: Dict[str, Any], key: str) -> Optional[float]:
    val = data.get(key)
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        return None
    return float(val)


def _opt_int(data: Dict[str, Any], key: str) -> Optional[int]:
    val = _opt_num(data, key)
    return int(val) if val is not None else None


def _sem_nulos(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


# -------------------------
# Codecs
# -------------------------

class ProdutoCodec:
    @staticmethod
    def from_doc(snap: DocSnapshot) -> Produto:
        data = snap.to_dict()
        return Produto(
            id=snap.id,
            sku=_str(data, "sku"),
            name=_str(data, "name"),
            unit_price=_num(data, "unitPrice"),
            quantity=int(_num(data, "quantity")),
            total_value=_num(data, "totalValue"),
            category=_opt_str(data, "category"),
            supplier=_opt_str(data, "supplier"),
            estoque_minimo=_opt_int(data, "estoqueMinimo"),
            kits=normalizar_kits(data.get("kits")),
            kit_skus=normalizar_kit_skus(data.get("kitSkus")),
        )

    @staticmethod
    def to_doc(p: Produto) -> Dict[str, Any]:
        return {
            "sku": p.sku,
            "name": p.name,
            "unitPrice": p.unit_price,
            "quantity": p.quantity,
            "totalValue": p.total_value,
            "category": p.category,
            "supplier": p.supplier,
            "estoqueMinimo": p.estoque_minimo,
            "kits": [{"sku": k.sku, "label": k.label, "multiplier": k.multiplier} for k in p.kits],
            "kitSkus": list(p.kit_skus),
        }


class MovimentoCodec:
    @staticmethod
    def from_doc(snap: DocSnapshot) -> Movimento:
        data = snap.to_dict()
        tipo = data.get("type")
        return Movimento(
            id=snap.id,
            product_id=_str(data, "productId"),
            sku=_str(data, "sku"),
            type=tipo if isinstance(tipo, str) else TIPO_SAIDA,
            qty=int(_num(data, "qty")),
            user_id=_str(data, "userId"),
            user_name=_str(data, "userName"),
            timestamp=from_iso(data.get("timestamp")),
            unit_price=_opt_num(data, "unitPrice"),
            total_value=_opt_num(data, "totalValue"),
            parent_sku=_opt_str(data, "parentSku"),
            scanned_sku=_opt_str(data, "scannedSku"),
            multiplier=_opt_int(data, "multiplier"),
            effective_qty=_opt_int(data, "effectiveQty"),
        )

    @staticmethod
    def to_doc(m: Movimento, timestamp: Any) -> Dict[str, Any]:
        return _sem_nulos({
            "id": m.id,
            "productId": m.product_id,
            "sku": m.sku,
            "qty": m.qty,
            "type": m.type,
            "userId": m.user_id,
            "userName": m.user_name,
            "timestamp": timestamp,
            "unitPrice": m.unit_price,
            "totalValue": m.total_value,
            "parentSku": m.parent_sku,
            "scannedSku": m.scanned_sku,
            "multiplier": m.multiplier,
            "effectiveQty": m.effective_qty,
        })


class RastreioCodec:
    @staticmethod
    def from_doc(snap: DocSnapshot) -> Rastreio:
        data = snap.to_dict()
        produtos = []
        for item in data.get("products") or []:
            if not isinstance(item, dict) or not _str(item, "sku"):
                continue
            produtos.append(ProdutoRastreio(
                sku=_str(item, "sku"),
                name=_opt_str(item, "name"),
                quantity=_opt_int(item, "quantity"),
                scanned_sku=_opt_str(item, "scannedSku"),
            ))
        return Rastreio(
            id=snap.id,
            code=_str(data, "code"),
            code_normalized=_str(data, "codeNormalized") or _str(data, "code").upper(),
            user_id=_str(data, "userId"),
            user_name=_str(data, "userName"),
            created_at=from_iso(data.get("createdAt")),
            product_sku=_opt_str(data, "productSku"),
            product_name=_opt_str(data, "productName"),
            stock_movement_id=_opt_str(data, "stockMovementId"),
            products=produtos,
        )

    @staticmethod
    def to_doc(r: Rastreio, created_at: Any) -> Dict[str, Any]:
        doc = _sem_nulos({
            "code": r.code,
            "codeNormalized": r.code_normalized,
            "userId": r.user_id,
            "userName": r.user_name,
            "createdAt": created_at,
            "productSku": r.product_sku,
            "productName": r.product_name,
            "stockMovementId": r.stock_movement_id,
        })
        if r.products:
            doc["products"] = [
                _sem_nulos({"sku": p.sku, "name": p.name, "quantity": p.quantity, "scannedSku": p.scanned_sku})
                for p in r.products
            ]
        return doc


# -------------------------
# Produto
# -------------------------

class ProdutoRepo:
    def __init__(self, store: DocumentStore):
        self.store = store

    def ref(self, product_id: Optional[str] = None) -> DocRef:
        return self.store.doc(PRODUCTS, product_id)

    def get(self, product_id: str) -> Optional[Produto]:
        snap = self.store.get_doc(self.ref(product_id))
        return ProdutoCodec.from_doc(snap) if snap.exists else None

    def get_in(self, tx: Transaction, product_id: str) -> Optional[Produto]:
        snap = tx.get(self.ref(product_id))
        return ProdutoCodec.from_doc(snap) if snap.exists else None

    def find_by_sku(self, sku: str) -> Optional[Produto]:
        q = self.store.query(PRODUCTS, where("sku", "==", sku), limit(1))
        snaps = self.store.get_docs(q)
        return ProdutoCodec.from_doc(snaps[0]) if snaps else None

    def find_by_kit_sku(self, sku: str) -> Optional[Produto]:
        q = self.store.query(PRODUCTS, where("kitSkus", "array-contains", sku), limit(1))
        snaps = self.store.get_docs(q)
        return ProdutoCodec.from_doc(snaps[0]) if snaps else None

    def find_all_by_kit_sku(self, sku: str, tx: Optional[Transaction] = None) -> List[Produto]:
        q = self.store.query(PRODUCTS, where("kitSkus", "array-contains", sku))
        snaps = tx.get_docs(q) if tx else self.store.get_docs(q)
        return [ProdutoCodec.from_doc(s) for s in snaps]

    def find_all_by_sku(self, sku: str, tx: Optional[Transaction] = None) -> List[Produto]:
        q = self.store.query(PRODUCTS, where("sku", "==", sku))
        snaps = tx.get_docs(q) if tx else self.store.get_docs(q)
        return [ProdutoCodec.from_doc(s) for s in snaps]

    def get_all(self) -> List[Produto]:
        return [ProdutoCodec.from_doc(s) for s in self.store.get_docs(self.store.query(PRODUCTS))]

    def set_in(self, tx: Transaction, p: Produto) -> None:
        tx.set(self.ref(p.id), ProdutoCodec.to_doc(p))

    def update_stock_in(self, tx: Transaction, product_id: str, quantity: int, total_value: float) -> None:
        tx.update(self.ref(product_id), {"quantity": quantity, "totalValue": total_value})


# -------------------------
# Movimentos
# -------------------------

class MovimentoRepo:
    def __init__(self, store: DocumentStore):
        self.store = store

    def ref(self, movement_id: Optional[str] = None) -> DocRef:
        return self.store.doc(STOCK_MOVEMENTS, movement_id)

    def get_in(self, tx: Transaction, movement_id: str) -> Optional[Movimento]:
        snap = tx.get(self.ref(movement_id))
        return MovimentoCodec.from_doc(snap) if snap.exists else None

    def insert_in(self, tx: Transaction, m: Movimento) -> None:
        tx.set(self.ref(m.id), MovimentoCodec.to_doc(m, self.store.server_timestamp()))

    def delete_in(self, tx: Transaction, movement_id: str) -> None:
        tx.delete(self.ref(movement_id))

    def query(self, *constraints: Any) -> List[DocSnapshot]:
        return self.store.get_docs(self.store.query(STOCK_MOVEMENTS, *constraints))


# -------------------------
# Rastreios
# -------------------------

class RastreioRepo:
    def __init__(self, store: DocumentStore):
        self.store = store

    def ref(self, record_id: Optional[str] = None) -> DocRef:
        return self.store.doc(TRACKING_CODES, record_id)

    def insert(self, r: Rastreio) -> Optional[Rastreio]:
        ref = self.store.add_doc(TRACKING_CODES, RastreioCodec.to_doc(r, self.store.server_timestamp()))
        snap = self.store.get_doc(ref)
        return RastreioCodec.from_doc(snap) if snap.exists else None

    def delete(self, record_id: str) -> None:
        self.store.delete_doc(self.ref(record_id))

    def query(self, *constraints: Any) -> List[DocSnapshot]:
        return self.store.get_docs(self.store.query(TRACKING_CODES, *constraints))
