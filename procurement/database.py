"""
SQLite persistence layer for the procurement store.

The store keeps four collections in memory and mirrors every change here.
Each collection is one keyed JSON blob in the `collections` table:

  products      Product records (stock levels, prices, status)
  suppliers     Supplier records
  orders        PurchaseOrder records
  requisitions  PurchaseRequisition records

A change rewrites the affected collections in full.  Changes spanning more
than one collection (PR conversion, order receipt, seeding) are written in a
single transaction so a crash never leaves them half-applied.

Load-time migration
-------------------
  Products saved before the status field existed are loaded as ACTIVE.
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

COLLECTION_PRODUCTS     = "products"
COLLECTION_SUPPLIERS    = "suppliers"
COLLECTION_ORDERS       = "orders"
COLLECTION_REQUISITIONS = "requisitions"
ALL_COLLECTIONS = (
    COLLECTION_PRODUCTS,
    COLLECTION_SUPPLIERS,
    COLLECTION_ORDERS,
    COLLECTION_REQUISITIONS,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS collections (
    name        TEXT PRIMARY KEY,   -- products | suppliers | orders | requisitions
    payload     TEXT NOT NULL,      -- JSON array of records
    updated_at  TEXT NOT NULL       -- ISO-8601 UTC
);

CREATE TABLE IF NOT EXISTS audit_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    entity_id   TEXT    NOT NULL,   -- product / supplier / PR / PO id
    timestamp   TEXT    NOT NULL,   -- ISO-8601 UTC
    action      TEXT    NOT NULL,   -- seeded | requisitions_added | converted | rejected |
                                    -- status_changed | received | product_updated | ...
    actor       TEXT    NOT NULL DEFAULT 'system',
    detail      TEXT                -- optional JSON blob with action-specific context
);

CREATE INDEX IF NOT EXISTS idx_audit_entity    ON audit_log (entity_id);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp DESC);
"""


def migrate_products(records: list[dict]) -> list[dict]:
    """Default a missing or empty product status to ACTIVE."""
    return [{**r, "status": r.get("status") or "ACTIVE"} for r in records]


class Database:
    """Thin wrapper around an SQLite database file holding the four collections."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Database schema ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def load_collections(self) -> dict[str, list[dict]]:
        """
        Return every collection as a list of plain dicts.

        Collections that were never saved come back empty.
        """
        with self._conn() as conn:
            rows = conn.execute("SELECT name, payload FROM collections").fetchall()

        data: dict[str, list[dict]] = {name: [] for name in ALL_COLLECTIONS}
        for row in rows:
            if row["name"] not in data:
                logger.warning("Ignoring unknown collection in database: %s", row["name"])
                continue
            data[row["name"]] = json.loads(row["payload"])

        data[COLLECTION_PRODUCTS] = migrate_products(data[COLLECTION_PRODUCTS])
        logger.info(
            "Loaded collections: %s",
            ", ".join(f"{name}={len(records)}" for name, records in data.items()),
        )
        return data

    def save_collections(self, collections: dict[str, list[dict]]) -> None:
        """Rewrite the given collections in full, in one transaction."""
        unknown = set(collections) - set(ALL_COLLECTIONS)
        if unknown:
            raise ValueError(f"Unknown collection(s): {sorted(unknown)}")

        now = datetime.now(timezone.utc).isoformat()
        with self._conn() as conn:
            for name, records in collections.items():
                conn.execute(
                    """
                    INSERT INTO collections (name, payload, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(name) DO UPDATE SET
                        payload    = excluded.payload,
                        updated_at = excluded.updated_at
                    """,
                    (name, json.dumps(records), now),
                )
        logger.debug("Saved collections: %s", ", ".join(collections))

    def get_stats(self) -> dict:
        """Return the record count and last write time of each collection."""
        with self._conn() as conn:
            rows = conn.execute("SELECT name, payload, updated_at FROM collections").fetchall()
        stats = {name: {"count": 0, "updated_at": None} for name in ALL_COLLECTIONS}
        for row in rows:
            if row["name"] in stats:
                stats[row["name"]] = {
                    "count": len(json.loads(row["payload"])),
                    "updated_at": row["updated_at"],
                }
        return stats

    # ------------------------------------------------------------------
    # JSON export / import
    # ------------------------------------------------------------------

    def export_json(self, path: Path) -> None:
        """Write all four collections to a single JSON document."""
        data = self.load_collections()
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        logger.info("Exported collections to %s", path)

    @staticmethod
    def read_export(path: Path) -> dict[str, list[dict]]:
        """
        Read the collections found in a JSON export (products migrated).

        Collections missing from the file are absent from the result.
        Nothing is written; InventoryStore.import_collections validates and
        commits them.
        """
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, dict):
            raise ValueError(f"Expected a JSON object of collections in {path}")

        data = {name: raw[name] for name in ALL_COLLECTIONS if name in raw}
        for name, records in data.items():
            if not isinstance(records, list):
                raise ValueError(f"Collection {name!r} in {path} is not a list")
        if COLLECTION_PRODUCTS in data:
            data[COLLECTION_PRODUCTS] = migrate_products(data[COLLECTION_PRODUCTS])
        return data

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def log_audit(
        self,
        entity_id: str,
        action: str,
        actor: str = "system",
        detail: Optional[dict] = None,
    ) -> None:
        """Append one entry to the audit log."""
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO audit_log (entity_id, timestamp, action, actor, detail)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    entity_id,
                    datetime.now(timezone.utc).isoformat(),
                    action,
                    actor,
                    json.dumps(detail, default=str) if detail is not None else None,
                ),
            )

    def get_audit_log(self, entity_id: str) -> list[dict]:
        """Return all audit entries for one entity, oldest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT id, timestamp, action, actor, detail
                   FROM audit_log WHERE entity_id = ?
                   ORDER BY timestamp ASC, id ASC""",
                (entity_id,),
            ).fetchall()
        return [dict(r) for r in rows]

    def get_recent_audit_log(self, limit: int = 200, offset: int = 0) -> list[dict]:
        """Return recent audit entries across all entities, newest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT id, entity_id, timestamp, action, actor, detail
                   FROM audit_log
                   ORDER BY timestamp DESC, id DESC
                   LIMIT ? OFFSET ?""",
                (limit, offset),
            ).fetchall()
        return [dict(r) for r in rows]
