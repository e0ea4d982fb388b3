"""SQLite catalog store for the bean scout."""

import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from config import DB_PATH
from enrichment.models import EnrichmentRecord, IntendedUse, SeasonalityStatus
from models import Item, ItemStatus, StockStatus, catalog_key


def now_utc() -> datetime:
    """Return the current time in UTC, second precision."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    catalog_key TEXT NOT NULL,
    shop TEXT NOT NULL,
    name TEXT NOT NULL,
    price TEXT,
    currency TEXT,
    weight_grams REAL,
    weight_label TEXT,
    stock_status TEXT,
    description TEXT,
    url TEXT,
    roast_date TEXT,
    status TEXT NOT NULL DEFAULT 'Pending',
    last_synced_at DATETIME,
    last_selected_at DATETIME,
    first_seen_at DATETIME,
    enriched_at DATETIME,
    UNIQUE(catalog_key)
);

CREATE TABLE IF NOT EXISTS artifacts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date TEXT NOT NULL,
    language TEXT NOT NULL,
    title TEXT,
    body TEXT,
    external_id TEXT,
    published_at DATETIME,
    UNIQUE(date, language)
);
"""

# weight_grams lives on the item row itself
ENRICHMENT_COLUMNS = [
    ("country", "TEXT"),
    ("region", "TEXT"),
    ("farm", "TEXT"),
    ("altitude", "TEXT"),
    ("variety", "TEXT"),
    ("process", "TEXT"),
    ("roast_level", "TEXT"),
    ("intended_use", "TEXT"),
    ("flavor_notes", "TEXT"),
    ("acidity", "INTEGER"),
    ("sweetness", "INTEGER"),
    ("body", "INTEGER"),
    ("seasonality", "TEXT"),
    ("seasonality_note", "TEXT"),
    ("freshness_score", "REAL"),
    ("rare_variety", "BOOLEAN"),
    ("micro_lot", "BOOLEAN"),
    ("special_process", "TEXT"),
    ("v60_score", "INTEGER"),
    ("espresso_score", "INTEGER"),
    ("french_press_score", "INTEGER"),
    ("cold_brew_score", "INTEGER"),
    ("price_per_gram", "REAL"),
    ("value_score", "REAL"),
    ("recommended_for", "TEXT"),
    ("avoid_if", "TEXT"),
]
ENRICHMENT_FIELDS = [name for name, _ in ENRICHMENT_COLUMNS]

_ITEM_COLUMNS = {
    "catalog_key", "shop", "name", "price", "currency", "weight_grams",
    "weight_label", "stock_status", "description", "url", "roast_date",
    "status", "last_synced_at", "last_selected_at", "first_seen_at",
    "enriched_at",
}
WRITABLE_COLUMNS = _ITEM_COLUMNS | set(ENRICHMENT_FIELDS)


def get_connection(db_path: str = DB_PATH) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_db(db_path: str = DB_PATH):
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    _migrate_enrichment_columns(conn)
    conn.close()


def _migrate_enrichment_columns(conn: sqlite3.Connection):
    """Add enrichment columns to an existing items table if missing."""
    existing = {
        row[1] for row in conn.execute("PRAGMA table_info(items)").fetchall()
    }
    for col_name, col_type in ENRICHMENT_COLUMNS:
        if col_name not in existing:
            conn.execute(f"ALTER TABLE items ADD COLUMN {col_name} {col_type}")
    conn.commit()


def _to_db(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (ItemStatus, StockStatus, IntendedUse, SeasonalityStatus)):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


def enrichment_to_fields(record: Optional[EnrichmentRecord]) -> dict[str, Any]:
    """Flatten a record into column values; None clears every column."""
    if record is None:
        return {name: None for name in ENRICHMENT_FIELDS}
    data = record.model_dump()
    return {name: data.get(name) for name in ENRICHMENT_FIELDS}


def _row_to_enrichment(row: sqlite3.Row) -> EnrichmentRecord:
    values = {}
    for name, col_type in ENRICHMENT_COLUMNS:
        value = row[name]
        if value is not None and col_type == "BOOLEAN":
            value = bool(value)
        values[name] = value
    values["weight_grams"] = row["weight_grams"]
    return EnrichmentRecord(**values)


def row_to_item(row: sqlite3.Row) -> Item:
    status = ItemStatus(row["status"])
    price = row["price"]
    return Item(
        id=row["id"],
        shop=row["shop"],
        name=row["name"],
        price=Decimal(price) if price not in (None, "") else None,
        currency=row["currency"] or "",
        weight_grams=row["weight_grams"],
        weight_label=row["weight_label"],
        stock_status=StockStatus(row["stock_status"] or StockStatus.IN_STOCK.value),
        description=row["description"] or "",
        url=row["url"],
        roast_date=row["roast_date"],
        status=status,
        # Enrichment only exists for completed items
        enrichment=_row_to_enrichment(row) if status == ItemStatus.COMPLETED else None,
        last_synced_at=_parse_ts(row["last_synced_at"]),
        last_selected_at=_parse_ts(row["last_selected_at"]),
        first_seen_at=_parse_ts(row["first_seen_at"]),
        enriched_at=_parse_ts(row["enriched_at"]),
    )


class CatalogStore:
    """Tabular store of every known item, keyed by (shop, normalized name).

    Each write is committed before the call returns, so a crash mid-run
    leaves every row either fully updated or in its prior state.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @classmethod
    def open(cls, db_path: str = DB_PATH) -> "CatalogStore":
        init_db(db_path)
        return cls(get_connection(db_path))

    def close(self):
        self.conn.close()

    def list_all(self) -> list[Item]:
        """Full scan in store order (insertion order)."""
        rows = self.conn.execute("SELECT * FROM items ORDER BY id").fetchall()
        return [row_to_item(r) for r in rows]

    def get_item(self, row_id: int) -> Optional[Item]:
        row = self.conn.execute(
            "SELECT * FROM items WHERE id = ?", (row_id,)
        ).fetchone()
        return row_to_item(row) if row else None

    def find_by_key(self, shop: str, name: str) -> Optional[int]:
        row = self.conn.execute(
            "SELECT id FROM items WHERE catalog_key = ?",
            (catalog_key(shop, name),),
        ).fetchone()
        return row["id"] if row else None

    def append(self, item: Item) -> int:
        """Insert a new item row. Returns the row id."""
        fields = {
            "catalog_key": item.key,
            "shop": item.shop,
            "name": item.name,
            "price": item.price,
            "currency": item.currency,
            "weight_grams": item.weight_grams,
            "weight_label": item.weight_label,
            "stock_status": item.stock_status,
            "description": item.description,
            "url": item.url,
            "roast_date": item.roast_date,
            "status": item.status,
            "last_synced_at": item.last_synced_at,
            "last_selected_at": item.last_selected_at,
            "first_seen_at": item.first_seen_at,
            "enriched_at": item.enriched_at,
        }
        if item.status == ItemStatus.COMPLETED:
            fields.update(enrichment_to_fields(item.enrichment))
        columns = ", ".join(fields)
        placeholders = ", ".join("?" for _ in fields)
        cursor = self.conn.execute(
            f"INSERT INTO items ({columns}) VALUES ({placeholders})",
            tuple(_to_db(v) for v in fields.values()),
        )
        self.conn.commit()
        item.id = cursor.lastrowid
        return cursor.lastrowid

    def update_fields(self, row_id: int, fields: dict[str, Any]):
        """Update the given columns of one row and commit."""
        if not fields:
            return
        unknown = set(fields) - WRITABLE_COLUMNS
        if unknown:
            raise KeyError(f"Unknown item columns: {', '.join(sorted(unknown))}")
        set_clause = ", ".join(f"{k} = ?" for k in fields)
        self.conn.execute(
            f"UPDATE items SET {set_clause} WHERE id = ?",
            (*(_to_db(v) for v in fields.values()), row_id),
        )
        self.conn.commit()

    def status_counts(self) -> dict[str, int]:
        """Catalog statistics: totals, per status, and stock split."""
        stats = {
            "total": 0,
            "in_stock": 0,
            "sold_out": 0,
            "analyzed": 0,
            "unanalyzed": 0,
        }
        for status in ItemStatus:
            stats[status.value.lower()] = 0

        rows = self.conn.execute(
            "SELECT status, stock_status, COUNT(*) AS cnt FROM items GROUP BY status, stock_status"
        ).fetchall()
        for row in rows:
            cnt = row["cnt"]
            stats["total"] += cnt
            stats[ItemStatus(row["status"]).value.lower()] += cnt
            if row["stock_status"] == StockStatus.SOLD_OUT.value:
                stats["sold_out"] += cnt
            else:
                stats["in_stock"] += cnt
        stats["analyzed"] = stats["completed"]
        stats["unanalyzed"] = stats["total"] - stats["completed"]
        return stats
