"""Reconcile freshly fetched listings against the catalog."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable

from db import CatalogStore, now_utc
from models import CandidateRecord, Change, Item, StockStatus

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    inserted: int = 0
    updated: int = 0
    changes: list[Change] = field(default_factory=list)

    def count(self, change_type: str) -> int:
        return sum(1 for c in self.changes if c.change_type == change_type)


class SyncEngine:
    """Inserts new listings and refreshes price/stock on known ones.

    Never creates a second row for the same (shop, normalized name) key,
    including duplicates inside a single fetch batch.
    """

    def __init__(self, store: CatalogStore, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.clock = clock

    def sync(self, candidates: Iterable[CandidateRecord]) -> SyncResult:
        result = SyncResult()
        known: dict[str, Item] = {item.key: item for item in self.store.list_all()}

        for candidate in candidates:
            if not candidate.name or not candidate.shop:
                logger.debug(f"Skipping candidate without shop/name: {candidate}")
                continue
            now = self.clock()
            existing = known.get(candidate.key)

            if existing is None:
                item = Item.from_candidate(candidate, synced_at=now)
                self.store.append(item)
                known[candidate.key] = item
                result.inserted += 1
                result.changes.append(Change(
                    change_type="new",
                    candidate=candidate,
                    new_value=str(candidate.price or ""),
                    changed_at=now,
                ))
                continue

            result.changes.extend(self._detect_changes(existing, candidate, now))
            # Only mutable listing fields; enrichment and status stay untouched
            fields = {"stock_status": candidate.stock_status, "last_synced_at": now}
            # A feed without a price keeps the last known one
            if candidate.price is not None:
                fields["price"] = candidate.price
                existing.price = candidate.price
            self.store.update_fields(existing.id, fields)
            existing.stock_status = candidate.stock_status
            existing.last_synced_at = now
            result.updated += 1

        if result.changes:
            logger.info(
                f"[sync] {result.inserted} new, {result.updated} updated "
                f"({result.count('price')} price changes, {result.count('restock')} restocks, "
                f"{result.count('soldout')} newly soldout)"
            )
        else:
            logger.info(f"[sync] No changes detected ({result.updated} refreshed)")
        return result

    @staticmethod
    def _detect_changes(existing: Item, candidate: CandidateRecord, now: datetime) -> list[Change]:
        changes = []
        if existing.stock_status != candidate.stock_status:
            change_type = (
                "restock" if candidate.stock_status == StockStatus.IN_STOCK else "soldout"
            )
            changes.append(Change(
                change_type=change_type,
                candidate=candidate,
                old_value=existing.stock_status.value,
                new_value=candidate.stock_status.value,
                changed_at=now,
            ))
        if (
            candidate.price is not None
            and existing.price is not None
            and candidate.price != existing.price
        ):
            changes.append(Change(
                change_type="price",
                candidate=candidate,
                old_value=str(existing.price),
                new_value=str(candidate.price),
                changed_at=now,
            ))
        return changes
