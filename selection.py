"""Freshness/cooldown filtering and diversity-aware selection per bucket."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol

from config import SelectionConfig
from db import CatalogStore, now_utc
from enrichment.models import IntendedUse, SeasonalityStatus
from models import Item, ItemStatus, StockStatus
from scoring import BUCKETS, ESPRESSO, FILTER, ItemScore, ScoringEngine

logger = logging.getLogger(__name__)

FILTER_ROASTS = frozenset({"Light", "Light-Medium"})
ESPRESSO_ROASTS = frozenset({"Medium", "Medium-Dark", "Dark"})
PRIME_SEASONS = frozenset({SeasonalityStatus.FRESH_ARRIVAL, SeasonalityStatus.PEAK_SEASON})
PICKER_ATTEMPTS = 2


class Picker(Protocol):
    def pick(self, shortlists: dict[str, list[dict]], picks_per_bucket: int) -> dict | None:
        """Return {"picks": {bucket: [item ids]}, "rationale": str}, or None."""


@dataclass
class Pick:
    item: Item
    score: ItemScore
    notable: bool
    order: int  # position in store scan order, final tiebreak

    def to_dict(self) -> dict[str, Any]:
        record = self.item.enrichment
        return {
            "id": self.item.id,
            "shop": self.item.shop,
            "name": self.item.name,
            "price": str(self.item.price) if self.item.price is not None else None,
            "currency": self.item.currency,
            "score": self.score.total,
            "quality": self.score.quality,
            "seasonality": self.score.seasonality,
            "value": self.score.value,
            "versatility": self.score.versatility,
            "notable": self.notable,
            "variety": record.variety if record else None,
            "process": record.process if record else None,
            "roast_level": record.roast_level if record else None,
            "flavor_notes": record.flavor_notes if record else None,
        }


@dataclass
class SelectionResult:
    picks: dict[str, list[Pick]] = field(default_factory=dict)
    shortlists: dict[str, list[Pick]] = field(default_factory=dict)
    eligible_count: int = 0
    shortfalls: dict[str, int] = field(default_factory=dict)
    method: str = "local"  # 'local' | 'ai'
    rationale: str = ""

    @property
    def degraded(self) -> bool:
        return bool(self.shortfalls)

    @property
    def empty(self) -> bool:
        return not any(self.picks.values())

    def selected_items(self) -> list[Item]:
        seen: set[int] = set()
        items = []
        for bucket in BUCKETS:
            for pick in self.picks.get(bucket, []):
                if pick.item.id not in seen:
                    seen.add(pick.item.id)
                    items.append(pick.item)
        return items

    def summary(self) -> str:
        parts = [f"{b}={len(self.picks.get(b, []))}" for b in BUCKETS]
        text = f"{self.eligible_count} eligible, picks: {', '.join(parts)} ({self.method})"
        if self.degraded:
            short = ", ".join(f"{b} short {n}" for b, n in self.shortfalls.items())
            text += f" DEGRADED: {short}"
        return text


def classify(item: Item) -> list[str]:
    """Buckets an item belongs to.

    An explicit Filter/Espresso tag wins; a general-purpose (or missing) tag
    falls into whichever bucket its roast level fits, so one item never lands
    in both buckets.
    """
    record = item.enrichment
    if record is None:
        return []
    if record.intended_use == IntendedUse.FILTER:
        return [FILTER]
    if record.intended_use == IntendedUse.ESPRESSO:
        return [ESPRESSO]
    if record.roast_level in FILTER_ROASTS:
        return [FILTER]
    if record.roast_level in ESPRESSO_ROASTS:
        return [ESPRESSO]
    return []


def is_notable(item: Item) -> bool:
    record = item.enrichment
    if record is None:
        return False
    return bool(
        record.rare_variety
        or record.micro_lot
        or record.special_process
        or record.seasonality in PRIME_SEASONS
    )


def choose(shortlist: list[Pick], count: int, exclude_ids: set[int] | None = None) -> list[Pick]:
    """Pick `count` items: notable first, then a shop not yet chosen, then score.

    Falls back to plain score order when diversity can't be met, so a bucket
    is never left short just to keep shops distinct.
    """
    exclude_ids = exclude_ids or set()
    remaining = [p for p in shortlist if p.item.id not in exclude_ids]
    chosen: list[Pick] = []
    while remaining and len(chosen) < count:
        shops = {p.item.shop for p in chosen}
        best = min(
            remaining,
            key=lambda p: (not p.notable, p.item.shop in shops, -p.score.total, p.order),
        )
        chosen.append(best)
        remaining.remove(best)
    return chosen


class SelectionEngine:
    def __init__(
        self,
        config: SelectionConfig,
        scoring: ScoringEngine,
        clock: Callable[[], datetime] = now_utc,
        picker: Optional[Picker] = None,
    ):
        self.config = config
        self.scoring = scoring
        self.clock = clock
        self.picker = picker

    def is_eligible(self, item: Item, now: datetime) -> bool:
        if item.status != ItemStatus.COMPLETED or item.stock_status != StockStatus.IN_STOCK:
            return False
        if item.last_synced_at is None:
            return False
        if now - item.last_synced_at > timedelta(days=self.config.freshness_days):
            return False
        if item.last_selected_at is not None:
            if now - item.last_selected_at <= timedelta(days=self.config.cooldown_days):
                return False
        return True

    def build_shortlists(self, items: list[Item]) -> dict[str, list[Pick]]:
        ranked: dict[str, list[Pick]] = {bucket: [] for bucket in BUCKETS}
        for order, item in enumerate(items):
            for bucket in classify(item):
                ranked[bucket].append(Pick(
                    item=item,
                    score=self.scoring.score(item, bucket),
                    notable=is_notable(item),
                    order=order,
                ))
        return {
            bucket: sorted(picks, key=lambda p: (-p.score.total, p.order))[: self.config.shortlist_size]
            for bucket, picks in ranked.items()
        }

    def select(self, items: list[Item]) -> SelectionResult:
        now = self.clock()
        eligible = [item for item in items if self.is_eligible(item, now)]
        result = SelectionResult(eligible_count=len(eligible))
        if not eligible:
            logger.info("[select] No eligible candidates after freshness/cooldown filtering")
            result.picks = {bucket: [] for bucket in BUCKETS}
            result.shortfalls = {bucket: self.config.picks_per_bucket for bucket in BUCKETS}
            return result

        result.shortlists = self.build_shortlists(eligible)

        ai_picks = self._ask_picker(result.shortlists) if self.picker else None
        if ai_picks is not None:
            result.picks, result.rationale = ai_picks
            result.method = "ai"
        else:
            taken: set[int] = set()
            for bucket in BUCKETS:
                picks = choose(result.shortlists[bucket], self.config.picks_per_bucket, taken)
                taken.update(p.item.id for p in picks)
                result.picks[bucket] = picks

        for bucket in BUCKETS:
            missing = self.config.picks_per_bucket - len(result.picks.get(bucket, []))
            if missing > 0:
                result.shortfalls[bucket] = missing

        logger.info(f"[select] {result.summary()}")
        return result

    def _ask_picker(self, shortlists: dict[str, list[Pick]]):
        payload = {b: [p.to_dict() for p in picks] for b, picks in shortlists.items()}
        for attempt in range(1, PICKER_ATTEMPTS + 1):
            try:
                reply = self.picker.pick(payload, self.config.picks_per_bucket)
            except Exception as e:
                logger.warning(f"[select] AI picker failed (attempt {attempt}): {e}")
                continue
            parsed = self._validate_picker_reply(reply, shortlists)
            if parsed is not None:
                return parsed
            logger.warning(f"[select] AI picker returned malformed picks (attempt {attempt})")
        logger.info("[select] Falling back to local selection")
        return None

    def _validate_picker_reply(self, reply, shortlists: dict[str, list[Pick]]):
        if not isinstance(reply, dict) or not isinstance(reply.get("picks"), dict):
            return None
        picks: dict[str, list[Pick]] = {}
        taken: set[int] = set()
        for bucket in BUCKETS:
            by_id = {p.item.id: p for p in shortlists.get(bucket, [])}
            ids = reply["picks"].get(bucket, [])
            if not isinstance(ids, list):
                return None
            expected = min(self.config.picks_per_bucket, len(by_id))
            chosen = []
            for raw_id in ids:
                try:
                    item_id = int(raw_id)
                except (TypeError, ValueError):
                    return None
                if item_id not in by_id or item_id in taken:
                    return None
                taken.add(item_id)
                chosen.append(by_id[item_id])
            if len(chosen) != expected:
                return None
            picks[bucket] = chosen
        rationale = reply.get("rationale") or ""
        return picks, str(rationale)


def mark_selected(store: CatalogStore, result: SelectionResult, now: datetime) -> int:
    """Record the selection time on every picked item. Call only after publishing."""
    count = 0
    for item in result.selected_items():
        if item.last_selected_at is not None and item.last_selected_at >= now:
            continue
        store.update_fields(item.id, {"last_selected_at": now})
        item.last_selected_at = now
        count += 1
    return count
