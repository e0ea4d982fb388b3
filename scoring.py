"""Multi-dimensional scoring of enriched items per use-case bucket."""

import re
from dataclasses import asdict, dataclass
from typing import Any

from config import ScoringWeights
from enrichment.models import EnrichmentRecord, SeasonalityStatus
from models import Item

FILTER = "filter"
ESPRESSO = "espresso"
BUCKETS = (FILTER, ESPRESSO)

SCORE_MIN = 0.0
SCORE_MAX = 10.0

QUALITY_BASE = 5.0
QUALITY_BONUSES = {
    "premium_variety": 1.5,
    "rare_flag": 1.0,
    "special_process": 1.0,
    "micro_lot": 0.5,
    "named_producer": 0.5,
    "competition": 1.0,
}
PREMIUM_VARIETIES = frozenset({
    "gesha", "geisha", "sl28", "sl34", "pink bourbon", "sudan rume", "wush wush",
    "eugenioides", "laurina", "pacamara", "mokka", "sidra", "java", "74158",
})
SPECIAL_PROCESS_KEYWORDS = frozenset({
    "anaerobic", "carbonic", "co-ferment", "coferment", "thermal shock",
    "yeast", "koji", "double fermentation", "infused", "lactic",
})
NOTABLE_PRODUCERS = frozenset({
    "hacienda la esmeralda", "finca deborah", "ninety plus", "janson",
    "el paraiso", "finca el injerto", "gesha village", "wilton benitez",
    "granja la esperanza", "daterra", "alo coffee",
})
COMPETITION_KEYWORDS = frozenset({
    "cup of excellence", "coe", "best of panama", "auction", "competition",
    "world barista", "private collection",
})

SEASONALITY_BASE = {
    SeasonalityStatus.FRESH_ARRIVAL: 9.0,
    SeasonalityStatus.PEAK_SEASON: 7.5,
    SeasonalityStatus.LATE_HARVEST: 5.0,
    SeasonalityStatus.PAST_CROP: 3.0,
}
SEASONALITY_UNKNOWN = 5.0
FRESHNESS_MIDPOINT = 3.0
FRESHNESS_STEP = 0.5  # per freshness point away from the midpoint

NEUTRAL_VALUE = 5.0

VERSATILITY_BY_ROAST = {
    FILTER: {
        "Light": 9.0,
        "Light-Medium": 8.0,
        "Medium": 6.0,
        "Medium-Dark": 4.0,
        "Dark": 2.0,
    },
    ESPRESSO: {
        "Light": 4.0,
        "Light-Medium": 5.0,
        "Medium": 8.0,
        "Medium-Dark": 9.0,
        "Dark": 8.0,
    },
}
VERSATILITY_UNKNOWN = 5.0
FLAVOR_BONUS = 0.5
FLAVOR_BONUS_MIN_NOTES = 3
HIGH_FRESHNESS_BONUS = 0.5
HIGH_FRESHNESS_MIN = 4.0

_WORD_BOUNDARY = r"(?<![a-z0-9]){}(?![a-z0-9])"


@dataclass(frozen=True)
class ItemScore:
    bucket: str
    quality: float
    seasonality: float
    value: float
    versatility: float
    total: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _clamp(value: float, low: float = SCORE_MIN, high: float = SCORE_MAX) -> float:
    return max(low, min(high, value))


def _contains_any(text: str | None, keywords: frozenset[str]) -> bool:
    if not text:
        return False
    lowered = text.lower()
    return any(
        re.search(_WORD_BOUNDARY.format(re.escape(kw)), lowered) for kw in keywords
    )


def quality_score(name: str, record: EnrichmentRecord) -> float:
    score = QUALITY_BASE
    if _contains_any(record.variety, PREMIUM_VARIETIES):
        score += QUALITY_BONUSES["premium_variety"]
    if record.rare_variety:
        score += QUALITY_BONUSES["rare_flag"]
    if _contains_any(record.special_process, SPECIAL_PROCESS_KEYWORDS) or _contains_any(
        record.process, SPECIAL_PROCESS_KEYWORDS
    ):
        score += QUALITY_BONUSES["special_process"]
    if record.micro_lot:
        score += QUALITY_BONUSES["micro_lot"]
    if _contains_any(record.farm, NOTABLE_PRODUCERS):
        score += QUALITY_BONUSES["named_producer"]
    if _contains_any(name, COMPETITION_KEYWORDS):
        score += QUALITY_BONUSES["competition"]
    return _clamp(score)


def seasonality_score(record: EnrichmentRecord) -> float:
    score = SEASONALITY_BASE.get(record.seasonality, SEASONALITY_UNKNOWN)
    if record.freshness_score is not None:
        score += (record.freshness_score - FRESHNESS_MIDPOINT) * FRESHNESS_STEP
    return _clamp(score)


def value_score(record: EnrichmentRecord) -> float:
    if record.value_score is None:
        return NEUTRAL_VALUE
    return _clamp(record.value_score)


def versatility_score(record: EnrichmentRecord, bucket: str) -> float:
    score = VERSATILITY_BY_ROAST[bucket].get(record.roast_level, VERSATILITY_UNKNOWN)
    if len(record.flavor_list()) >= FLAVOR_BONUS_MIN_NOTES:
        score += FLAVOR_BONUS
    if record.freshness_score is not None and record.freshness_score >= HIGH_FRESHNESS_MIN:
        score += HIGH_FRESHNESS_BONUS
    return _clamp(score)


def score_item(item: Item, bucket: str, weights: ScoringWeights) -> ItemScore:
    """Score one enriched item for one bucket. Pure; no side effects."""
    if bucket not in BUCKETS:
        raise ValueError(f"Unknown bucket '{bucket}'")
    record = item.enrichment or EnrichmentRecord()
    quality = quality_score(item.name, record)
    seasonality = seasonality_score(record)
    value = value_score(record)
    versatility = versatility_score(record, bucket)
    total = (
        quality * weights.quality
        + seasonality * weights.seasonality
        + value * weights.value
        + versatility * weights.versatility
    )
    return ItemScore(
        bucket=bucket,
        quality=round(quality, 2),
        seasonality=round(seasonality, 2),
        value=round(value, 2),
        versatility=round(versatility, 2),
        total=round(total, 3),
    )


class ScoringEngine:
    def __init__(self, weights: ScoringWeights):
        self.weights = weights

    def score(self, item: Item, bucket: str) -> ItemScore:
        return score_item(item, bucket, self.weights)

    def score_all(self, item: Item) -> dict[str, ItemScore]:
        """Independent score for every bucket the item could serve."""
        return {bucket: self.score(item, bucket) for bucket in BUCKETS}
