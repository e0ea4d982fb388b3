"""Pydantic models for structured bean enrichment."""

import math
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SeasonalityStatus(str, Enum):
    FRESH_ARRIVAL = "FreshArrival"
    PEAK_SEASON = "PeakSeason"
    LATE_HARVEST = "LateHarvest"
    PAST_CROP = "PastCrop"


class IntendedUse(str, Enum):
    FILTER = "Filter"
    ESPRESSO = "Espresso"
    BOTH = "Both"


ROAST_LEVELS = ("Light", "Light-Medium", "Medium", "Medium-Dark", "Dark")


class EnrichmentRecord(BaseModel):
    """Structured fields inferred from a bean's description and price."""

    country: str | None = None
    region: str | None = None
    farm: str | None = None  # farm, washing station or cooperative
    altitude: str | None = None  # e.g. "1600-1800"
    variety: str | None = None
    process: str | None = None
    roast_level: str | None = None  # one of ROAST_LEVELS when recognized
    intended_use: IntendedUse | None = None
    flavor_notes: str | None = None  # comma separated
    acidity: int | None = Field(default=None, ge=1, le=5)
    sweetness: int | None = Field(default=None, ge=1, le=5)
    body: int | None = Field(default=None, ge=1, le=5)
    seasonality: SeasonalityStatus | None = None
    seasonality_note: str | None = None
    freshness_score: float | None = Field(default=None, ge=1, le=5)
    rare_variety: bool | None = None
    micro_lot: bool | None = None
    special_process: str | None = None  # "" means explicitly none
    v60_score: int | None = Field(default=None, ge=1, le=5)
    espresso_score: int | None = Field(default=None, ge=1, le=5)
    french_press_score: int | None = Field(default=None, ge=1, le=5)
    cold_brew_score: int | None = Field(default=None, ge=1, le=5)
    weight_grams: float | None = Field(default=None, gt=0)
    price_per_gram: float | None = Field(default=None, ge=0)
    value_score: float | None = Field(default=None, ge=0, le=10)
    recommended_for: str | None = None
    avoid_if: str | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any] | None) -> "EnrichmentRecord":
        """Normalize a raw model response into a record.

        Keys are matched case-insensitively (with a few known aliases),
        unrecognized keys are dropped and malformed values become null.
        """
        if not data:
            return cls()

        values: dict[str, Any] = {}
        new_crop = None
        for raw_key, raw_value in data.items():
            key = _normalize_key(raw_key)
            if key == "new_crop":
                new_crop = _to_bool(raw_value)
                continue
            key = _KEY_ALIASES.get(key, key)
            if key not in cls.model_fields or key in values:
                continue
            parser = _FIELD_PARSERS.get(key, _to_text)
            values[key] = parser(raw_value)

        if values.get("seasonality") is None and new_crop:
            values["seasonality"] = SeasonalityStatus.FRESH_ARRIVAL
        return cls(**values)

    def flavor_list(self) -> list[str]:
        if not self.flavor_notes:
            return []
        return [n.strip() for n in self.flavor_notes.split(",") if n.strip()]


# --- Normalization helpers ---

_UNKNOWN = {"unknown", "n/a", "na", "none", "null", "nil", "-", "?", "不明", "未知"}
_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")

_KEY_ALIASES = {
    "processing": "process",
    "process_method": "process",
    "processing_method": "process",
    "brew_method": "intended_use",
    "use_case": "intended_use",
    "intended_use_category": "intended_use",
    "roast": "roast_level",
    "flavor": "flavor_notes",
    "flavour_notes": "flavor_notes",
    "tasting_notes": "flavor_notes",
    "harvest_season": "seasonality_note",
    "seasonality_justification": "seasonality_note",
    "seasonality_status": "seasonality",
    "microlot": "micro_lot",
    "rare": "rare_variety",
    "v60": "v60_score",
    "espresso": "espresso_score",
    "french_press": "french_press_score",
    "cold_brew": "cold_brew_score",
    "weight": "weight_grams",
    "weight_g": "weight_grams",
    "price_per_unit_mass": "price_per_gram",
    "value": "value_score",
    "farm_name": "farm",
    "producer": "farm",
}


def _normalize_key(key: Any) -> str:
    return re.sub(r"[\s\-]+", "_", str(key).strip().lower())


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v).strip() for v in value if v is not None)
    text = str(value).strip()
    if text.lower() in _UNKNOWN:
        return None
    return text


def _to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    match = _NUMBER_RE.search(str(value).replace(",", ""))
    return float(match.group()) if match else None


def _bounded_int(low: int, high: int):
    def parse(value: Any) -> int | None:
        number = _to_number(value)
        if number is None:
            return None
        return int(min(high, max(low, round(number))))
    return parse


def _bounded_float(low: float, high: float):
    def parse(value: Any) -> float | None:
        number = _to_number(value)
        if number is None:
            return None
        return min(high, max(low, number))
    return parse


def _positive_float(value: Any) -> float | None:
    number = _to_number(value)
    return number if number is not None and number > 0 else None


def _non_negative_float(value: Any) -> float | None:
    number = _to_number(value)
    return number if number is not None and number >= 0 else None


def _to_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    text = str(value).strip().lower()
    if text in ("yes", "y", "true", "1", "是"):
        return True
    if text in ("no", "n", "false", "0", "否"):
        return False
    return None


def _to_special_process(value: Any) -> str | None:
    text = _to_text(value)
    if text is not None and text.lower() in ("no", "false"):
        return ""
    return text


_SEASONALITY_WORDS = {
    "freshharvest": SeasonalityStatus.FRESH_ARRIVAL,
    "freshcrop": SeasonalityStatus.FRESH_ARRIVAL,
    "newcrop": SeasonalityStatus.FRESH_ARRIVAL,
    "peak": SeasonalityStatus.PEAK_SEASON,
    "inseason": SeasonalityStatus.PEAK_SEASON,
    "late": SeasonalityStatus.LATE_HARVEST,
    "past": SeasonalityStatus.PAST_CROP,
    "oldcrop": SeasonalityStatus.PAST_CROP,
    "pastcrop": SeasonalityStatus.PAST_CROP,
}


def _to_seasonality(value: Any) -> SeasonalityStatus | None:
    if value is None:
        return None
    compact = re.sub(r"[\s_\-]+", "", str(value)).lower()
    for status in SeasonalityStatus:
        if compact == status.value.lower():
            return status
    for word, status in _SEASONALITY_WORDS.items():
        if word in compact:
            return status
    return None


def _to_intended_use(value: Any) -> IntendedUse | None:
    text = _to_text(value)
    if not text:
        return None
    lowered = text.lower()
    has_filter = any(w in lowered for w in ("filter", "pour over", "pour-over", "v60", "drip"))
    has_espresso = "espresso" in lowered
    if "both" in lowered or "omni" in lowered or lowered == "all" or (has_filter and has_espresso):
        return IntendedUse.BOTH
    if has_espresso:
        return IntendedUse.ESPRESSO
    if has_filter:
        return IntendedUse.FILTER
    return None


def _to_roast_level(value: Any) -> str | None:
    text = _to_text(value)
    if not text:
        return text
    compact = re.sub(r"[\s_/]+", "-", text.lower())
    if "light" in compact and "medium" in compact:
        return "Light-Medium"
    if "medium" in compact and "dark" in compact:
        return "Medium-Dark"
    for level in ("Light", "Medium", "Dark"):
        if level.lower() in compact:
            return level
    return text


_FIELD_PARSERS = {
    "acidity": _bounded_int(1, 5),
    "sweetness": _bounded_int(1, 5),
    "body": _bounded_int(1, 5),
    "v60_score": _bounded_int(1, 5),
    "espresso_score": _bounded_int(1, 5),
    "french_press_score": _bounded_int(1, 5),
    "cold_brew_score": _bounded_int(1, 5),
    "freshness_score": _bounded_float(1.0, 5.0),
    "value_score": _bounded_float(0.0, 10.0),
    "weight_grams": _positive_float,
    "price_per_gram": _non_negative_float,
    "rare_variety": _to_bool,
    "micro_lot": _to_bool,
    "special_process": _to_special_process,
    "seasonality": _to_seasonality,
    "intended_use": _to_intended_use,
    "roast_level": _to_roast_level,
}
