"""Data models for the bean scout catalog."""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from enrichment.models import EnrichmentRecord


class StockStatus(str, Enum):
    IN_STOCK = "InStock"
    SOLD_OUT = "SoldOut"


class ItemStatus(str, Enum):
    PENDING = "Pending"
    SKIPPED = "Skipped"
    COMPLETED = "Completed"
    ERROR = "Error"


class InvalidTransition(ValueError):
    """Raised when a status change is not allowed by the lifecycle."""


_FORWARD = {
    ItemStatus.PENDING: {ItemStatus.SKIPPED, ItemStatus.COMPLETED, ItemStatus.ERROR},
}
# Backward moves only happen through an explicit operator reset
_MANUAL_RESET = {
    ItemStatus.ERROR: {ItemStatus.PENDING},
    ItemStatus.SKIPPED: {ItemStatus.PENDING},
}


def transition(
    current: ItemStatus, target: ItemStatus, manual: bool = False
) -> ItemStatus:
    """Return `target` if moving from `current` is allowed, else raise."""
    allowed = set(_FORWARD.get(current, set()))
    if manual:
        allowed |= _MANUAL_RESET.get(current, set())
    if target not in allowed:
        kind = "manual" if manual else "automatic"
        raise InvalidTransition(
            f"{kind} transition {current.value} -> {target.value} is not allowed"
        )
    return target


def catalog_key(shop: str, name: str) -> str:
    """Normalized uniqueness key: lowercase, trimmed, inner whitespace collapsed."""
    shop_part = " ".join((shop or "").lower().split())
    name_part = " ".join((name or "").lower().split())
    return f"{shop_part}|{name_part}"


@dataclass
class CandidateRecord:
    """A freshly fetched listing, normalized by a source adapter."""

    shop: str
    name: str
    price: Optional[Decimal] = None
    currency: str = "CAD"
    stock_status: StockStatus = StockStatus.IN_STOCK
    description: str = ""
    url: Optional[str] = None
    roast_date: Optional[str] = None
    weight_label: Optional[str] = None

    @property
    def key(self) -> str:
        return catalog_key(self.shop, self.name)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Item:
    shop: str
    name: str
    price: Optional[Decimal] = None
    currency: str = "CAD"
    weight_grams: Optional[float] = None
    weight_label: Optional[str] = None
    stock_status: StockStatus = StockStatus.IN_STOCK
    description: str = ""
    url: Optional[str] = None
    roast_date: Optional[str] = None
    status: ItemStatus = ItemStatus.PENDING
    enrichment: Optional[EnrichmentRecord] = None
    last_synced_at: Optional[datetime] = None
    last_selected_at: Optional[datetime] = None
    first_seen_at: Optional[datetime] = None
    enriched_at: Optional[datetime] = None
    id: Optional[int] = None  # row ref, assigned by the store

    @property
    def key(self) -> str:
        return catalog_key(self.shop, self.name)

    @property
    def in_stock(self) -> bool:
        return self.stock_status == StockStatus.IN_STOCK

    @classmethod
    def from_candidate(cls, candidate: CandidateRecord, synced_at: datetime) -> "Item":
        # weight_grams is deferred to enrichment
        return cls(
            shop=candidate.shop,
            name=candidate.name,
            price=candidate.price,
            currency=candidate.currency,
            weight_label=candidate.weight_label,
            stock_status=candidate.stock_status,
            description=candidate.description or "",
            url=candidate.url,
            roast_date=candidate.roast_date,
            status=ItemStatus.PENDING,
            last_synced_at=synced_at,
            first_seen_at=synced_at,
        )


@dataclass
class Change:
    change_type: str  # 'new' | 'price' | 'restock' | 'soldout'
    candidate: CandidateRecord
    old_value: str = ""
    new_value: str = ""
    changed_at: datetime = field(default_factory=datetime.now)
