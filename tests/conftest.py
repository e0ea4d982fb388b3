from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from db import CatalogStore
from enrichment.models import EnrichmentRecord
from models import CandidateRecord, Item, ItemStatus, StockStatus

NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float):
        self.calls.append(seconds)


class FakeInferer:
    """Returns queued responses in order; exceptions in the queue are raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[tuple[str, str]] = []

    def infer(self, description: str, price: str):
        self.calls.append((description, price))
        response = self.responses.pop(0) if self.responses else {}
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def store(tmp_path):
    s = CatalogStore.open(str(tmp_path / "beans.db"))
    yield s
    s.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def make_candidate():
    def _make(name="Ethiopia Guji", shop="pallet", price="24.00", **kwargs):
        kwargs.setdefault("description", f"{name} washed heirloom, peach and jasmine")
        return CandidateRecord(
            shop=shop,
            name=name,
            price=Decimal(price) if price is not None else None,
            **kwargs,
        )
    return _make


@pytest.fixture
def add_enriched(store):
    """Append a Completed, in-stock item with the given enrichment fields."""
    def _add(name, shop="pallet", synced_at=NOW, selected_at=None,
             stock=StockStatus.IN_STOCK, price="24.00", **record_fields):
        item = Item(
            shop=shop,
            name=name,
            price=Decimal(price),
            stock_status=stock,
            description=f"{name} description",
            status=ItemStatus.COMPLETED,
            enrichment=EnrichmentRecord(**record_fields),
            last_synced_at=synced_at,
            last_selected_at=selected_at,
            first_seen_at=synced_at,
        )
        store.append(item)
        return store.get_item(item.id)
    return _add
