from decimal import Decimal

import pytest

from config import EnrichmentConfig
from enrichment.enricher import EnrichmentEngine, RetryPolicy, reset_to_pending
from enrichment.rules import NEUTRAL_VALUE_SCORE
from models import Item, ItemStatus, StockStatus

from conftest import FakeInferer


class RateLimitError(Exception):
    status_code = 429


@pytest.fixture
def config():
    return EnrichmentConfig(
        model="test-model",
        batch_size=10,
        pace_seconds=2.0,
        backoff_seconds=120.0,
        max_attempts=2,
    )


def _add(store, name, **kwargs):
    kwargs.setdefault("description", f"{name}: washed, notes of citrus")
    kwargs.setdefault("price", Decimal("25.00"))
    item = Item(shop="pallet", name=name, **kwargs)
    store.append(item)
    return item


def _engine(store, inferer, config, sleeper, clock):
    return EnrichmentEngine(store, inferer, config, sleep=sleeper, clock=clock)


def test_sold_out_is_skipped_without_inference(store, config, sleeper, clock):
    item = _add(store, "Gone", stock_status=StockStatus.SOLD_OUT)
    inferer = FakeInferer()
    summary = _engine(store, inferer, config, sleeper, clock).run()

    assert store.get_item(item.id).status == ItemStatus.SKIPPED
    assert inferer.calls == []
    assert summary.skipped == 1
    assert sleeper.calls == []


def test_missing_description_stays_pending(store, config, sleeper, clock):
    item = _add(store, "Blank", description="   ")
    inferer = FakeInferer()
    summary = _engine(store, inferer, config, sleeper, clock).run()

    assert store.get_item(item.id).status == ItemStatus.PENDING
    assert inferer.calls == []
    assert summary.no_description == 1


def test_successful_inference_completes_item(store, config, sleeper, clock):
    item = _add(store, "Ethiopia Guji", weight_label="250g")
    inferer = FakeInferer({
        "country": "Ethiopia",
        "process": "Natural",
        "roast_level": "Light",
        "flavor_notes": "blueberry, jasmine",
        "value_score": 8,
    })
    summary = _engine(store, inferer, config, sleeper, clock).run()

    loaded = store.get_item(item.id)
    assert loaded.status == ItemStatus.COMPLETED
    assert loaded.enriched_at == clock.now
    assert loaded.weight_grams == 250.0
    assert loaded.enrichment.country == "Ethiopia"
    assert loaded.enrichment.price_per_gram == 0.1
    assert loaded.enrichment.value_score == 8.0
    assert summary.completed == 1
    assert sleeper.calls == [2.0]
    assert inferer.calls[0][1] == "25.00 CAD (250g)"


def test_malformed_reply_still_completes_with_neutral_value(store, config, sleeper, clock):
    item = _add(store, "Mystery")
    _engine(store, FakeInferer(None), config, sleeper, clock).run()

    loaded = store.get_item(item.id)
    assert loaded.status == ItemStatus.COMPLETED
    assert loaded.enrichment.process is None
    assert loaded.enrichment.value_score == NEUTRAL_VALUE_SCORE


def test_value_score_falls_back_to_price_per_gram(store, config, sleeper, clock):
    item = _add(store, "Cheap", price=Decimal("15.00"), weight_label="1kg")
    _engine(store, FakeInferer({"process": "Washed"}), config, sleeper, clock).run()
    # 0.015 per gram lands in the best band
    assert store.get_item(item.id).enrichment.value_score == 9.0


def test_model_weight_used_when_label_missing(store, config, sleeper, clock):
    item = _add(store, "No label", price=Decimal("34.00"))
    _engine(store, FakeInferer({"weight_grams": 340}), config, sleeper, clock).run()

    loaded = store.get_item(item.id)
    assert loaded.weight_grams == 340.0
    assert loaded.enrichment.price_per_gram == 0.1


def test_rate_limit_backs_off_then_succeeds(store, config, sleeper, clock):
    item = _add(store, "Throttled")
    inferer = FakeInferer(RateLimitError("slow down"), {"process": "Washed"})
    summary = _engine(store, inferer, config, sleeper, clock).run()

    assert store.get_item(item.id).status == ItemStatus.COMPLETED
    assert len(inferer.calls) == 2
    assert sleeper.calls == [120.0, 2.0]
    assert summary.rate_limited == 1


def test_rate_limit_exhausted_marks_error(store, config, sleeper, clock):
    item = _add(store, "Throttled")
    inferer = FakeInferer(RateLimitError("429"), RateLimitError("429"))
    summary = _engine(store, inferer, config, sleeper, clock).run()

    loaded = store.get_item(item.id)
    assert loaded.status == ItemStatus.ERROR
    assert loaded.enrichment is None
    assert len(inferer.calls) == 2
    assert sleeper.calls == [120.0]
    assert summary.errored == 1


def test_other_failures_are_not_retried(store, config, sleeper, clock):
    item = _add(store, "Broken")
    inferer = FakeInferer(RuntimeError("invalid api key"))
    _engine(store, inferer, config, sleeper, clock).run()

    assert store.get_item(item.id).status == ItemStatus.ERROR
    assert len(inferer.calls) == 1
    assert sleeper.calls == []


def test_only_pending_items_are_processed(store, config, sleeper, clock):
    _add(store, "Done", status=ItemStatus.COMPLETED)
    _add(store, "Failed", status=ItemStatus.ERROR)
    pending = _add(store, "Todo")
    inferer = FakeInferer({})
    _engine(store, inferer, config, sleeper, clock).run()

    assert len(inferer.calls) == 1
    assert inferer.calls[0][0].startswith("Todo")
    assert store.get_item(pending.id).status == ItemStatus.COMPLETED


def test_batch_cap_limits_inference_calls(store, config, sleeper, clock):
    config.batch_size = 2
    items = [_add(store, f"Bean {n}") for n in range(4)]
    inferer = FakeInferer()
    summary = _engine(store, inferer, config, sleeper, clock).run()

    assert summary.processed == 2
    statuses = [store.get_item(i.id).status for i in items]
    assert statuses == [ItemStatus.COMPLETED, ItemStatus.COMPLETED,
                        ItemStatus.PENDING, ItemStatus.PENDING]


def test_second_run_after_cap_drains_backlog(store, config, sleeper, clock):
    config.batch_size = 2
    for n in range(3):
        _add(store, f"Bean {n}")
    engine = _engine(store, FakeInferer(), config, sleeper, clock)
    engine.run()
    engine.run()
    assert store.status_counts()["completed"] == 3


def test_retry_policy_reraises_non_retryable():
    calls = []

    def boom():
        calls.append(1)
        raise ValueError("nope")

    policy = RetryPolicy(max_attempts=3, backoff_seconds=1, sleep=lambda s: None)
    with pytest.raises(ValueError):
        policy.call(boom)
    assert calls == [1]


def test_reset_to_pending(store, config, sleeper, clock):
    errored = _add(store, "Failed", status=ItemStatus.ERROR)
    skipped = _add(store, "Gone", status=ItemStatus.SKIPPED)
    done = _add(store, "Done", status=ItemStatus.COMPLETED)

    assert reset_to_pending(store) == 1
    assert store.get_item(errored.id).status == ItemStatus.PENDING
    assert store.get_item(skipped.id).status == ItemStatus.SKIPPED

    assert reset_to_pending(store, include_skipped=True) == 1
    assert store.get_item(skipped.id).status == ItemStatus.PENDING
    assert store.get_item(done.id).status == ItemStatus.COMPLETED


def test_non_finite_numbers_do_not_fail_the_item(store, config, sleeper, clock):
    item = _add(store, "NaN reply")
    _engine(store, FakeInferer({"acidity": float("nan"), "process": "Washed"}),
            config, sleeper, clock).run()

    loaded = store.get_item(item.id)
    assert loaded.status == ItemStatus.COMPLETED
    assert loaded.enrichment.acidity is None
    assert loaded.enrichment.process == "Washed"
