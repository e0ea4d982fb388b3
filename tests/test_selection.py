from datetime import timedelta

import pytest

from config import ScoringWeights, SelectionConfig
from enrichment.models import IntendedUse, SeasonalityStatus
from models import Item, StockStatus
from scoring import ESPRESSO, FILTER, ScoringEngine
from selection import SelectionEngine, classify, is_notable, mark_selected

from conftest import NOW


class FakePicker:
    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = 0

    def pick(self, shortlists, picks_per_bucket):
        self.calls += 1
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def selection_config():
    return SelectionConfig(freshness_days=7, cooldown_days=14, shortlist_size=5,
                           picks_per_bucket=2, model="test-model")


def _engine(config, clock, picker=None):
    return SelectionEngine(config, ScoringEngine(ScoringWeights()), clock=clock, picker=picker)


def _filter_bean(add_enriched, name, shop="pallet", value=5.0, **kwargs):
    kwargs.setdefault("roast_level", "Light")
    return add_enriched(name, shop=shop, intended_use=IntendedUse.FILTER,
                        value_score=value, **kwargs)


def _espresso_bean(add_enriched, name, shop="pallet", value=5.0, **kwargs):
    kwargs.setdefault("roast_level", "Medium-Dark")
    return add_enriched(name, shop=shop, intended_use=IntendedUse.ESPRESSO,
                        value_score=value, **kwargs)


class TestClassify:
    def test_explicit_tag_wins(self, add_enriched):
        item = add_enriched("Dark filter", intended_use=IntendedUse.FILTER, roast_level="Dark")
        assert classify(item) == [FILTER]

    def test_general_purpose_goes_by_roast(self, add_enriched):
        light = add_enriched("Omni light", intended_use=IntendedUse.BOTH, roast_level="Light-Medium")
        medium = add_enriched("Omni medium", intended_use=IntendedUse.BOTH, roast_level="Medium")
        assert classify(light) == [FILTER]
        assert classify(medium) == [ESPRESSO]

    def test_unclassifiable(self, add_enriched):
        assert classify(add_enriched("Mystery")) == []


def test_notable_flags(add_enriched):
    assert is_notable(add_enriched("a", micro_lot=True))
    assert is_notable(add_enriched("b", seasonality=SeasonalityStatus.PEAK_SEASON))
    assert not is_notable(add_enriched("c", special_process="",
                                       seasonality=SeasonalityStatus.LATE_HARVEST))


def test_quality_driven_ordering(store, add_enriched, clock):
    config = SelectionConfig(shortlist_size=2, picks_per_bucket=2)
    blend = _filter_bean(add_enriched, "House Blend", variety="Blend", value=3)
    gesha = _filter_bean(add_enriched, "Panama Gesha", variety="Gesha",
                         special_process="Anaerobic", rare_variety=True, value=9)

    result = _engine(config, clock).select(store.list_all())
    assert [p.item.id for p in result.shortlists[FILTER]] == [gesha.id, blend.id]
    assert [p.item.id for p in result.picks[FILTER]] == [gesha.id, blend.id]


def test_diversity_prefers_a_new_shop_on_ties(store, add_enriched, clock, selection_config):
    top = _filter_bean(add_enriched, "Top Y", shop="Y", value=9)
    d = _filter_bean(add_enriched, "D", shop="Y", value=5)
    e = _filter_bean(add_enriched, "E", shop="Z", value=5)

    result = _engine(selection_config, clock).select(store.list_all())
    picked = [p.item.id for p in result.picks[FILTER]]
    assert picked == [top.id, e.id]
    assert d.id not in picked


def test_diversity_falls_back_to_score_when_one_shop(store, add_enriched, clock, selection_config):
    items = [_filter_bean(add_enriched, f"Bean {n}", shop="Y", value=5 + n) for n in range(3)]
    result = _engine(selection_config, clock).select(store.list_all())
    assert [p.item.id for p in result.picks[FILTER]] == [items[2].id, items[1].id]
    assert FILTER not in result.shortfalls


def test_notable_items_come_first(store, add_enriched, clock, selection_config):
    plain = _filter_bean(add_enriched, "Plain", value=9)
    notable = _filter_bean(add_enriched, "Microlot", micro_lot=True, value=4)
    other = _filter_bean(add_enriched, "Other", shop="Z", value=6)

    picked = [p.item.id for p in _engine(selection_config, clock).select(store.list_all()).picks[FILTER]]
    assert picked[0] == notable.id
    assert picked[1] == other.id
    assert plain.id not in picked


def test_cooldown_excludes_recent_picks(store, add_enriched, clock, selection_config):
    recent = _filter_bean(add_enriched, "Recent", selected_at=NOW - timedelta(days=14))
    old = _filter_bean(add_enriched, "Old", selected_at=NOW - timedelta(days=15))
    never = _filter_bean(add_enriched, "Never")

    engine = _engine(selection_config, clock)
    assert not engine.is_eligible(recent, NOW)
    assert engine.is_eligible(old, NOW)
    assert engine.is_eligible(never, NOW)


def test_freshness_excludes_stale_rows(store, add_enriched, clock, selection_config):
    stale = _filter_bean(add_enriched, "Stale", synced_at=NOW - timedelta(days=8))
    edge = _filter_bean(add_enriched, "Edge", synced_at=NOW - timedelta(days=7))

    engine = _engine(selection_config, clock)
    assert not engine.is_eligible(stale, NOW)
    assert engine.is_eligible(edge, NOW)


def test_sold_out_and_unenriched_are_ineligible(store, add_enriched, clock, selection_config):
    sold = _filter_bean(add_enriched, "Sold", stock=StockStatus.SOLD_OUT)
    pending = Item(shop="pallet", name="Pending", last_synced_at=NOW)
    engine = _engine(selection_config, clock)
    assert not engine.is_eligible(sold, NOW)
    assert not engine.is_eligible(pending, NOW)


def test_no_eligible_items_yields_empty_result(store, clock, selection_config):
    result = _engine(selection_config, clock).select(store.list_all())
    assert result.empty
    assert result.degraded
    assert result.shortfalls == {FILTER: 2, ESPRESSO: 2}


def test_short_bucket_is_degraded(store, add_enriched, clock, selection_config):
    _filter_bean(add_enriched, "Only filter")
    _espresso_bean(add_enriched, "Espresso 1")
    _espresso_bean(add_enriched, "Espresso 2", shop="Z")

    result = _engine(selection_config, clock).select(store.list_all())
    assert not result.empty
    assert result.shortfalls == {FILTER: 1}
    assert len(result.picks[ESPRESSO]) == 2


def test_no_item_is_picked_twice(store, add_enriched, clock, selection_config):
    for n in range(3):
        add_enriched(f"Omni {n}", shop=f"S{n}", intended_use=IntendedUse.BOTH, roast_level="Medium")
    result = _engine(selection_config, clock).select(store.list_all())
    ids = [i.id for i in result.selected_items()]
    assert len(ids) == len(set(ids))
    assert result.picks[FILTER] == []


def test_ai_picker_reply_is_used(store, add_enriched, clock, selection_config):
    f1 = _filter_bean(add_enriched, "F1")
    f2 = _filter_bean(add_enriched, "F2", shop="Z")
    e1 = _espresso_bean(add_enriched, "E1")
    picker = FakePicker({"picks": {FILTER: [f2.id, f1.id], ESPRESSO: [e1.id]},
                         "rationale": "balanced"})

    result = _engine(selection_config, clock, picker).select(store.list_all())
    assert result.method == "ai"
    assert result.rationale == "balanced"
    assert [p.item.id for p in result.picks[FILTER]] == [f2.id, f1.id]
    assert result.shortfalls == {ESPRESSO: 1}


def test_ai_picker_retries_once_on_malformed_reply(store, add_enriched, clock, selection_config):
    f1 = _filter_bean(add_enriched, "F1")
    picker = FakePicker("not json", {"picks": {FILTER: [f1.id], ESPRESSO: []}})

    result = _engine(selection_config, clock, picker).select(store.list_all())
    assert picker.calls == 2
    assert result.method == "ai"


def test_ai_picker_falls_back_to_local(store, add_enriched, clock, selection_config):
    f1 = _filter_bean(add_enriched, "F1")
    picker = FakePicker(
        {"picks": {FILTER: [9999], ESPRESSO: []}},
        RuntimeError("overloaded"),
    )

    result = _engine(selection_config, clock, picker).select(store.list_all())
    assert picker.calls == 2
    assert result.method == "local"
    assert [p.item.id for p in result.picks[FILTER]] == [f1.id]


def test_mark_selected_writes_once(store, add_enriched, clock, selection_config):
    f1 = _filter_bean(add_enriched, "F1")
    result = _engine(selection_config, clock).select(store.list_all())

    assert mark_selected(store, result, NOW) == 1
    assert store.get_item(f1.id).last_selected_at == NOW
    assert mark_selected(store, result, NOW) == 0
    assert mark_selected(store, result, NOW - timedelta(days=1)) == 0
