import pytest

from config import ScoringWeights
from enrichment.models import EnrichmentRecord, SeasonalityStatus
from models import Item, ItemStatus
from scoring import ESPRESSO, FILTER, ScoringEngine, score_item, seasonality_score, versatility_score


def _item(name="Bean", **fields):
    return Item(shop="pallet", name=name, status=ItemStatus.COMPLETED,
                enrichment=EnrichmentRecord(**fields))


def test_rare_profile_beats_generic_blend():
    engine = ScoringEngine(ScoringWeights())
    rare = _item("Panama Gesha", variety="Gesha", special_process="Anaerobic",
                 rare_variety=True, roast_level="Light", value_score=9)
    blend = _item("House Blend", variety="Blend", roast_level="Light", value_score=3)

    assert engine.score(rare, FILTER).total > engine.score(blend, FILTER).total
    assert engine.score(rare, FILTER).quality == 8.5
    assert engine.score(blend, FILTER).quality == 5.0


def test_scores_are_clamped_to_ten():
    record = dict(
        variety="Geisha", rare_variety=True, special_process="Carbonic maceration",
        micro_lot=True, farm="Hacienda La Esmeralda", seasonality=SeasonalityStatus.FRESH_ARRIVAL,
        freshness_score=5, roast_level="Light", flavor_notes="jasmine, bergamot, peach, honey",
        value_score=10,
    )
    score = score_item(_item("Cup of Excellence #1", **record), FILTER, ScoringWeights())
    for part in (score.quality, score.seasonality, score.value, score.versatility, score.total):
        assert 0.0 <= part <= 10.0
    assert score.quality == 10.0
    assert score.total == 10.0


def test_empty_record_gets_neutral_scores():
    score = score_item(_item(), ESPRESSO, ScoringWeights())
    assert score.quality == 5.0
    assert score.seasonality == 5.0
    assert score.value == 5.0
    assert score.versatility == 5.0
    assert score.total == 5.0


def test_seasonality_follows_harvest_and_freshness():
    fresh = EnrichmentRecord(seasonality=SeasonalityStatus.FRESH_ARRIVAL, freshness_score=4)
    past = EnrichmentRecord(seasonality=SeasonalityStatus.PAST_CROP, freshness_score=1)
    assert seasonality_score(fresh) == 9.5
    assert seasonality_score(past) == 2.0


def test_versatility_differs_per_bucket():
    dark = EnrichmentRecord(roast_level="Dark")
    assert versatility_score(dark, ESPRESSO) > versatility_score(dark, FILTER)
    light = EnrichmentRecord(roast_level="Light")
    assert versatility_score(light, FILTER) > versatility_score(light, ESPRESSO)


def test_score_all_covers_both_buckets():
    scores = ScoringEngine(ScoringWeights()).score_all(_item(roast_level="Medium"))
    assert set(scores) == {FILTER, ESPRESSO}
    assert scores[ESPRESSO].versatility == 8.0
    assert scores[FILTER].versatility == 6.0


def test_weights_shift_the_total():
    item = _item(value_score=10)
    value_heavy = ScoringWeights(quality=0.1, seasonality=0.1, value=0.7, versatility=0.1)
    assert score_item(item, FILTER, value_heavy).total > score_item(item, FILTER, ScoringWeights()).total


def test_unknown_bucket_rejected():
    with pytest.raises(ValueError):
        score_item(_item(), "cold_brew", ScoringWeights())
