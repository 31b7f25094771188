"""
Tests for the land-management recommendation rules.

Validates:
1. Rest triggers (flag, utilization, stress) and keep-out days
2. Graze readiness thresholds
3. Seeding window by month and forecast rain
4. Caution only when nothing else fires, and output ordering
"""

import pytest
import sys
import os
from datetime import date, datetime, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from engine.recommendations import (
    CONFIDENCE,
    ZoneSnapshot,
    build_recommendations,
    keep_out_days,
    recommend_for_zone,
)

RANCH = "ranch-1"
JULY = date(2025, 7, 15)
APRIL = date(2025, 4, 10)


def _snapshot(**kwargs) -> ZoneSnapshot:
    return ZoneSnapshot(zone_id="zone-1", zone_name="North Pasture", **kwargs)


def _types(recs):
    return [r.recommendation_type for r in recs]


class TestKeepOutDays:

    def test_tops_up_to_target(self):
        assert keep_out_days(5) == 9

    def test_unknown_rest_days(self):
        assert keep_out_days(None) == 14

    def test_never_below_minimum(self):
        assert keep_out_days(30) == 3
        assert keep_out_days(12) == 3


class TestRest:

    def test_needs_rest_flag(self):
        recs = recommend_for_zone(_snapshot(needs_rest=True, rest_days=4), RANCH, JULY)
        assert _types(recs) == ["rest"]
        rec = recs[0]
        assert rec.priority == "medium"
        assert rec.title == "Keep animals out of North Pasture for 10 days"
        assert rec.action_by_date is None
        assert rec.confidence_score == pytest.approx(CONFIDENCE["rest"])

    def test_high_utilization(self):
        recs = recommend_for_zone(_snapshot(utilization_pct=71.0), RANCH, JULY)
        assert _types(recs) == ["rest"]

    def test_utilization_at_threshold_does_not_rest(self):
        recs = recommend_for_zone(_snapshot(utilization_pct=70.0), RANCH, JULY)
        assert "rest" not in _types(recs)

    def test_severe_stress_is_high_priority(self):
        recs = recommend_for_zone(_snapshot(moisture_stress_score=8), RANCH, JULY)
        assert recs[0].recommendation_type == "rest"
        assert recs[0].priority == "high"

    def test_stress_seven_is_medium(self):
        recs = recommend_for_zone(_snapshot(moisture_stress_score=7), RANCH, JULY)
        assert recs[0].priority == "medium"

    def test_metadata_uses_camel_case_keys(self):
        recs = recommend_for_zone(
            _snapshot(needs_rest=True, rest_days=2, utilization_pct=40.0, moisture_stress_score=3),
            RANCH,
            JULY,
        )
        assert recs[0].metadata == {"restDays": 2, "utilizationPct": 40.0, "moistureStressScore": 3}


class TestGraze:

    def test_ready(self):
        recs = recommend_for_zone(
            _snapshot(estimated_forage_lb_per_acre=2000.0, utilization_pct=30.0, moisture_stress_score=3),
            RANCH,
            JULY,
        )
        assert _types(recs) == ["graze"]
        assert recs[0].title == "Time to graze down North Pasture"
        assert recs[0].action_by_date == JULY

    def test_forage_threshold_inclusive(self):
        recs = recommend_for_zone(_snapshot(estimated_forage_lb_per_acre=1800.0), RANCH, JULY)
        assert _types(recs) == ["graze"]

    def test_too_little_forage(self):
        recs = recommend_for_zone(_snapshot(estimated_forage_lb_per_acre=1799.0), RANCH, JULY)
        assert _types(recs) == ["caution"]

    def test_utilization_too_high(self):
        recs = recommend_for_zone(
            _snapshot(estimated_forage_lb_per_acre=2500.0, utilization_pct=60.0), RANCH, JULY
        )
        assert _types(recs) == ["caution"]

    def test_stressed_zone_not_grazed(self):
        recs = recommend_for_zone(
            _snapshot(estimated_forage_lb_per_acre=2500.0, moisture_stress_score=7), RANCH, JULY
        )
        assert _types(recs) == ["rest"]


class TestSeed:

    def test_spring_with_rain(self):
        recs = recommend_for_zone(_snapshot(forecast_rain_inches_next_3d=0.5), RANCH, APRIL)
        assert _types(recs) == ["seed"]
        assert recs[0].metadata["month"] == 4
        assert recs[0].title == "Seed opportunity in North Pasture before incoming rain"

    def test_summer_is_not_a_seeding_month(self):
        recs = recommend_for_zone(_snapshot(forecast_rain_inches_next_3d=1.5), RANCH, JULY)
        assert _types(recs) == ["caution"]

    def test_not_enough_rain(self):
        recs = recommend_for_zone(_snapshot(forecast_rain_inches_next_3d=0.49), RANCH, APRIL)
        assert _types(recs) == ["caution"]

    def test_rest_and_seed_together(self):
        recs = recommend_for_zone(
            _snapshot(needs_rest=True, forecast_rain_inches_next_3d=1.0), RANCH, date(2025, 10, 1)
        )
        assert _types(recs) == ["rest", "seed"]


class TestCaution:

    def test_empty_snapshot(self):
        ended = datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)
        recs = recommend_for_zone(_snapshot(latest_grazed_ended_at=ended), RANCH, JULY)
        assert _types(recs) == ["caution"]
        rec = recs[0]
        assert rec.priority == "low"
        assert rec.title == "Monitor North Pasture before next move"
        assert rec.metadata["latestGrazedEndedAt"] == ended.isoformat()

    def test_full_ordering(self):
        snapshot = _snapshot(
            needs_rest=True,
            estimated_forage_lb_per_acre=2200.0,
            forecast_rain_inches_next_3d=0.8,
        )
        assert _types(recommend_for_zone(snapshot, RANCH, APRIL)) == ["rest", "graze", "seed"]


class TestBuildRecommendations:

    def test_preserves_zone_order_and_subzone(self):
        snapshots = [
            ZoneSnapshot(zone_id="a", zone_name="A", needs_rest=True),
            ZoneSnapshot(zone_id="b", zone_name="B"),
        ]
        recs = build_recommendations(snapshots, RANCH, JULY, subzone_id="sub-1")
        assert [r.zone_id for r in recs] == ["a", "b"]
        assert all(r.subzone_id == "sub-1" for r in recs)
        assert all(r.ranch_id == RANCH for r in recs)

    def test_no_zones(self):
        assert build_recommendations([], RANCH, JULY) == []
