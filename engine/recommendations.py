"""
Rule-based land-management recommendations.

Each zone is classified from its most recent observations:

    rest    : recovery indicators say keep animals out
    graze   : enough forage and low stress, ready for utilization
    seed    : seeding month with meaningful rain in the 3-day forecast
    caution : nothing fired; monitor before the next move

The rules are evaluated independently, so a zone can receive more than
one action (e.g. rest + seed). Caution is emitted only when none of the
other three fired.

Pure functions only: callers load the latest rows and persist results.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

# Rest triggers
REST_UTILIZATION_PCT = 70.0
REST_STRESS_SCORE = 7
REST_HIGH_PRIORITY_STRESS = 8
REST_TARGET_DAYS = 14
REST_MIN_KEEP_OUT_DAYS = 3

# Graze triggers
GRAZE_MIN_FORAGE_LB_PER_ACRE = 1800.0
GRAZE_MAX_UTILIZATION_PCT = 55.0
MAX_STRESS_FOR_ACTION = 6

# Seed triggers (spring and fall establishment windows)
SEEDING_MONTHS = frozenset({3, 4, 5, 9, 10})
SEED_MIN_FORECAST_RAIN_INCHES = 0.5

CONFIDENCE = {
    "rest": 0.82,
    "graze": 0.77,
    "seed": 0.71,
    "caution": 0.55,
}

RECOMMENDATION_TYPES = ("rest", "graze", "seed", "caution")
PRIORITIES = ("low", "medium", "high")


@dataclass
class ZoneSnapshot:
    """Latest known state of one zone (or subzone)."""
    zone_id: str
    zone_name: str
    rest_days: Optional[int] = None
    utilization_pct: Optional[float] = None
    estimated_forage_lb_per_acre: Optional[float] = None
    moisture_stress_score: Optional[int] = None
    needs_rest: Optional[bool] = None
    forecast_rain_inches_next_3d: Optional[float] = None
    latest_grazed_ended_at: Optional[datetime] = None


@dataclass
class Recommendation:
    ranch_id: str
    zone_id: str
    subzone_id: Optional[str]
    recommendation_date: date
    recommendation_type: str
    priority: str
    title: str
    rationale: str
    action_by_date: Optional[date]
    confidence_score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


def keep_out_days(rest_days: Optional[int]) -> int:
    """Days to keep animals out: top up to the rest target, never below the minimum."""
    return max(REST_MIN_KEEP_OUT_DAYS, REST_TARGET_DAYS - (rest_days or 0))


def _low_stress(stress: Optional[int]) -> bool:
    return stress is None or stress <= MAX_STRESS_FOR_ACTION


def needs_rest(snapshot: ZoneSnapshot) -> bool:
    utilization = snapshot.utilization_pct
    stress = snapshot.moisture_stress_score
    return (
        snapshot.needs_rest is True
        or (utilization is not None and utilization > REST_UTILIZATION_PCT)
        or (stress is not None and stress >= REST_STRESS_SCORE)
    )


def ready_to_graze(snapshot: ZoneSnapshot) -> bool:
    forage = snapshot.estimated_forage_lb_per_acre
    utilization = snapshot.utilization_pct
    return (
        forage is not None
        and forage >= GRAZE_MIN_FORAGE_LB_PER_ACRE
        and (utilization is None or utilization <= GRAZE_MAX_UTILIZATION_PCT)
        and _low_stress(snapshot.moisture_stress_score)
    )


def seeding_window_open(snapshot: ZoneSnapshot, on: date) -> bool:
    rain = snapshot.forecast_rain_inches_next_3d
    return (
        on.month in SEEDING_MONTHS
        and rain is not None
        and rain >= SEED_MIN_FORECAST_RAIN_INCHES
        and _low_stress(snapshot.moisture_stress_score)
    )


def recommend_for_zone(
    snapshot: ZoneSnapshot,
    ranch_id: str,
    recommendation_date: date,
    subzone_id: Optional[str] = None,
) -> List[Recommendation]:
    """Classify one zone. Output order: rest, graze, seed, caution."""
    out: List[Recommendation] = []
    name = snapshot.zone_name
    stress = snapshot.moisture_stress_score

    def _rec(rec_type: str, priority: str, title: str, rationale: str,
             action_by: Optional[date], metadata: Dict[str, Any]) -> Recommendation:
        return Recommendation(
            ranch_id=ranch_id,
            zone_id=snapshot.zone_id,
            subzone_id=subzone_id,
            recommendation_date=recommendation_date,
            recommendation_type=rec_type,
            priority=priority,
            title=title,
            rationale=rationale,
            action_by_date=action_by,
            confidence_score=CONFIDENCE[rec_type],
            metadata=metadata,
        )

    rest = needs_rest(snapshot)
    if rest:
        days = keep_out_days(snapshot.rest_days)
        out.append(_rec(
            "rest",
            "high" if stress is not None and stress >= REST_HIGH_PRIORITY_STRESS else "medium",
            f"Keep animals out of {name} for {days} day{'' if days == 1 else 's'}",
            "Recovery indicators show this area needs additional rest before the next grazing pass.",
            None,
            {
                "restDays": snapshot.rest_days,
                "utilizationPct": snapshot.utilization_pct,
                "moistureStressScore": stress,
            },
        ))

    graze = ready_to_graze(snapshot)
    if graze:
        out.append(_rec(
            "graze",
            "medium",
            f"Time to graze down {name}",
            "Forage mass and stress indicators suggest this zone is ready for utilization.",
            recommendation_date,
            {
                "estimatedForageLbPerAcre": snapshot.estimated_forage_lb_per_acre,
                "utilizationPct": snapshot.utilization_pct,
                "moistureStressScore": stress,
            },
        ))

    seed = seeding_window_open(snapshot, recommendation_date)
    if seed:
        out.append(_rec(
            "seed",
            "medium",
            f"Seed opportunity in {name} before incoming rain",
            "Forecast moisture and current stress conditions indicate a favorable establishment window.",
            recommendation_date,
            {
                "forecastRainInchesNext3d": snapshot.forecast_rain_inches_next_3d,
                "moistureStressScore": stress,
                "month": recommendation_date.month,
            },
        ))

    if not (rest or graze or seed):
        ended = snapshot.latest_grazed_ended_at
        out.append(_rec(
            "caution",
            "low",
            f"Monitor {name} before next move",
            "No strong action trigger was found from current state, weather, or recent grazing records.",
            None,
            {
                "restDays": snapshot.rest_days,
                "utilizationPct": snapshot.utilization_pct,
                "estimatedForageLbPerAcre": snapshot.estimated_forage_lb_per_acre,
                "forecastRainInchesNext3d": snapshot.forecast_rain_inches_next_3d,
                "latestGrazedEndedAt": ended.isoformat() if ended else None,
            },
        ))

    return out


def build_recommendations(
    snapshots: List[ZoneSnapshot],
    ranch_id: str,
    recommendation_date: date,
    subzone_id: Optional[str] = None,
) -> List[Recommendation]:
    """Classify every zone, preserving the snapshot order."""
    out: List[Recommendation] = []
    for snapshot in snapshots:
        out.extend(recommend_for_zone(snapshot, ranch_id, recommendation_date, subzone_id))
    return out
