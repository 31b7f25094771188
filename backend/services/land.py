"""Loads the latest land observations per zone for the recommendation engine."""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from backend.errors import ApiError
from backend.models_db import (
    GrazingSession,
    Herd,
    LandRecommendation,
    Zone,
    ZoneDailyState,
    ZoneSubzone,
    ZoneWeatherDaily,
)
from engine.recommendations import Recommendation, ZoneSnapshot, build_recommendations

logger = logging.getLogger(__name__)


def require_zone(db: Session, ranch_id: str, zone_id: str) -> Zone:
    zone = db.query(Zone).filter(Zone.id == zone_id, Zone.ranch_id == ranch_id).first()
    if zone is None:
        raise ApiError(404, "ZONE_NOT_FOUND", "Zone not found")
    return zone


def require_subzone(db: Session, ranch_id: str, zone_id: str, subzone_id: str) -> ZoneSubzone:
    subzone = (
        db.query(ZoneSubzone)
        .filter(
            ZoneSubzone.id == subzone_id,
            ZoneSubzone.ranch_id == ranch_id,
            ZoneSubzone.zone_id == zone_id,
        )
        .first()
    )
    if subzone is None:
        raise ApiError(404, "SUBZONE_NOT_FOUND", "Subzone not found")
    return subzone


def require_herd(db: Session, ranch_id: str, herd_id: str) -> Herd:
    herd = db.query(Herd).filter(Herd.id == herd_id, Herd.ranch_id == ranch_id).first()
    if herd is None:
        raise ApiError(404, "HERD_NOT_FOUND", "Herd not found")
    return herd


def check_zone_refs(
    db: Session,
    ranch_id: str,
    zone_id: str,
    subzone_id: Optional[str] = None,
    herd_id: Optional[str] = None,
) -> None:
    """Verify a record's zone/subzone/herd references belong to the ranch."""
    require_zone(db, ranch_id, zone_id)
    if subzone_id:
        require_subzone(db, ranch_id, zone_id, subzone_id)
    if herd_id:
        require_herd(db, ranch_id, herd_id)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def subzone_filter(column, subzone_id: Optional[str]):
    return column == subzone_id if subzone_id else column.is_(None)


def load_zone_snapshot(db: Session, ranch_id: str, zone: Zone, subzone_id: Optional[str] = None) -> ZoneSnapshot:
    state = (
        db.query(ZoneDailyState)
        .filter(
            ZoneDailyState.ranch_id == ranch_id,
            ZoneDailyState.zone_id == zone.id,
            subzone_filter(ZoneDailyState.subzone_id, subzone_id),
        )
        .order_by(ZoneDailyState.state_date.desc(), ZoneDailyState.created_at.desc())
        .first()
    )
    weather = (
        db.query(ZoneWeatherDaily)
        .filter(
            ZoneWeatherDaily.ranch_id == ranch_id,
            ZoneWeatherDaily.zone_id == zone.id,
            subzone_filter(ZoneWeatherDaily.subzone_id, subzone_id),
        )
        .order_by(ZoneWeatherDaily.weather_date.desc(), ZoneWeatherDaily.created_at.desc())
        .first()
    )
    # Latest grazing pass on the zone, any subzone
    graze = (
        db.query(GrazingSession)
        .filter(GrazingSession.ranch_id == ranch_id, GrazingSession.zone_id == zone.id)
        .order_by(GrazingSession.started_at.desc())
        .first()
    )

    return ZoneSnapshot(
        zone_id=zone.id,
        zone_name=zone.name,
        rest_days=state.rest_days if state else None,
        utilization_pct=state.utilization_pct if state else None,
        estimated_forage_lb_per_acre=state.estimated_forage_lb_per_acre if state else None,
        moisture_stress_score=state.moisture_stress_score if state else None,
        needs_rest=state.needs_rest if state else None,
        forecast_rain_inches_next_3d=weather.forecast_rain_inches_next_3d if weather else None,
        latest_grazed_ended_at=_as_utc(graze.ended_at) if graze else None,
    )


def generate_recommendations(
    db: Session,
    ranch_id: str,
    recommendation_date: date,
    zone_id: Optional[str] = None,
    subzone_id: Optional[str] = None,
) -> list[Recommendation]:
    """Run the rule engine over the ranch's zones (or one zone), in name order."""
    query = db.query(Zone).filter(Zone.ranch_id == ranch_id)
    if zone_id:
        query = query.filter(Zone.id == zone_id)
    zones = query.order_by(Zone.name, Zone.id).all()

    snapshots = [load_zone_snapshot(db, ranch_id, zone, subzone_id) for zone in zones]
    return build_recommendations(snapshots, ranch_id, recommendation_date, subzone_id)


def persist_recommendations(db: Session, recommendations: list[Recommendation]) -> list[LandRecommendation]:
    rows = [
        LandRecommendation(
            ranch_id=r.ranch_id,
            zone_id=r.zone_id,
            subzone_id=r.subzone_id,
            recommendation_date=r.recommendation_date,
            recommendation_type=r.recommendation_type,
            priority=r.priority,
            title=r.title,
            rationale=r.rationale,
            action_by_date=r.action_by_date,
            confidence_score=r.confidence_score,
            status="open",
            metadata_json=r.metadata,
        )
        for r in recommendations
    ]
    db.add_all(rows)
    db.commit()
    logger.info("Persisted %d land recommendations", len(rows))
    return rows
