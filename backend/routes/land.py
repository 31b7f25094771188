"""Land management routes: subzones, grazing, soil/forage samples, weather, zone state, recommendations."""

import logging
from datetime import date, datetime, time, timezone
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Path, Query
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.database import get_db
from backend.errors import ApiError, validation_error
from backend.models import (
    UUID_PATTERN,
    ForageSampleCreate,
    ForageSampleListResponse,
    GrazingSessionCreate,
    GrazingSessionListResponse,
    IdResponse,
    RecommendationGenerateRequest,
    RecommendationGenerateResponse,
    RecommendationListResponse,
    RecommendationPreview,
    RecommendationStatus,
    RecommendationStatusUpdate,
    SoilSampleCreate,
    SoilSampleListResponse,
    SubzoneCreate,
    SubzoneListResponse,
    SuccessResponse,
    WeatherDailyCreate,
    WeatherDailyListResponse,
    ZoneStateCreate,
    ZoneStateListResponse,
)
from backend.models_db import (
    ForageSample,
    GrazingSession,
    LandRecommendation,
    SoilSample,
    ZoneDailyState,
    ZoneSubzone,
    ZoneWeatherDaily,
)
from backend.routes.zones import prepare_geometry
from backend.services.land import (
    check_zone_refs,
    generate_recommendations,
    persist_recommendations,
    require_zone,
    subzone_filter,
)
from backend.services.ranch_scope import get_active_ranch_id
from backend.services.request_body import clean_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/land")


def _utc_day_bounds(day: date) -> tuple[datetime, datetime]:
    return (
        datetime.combine(day, time.min, tzinfo=timezone.utc),
        datetime.combine(day, time.max, tzinfo=timezone.utc),
    )


# --- Subzones ---

@router.get("/subzones", response_model=SubzoneListResponse)
async def list_subzones(
    zone_id: Optional[str] = Query(None, alias="zoneId", pattern=UUID_PATTERN),
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    query = db.query(ZoneSubzone).filter(ZoneSubzone.ranch_id == ranch_id)
    if zone_id:
        query = query.filter(ZoneSubzone.zone_id == zone_id)
    return SubzoneListResponse(subzones=query.order_by(ZoneSubzone.name).all())


@router.post("/subzones", response_model=IdResponse, status_code=201)
async def create_subzone(
    payload: SubzoneCreate,
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    require_zone(db, ranch_id, payload.zone_id)
    name = payload.name.strip()

    duplicate = (
        db.query(ZoneSubzone.id)
        .filter(
            ZoneSubzone.ranch_id == ranch_id,
            ZoneSubzone.zone_id == payload.zone_id,
            ZoneSubzone.name == name,
        )
        .first()
    )
    if duplicate:
        raise ApiError(409, "DUPLICATE_SUBZONE", "A subzone with this name already exists in the zone")

    geom = None
    area = payload.area_acres
    if payload.geom is not None:
        geom, area = prepare_geometry(payload.geom, payload.area_acres)

    subzone = ZoneSubzone(
        ranch_id=ranch_id,
        zone_id=payload.zone_id,
        name=name,
        description=clean_text(payload.description),
        status=payload.status.value,
        area_acres=area,
        geom=geom,
        target_rest_days=payload.target_rest_days,
    )
    db.add(subzone)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ApiError(409, "DUPLICATE_SUBZONE", "A subzone with this name already exists in the zone")
    return IdResponse(id=subzone.id)


# --- Grazing sessions ---

@router.get("/grazing-sessions", response_model=GrazingSessionListResponse)
async def list_grazing_sessions(
    zone_id: Optional[str] = Query(None, alias="zoneId", pattern=UUID_PATTERN),
    herd_id: Optional[str] = Query(None, alias="herdId", pattern=UUID_PATTERN),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    query = db.query(GrazingSession).filter(GrazingSession.ranch_id == ranch_id)
    if zone_id:
        query = query.filter(GrazingSession.zone_id == zone_id)
    if herd_id:
        query = query.filter(GrazingSession.herd_id == herd_id)
    if date_from:
        query = query.filter(GrazingSession.started_at >= _utc_day_bounds(date_from)[0])
    if date_to:
        query = query.filter(GrazingSession.started_at <= _utc_day_bounds(date_to)[1])
    sessions = query.order_by(GrazingSession.started_at.desc()).all()
    return GrazingSessionListResponse(sessions=sessions)


@router.post("/grazing-sessions", response_model=IdResponse, status_code=201)
async def create_grazing_session(
    payload: GrazingSessionCreate,
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    check_zone_refs(db, ranch_id, payload.zone_id, payload.subzone_id, payload.herd_id)
    session = GrazingSession(
        ranch_id=ranch_id,
        zone_id=payload.zone_id,
        subzone_id=payload.subzone_id,
        herd_id=payload.herd_id,
        head_count=payload.head_count,
        stock_density_au_per_acre=payload.stock_density_au_per_acre,
        started_at=payload.started_at,
        ended_at=payload.ended_at,
        notes=clean_text(payload.notes),
    )
    db.add(session)
    db.commit()
    return IdResponse(id=session.id)


# --- Soil & forage samples ---

@router.get("/soil-samples", response_model=SoilSampleListResponse)
async def list_soil_samples(
    zone_id: Optional[str] = Query(None, alias="zoneId", pattern=UUID_PATTERN),
    limit: int = Query(100, ge=1, le=500),
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    query = db.query(SoilSample).filter(SoilSample.ranch_id == ranch_id)
    if zone_id:
        query = query.filter(SoilSample.zone_id == zone_id)
    rows = query.order_by(SoilSample.sampled_at.desc(), SoilSample.created_at.desc()).limit(limit).all()
    return SoilSampleListResponse(soil_samples=rows)


@router.post("/soil-samples", response_model=IdResponse, status_code=201)
async def create_soil_sample(
    payload: SoilSampleCreate,
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    check_zone_refs(db, ranch_id, payload.zone_id, payload.subzone_id)
    sample = SoilSample(ranch_id=ranch_id, **payload.model_dump(exclude={"notes"}))
    sample.notes = clean_text(payload.notes)
    db.add(sample)
    db.commit()
    return IdResponse(id=sample.id)


@router.get("/forage-samples", response_model=ForageSampleListResponse)
async def list_forage_samples(
    zone_id: Optional[str] = Query(None, alias="zoneId", pattern=UUID_PATTERN),
    limit: int = Query(100, ge=1, le=500),
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    query = db.query(ForageSample).filter(ForageSample.ranch_id == ranch_id)
    if zone_id:
        query = query.filter(ForageSample.zone_id == zone_id)
    rows = query.order_by(ForageSample.sampled_at.desc(), ForageSample.created_at.desc()).limit(limit).all()
    return ForageSampleListResponse(forage_samples=rows)


@router.post("/forage-samples", response_model=IdResponse, status_code=201)
async def create_forage_sample(
    payload: ForageSampleCreate,
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    check_zone_refs(db, ranch_id, payload.zone_id, payload.subzone_id)
    sample = ForageSample(ranch_id=ranch_id, **payload.model_dump(exclude={"notes"}))
    sample.notes = clean_text(payload.notes)
    db.add(sample)
    db.commit()
    return IdResponse(id=sample.id)


# --- Weather ---

@router.get("/weather-daily", response_model=WeatherDailyListResponse)
async def list_weather_daily(
    zone_id: Optional[str] = Query(None, alias="zoneId", pattern=UUID_PATTERN),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    query = db.query(ZoneWeatherDaily).filter(ZoneWeatherDaily.ranch_id == ranch_id)
    if zone_id:
        query = query.filter(ZoneWeatherDaily.zone_id == zone_id)
    if date_from:
        query = query.filter(ZoneWeatherDaily.weather_date >= date_from)
    if date_to:
        query = query.filter(ZoneWeatherDaily.weather_date <= date_to)
    rows = query.order_by(ZoneWeatherDaily.weather_date.desc()).all()
    return WeatherDailyListResponse(weather_daily=rows)


@router.post("/weather-daily", response_model=IdResponse, status_code=201)
async def create_weather_daily(
    payload: WeatherDailyCreate,
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    check_zone_refs(db, ranch_id, payload.zone_id, payload.subzone_id)

    # One row per (zone, subzone, day); a null subzone is its own slot
    exists = (
        db.query(ZoneWeatherDaily.id)
        .filter(
            ZoneWeatherDaily.ranch_id == ranch_id,
            ZoneWeatherDaily.zone_id == payload.zone_id,
            subzone_filter(ZoneWeatherDaily.subzone_id, payload.subzone_id),
            ZoneWeatherDaily.weather_date == payload.weather_date,
        )
        .first()
    )
    if exists:
        raise ApiError(409, "DUPLICATE_WEATHER_DAY", "Weather for this zone and date already exists")

    row = ZoneWeatherDaily(ranch_id=ranch_id, **payload.model_dump(exclude={"source"}))
    row.source = clean_text(payload.source)
    db.add(row)
    db.commit()
    return IdResponse(id=row.id)


# --- Zone daily state ---

@router.get("/zone-daily-states", response_model=ZoneStateListResponse)
async def list_zone_daily_states(
    zone_id: Optional[str] = Query(None, alias="zoneId", pattern=UUID_PATTERN),
    state_date: Optional[date] = Query(None, alias="date"),
    limit: int = Query(100, ge=1, le=500),
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    query = db.query(ZoneDailyState).filter(ZoneDailyState.ranch_id == ranch_id)
    if zone_id:
        query = query.filter(ZoneDailyState.zone_id == zone_id)
    if state_date:
        query = query.filter(ZoneDailyState.state_date == state_date)
    rows = query.order_by(ZoneDailyState.state_date.desc(), ZoneDailyState.created_at.desc()).limit(limit).all()
    return ZoneStateListResponse(zone_daily_states=rows)


@router.post("/zone-daily-states", response_model=IdResponse, status_code=201)
async def create_zone_daily_state(
    payload: ZoneStateCreate,
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    check_zone_refs(db, ranch_id, payload.zone_id, payload.subzone_id)

    exists = (
        db.query(ZoneDailyState.id)
        .filter(
            ZoneDailyState.ranch_id == ranch_id,
            ZoneDailyState.zone_id == payload.zone_id,
            subzone_filter(ZoneDailyState.subzone_id, payload.subzone_id),
            ZoneDailyState.state_date == payload.state_date,
        )
        .first()
    )
    if exists:
        raise ApiError(409, "DUPLICATE_ZONE_STATE", "State for this zone and date already exists")

    data = payload.model_dump(exclude={"notes", "recovery_stage"})
    row = ZoneDailyState(
        ranch_id=ranch_id,
        recovery_stage=payload.recovery_stage.value if payload.recovery_stage else None,
        notes=clean_text(payload.notes),
        **data,
    )
    db.add(row)
    db.commit()
    return IdResponse(id=row.id)


# --- Recommendations ---

@router.get("/recommendations", response_model=RecommendationListResponse)
async def list_recommendations(
    zone_id: Optional[str] = Query(None, alias="zoneId", pattern=UUID_PATTERN),
    recommendation_date: Optional[date] = Query(None, alias="recommendationDate"),
    status: Optional[RecommendationStatus] = Query(None),
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    query = db.query(LandRecommendation).filter(LandRecommendation.ranch_id == ranch_id)
    if zone_id:
        query = query.filter(LandRecommendation.zone_id == zone_id)
    if recommendation_date:
        query = query.filter(LandRecommendation.recommendation_date == recommendation_date)
    if status:
        query = query.filter(LandRecommendation.status == status.value)
    rows = query.order_by(
        LandRecommendation.recommendation_date.desc(),
        LandRecommendation.created_at.desc(),
    ).all()
    return RecommendationListResponse(recommendations=rows)


@router.post("/recommendations/generate", response_model=RecommendationGenerateResponse)
async def generate(
    body: Any = Body(None),
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    """Classify each zone from its latest observations; optionally store the results."""
    try:
        payload = RecommendationGenerateRequest.model_validate(body if body is not None else {})
    except ValidationError as e:
        raise validation_error(e, "INVALID_RECOMMENDATION_PAYLOAD", "Invalid recommendation request")
    on = payload.recommendation_date or datetime.now(timezone.utc).date()

    recommendations = generate_recommendations(db, ranch_id, on, payload.zone_id, payload.subzone_id)
    if payload.persist and recommendations:
        persist_recommendations(db, recommendations)

    return RecommendationGenerateResponse(
        recommendations=[RecommendationPreview.model_validate(r) for r in recommendations],
        persisted=payload.persist,
    )


@router.api_route("/recommendations/{recommendation_id}/status", methods=["PATCH", "PUT"], response_model=SuccessResponse)
async def update_recommendation_status(
    payload: RecommendationStatusUpdate,
    recommendation_id: str = Path(..., pattern=UUID_PATTERN),
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    rec = (
        db.query(LandRecommendation)
        .filter(LandRecommendation.id == recommendation_id, LandRecommendation.ranch_id == ranch_id)
        .first()
    )
    if rec is None:
        raise ApiError(404, "RECOMMENDATION_NOT_FOUND", "Recommendation not found")
    rec.status = payload.status.value
    db.commit()
    return SuccessResponse()
