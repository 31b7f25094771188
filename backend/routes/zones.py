"""Zone routes: pastures and grazing areas with GeoJSON boundaries."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.database import get_db
from backend.errors import ApiError
from backend.models import IdResponse, SuccessResponse, ZoneCreate, ZoneResponse, ZoneUpdate
from backend.models_db import UserRanch, Zone
from backend.services.ranch_scope import MANAGER_ROLES, get_active_ranch_id, require_role
from backend.services.request_body import clean_text
from engine.geometry import GeometryError, area_acres, dump_geometry, parse_geometry

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_zone(db: Session, ranch_id: str, zone_id: str) -> Zone:
    zone = db.query(Zone).filter(Zone.id == zone_id, Zone.ranch_id == ranch_id).first()
    if zone is None:
        raise ApiError(404, "ZONE_NOT_FOUND", "Zone not found")
    return zone


def prepare_geometry(text: str, area: Optional[float]) -> tuple[str, Optional[float]]:
    """Normalize geometry text to GeoJSON; fill in the area when not supplied."""
    try:
        geom = parse_geometry(text)
    except GeometryError as e:
        raise ApiError(400, "INVALID_GEOMETRY", str(e))
    if area is None:
        area = area_acres(geom)
    return dump_geometry(geom), area


@router.get("/zones", response_model=list[ZoneResponse])
async def list_zones(ranch_id: str = Depends(get_active_ranch_id), db: Session = Depends(get_db)):
    return db.query(Zone).filter(Zone.ranch_id == ranch_id).order_by(Zone.created_at).all()


@router.get("/zones/{zone_id}", response_model=ZoneResponse)
async def get_zone(zone_id: str, ranch_id: str = Depends(get_active_ranch_id), db: Session = Depends(get_db)):
    return _get_zone(db, ranch_id, zone_id)


@router.post("/zones", response_model=IdResponse, status_code=201)
async def create_zone(
    payload: ZoneCreate,
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    geom, area = prepare_geometry(payload.geom, payload.area_acres)
    zone = Zone(
        ranch_id=ranch_id,
        name=payload.name.strip(),
        description=clean_text(payload.description),
        area_acres=area,
        geom=geom,
    )
    db.add(zone)
    db.commit()
    logger.info("Created zone %s in ranch %s", zone.id, ranch_id)
    return IdResponse(id=zone.id)


@router.put("/zones/{zone_id}", response_model=SuccessResponse)
async def update_zone(
    zone_id: str,
    payload: ZoneUpdate,
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    zone = _get_zone(db, ranch_id, zone_id)

    if payload.name is not None:
        zone.name = payload.name.strip()
    if payload.description is not None:
        zone.description = clean_text(payload.description)
    if payload.area_acres is not None:
        zone.area_acres = payload.area_acres
    if payload.geom is not None:
        zone.geom, computed = prepare_geometry(payload.geom, payload.area_acres)
        if computed is not None:
            zone.area_acres = computed

    db.commit()
    return SuccessResponse()


@router.delete("/zones/{zone_id}", response_model=SuccessResponse)
async def delete_zone(
    zone_id: str,
    membership: UserRanch = Depends(require_role(*MANAGER_ROLES)),
    db: Session = Depends(get_db),
):
    zone = _get_zone(db, membership.ranch_id, zone_id)
    db.delete(zone)
    db.commit()
    logger.info("Deleted zone %s from ranch %s", zone_id, membership.ranch_id)
    return SuccessResponse()
