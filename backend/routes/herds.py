"""Herd routes: CRUD over the active ranch's herds."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.database import get_db
from backend.errors import ApiError
from backend.models import HerdCreate, HerdResponse, HerdUpdate, IdResponse, SuccessResponse
from backend.models_db import Herd, UserRanch
from backend.services.ranch_scope import MANAGER_ROLES, get_active_ranch_id, require_role
from backend.services.request_body import clean_text

logger = logging.getLogger(__name__)

router = APIRouter()

_TEXT_FIELDS = (
    "short_description", "species", "breed",
    "male_desc", "female_desc", "baby_desc",
    "male_neut_desc", "female_neut_desc",
    "long_description",
)


def _get_herd(db: Session, ranch_id: str, herd_id: str) -> Herd:
    herd = db.query(Herd).filter(Herd.id == herd_id, Herd.ranch_id == ranch_id).first()
    if herd is None:
        raise ApiError(404, "HERD_NOT_FOUND", "Herd not found")
    return herd


@router.get("/herds", response_model=list[HerdResponse])
async def list_herds(ranch_id: str = Depends(get_active_ranch_id), db: Session = Depends(get_db)):
    return db.query(Herd).filter(Herd.ranch_id == ranch_id).order_by(Herd.created_at).all()


@router.get("/herds/{herd_id}", response_model=HerdResponse)
async def get_herd(herd_id: str, ranch_id: str = Depends(get_active_ranch_id), db: Session = Depends(get_db)):
    return _get_herd(db, ranch_id, herd_id)


@router.post("/herds", response_model=IdResponse, status_code=201)
async def create_herd(
    payload: HerdCreate,
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    name = clean_text(payload.name)
    if name is None:
        raise ApiError(400, "INVALID_PAYLOAD", "Herd name is required")

    herd = Herd(
        ranch_id=ranch_id,
        name=name,
        **{field: clean_text(getattr(payload, field)) for field in _TEXT_FIELDS},
    )
    db.add(herd)
    db.commit()
    logger.info("Created herd %s in ranch %s", herd.id, ranch_id)
    return IdResponse(id=herd.id)


@router.put("/herds/{herd_id}", response_model=SuccessResponse)
async def update_herd(
    herd_id: str,
    payload: HerdUpdate,
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    """Partial update: omitted (or null) fields are left unchanged."""
    herd = _get_herd(db, ranch_id, herd_id)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("name") is not None:
        name = clean_text(changes["name"])
        if name is None:
            raise ApiError(400, "INVALID_PAYLOAD", "Herd name cannot be blank")
        herd.name = name
    for field in _TEXT_FIELDS:
        if changes.get(field) is not None:
            setattr(herd, field, clean_text(changes[field]))

    db.commit()
    return SuccessResponse()


@router.delete("/herds/{herd_id}", response_model=SuccessResponse)
async def delete_herd(
    herd_id: str,
    membership: UserRanch = Depends(require_role(*MANAGER_ROLES)),
    db: Session = Depends(get_db),
):
    herd = _get_herd(db, membership.ranch_id, herd_id)
    db.delete(herd)
    db.commit()
    logger.info("Deleted herd %s from ranch %s", herd_id, membership.ranch_id)
    return SuccessResponse()
