"""Ranch routes: create a ranch (with optional logo/brand images) and read it back."""

import logging
import os
import uuid

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from backend.auth import AuthContext, get_auth_context
from backend.database import get_db
from backend.errors import ApiError, validation_error
from backend.models import IdResponse, RanchCreate, RanchResponse
from backend.models_db import Herd, Ranch, UserRanch
from backend.services.ranch_scope import find_membership
from backend.services.request_body import clean_text, read_body
from backend.services.storage import ensure_ranch_structure, public_url, remove_files, save_upload

logger = logging.getLogger(__name__)

router = APIRouter()

TRANSFER_HERD_NAME = "Transfer"
TRANSFER_HERD_SHORT = "System-managed holding herd."
TRANSFER_HERD_LONG = "System-managed holding herd. Animals may be placed here temporarily for transfers."

_OPTIONAL_FIELDS = (
    "description", "dba", "phone",
    "phys_street", "phys_city", "phys_state", "phys_zip",
    "mail_street", "mail_city", "mail_state", "mail_zip",
)


def ensure_transfer_herd(db: Session, ranch_id: str) -> Herd:
    herd = (
        db.query(Herd)
        .filter(Herd.ranch_id == ranch_id, Herd.name == TRANSFER_HERD_NAME)
        .first()
    )
    if herd is None:
        herd = Herd(
            ranch_id=ranch_id,
            name=TRANSFER_HERD_NAME,
            short_description=TRANSFER_HERD_SHORT,
            long_description=TRANSFER_HERD_LONG,
        )
        db.add(herd)
    return herd


@router.post("/ranches", response_model=IdResponse, status_code=201)
async def create_ranch(
    request: Request,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Create a ranch owned by the caller, with its folder tree and Transfer herd."""
    body = await read_body(request)
    try:
        payload = RanchCreate.model_validate(body.data)
    except ValidationError as e:
        raise validation_error(e, message="Invalid ranch payload")

    ranch_id = str(uuid.uuid4())
    ranch_root = ensure_ranch_structure(ranch_id)

    saved_paths = []
    logo_filename = None
    brand_filename = None
    for field_name, upload in body.files:
        if field_name == "logo":
            saved = await save_upload(upload, os.path.join(ranch_root, "logo"))
            logo_filename = saved.stored_filename
        elif field_name == "brand":
            saved = await save_upload(upload, os.path.join(ranch_root, "brand"))
            brand_filename = saved.stored_filename
        else:
            continue
        saved_paths.append(saved.path)

    ranch = Ranch(
        id=ranch_id,
        name=payload.name.strip(),
        logo_image_url=logo_filename,
        brand_image_url=brand_filename,
        **{name: clean_text(getattr(payload, name)) for name in _OPTIONAL_FIELDS},
    )
    try:
        db.add(ranch)
        db.add(UserRanch(user_id=auth.user_id, ranch_id=ranch_id, role="owner"))
        db.flush()
        ensure_transfer_herd(db, ranch_id)
        db.commit()
    except Exception:
        db.rollback()
        remove_files(saved_paths)
        raise

    logger.info("Created ranch %s for user %s", ranch_id, auth.user_id)
    return IdResponse(id=ranch_id)


@router.get("/ranches/{ranch_id}", response_model=RanchResponse)
async def get_ranch(
    ranch_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    if find_membership(db, auth.user_id, ranch_id) is None:
        raise ApiError(404, "RANCH_NOT_FOUND", "Ranch not found")
    ranch = db.query(Ranch).filter(Ranch.id == ranch_id).first()
    if ranch is None:
        raise ApiError(404, "RANCH_NOT_FOUND", "Ranch not found")

    response = RanchResponse.model_validate(ranch)
    if ranch.logo_image_url:
        response.logo_url = public_url("ranches", ranch.id, "logo", ranch.logo_image_url)
    if ranch.brand_image_url:
        response.brand_url = public_url("ranches", ranch.id, "brand", ranch.brand_image_url)
    return response
