"""Animal routes: listing, detail, intake, measurements, notes, tags, moves and uploads."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth import AuthContext, get_auth_context
from backend.database import get_db
from backend.errors import ApiError, is_database_unavailable
from backend.models import (
    AnimalDetailResponse,
    AnimalListItem,
    AnimalListResponse,
    AnimalMoveRequest,
    AnimalMoveResponse,
    BirthIntakeRequest,
    CurrentScope,
    DocumentOut,
    ExistingInventoryIntakeRequest,
    HerdRef,
    IdResponse,
    IntakeResponse,
    MeasurementCreate,
    NoteCreate,
    PurchaseIntakeRequest,
    TagChangeRequest,
    TaggedPhotoOut,
    UploadResponse,
)
from backend.models_db import (
    Animal,
    AnimalDocument,
    AnimalHerdMembership,
    AnimalIntakeEvent,
    AnimalMeasurement,
    AnimalNote,
    AnimalPhoto,
    AnimalPhotoTag,
    AnimalTagHistory,
    Herd,
)
from backend.services.animals import (
    create_intake,
    move_animal,
    require_current_scope,
    require_herd_access,
    set_current_tag,
)
from backend.services.ranch_scope import get_active_ranch_id
from backend.services.request_body import clean_text
from backend.services.storage import StoredFile, animal_dir, public_url, remove_files, save_upload

logger = logging.getLogger(__name__)

router = APIRouter()

# Detail view limits
TAG_HISTORY_LIMIT = 200
INTAKE_EVENTS_LIMIT = 50
MEASUREMENTS_LIMIT = 100
NOTES_LIMIT = 100
PHOTOS_LIMIT = 200
DOCUMENTS_LIMIT = 200

_ANIMAL_FIELDS = (
    "species", "breed", "birth_date", "status_changed_at",
    "dam_animal_id", "sire_animal_id", "neutered_date", "notes",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _animal_fields(payload, keep_lineage: bool = True) -> dict:
    fields = {name: getattr(payload, name) for name in _ANIMAL_FIELDS}
    fields["sex"] = payload.sex.value
    fields["birth_date_is_estimated"] = bool(payload.birth_date_is_estimated)
    fields["status"] = payload.status.value if payload.status else "active"
    fields["neutered"] = bool(payload.neutered)
    if not keep_lineage:
        fields["dam_animal_id"] = None
        fields["sire_animal_id"] = None
    return fields


def _tag_fields(payload) -> dict:
    return {
        "tag_number": payload.tag_number,
        "tag_color": payload.tag_color,
        "tag_ear": payload.tag_ear.value if payload.tag_ear else None,
    }


def _photo_url(photo: AnimalPhoto, animal_id: str) -> str:
    return public_url("ranches", photo.ranch_id, "animals", photo.animal_id or animal_id, "photos", photo.stored_filename)


def _document_url(doc: AnimalDocument) -> str:
    return public_url("ranches", doc.ranch_id, "animals", doc.animal_id, "documents", doc.stored_filename)


def _document_fields(doc: AnimalDocument) -> dict:
    return {
        "id": doc.id,
        "ranch_id": doc.ranch_id,
        "animal_id": doc.animal_id,
        "document_type": doc.document_type,
        "stored_filename": doc.stored_filename,
        "original_filename": doc.original_filename,
        "mime_type": doc.mime_type,
        "size_bytes": doc.size_bytes,
        "notes": doc.notes,
        "created_at": doc.created_at,
    }


# --- Listing & detail ---

@router.get("/animals", response_model=AnimalListResponse)
async def list_animals(
    herd_id: Optional[str] = Query(None, alias="herdId", min_length=1),
    auth: AuthContext = Depends(get_auth_context),
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    """Animals with a current membership in the active ranch, newest first."""
    if herd_id:
        herd = require_herd_access(db, auth.user_id, herd_id)
        if herd.ranch_id != ranch_id:
            raise ApiError(400, "HERD_NOT_IN_ACTIVE_RANCH", "Herd is not in the active ranch")

    query = (
        db.query(
            Animal,
            Herd.id,
            Herd.name,
            AnimalTagHistory.tag_number,
            AnimalTagHistory.tag_color,
            AnimalTagHistory.tag_ear,
        )
        .select_from(AnimalHerdMembership)
        .join(Herd, AnimalHerdMembership.herd_id == Herd.id)
        .join(Animal, AnimalHerdMembership.animal_id == Animal.id)
        .outerjoin(
            AnimalTagHistory,
            and_(AnimalTagHistory.animal_id == Animal.id, AnimalTagHistory.end_at.is_(None)),
        )
        .filter(Herd.ranch_id == ranch_id, AnimalHerdMembership.end_at.is_(None))
    )
    if herd_id:
        query = query.filter(Herd.id == herd_id)

    items = []
    for animal, row_herd_id, herd_name, tag_number, tag_color, tag_ear in query.order_by(Animal.created_at.desc()).all():
        items.append(AnimalListItem(
            animal_id=animal.id,
            nickname=animal.nickname,
            species=animal.species,
            breed=animal.breed,
            sex=animal.sex,
            birth_date=animal.birth_date,
            birth_date_is_estimated=animal.birth_date_is_estimated,
            status=animal.status,
            neutered=animal.neutered,
            neutered_date=animal.neutered_date,
            notes=animal.notes,
            created_at=animal.created_at,
            updated_at=animal.updated_at,
            herd_id=row_herd_id,
            herd_name=herd_name,
            tag_number=tag_number,
            tag_color=tag_color,
            tag_ear=tag_ear,
        ))

    return AnimalListResponse(ranch_id=ranch_id, herd_id=herd_id, animals=items)


@router.get("/animals/{animal_id}", response_model=AnimalDetailResponse)
async def get_animal(
    animal_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    scope = require_current_scope(db, auth.user_id, animal_id)

    animal = db.query(Animal).filter(Animal.id == animal_id).first()
    if animal is None:
        raise ApiError(404, "ANIMAL_NOT_FOUND", "Animal not found")
    herd = db.query(Herd).filter(Herd.id == scope.herd_id).first()

    tag_history = (
        db.query(AnimalTagHistory)
        .filter(AnimalTagHistory.animal_id == animal_id)
        .order_by(AnimalTagHistory.start_at.desc(), AnimalTagHistory.created_at.desc())
        .limit(TAG_HISTORY_LIMIT)
        .all()
    )
    current_tag = next((t for t in tag_history if t.end_at is None), None)

    intake_events = (
        db.query(AnimalIntakeEvent)
        .filter(AnimalIntakeEvent.animal_id == animal_id)
        .order_by(AnimalIntakeEvent.created_at.desc())
        .limit(INTAKE_EVENTS_LIMIT)
        .all()
    )
    measurements = (
        db.query(AnimalMeasurement)
        .filter(AnimalMeasurement.animal_id == animal_id)
        .order_by(AnimalMeasurement.measured_at.desc(), AnimalMeasurement.created_at.desc())
        .limit(MEASUREMENTS_LIMIT)
        .all()
    )
    notes = (
        db.query(AnimalNote)
        .filter(AnimalNote.animal_id == animal_id)
        .order_by(AnimalNote.note_at.desc(), AnimalNote.created_at.desc())
        .limit(NOTES_LIMIT)
        .all()
    )
    tagged_photos = (
        db.query(AnimalPhotoTag, AnimalPhoto)
        .join(AnimalPhoto, AnimalPhotoTag.photo_id == AnimalPhoto.id)
        .filter(AnimalPhotoTag.animal_id == animal_id, AnimalPhotoTag.ranch_id == scope.ranch_id)
        .order_by(AnimalPhoto.created_at.desc())
        .limit(PHOTOS_LIMIT)
        .all()
    )
    documents = (
        db.query(AnimalDocument)
        .filter(AnimalDocument.animal_id == animal_id)
        .order_by(AnimalDocument.created_at.desc())
        .limit(DOCUMENTS_LIMIT)
        .all()
    )

    photos = [
        TaggedPhotoOut(
            photo_id=photo.id,
            ranch_id=photo.ranch_id,
            herd_id=photo.herd_id,
            animal_id=photo.animal_id,
            purpose=photo.purpose,
            stored_filename=photo.stored_filename,
            original_filename=photo.original_filename,
            mime_type=photo.mime_type,
            size_bytes=photo.size_bytes,
            width=photo.width,
            height=photo.height,
            captured_at=photo.captured_at,
            caption=photo.caption,
            created_at=photo.created_at,
            url=_photo_url(photo, animal_id),
            tag_id=tag.id,
            tag_type=tag.tag_type,
            confidence=tag.confidence,
            tag_notes=tag.notes,
            tag_created_at=tag.created_at,
        )
        for tag, photo in tagged_photos
    ]

    return AnimalDetailResponse(
        animal=animal,
        current=CurrentScope(
            ranch_id=scope.ranch_id,
            herd_id=scope.herd_id,
            membership_id=scope.membership_id,
            herd=HerdRef.model_validate(herd) if herd else None,
        ),
        current_tag=current_tag,
        tag_history=tag_history,
        intake_events=intake_events,
        measurements=measurements,
        notes=notes,
        photos=photos,
        documents=[DocumentOut(url=_document_url(doc), **_document_fields(doc)) for doc in documents],
    )


# --- Intake ---

@router.post("/animals/intake/birth", response_model=IntakeResponse, status_code=201)
async def intake_birth(
    payload: BirthIntakeRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    herd = require_herd_access(db, auth.user_id, payload.herd_id)
    result = create_intake(
        db,
        herd,
        "birth",
        payload.intake.event_date,
        _animal_fields(payload),
        intake_fields={
            "born_on_ranch": True if payload.intake.born_on_ranch is None else payload.intake.born_on_ranch,
            "dam_animal_id": payload.dam_animal_id,
            "sire_animal_id": payload.sire_animal_id,
        },
        tag=_tag_fields(payload),
        changed_by_user_id=auth.user_id,
    )
    return IntakeResponse.model_validate(result)


@router.post("/animals/intake/purchase", response_model=IntakeResponse, status_code=201)
async def intake_purchase(
    payload: PurchaseIntakeRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    herd = require_herd_access(db, auth.user_id, payload.herd_id)
    # Lineage is unknown for purchased animals
    result = create_intake(
        db,
        herd,
        "purchase",
        payload.intake.event_date,
        _animal_fields(payload, keep_lineage=False),
        intake_fields={
            "supplier_name": clean_text(payload.intake.supplier_name),
            "purchase_price_cents": payload.intake.purchase_price_cents,
            "purchase_currency": clean_text(payload.intake.purchase_currency),
        },
        tag=_tag_fields(payload),
        changed_by_user_id=auth.user_id,
    )
    return IntakeResponse.model_validate(result)


@router.post("/animals/intake/existing", response_model=IntakeResponse, status_code=201)
async def intake_existing(
    payload: ExistingInventoryIntakeRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Record an animal already on the ranch before it was tracked here."""
    herd = require_herd_access(db, auth.user_id, payload.herd_id)

    neutered = payload.sex.value == "neutered"
    animal_fields = {
        "nickname": clean_text(payload.nickname),
        "species": payload.species,
        "breed": payload.breed,
        "sex": "unknown" if neutered else payload.sex.value,
        "neutered": neutered,
        "birth_date": payload.birth_date,
        "birth_date_is_estimated": bool(payload.is_birth_date_estimated),
        "status": "active",
        "notes": clean_text(payload.notes),
    }
    tag = None
    if payload.tag is not None:
        tag = {
            "tag_number": payload.tag.tag_number,
            "tag_color": clean_text(payload.tag.tag_color),
            "tag_ear": payload.tag.tag_ear.value if payload.tag.tag_ear else None,
        }

    result = create_intake(
        db,
        herd,
        "existing",
        payload.event_date or _now().date(),
        animal_fields,
        tag=tag,
        initial_weight_lbs=payload.initial_weight_lbs,
        changed_by_user_id=auth.user_id,
    )
    return IntakeResponse.model_validate(result)


# --- Records ---

@router.post("/animals/{animal_id}/measurements", response_model=IdResponse, status_code=201)
async def add_measurement(
    animal_id: str,
    payload: MeasurementCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    scope = require_current_scope(db, auth.user_id, animal_id)
    if payload.value_number is None and not payload.value_text:
        raise ApiError(400, "INVALID_PAYLOAD", "Provide valueNumber or valueText")

    now = _now()
    measurement = AnimalMeasurement(
        ranch_id=scope.ranch_id,
        herd_id=scope.herd_id,
        animal_id=animal_id,
        measurement_type=payload.measurement_type,
        value_number=payload.value_number,
        value_text=payload.value_text,
        unit=payload.unit,
        notes=payload.notes,
        measured_at=payload.measured_at or now,
        created_at=now,
    )
    db.add(measurement)
    db.commit()
    return IdResponse(id=measurement.id)


@router.post("/animals/{animal_id}/notes", response_model=IdResponse, status_code=201)
async def add_note(
    animal_id: str,
    payload: NoteCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    scope = require_current_scope(db, auth.user_id, animal_id)
    now = _now()
    note = AnimalNote(
        ranch_id=scope.ranch_id,
        herd_id=scope.herd_id,
        animal_id=animal_id,
        note_type=payload.note_type,
        content=payload.content,
        note_at=payload.note_at or now,
        created_at=now,
    )
    db.add(note)
    db.commit()
    return IdResponse(id=note.id)


@router.post("/animals/{animal_id}/tags", response_model=IdResponse, status_code=201)
async def retag_animal(
    animal_id: str,
    payload: TagChangeRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    require_current_scope(db, auth.user_id, animal_id)
    fields = _tag_fields(payload)
    fields["tag_number"] = clean_text(fields["tag_number"])
    fields["tag_color"] = clean_text(fields["tag_color"])

    tag = set_current_tag(
        db,
        animal_id,
        at=_now(),
        change_reason=payload.change_reason,
        changed_by_user_id=auth.user_id,
        **fields,
    )
    if tag is None:
        raise ApiError(400, "INVALID_PAYLOAD", "Provide tagNumber, tagColor or tagEar")
    db.commit()
    return IdResponse(id=tag.id)


@router.post("/animals/{animal_id}/move", response_model=AnimalMoveResponse)
async def move(
    animal_id: str,
    payload: AnimalMoveRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    scope = require_current_scope(db, auth.user_id, animal_id)
    target = require_herd_access(db, auth.user_id, payload.herd_id)
    membership = move_animal(db, animal_id, scope, target)
    return AnimalMoveResponse(
        animal_id=animal_id,
        from_herd_id=scope.herd_id,
        herd_id=target.id,
        membership_id=membership.id,
    )


# --- Uploads ---

def _discard_upload(db: Session, saved: StoredFile, exc: SQLAlchemyError) -> ApiError:
    """Roll back a failed upload record and delete its stored file."""
    db.rollback()
    remove_files([saved.path])
    logger.error("Upload %s not recorded; stored file removed", saved.stored_filename, exc_info=exc)
    if is_database_unavailable(exc):
        return ApiError(503, "DATABASE_UNAVAILABLE", "Database unavailable")
    return ApiError(500, "UPLOAD_FAILED", "Failed to record upload")


@router.post("/animals/{animal_id}/photos", response_model=UploadResponse, status_code=201)
async def upload_photo(
    animal_id: str,
    file: UploadFile = File(...),
    purpose: str = Form("profile"),
    caption: Optional[str] = Form(None),
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    scope = require_current_scope(db, auth.user_id, animal_id)
    saved = await save_upload(file, animal_dir(scope.ranch_id, animal_id, "photos"))

    now = _now()
    photo = AnimalPhoto(
        ranch_id=scope.ranch_id,
        herd_id=scope.herd_id,
        animal_id=animal_id,
        purpose=clean_text(purpose) or "profile",
        stored_filename=saved.stored_filename,
        original_filename=saved.original_filename,
        mime_type=saved.mime_type,
        size_bytes=saved.size_bytes,
        caption=clean_text(caption),
        created_at=now,
    )
    try:
        db.add(photo)
        db.flush()
        db.add(AnimalPhotoTag(
            ranch_id=scope.ranch_id,
            photo_id=photo.id,
            animal_id=animal_id,
            tag_type="primary",
            created_at=now,
        ))
        db.commit()
    except SQLAlchemyError as e:
        raise _discard_upload(db, saved, e)
    return UploadResponse(id=photo.id, url=_photo_url(photo, animal_id))


@router.post("/animals/{animal_id}/documents", response_model=UploadResponse, status_code=201)
async def upload_document(
    animal_id: str,
    file: UploadFile = File(...),
    document_type: Optional[str] = Form(None, alias="documentType"),
    notes: Optional[str] = Form(None),
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    scope = require_current_scope(db, auth.user_id, animal_id)
    saved = await save_upload(file, animal_dir(scope.ranch_id, animal_id, "documents"))

    doc = AnimalDocument(
        ranch_id=scope.ranch_id,
        animal_id=animal_id,
        document_type=clean_text(document_type),
        stored_filename=saved.stored_filename,
        original_filename=saved.original_filename,
        mime_type=saved.mime_type,
        size_bytes=saved.size_bytes,
        notes=clean_text(notes),
    )
    try:
        db.add(doc)
        db.commit()
    except SQLAlchemyError as e:
        raise _discard_upload(db, saved, e)
    return UploadResponse(id=doc.id, url=_document_url(doc))
