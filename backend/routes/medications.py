"""Medication routes: standard medications, ranch standards, images and inventory."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from pydantic import ValidationError
from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from backend.database import get_db
from backend.errors import ApiError, validation_error
from backend.models import (
    ActiveMedication,
    ActiveMedicationListResponse,
    InventoryItem,
    InventoryResponse,
    MedicationImage,
    MedicationImageListResponse,
    RanchStandardListResponse,
    RanchStandardOut,
    RetiredStandard,
    RetireStandardRequest,
    RetireStandardResponse,
    StandardMedicationCreate,
    StandardMedicationCreateResponse,
)
from backend.models_db import (
    MedicationPurchase,
    RanchMedicationStandard,
    StandardMedication,
    StandardMedicationImage,
    UserRanch,
)
from backend.services.medications import (
    add_standard_medication,
    current_standard_out,
    image_purpose,
    medication_display_name,
    medication_summary,
)
from backend.services.ranch_scope import MANAGER_ROLES, get_active_ranch_id, require_role
from backend.services.request_body import read_body
from backend.services.storage import ensure_ranch_structure, medication_dir, public_url, remove_files, save_upload
from engine.medications import canonical_unit

logger = logging.getLogger(__name__)

router = APIRouter()


def _today():
    return datetime.now(timezone.utc).date()


@router.post("/standard-medications", response_model=StandardMedicationCreateResponse, status_code=201)
async def create_standard_medication(
    request: Request,
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    """Create a medication with an active ranch standard; optional label/insert/misc images."""
    body = await read_body(request)
    try:
        data = StandardMedicationCreate.model_validate(body.data)
    except ValidationError as e:
        raise validation_error(e, message="Invalid standard medication payload")

    try:
        med, standard = add_standard_medication(db, ranch_id, data, _today())
        db.commit()
    except Exception:
        db.rollback()
        raise

    if body.files:
        ensure_ranch_structure(ranch_id)
        saved_paths = []
        try:
            for field_name, upload in body.files:
                purpose = image_purpose(field_name)
                saved = await save_upload(upload, medication_dir(ranch_id, med.id, purpose))
                saved_paths.append(saved.path)
                db.add(StandardMedicationImage(
                    ranch_id=ranch_id,
                    standard_medication_id=med.id,
                    purpose=purpose,
                    stored_filename=saved.stored_filename,
                    original_filename=saved.original_filename,
                    mime_type=saved.mime_type,
                    size_bytes=saved.size_bytes,
                ))
            db.commit()
        except Exception:
            db.rollback()
            remove_files(saved_paths)
            raise

    logger.info("Created standard medication %s in ranch %s (%d images)", med.id, ranch_id, len(body.files))
    return StandardMedicationCreateResponse(medication=medication_summary(med, standard))


@router.get("/standard-medications/active", response_model=ActiveMedicationListResponse)
async def list_active_medications(ranch_id: str = Depends(get_active_ranch_id), db: Session = Depends(get_db)):
    """Medications with an active ranch standard, for purchase dropdowns."""
    rows = (
        db.query(StandardMedication, RanchMedicationStandard)
        .join(
            RanchMedicationStandard,
            and_(
                RanchMedicationStandard.standard_medication_id == StandardMedication.id,
                RanchMedicationStandard.ranch_id == ranch_id,
                RanchMedicationStandard.end_date.is_(None),
            ),
        )
        .filter(StandardMedication.ranch_id == ranch_id)
        .order_by(StandardMedication.chemical_name, StandardMedication.brand_name)
        .all()
    )
    return ActiveMedicationListResponse(medications=[
        ActiveMedication(
            id=med.id,
            chemical_name=med.chemical_name,
            format=med.format,
            concentration_value=med.concentration_value,
            concentration_unit=med.concentration_unit,
            manufacturer_name=med.manufacturer_name,
            brand_name=med.brand_name,
            on_label_dose_text=med.on_label_dose_text,
            display_name=medication_display_name(med),
            current_standard=current_standard_out(standard),
        )
        for med, standard in rows
    ])


@router.get("/standard-medications/{medication_id}/images", response_model=MedicationImageListResponse)
async def list_medication_images(
    medication_id: str = Path(..., min_length=1),
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    med = (
        db.query(StandardMedication.id)
        .filter(StandardMedication.id == medication_id, StandardMedication.ranch_id == ranch_id)
        .first()
    )
    if med is None:
        raise ApiError(404, "MEDICATION_NOT_FOUND", "Standard medication not found")

    images = (
        db.query(StandardMedicationImage)
        .filter(
            StandardMedicationImage.standard_medication_id == medication_id,
            StandardMedicationImage.ranch_id == ranch_id,
        )
        .order_by(StandardMedicationImage.purpose, StandardMedicationImage.created_at)
        .all()
    )
    return MedicationImageListResponse(images=[
        MedicationImage(
            id=img.id,
            purpose=img.purpose,
            original_filename=img.original_filename,
            mime_type=img.mime_type,
            size_bytes=img.size_bytes,
            created_at=img.created_at,
            url=public_url(
                "ranches", ranch_id, "medications", "standards", medication_id, img.purpose, img.stored_filename
            ),
        )
        for img in images
    ])


@router.get("/medications/inventory", response_model=InventoryResponse)
async def medication_inventory(ranch_id: str = Depends(get_active_ranch_id), db: Session = Depends(get_db)):
    """On-hand quantity per medication, summed from purchases in the format's canonical unit."""
    rows = (
        db.query(
            StandardMedication,
            func.coalesce(func.sum(MedicationPurchase.quantity), 0),
            func.max(MedicationPurchase.purchase_date),
        )
        .outerjoin(
            MedicationPurchase,
            and_(
                MedicationPurchase.standard_medication_id == StandardMedication.id,
                MedicationPurchase.ranch_id == ranch_id,
            ),
        )
        .filter(StandardMedication.ranch_id == ranch_id)
        .group_by(StandardMedication.id)
        .order_by(StandardMedication.chemical_name, StandardMedication.brand_name)
        .all()
    )
    return InventoryResponse(inventory=[
        InventoryItem(
            id=med.id,
            display_name=medication_display_name(med),
            quantity=float(quantity or 0),
            unit=canonical_unit(med.format),
            last_purchase_date=last_purchase,
        )
        for med, quantity, last_purchase in rows
    ])


@router.get("/ranch-medication-standards", response_model=RanchStandardListResponse)
async def list_ranch_standards(
    include_retired: bool = Query(False, alias="includeRetired"),
    ranch_id: str = Depends(get_active_ranch_id),
    db: Session = Depends(get_db),
):
    query = (
        db.query(RanchMedicationStandard, StandardMedication)
        .join(
            StandardMedication,
            and_(
                StandardMedication.id == RanchMedicationStandard.standard_medication_id,
                StandardMedication.ranch_id == ranch_id,
            ),
        )
        .filter(RanchMedicationStandard.ranch_id == ranch_id)
    )
    if not include_retired:
        query = query.filter(RanchMedicationStandard.end_date.is_(None))

    rows = query.order_by(RanchMedicationStandard.start_date.desc(), StandardMedication.chemical_name).all()
    return RanchStandardListResponse(standards=[
        RanchStandardOut(
            id=standard.id,
            standard_medication_id=standard.standard_medication_id,
            medication_display_name=medication_display_name(med),
            uses_off_label=standard.uses_off_label,
            standard_dose_text=standard.standard_dose_text,
            start_date=standard.start_date,
            end_date=standard.end_date,
            created_at=standard.created_at,
        )
        for standard, med in rows
    ])


@router.post("/ranch-medication-standards/{standard_id}/retire", response_model=RetireStandardResponse)
async def retire_standard(
    standard_id: str,
    payload: Optional[RetireStandardRequest] = None,
    membership: UserRanch = Depends(require_role(*MANAGER_ROLES)),
    db: Session = Depends(get_db),
):
    standard = (
        db.query(RanchMedicationStandard)
        .filter(
            RanchMedicationStandard.id == standard_id,
            RanchMedicationStandard.ranch_id == membership.ranch_id,
        )
        .first()
    )
    if standard is None:
        raise ApiError(404, "STANDARD_NOT_FOUND", "Standard not found")

    standard.end_date = (payload.end_date if payload else None) or _today()
    db.commit()
    logger.info("Retired medication standard %s in ranch %s", standard_id, membership.ranch_id)
    return RetireStandardResponse(retired=RetiredStandard(
        id=standard.id,
        standard_medication_id=standard.standard_medication_id,
        end_date=standard.end_date,
    ))
