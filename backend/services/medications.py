"""Standard medications, ranch dosing standards and suppliers."""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from backend.models import CurrentStandard, MedicationSummary, StandardMedicationCreate
from backend.models_db import RanchMedicationStandard, StandardMedication, Supplier
from engine.medications import display_name, format_concentration, normalize_supplier_name

logger = logging.getLogger(__name__)

IMAGE_PURPOSES = ("label", "insert", "misc")


def image_purpose(field_name: Optional[str]) -> str:
    """Upload field name -> image purpose; unknown fields are stored as misc."""
    purpose = (field_name or "").lower()
    return purpose if purpose in IMAGE_PURPOSES else "misc"


def medication_display_name(med: StandardMedication) -> str:
    return display_name(
        med.chemical_name,
        med.brand_name,
        med.format,
        med.concentration_value,
        med.concentration_unit,
    )


def current_standard_out(standard: RanchMedicationStandard) -> CurrentStandard:
    return CurrentStandard(
        id=standard.id,
        uses_off_label=standard.uses_off_label,
        standard_dose_text=standard.standard_dose_text,
        start_date=standard.start_date,
        end_date=standard.end_date,
    )


def add_standard_medication(
    db: Session,
    ranch_id: str,
    data: StandardMedicationCreate,
    today: date,
) -> tuple[StandardMedication, RanchMedicationStandard]:
    """Stage a medication and its active ranch standard. The caller commits."""
    med = StandardMedication(
        ranch_id=ranch_id,
        chemical_name=data.chemical_name.strip(),
        format=data.format.strip(),
        concentration_value=format_concentration(data.concentration_value),
        concentration_unit=data.concentration_unit or None,
        manufacturer_name=data.manufacturer_name.strip(),
        brand_name=data.brand_name.strip(),
        on_label_dose_text=data.on_label_dose_text or None,
    )
    db.add(med)
    db.flush()

    standard = RanchMedicationStandard(
        ranch_id=ranch_id,
        standard_medication_id=med.id,
        uses_off_label=data.standard.uses_off_label,
        standard_dose_text=data.standard.standard_dose_text,
        start_date=data.standard.start_date or today,
        end_date=None,
    )
    db.add(standard)
    db.flush()
    return med, standard


def medication_summary(med: StandardMedication, standard: RanchMedicationStandard) -> MedicationSummary:
    return MedicationSummary(
        id=med.id,
        display_name=medication_display_name(med),
        current_standard=current_standard_out(standard),
    )


def active_standard(db: Session, ranch_id: str, medication_id: str) -> Optional[RanchMedicationStandard]:
    return (
        db.query(RanchMedicationStandard)
        .filter(
            RanchMedicationStandard.ranch_id == ranch_id,
            RanchMedicationStandard.standard_medication_id == medication_id,
            RanchMedicationStandard.end_date.is_(None),
        )
        .first()
    )


def upsert_supplier(db: Session, ranch_id: str, name: str) -> Supplier:
    """Find a supplier by normalized name, creating it when new."""
    normalized = normalize_supplier_name(name)
    supplier = (
        db.query(Supplier)
        .filter(Supplier.ranch_id == ranch_id, Supplier.name_normalized == normalized)
        .first()
    )
    if supplier is None:
        supplier = Supplier(ranch_id=ranch_id, name=name.strip(), name_normalized=normalized)
        db.add(supplier)
        db.flush()
        logger.info("Added supplier %r to ranch %s", supplier.name, ranch_id)
    return supplier
