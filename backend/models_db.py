"""SQLAlchemy ORM models."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from backend.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --- Ranches & users ---

class Ranch(Base):
    __tablename__ = "ranches"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    dba = Column(String, nullable=True)
    phone = Column(String, nullable=True)

    phys_street = Column(String, nullable=True)
    phys_city = Column(String, nullable=True)
    phys_state = Column(String, nullable=True)
    phys_zip = Column(String, nullable=True)

    mail_street = Column(String, nullable=True)
    mail_city = Column(String, nullable=True)
    mail_state = Column(String, nullable=True)
    mail_zip = Column(String, nullable=True)

    logo_image_url = Column(String, nullable=True)
    brand_image_url = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class User(Base):
    """Local mirror of an identity-provider user."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_uuid)
    firebase_uid = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class UserRanch(Base):
    """User <-> ranch membership. role: owner | admin | staff"""
    __tablename__ = "user_ranches"

    user_id = Column(String, ForeignKey("users.id"), primary_key=True)
    ranch_id = Column(String, ForeignKey("ranches.id"), primary_key=True)
    role = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


# --- Herds & animals ---

class Herd(Base):
    __tablename__ = "herds"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, ForeignKey("ranches.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    short_description = Column(String, nullable=True)
    species = Column(String, nullable=True)
    breed = Column(String, nullable=True)
    male_desc = Column(String, nullable=True)
    female_desc = Column(String, nullable=True)
    baby_desc = Column(String, nullable=True)
    male_neut_desc = Column(String, nullable=True)
    female_neut_desc = Column(String, nullable=True)
    long_description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class Animal(Base):
    __tablename__ = "animals"

    id = Column(String, primary_key=True, default=_uuid)
    nickname = Column(String, nullable=True)
    species = Column(String, nullable=False)
    breed = Column(String, nullable=True)
    sex = Column(String, nullable=False, default="unknown")
    birth_date = Column(Date, nullable=True)
    birth_date_is_estimated = Column(Boolean, nullable=False, default=False)
    status = Column(String, nullable=False, default="active")
    status_changed_at = Column(DateTime(timezone=True), nullable=True)
    dam_animal_id = Column(String, nullable=True)
    sire_animal_id = Column(String, nullable=True)
    neutered = Column(Boolean, nullable=False, default=False)
    neutered_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)


class AnimalHerdMembership(Base):
    """Membership is current while end_at is null."""
    __tablename__ = "animal_herd_membership"

    id = Column(String, primary_key=True, default=_uuid)
    animal_id = Column(String, ForeignKey("animals.id"), nullable=False)
    herd_id = Column(String, ForeignKey("herds.id"), nullable=False)
    start_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    end_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (
        Index("ix_animal_herd_membership_animal", "animal_id"),
        Index("ix_animal_herd_membership_herd", "herd_id"),
    )


class AnimalTagHistory(Base):
    __tablename__ = "animal_tag_history"

    id = Column(String, primary_key=True, default=_uuid)
    animal_id = Column(String, ForeignKey("animals.id"), nullable=False, index=True)
    tag_number = Column(String, nullable=True)
    tag_color = Column(String, nullable=True)
    tag_ear = Column(String, nullable=True)
    start_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    end_at = Column(DateTime(timezone=True), nullable=True)
    change_reason = Column(String, nullable=True)
    changed_by_user_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class AnimalIntakeEvent(Base):
    __tablename__ = "animal_intake_events"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False)
    herd_id = Column(String, nullable=False)
    animal_id = Column(String, ForeignKey("animals.id"), nullable=False, index=True)
    intake_type = Column(String, nullable=False)  # birth | purchase | existing
    event_date = Column(Date, nullable=False)
    born_on_ranch = Column(Boolean, nullable=True)
    dam_animal_id = Column(String, nullable=True)
    sire_animal_id = Column(String, nullable=True)
    supplier_name = Column(String, nullable=True)
    purchase_price_cents = Column(Integer, nullable=True)
    purchase_currency = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class AnimalMeasurement(Base):
    __tablename__ = "animal_measurements"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False)
    herd_id = Column(String, nullable=False)
    animal_id = Column(String, ForeignKey("animals.id"), nullable=False, index=True)
    measurement_type = Column(String, nullable=False)
    value_number = Column(Float, nullable=True)
    value_text = Column(String, nullable=True)
    unit = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    measured_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class AnimalNote(Base):
    __tablename__ = "animal_notes"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False)
    herd_id = Column(String, nullable=False)
    animal_id = Column(String, ForeignKey("animals.id"), nullable=False, index=True)
    note_type = Column(String, nullable=True)
    content = Column(Text, nullable=False)
    note_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class AnimalPhoto(Base):
    __tablename__ = "animal_photos"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False, index=True)
    herd_id = Column(String, nullable=True)
    animal_id = Column(String, nullable=True)
    purpose = Column(String, nullable=False, default="profile")
    stored_filename = Column(String, nullable=False)
    original_filename = Column(String, nullable=True)
    mime_type = Column(String, nullable=True)
    size_bytes = Column(Integer, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    captured_at = Column(DateTime(timezone=True), nullable=True)
    caption = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class AnimalPhotoTag(Base):
    """Links a photo to an animal appearing in it."""
    __tablename__ = "animal_photo_tags"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False)
    photo_id = Column(String, ForeignKey("animal_photos.id"), nullable=False)
    animal_id = Column(String, ForeignKey("animals.id"), nullable=False, index=True)
    tag_type = Column(String, nullable=False, default="primary")
    confidence = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class AnimalDocument(Base):
    __tablename__ = "animal_documents"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False)
    animal_id = Column(String, ForeignKey("animals.id"), nullable=False, index=True)
    document_type = Column(String, nullable=True)
    stored_filename = Column(String, nullable=False)
    original_filename = Column(String, nullable=True)
    mime_type = Column(String, nullable=True)
    size_bytes = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


# --- Zones & land management ---

class Zone(Base):
    """Pastures / grazing areas. geom is GeoJSON text."""
    __tablename__ = "zones"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, ForeignKey("ranches.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    area_acres = Column(Float, nullable=True)
    geom = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class ZoneSubzone(Base):
    __tablename__ = "zone_subzones"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False, index=True)
    zone_id = Column(String, ForeignKey("zones.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="active")
    area_acres = Column(Float, nullable=True)
    geom = Column(Text, nullable=True)
    target_rest_days = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (
        UniqueConstraint("ranch_id", "zone_id", "name", name="zone_subzones_ranch_zone_name_unique"),
    )


class GrazingSession(Base):
    __tablename__ = "grazing_sessions"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False, index=True)
    zone_id = Column(String, nullable=False, index=True)
    subzone_id = Column(String, nullable=True)
    herd_id = Column(String, nullable=True, index=True)
    head_count = Column(Integer, nullable=True)
    stock_density_au_per_acre = Column(Float, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False, index=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class SoilSample(Base):
    __tablename__ = "soil_samples"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False, index=True)
    zone_id = Column(String, nullable=False, index=True)
    subzone_id = Column(String, nullable=True)
    sampled_at = Column(Date, nullable=False, index=True)
    ph = Column(Float, nullable=True)
    organic_matter_pct = Column(Float, nullable=True)
    nitrogen_ppm = Column(Float, nullable=True)
    phosphorus_ppm = Column(Float, nullable=True)
    potassium_ppm = Column(Float, nullable=True)
    moisture_pct = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class ForageSample(Base):
    __tablename__ = "forage_samples"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False, index=True)
    zone_id = Column(String, nullable=False, index=True)
    subzone_id = Column(String, nullable=True)
    sampled_at = Column(Date, nullable=False, index=True)
    species_observed = Column(JSON, nullable=True)
    biomass_lb_per_acre = Column(Float, nullable=True)
    ground_cover_pct = Column(Float, nullable=True)
    avg_canopy_inches = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class ZoneWeatherDaily(Base):
    __tablename__ = "zone_weather_daily"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False, index=True)
    zone_id = Column(String, nullable=False)
    subzone_id = Column(String, nullable=True)
    weather_date = Column(Date, nullable=False)
    min_temp_f = Column(Float, nullable=True)
    max_temp_f = Column(Float, nullable=True)
    rain_inches = Column(Float, nullable=True)
    forecast_rain_inches_next_3d = Column(Float, nullable=True)
    source = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (
        Index("zone_weather_daily_zone_date_idx", "zone_id", "weather_date"),
    )


class ZoneDailyState(Base):
    __tablename__ = "zone_daily_states"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False, index=True)
    zone_id = Column(String, nullable=False)
    subzone_id = Column(String, nullable=True)
    state_date = Column(Date, nullable=False)
    rest_days = Column(Integer, nullable=True)
    estimated_forage_lb_per_acre = Column(Float, nullable=True)
    utilization_pct = Column(Float, nullable=True)
    moisture_stress_score = Column(Integer, nullable=True)
    recovery_stage = Column(String, nullable=True)
    needs_rest = Column(Boolean, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (
        Index("zone_daily_states_zone_date_idx", "zone_id", "state_date"),
    )


class LandRecommendation(Base):
    __tablename__ = "land_recommendations"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False, index=True)
    zone_id = Column(String, nullable=False)
    subzone_id = Column(String, nullable=True)
    recommendation_date = Column(Date, nullable=False)
    recommendation_type = Column(String, nullable=False)
    priority = Column(String, nullable=False, default="medium")
    title = Column(String, nullable=False)
    rationale = Column(Text, nullable=False)
    action_by_date = Column(Date, nullable=True)
    confidence_score = Column(Float, nullable=True)
    status = Column(String, nullable=False, default="open", index=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (
        Index("land_recommendations_zone_date_idx", "zone_id", "recommendation_date"),
    )


# --- Medications ---

class StandardMedication(Base):
    __tablename__ = "standard_medications"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False, index=True)
    chemical_name = Column(String, nullable=False)
    format = Column(String, nullable=False)
    concentration_value = Column(String, nullable=True)
    concentration_unit = Column(String, nullable=True)
    manufacturer_name = Column(String, nullable=False)
    brand_name = Column(String, nullable=False)
    on_label_dose_text = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class RanchMedicationStandard(Base):
    """A ranch's dosing standard for a medication; active while end_date is null."""
    __tablename__ = "ranch_medication_standards"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False, index=True)
    standard_medication_id = Column(String, ForeignKey("standard_medications.id"), nullable=False)
    uses_off_label = Column(Boolean, nullable=False, default=False)
    standard_dose_text = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class StandardMedicationImage(Base):
    __tablename__ = "standard_medication_images"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False)
    standard_medication_id = Column(String, ForeignKey("standard_medications.id"), nullable=False, index=True)
    purpose = Column(String, nullable=False)  # label | insert | misc
    stored_filename = Column(String, nullable=False)
    original_filename = Column(String, nullable=True)
    mime_type = Column(String, nullable=True)
    size_bytes = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    name_normalized = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (
        UniqueConstraint("ranch_id", "name_normalized", name="suppliers_ranch_name_unique"),
    )


class MedicationPurchase(Base):
    __tablename__ = "medication_purchases"

    id = Column(String, primary_key=True, default=_uuid)
    ranch_id = Column(String, nullable=False, index=True)
    standard_medication_id = Column(String, ForeignKey("standard_medications.id"), nullable=False, index=True)
    supplier_id = Column(String, ForeignKey("suppliers.id"), nullable=True)
    purchase_date = Column(Date, nullable=False)
    quantity = Column(Float, nullable=False)
    purchase_unit = Column(String, nullable=False)
    total_price = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
