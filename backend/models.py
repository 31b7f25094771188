"""Pydantic models for GrazeTrack API requests and responses.

The webapp speaks camelCase JSON; models use snake_case attributes with
camelCase aliases and accept either spelling on input.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Optional, Union

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"

IdStr = Annotated[str, StringConstraints(pattern=UUID_PATTERN)]
NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Instants are stored in UTC; naive input is taken as UTC
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Enums ---

class RanchRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    STAFF = "staff"


class SubzoneStatus(str, Enum):
    ACTIVE = "active"
    RESTING = "resting"
    INACTIVE = "inactive"


class RecoveryStage(str, Enum):
    POOR = "poor"
    EARLY = "early"
    MID = "mid"
    FULL = "full"


class RecommendationStatus(str, Enum):
    OPEN = "open"
    ACCEPTED = "accepted"
    DISMISSED = "dismissed"
    COMPLETED = "completed"


class AnimalSex(str, Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


class IntakeSex(str, Enum):
    """Existing-inventory intake also accepts 'neutered' as a sex."""
    MALE = "male"
    FEMALE = "female"
    NEUTERED = "neutered"
    UNKNOWN = "unknown"


class AnimalStatus(str, Enum):
    ACTIVE = "active"
    SOLD = "sold"
    DECEASED = "deceased"
    TRANSFERRED = "transferred"


class TagEar(str, Enum):
    LEFT = "left"
    RIGHT = "right"


# --- Me ---

class MeUser(CamelModel):
    id: str
    firebase_uid: str
    email: Optional[str] = None


class MeMembership(CamelModel):
    ranch_id: str
    role: str
    ranch_name: Optional[str] = None


class MeResponse(CamelModel):
    user: MeUser
    ranches: list[MeMembership]
    active_ranch_id: Optional[str] = None


# --- Ranches ---

class RanchCreate(BaseModel):
    """Ranch payload keys are snake_case on the wire."""
    name: NonEmptyStr
    description: Optional[str] = None
    dba: Optional[str] = None
    phone: Optional[str] = None

    phys_street: Optional[str] = None
    phys_city: Optional[str] = None
    phys_state: Optional[str] = None
    phys_zip: Optional[str] = None

    mail_street: Optional[str] = None
    mail_city: Optional[str] = None
    mail_state: Optional[str] = None
    mail_zip: Optional[str] = None


class RanchResponse(RanchCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: Optional[str] = None
    logo_image_url: Optional[str] = None
    brand_image_url: Optional[str] = None
    logo_url: Optional[str] = None
    brand_url: Optional[str] = None
    created_at: UtcDatetime


class IdResponse(BaseModel):
    id: str


class SuccessResponse(BaseModel):
    success: bool = True


# --- Herds ---

class HerdFields(CamelModel):
    short_description: Optional[str] = None
    species: Optional[str] = None
    breed: Optional[str] = None
    male_desc: Optional[str] = None
    female_desc: Optional[str] = None
    baby_desc: Optional[str] = None
    male_neut_desc: Optional[str] = Field(None, alias="male_neut_desc")
    female_neut_desc: Optional[str] = Field(None, alias="female_neut_desc")
    long_description: Optional[str] = None


class HerdCreate(HerdFields):
    name: NonEmptyStr


class HerdUpdate(HerdFields):
    name: Optional[NonEmptyStr] = None


class HerdResponse(HerdFields):
    id: str
    ranch_id: str
    name: str
    created_at: UtcDatetime


# --- Zones ---

class ZoneCreate(CamelModel):
    name: NonEmptyStr
    description: Optional[str] = None
    area_acres: Optional[float] = None
    geom: NonEmptyStr


class ZoneUpdate(CamelModel):
    name: Optional[NonEmptyStr] = None
    description: Optional[str] = None
    area_acres: Optional[float] = None
    geom: Optional[NonEmptyStr] = None


class ZoneResponse(CamelModel):
    id: str
    ranch_id: str
    name: str
    description: Optional[str] = None
    area_acres: Optional[float] = None
    geom: Optional[str] = None
    created_at: UtcDatetime


# --- Land management ---

class SubzoneCreate(CamelModel):
    zone_id: IdStr
    name: NonEmptyStr
    description: Optional[str] = None
    status: SubzoneStatus = SubzoneStatus.ACTIVE
    area_acres: Optional[float] = Field(None, gt=0)
    geom: Optional[NonEmptyStr] = None
    target_rest_days: Optional[int] = Field(None, ge=1, le=180)


class SubzoneResponse(CamelModel):
    id: str
    ranch_id: str
    zone_id: str
    name: str
    description: Optional[str] = None
    status: str
    area_acres: Optional[float] = None
    geom: Optional[str] = None
    target_rest_days: Optional[int] = None
    created_at: UtcDatetime


class SubzoneListResponse(BaseModel):
    subzones: list[SubzoneResponse]


class GrazingSessionCreate(CamelModel):
    zone_id: IdStr
    subzone_id: Optional[IdStr] = None
    herd_id: Optional[IdStr] = None
    head_count: Optional[int] = Field(None, ge=0)
    stock_density_au_per_acre: Optional[float] = Field(None, ge=0)
    started_at: UtcDatetime
    ended_at: Optional[UtcDatetime] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _ended_after_started(self) -> "GrazingSessionCreate":
        if self.ended_at is not None and self.ended_at < self.started_at:
            raise ValueError("endedAt must not be before startedAt")
        return self


class GrazingSessionResponse(CamelModel):
    id: str
    ranch_id: str
    zone_id: str
    subzone_id: Optional[str] = None
    herd_id: Optional[str] = None
    head_count: Optional[int] = None
    stock_density_au_per_acre: Optional[float] = None
    started_at: UtcDatetime
    ended_at: Optional[UtcDatetime] = None
    notes: Optional[str] = None
    created_at: UtcDatetime


class GrazingSessionListResponse(BaseModel):
    sessions: list[GrazingSessionResponse]


class SoilSampleCreate(CamelModel):
    zone_id: IdStr
    subzone_id: Optional[IdStr] = None
    sampled_at: date
    ph: Optional[float] = Field(None, ge=0, le=14)
    organic_matter_pct: Optional[float] = Field(None, ge=0, le=100)
    nitrogen_ppm: Optional[float] = Field(None, ge=0)
    phosphorus_ppm: Optional[float] = Field(None, ge=0)
    potassium_ppm: Optional[float] = Field(None, ge=0)
    moisture_pct: Optional[float] = Field(None, ge=0, le=100)
    notes: Optional[str] = None


class SoilSampleResponse(SoilSampleCreate):
    id: str
    ranch_id: str
    zone_id: str
    subzone_id: Optional[str] = None
    created_at: UtcDatetime


class SoilSampleListResponse(CamelModel):
    soil_samples: list[SoilSampleResponse]


class ForageSampleCreate(CamelModel):
    zone_id: IdStr
    subzone_id: Optional[IdStr] = None
    sampled_at: date
    species_observed: Optional[list[NonEmptyStr]] = None
    biomass_lb_per_acre: Optional[float] = Field(None, ge=0)
    ground_cover_pct: Optional[float] = Field(None, ge=0, le=100)
    avg_canopy_inches: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class ForageSampleResponse(ForageSampleCreate):
    id: str
    ranch_id: str
    zone_id: str
    subzone_id: Optional[str] = None
    species_observed: Optional[list[str]] = None
    created_at: UtcDatetime


class ForageSampleListResponse(CamelModel):
    forage_samples: list[ForageSampleResponse]


class WeatherDailyCreate(CamelModel):
    zone_id: IdStr
    subzone_id: Optional[IdStr] = None
    weather_date: date
    min_temp_f: Optional[float] = None
    max_temp_f: Optional[float] = None
    rain_inches: Optional[float] = Field(None, ge=0)
    forecast_rain_inches_next_3d: Optional[float] = Field(
        None, ge=0, alias="forecastRainInchesNext3d"
    )
    source: Optional[str] = None


class WeatherDailyResponse(WeatherDailyCreate):
    id: str
    ranch_id: str
    zone_id: str
    subzone_id: Optional[str] = None
    created_at: UtcDatetime


class WeatherDailyListResponse(CamelModel):
    weather_daily: list[WeatherDailyResponse]


class ZoneStateCreate(CamelModel):
    zone_id: IdStr
    subzone_id: Optional[IdStr] = None
    state_date: date
    rest_days: Optional[int] = Field(None, ge=0, le=365)
    estimated_forage_lb_per_acre: Optional[float] = Field(None, ge=0)
    utilization_pct: Optional[float] = Field(None, ge=0, le=100)
    moisture_stress_score: Optional[int] = Field(None, ge=0, le=10)
    recovery_stage: Optional[RecoveryStage] = None
    needs_rest: Optional[bool] = None
    notes: Optional[str] = None


class ZoneStateResponse(ZoneStateCreate):
    id: str
    ranch_id: str
    zone_id: str
    subzone_id: Optional[str] = None
    recovery_stage: Optional[str] = None
    created_at: UtcDatetime


class ZoneStateListResponse(CamelModel):
    zone_daily_states: list[ZoneStateResponse]


class RecommendationGenerateRequest(CamelModel):
    zone_id: Optional[IdStr] = None
    subzone_id: Optional[IdStr] = None
    recommendation_date: Optional[date] = None
    persist: bool = False


class RecommendationStatusUpdate(CamelModel):
    status: RecommendationStatus


class RecommendationPreview(CamelModel):
    ranch_id: str
    zone_id: str
    subzone_id: Optional[str] = None
    recommendation_date: date
    recommendation_type: str
    priority: str
    title: str
    rationale: str
    action_by_date: Optional[date] = None
    confidence_score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class RecommendationGenerateResponse(CamelModel):
    recommendations: list[RecommendationPreview]
    persisted: bool


class RecommendationResponse(RecommendationPreview):
    id: str
    status: str
    confidence_score: Optional[float] = None
    metadata: Optional[dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("metadata_json", "metadata")
    )
    created_at: UtcDatetime


class RecommendationListResponse(BaseModel):
    recommendations: list[RecommendationResponse]


# --- Animals ---

class AnimalBase(CamelModel):
    herd_id: NonEmptyStr
    species: NonEmptyStr
    breed: Optional[str] = None
    sex: AnimalSex
    birth_date: Optional[date] = None
    birth_date_is_estimated: Optional[bool] = None
    tag_number: Optional[str] = None
    tag_color: Optional[str] = None
    tag_ear: Optional[TagEar] = None
    status: Optional[AnimalStatus] = None
    status_changed_at: Optional[UtcDatetime] = None
    dam_animal_id: Optional[str] = None
    sire_animal_id: Optional[str] = None
    neutered: Optional[bool] = None
    neutered_date: Optional[date] = None
    notes: Optional[str] = None


class BirthIntakeDetails(CamelModel):
    event_date: date
    born_on_ranch: Optional[bool] = None


class PurchaseIntakeDetails(CamelModel):
    event_date: date
    supplier_name: Optional[str] = None
    purchase_price_cents: Optional[int] = Field(None, ge=0)
    purchase_currency: Optional[str] = None


class BirthIntakeRequest(AnimalBase):
    intake: BirthIntakeDetails


class PurchaseIntakeRequest(AnimalBase):
    intake: PurchaseIntakeDetails


class IntakeTag(CamelModel):
    tag_number: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    tag_color: Optional[str] = None
    tag_ear: Optional[TagEar] = None


class ExistingInventoryIntakeRequest(CamelModel):
    herd_id: NonEmptyStr
    nickname: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)]] = None
    species: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    breed: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    sex: IntakeSex
    birth_date: Optional[date] = None
    is_birth_date_estimated: Optional[bool] = None
    tag: Optional[IntakeTag] = None
    initial_weight_lbs: Optional[float] = Field(None, gt=0)
    notes: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=2000)]] = None
    event_date: Optional[date] = None


class IntakeResponse(CamelModel):
    animal_id: str
    herd_id: str
    ranch_id: str
    membership_id: str
    intake_event_id: str


class MeasurementCreate(CamelModel):
    measurement_type: NonEmptyStr
    value_number: Optional[float] = None
    value_text: Optional[str] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    measured_at: Optional[UtcDatetime] = None


class NoteCreate(CamelModel):
    note_type: Optional[str] = None
    content: NonEmptyStr
    note_at: Optional[UtcDatetime] = None


class TagChangeRequest(CamelModel):
    tag_number: Optional[str] = None
    tag_color: Optional[str] = None
    tag_ear: Optional[TagEar] = None
    change_reason: NonEmptyStr = "retag"


class AnimalMoveRequest(CamelModel):
    herd_id: NonEmptyStr


class AnimalMoveResponse(CamelModel):
    animal_id: str
    from_herd_id: str
    herd_id: str
    membership_id: str


class AnimalListItem(CamelModel):
    animal_id: str
    nickname: Optional[str] = None
    species: str
    breed: Optional[str] = None
    sex: str
    birth_date: Optional[date] = None
    birth_date_is_estimated: bool
    status: str
    neutered: bool
    neutered_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime
    herd_id: str
    herd_name: str
    tag_number: Optional[str] = None
    tag_color: Optional[str] = None
    tag_ear: Optional[str] = None


class AnimalListResponse(CamelModel):
    ranch_id: str
    herd_id: Optional[str] = None
    animals: list[AnimalListItem]


class AnimalOut(CamelModel):
    id: str
    nickname: Optional[str] = None
    species: str
    breed: Optional[str] = None
    sex: str
    birth_date: Optional[date] = None
    birth_date_is_estimated: bool
    status: str
    status_changed_at: Optional[UtcDatetime] = None
    dam_animal_id: Optional[str] = None
    sire_animal_id: Optional[str] = None
    neutered: bool
    neutered_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class HerdRef(CamelModel):
    id: str
    name: str
    ranch_id: str


class CurrentScope(CamelModel):
    ranch_id: str
    herd_id: str
    membership_id: str
    herd: Optional[HerdRef] = None


class TagHistoryOut(CamelModel):
    id: str
    animal_id: str
    tag_number: Optional[str] = None
    tag_color: Optional[str] = None
    tag_ear: Optional[str] = None
    start_at: UtcDatetime
    end_at: Optional[UtcDatetime] = None
    change_reason: Optional[str] = None
    changed_by_user_id: Optional[str] = None
    created_at: UtcDatetime


class IntakeEventOut(CamelModel):
    id: str
    ranch_id: str
    herd_id: str
    animal_id: str
    intake_type: str
    event_date: date
    born_on_ranch: Optional[bool] = None
    dam_animal_id: Optional[str] = None
    sire_animal_id: Optional[str] = None
    supplier_name: Optional[str] = None
    purchase_price_cents: Optional[int] = None
    purchase_currency: Optional[str] = None
    created_at: UtcDatetime


class MeasurementOut(CamelModel):
    id: str
    ranch_id: str
    herd_id: str
    animal_id: str
    measurement_type: str
    value_number: Optional[float] = None
    value_text: Optional[str] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    measured_at: UtcDatetime
    created_at: UtcDatetime


class NoteOut(CamelModel):
    id: str
    ranch_id: str
    herd_id: str
    animal_id: str
    note_type: Optional[str] = None
    content: str
    note_at: UtcDatetime
    created_at: UtcDatetime


class TaggedPhotoOut(CamelModel):
    photo_id: str
    ranch_id: str
    herd_id: Optional[str] = None
    animal_id: Optional[str] = None
    purpose: str
    stored_filename: str
    original_filename: Optional[str] = None
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    captured_at: Optional[UtcDatetime] = None
    caption: Optional[str] = None
    created_at: UtcDatetime
    url: str
    tag_id: str
    tag_type: str
    confidence: Optional[float] = None
    tag_notes: Optional[str] = None
    tag_created_at: UtcDatetime


class DocumentOut(CamelModel):
    id: str
    ranch_id: str
    animal_id: str
    document_type: Optional[str] = None
    stored_filename: str
    original_filename: Optional[str] = None
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    notes: Optional[str] = None
    created_at: UtcDatetime
    url: str


class AnimalDetailResponse(CamelModel):
    animal: AnimalOut
    current: CurrentScope
    current_tag: Optional[TagHistoryOut] = None
    tag_history: list[TagHistoryOut]
    intake_events: list[IntakeEventOut]
    measurements: list[MeasurementOut]
    notes: list[NoteOut]
    photos: list[TaggedPhotoOut]
    documents: list[DocumentOut]


class UploadResponse(CamelModel):
    id: str
    url: str


# --- Medications ---

def _coerce_bool(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value


class StandardDetails(CamelModel):
    uses_off_label: bool
    standard_dose_text: NonEmptyStr
    start_date: Optional[date] = None

    @field_validator("uses_off_label", mode="before")
    @classmethod
    def _off_label_from_text(cls, v: Any) -> Any:
        return _coerce_bool(v)


class StandardMedicationCreate(CamelModel):
    chemical_name: NonEmptyStr
    format: NonEmptyStr
    concentration_value: Optional[Union[float, str]] = None
    concentration_unit: Optional[str] = None
    manufacturer_name: NonEmptyStr
    brand_name: NonEmptyStr
    on_label_dose_text: Optional[str] = None
    standard: StandardDetails


class CurrentStandard(CamelModel):
    id: str
    uses_off_label: bool
    standard_dose_text: str
    start_date: date
    end_date: Optional[date] = None


class MedicationSummary(CamelModel):
    id: str
    display_name: str
    current_standard: CurrentStandard


class StandardMedicationCreateResponse(BaseModel):
    medication: MedicationSummary


class ActiveMedication(CamelModel):
    id: str
    chemical_name: str
    format: str
    concentration_value: Optional[str] = None
    concentration_unit: Optional[str] = None
    manufacturer_name: str
    brand_name: str
    on_label_dose_text: Optional[str] = None
    display_name: str
    current_standard: CurrentStandard


class ActiveMedicationListResponse(BaseModel):
    medications: list[ActiveMedication]


class MedicationImage(CamelModel):
    id: str
    purpose: str
    original_filename: Optional[str] = None
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    created_at: UtcDatetime
    url: str


class MedicationImageListResponse(BaseModel):
    images: list[MedicationImage]


class InventoryItem(CamelModel):
    id: str
    display_name: str
    quantity: float
    unit: str
    last_purchase_date: Optional[date] = None


class InventoryResponse(BaseModel):
    inventory: list[InventoryItem]


class RanchStandardOut(CamelModel):
    id: str
    standard_medication_id: str
    medication_display_name: str
    uses_off_label: bool
    standard_dose_text: str
    start_date: date
    end_date: Optional[date] = None
    created_at: UtcDatetime


class RanchStandardListResponse(BaseModel):
    standards: list[RanchStandardOut]


class RetireStandardRequest(CamelModel):
    end_date: Optional[date] = None


class RetiredStandard(CamelModel):
    id: str
    standard_medication_id: str
    end_date: date


class RetireStandardResponse(BaseModel):
    retired: RetiredStandard


class PurchaseCreate(CamelModel):
    ranch_id: Optional[NonEmptyStr] = None
    standard_medication_id: Optional[NonEmptyStr] = None
    create_new_medication: Optional[StandardMedicationCreate] = None
    quantity: float
    purchase_unit: NonEmptyStr
    total_price: Optional[float] = None
    supplier_name: Optional[str] = None
    purchase_date: Optional[date] = None
    notes: Optional[str] = None


class PurchaseSummary(CamelModel):
    id: str
    standard_medication_id: str
    supplier_id: Optional[str] = None
    purchase_date: date


class PurchaseCreateResponse(BaseModel):
    purchase: PurchaseSummary


class PurchaseOut(CamelModel):
    id: str
    purchase_date: date
    quantity: float
    purchase_unit: str
    total_price: Optional[float] = None
    notes: Optional[str] = None
    supplier_id: Optional[str] = None
    supplier_name: Optional[str] = None


class PurchaseListResponse(BaseModel):
    purchases: list[PurchaseOut]
