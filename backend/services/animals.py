"""
Animal scoping, intake and tag bookkeeping.

An animal belongs to a ranch only through its current herd membership
(the membership row whose end_at is null). Every animal-specific
operation derives its ranch from that membership, so access checks never
depend on which ranch the caller has selected.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from backend.errors import ApiError
from backend.models_db import (
    Animal,
    AnimalHerdMembership,
    AnimalIntakeEvent,
    AnimalMeasurement,
    AnimalTagHistory,
    Herd,
)
from backend.services.ranch_scope import find_membership

logger = logging.getLogger(__name__)


@dataclass
class AnimalScope:
    ranch_id: str
    herd_id: str
    membership_id: str


@dataclass
class IntakeResult:
    animal_id: str
    herd_id: str
    ranch_id: str
    membership_id: str
    intake_event_id: str


def _now() -> datetime:
    return datetime.now(timezone.utc)


def require_herd_access(db: Session, user_id: str, herd_id: str) -> Herd:
    """The herd, provided the caller is a member of its ranch."""
    herd = db.query(Herd).filter(Herd.id == herd_id).first()
    if herd is None:
        raise ApiError(404, "HERD_NOT_FOUND", "Herd not found")
    if find_membership(db, user_id, herd.ranch_id) is None:
        raise ApiError(403, "FORBIDDEN_RANCH", "Forbidden: no access to this ranch")
    return herd


def current_membership(db: Session, animal_id: str) -> Optional[AnimalHerdMembership]:
    return (
        db.query(AnimalHerdMembership)
        .filter(AnimalHerdMembership.animal_id == animal_id, AnimalHerdMembership.end_at.is_(None))
        .order_by(AnimalHerdMembership.start_at.desc())
        .first()
    )


def require_current_scope(db: Session, user_id: str, animal_id: str) -> AnimalScope:
    membership = current_membership(db, animal_id)
    if membership is None:
        raise ApiError(404, "ANIMAL_NOT_FOUND", "Animal has no current herd membership")

    herd = db.query(Herd).filter(Herd.id == membership.herd_id).first()
    if herd is None:
        raise ApiError(404, "HERD_NOT_FOUND", "Herd not found for current membership")
    if find_membership(db, user_id, herd.ranch_id) is None:
        raise ApiError(403, "FORBIDDEN_RANCH", "Forbidden: no access to this ranch")

    return AnimalScope(ranch_id=herd.ranch_id, herd_id=herd.id, membership_id=membership.id)


def set_current_tag(
    db: Session,
    animal_id: str,
    tag_number: Optional[str],
    tag_color: Optional[str],
    tag_ear: Optional[str],
    at: datetime,
    change_reason: str,
    changed_by_user_id: Optional[str] = None,
) -> Optional[AnimalTagHistory]:
    """Close the current tag and open a new one. No-op when every tag field is empty."""
    if not (tag_number or tag_color or tag_ear):
        return None

    (
        db.query(AnimalTagHistory)
        .filter(AnimalTagHistory.animal_id == animal_id, AnimalTagHistory.end_at.is_(None))
        .update({AnimalTagHistory.end_at: at}, synchronize_session="fetch")
    )
    tag = AnimalTagHistory(
        animal_id=animal_id,
        tag_number=tag_number,
        tag_color=tag_color,
        tag_ear=tag_ear,
        start_at=at,
        end_at=None,
        change_reason=change_reason,
        changed_by_user_id=changed_by_user_id,
        created_at=at,
    )
    db.add(tag)
    return tag


def create_intake(
    db: Session,
    herd: Herd,
    intake_type: str,
    event_date: date,
    animal_fields: dict[str, Any],
    intake_fields: Optional[dict[str, Any]] = None,
    tag: Optional[dict[str, Any]] = None,
    initial_weight_lbs: Optional[float] = None,
    changed_by_user_id: Optional[str] = None,
) -> IntakeResult:
    """Insert animal + open membership + intake event (+ tag, + weight) in one transaction."""
    now = _now()
    try:
        animal = Animal(created_at=now, updated_at=now, **animal_fields)
        db.add(animal)
        db.flush()

        membership = AnimalHerdMembership(
            animal_id=animal.id,
            herd_id=herd.id,
            start_at=now,
            end_at=None,
            created_at=now,
        )
        event = AnimalIntakeEvent(
            ranch_id=herd.ranch_id,
            herd_id=herd.id,
            animal_id=animal.id,
            intake_type=intake_type,
            event_date=event_date,
            created_at=now,
            **(intake_fields or {}),
        )
        db.add_all([membership, event])

        if tag:
            set_current_tag(
                db,
                animal.id,
                tag.get("tag_number"),
                tag.get("tag_color"),
                tag.get("tag_ear"),
                now,
                f"{intake_type}_intake",
                changed_by_user_id,
            )

        if initial_weight_lbs is not None:
            db.add(AnimalMeasurement(
                ranch_id=herd.ranch_id,
                herd_id=herd.id,
                animal_id=animal.id,
                measurement_type="weight",
                value_number=initial_weight_lbs,
                unit="lbs",
                measured_at=now,
                created_at=now,
            ))

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Recorded %s intake of animal %s into herd %s", intake_type, animal.id, herd.id)
    return IntakeResult(
        animal_id=animal.id,
        herd_id=herd.id,
        ranch_id=herd.ranch_id,
        membership_id=membership.id,
        intake_event_id=event.id,
    )


def move_animal(db: Session, animal_id: str, scope: AnimalScope, target: Herd) -> AnimalHerdMembership:
    """End the current membership and open one in the target herd (same ranch only)."""
    if target.ranch_id != scope.ranch_id:
        raise ApiError(400, "HERD_NOT_IN_SAME_RANCH", "Animals can only move between herds of the same ranch")
    if target.id == scope.herd_id:
        raise ApiError(400, "ALREADY_IN_HERD", "Animal is already in this herd")

    now = _now()
    current = db.query(AnimalHerdMembership).filter(AnimalHerdMembership.id == scope.membership_id).one()
    current.end_at = now
    membership = AnimalHerdMembership(animal_id=animal_id, herd_id=target.id, start_at=now, created_at=now)
    db.add(membership)
    db.commit()
    logger.info("Moved animal %s from herd %s to %s", animal_id, scope.herd_id, target.id)
    return membership
