"""Medication purchase routes: append-only purchase log with supplier upsert."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import and_
from sqlalchemy.orm import Session

from backend.auth import AuthContext, get_auth_context
from backend.database import get_db
from backend.errors import ApiError
from backend.models import (
    PurchaseCreate,
    PurchaseCreateResponse,
    PurchaseListResponse,
    PurchaseOut,
    PurchaseSummary,
)
from backend.models_db import MedicationPurchase, StandardMedication, Supplier
from backend.services.medications import active_standard, add_standard_medication, upsert_supplier
from backend.services.ranch_scope import resolve_active_membership

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_PURCHASE_LIMIT = 50
MAX_PURCHASE_LIMIT = 200


@router.post("/medication-purchases", response_model=PurchaseCreateResponse, status_code=201)
async def create_purchase(
    payload: PurchaseCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Record a purchase of an existing medication, or create the medication inline."""
    ranch_id = resolve_active_membership(db, auth.user_id, payload.ranch_id).ranch_id
    today = datetime.now(timezone.utc).date()

    try:
        if payload.standard_medication_id:
            medication_id = payload.standard_medication_id
            exists = (
                db.query(StandardMedication.id)
                .filter(StandardMedication.id == medication_id, StandardMedication.ranch_id == ranch_id)
                .first()
            )
            if exists is None:
                raise ApiError(404, "MEDICATION_NOT_FOUND", "Standard medication not found")
        elif payload.create_new_medication is not None:
            med, _ = add_standard_medication(db, ranch_id, payload.create_new_medication, today)
            medication_id = med.id
        else:
            raise ApiError(
                400,
                "MEDICATION_REQUIRED",
                "Must provide standardMedicationId or createNewMedication",
            )

        # Only medications with an active standard can be purchased
        if active_standard(db, ranch_id, medication_id) is None:
            raise ApiError(
                400,
                "NO_ACTIVE_STANDARD",
                "Selected medication does not have an active ranch standard (it may be retired).",
            )

        supplier_id = None
        if payload.supplier_name and payload.supplier_name.strip():
            supplier_id = upsert_supplier(db, ranch_id, payload.supplier_name).id

        purchase = MedicationPurchase(
            ranch_id=ranch_id,
            standard_medication_id=medication_id,
            supplier_id=supplier_id,
            purchase_date=payload.purchase_date or today,
            quantity=payload.quantity,
            purchase_unit=payload.purchase_unit,
            total_price=payload.total_price,
            notes=payload.notes or None,
        )
        db.add(purchase)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Recorded purchase %s of medication %s in ranch %s", purchase.id, medication_id, ranch_id)
    return PurchaseCreateResponse(purchase=PurchaseSummary(
        id=purchase.id,
        standard_medication_id=medication_id,
        supplier_id=supplier_id,
        purchase_date=purchase.purchase_date,
    ))


@router.get("/medication-purchases", response_model=PurchaseListResponse)
async def list_purchases(
    standard_medication_id: Optional[str] = Query(None, alias="standardMedicationId", min_length=1),
    ranch_id: Optional[str] = Query(None, alias="ranchId", min_length=1),
    limit: int = Query(DEFAULT_PURCHASE_LIMIT, ge=1),
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Purchase history, newest first. Limits above the maximum are clamped."""
    ranch_id = resolve_active_membership(db, auth.user_id, ranch_id).ranch_id

    query = (
        db.query(MedicationPurchase, Supplier.name)
        .outerjoin(
            Supplier,
            and_(Supplier.id == MedicationPurchase.supplier_id, Supplier.ranch_id == ranch_id),
        )
        .filter(MedicationPurchase.ranch_id == ranch_id)
    )
    if standard_medication_id:
        query = query.filter(MedicationPurchase.standard_medication_id == standard_medication_id)

    rows = (
        query.order_by(MedicationPurchase.purchase_date.desc(), MedicationPurchase.created_at.desc())
        .limit(min(limit, MAX_PURCHASE_LIMIT))
        .all()
    )
    return PurchaseListResponse(purchases=[
        PurchaseOut(
            id=purchase.id,
            purchase_date=purchase.purchase_date,
            quantity=purchase.quantity,
            purchase_unit=purchase.purchase_unit,
            total_price=purchase.total_price,
            notes=purchase.notes,
            supplier_id=purchase.supplier_id,
            supplier_name=supplier_name,
        )
        for purchase, supplier_name in rows
    ])
