"""Demo data for local development.

Usage::

    SEED_FIREBASE_UID=<uid> python -m backend.seed

Creates (or reuses) a demo ranch owned by the given user, then adds four
herds with ~100 tagged animals and a few pastures with recent daily
states and weather so the recommendation engine has something to chew on.
"""

import logging
import os
import random
import sys
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from backend import config
from backend.auth import resolve_user
from backend.database import SessionLocal, init_db
from backend.logging_config import configure_logging
from backend.models_db import (
    Animal,
    AnimalHerdMembership,
    AnimalTagHistory,
    Herd,
    Ranch,
    UserRanch,
    Zone,
    ZoneDailyState,
    ZoneWeatherDaily,
)
from backend.routes.ranches import ensure_transfer_herd
from backend.services.storage import ensure_ranch_structure
from engine.geometry import area_acres, dump_geometry

logger = logging.getLogger(__name__)

DEMO_RANCH_NAME = "Demo Ranch"

HERD_DEFS = (
    {"name": "Alpacas - Barn Crew", "species": "Alpacas", "breed": "fuzzybois", "prefix": "ALP", "count": 30},
    {"name": "Alpacas - North Paddock", "species": "Alpacas", "breed": "huacaya-mix", "prefix": "ALP", "count": 30},
    {"name": "Bison - Main Herd", "species": "Bison", "breed": "mixed", "prefix": "BIS", "count": 35},
    {"name": "Mixed", "species": "Mixed", "breed": None, "prefix": "MIX", "count": 5},
)

BREEDS = {
    "Alpacas": ("fuzzybois", "huacaya-mix", "suri-mix"),
    "Bison": ("mixed", "plains", "wood"),
}

TAG_COLORS = ("yellow", "orange", "green", "blue", "white", "red")
TAG_EARS = ("left", "right")

# (name, lon, lat) of each pasture's south-west corner; pastures are ~0.5 x 0.3 km
ZONE_DEFS = (
    ("North Pasture", -105.10, 40.52),
    ("Creek Bottom", -105.09, 40.51),
    ("South Forty", -105.11, 40.50),
)

STATE_DAYS = 7


def _years_ago(rng: random.Random, max_years: int) -> date:
    today = date.today()
    return date(today.year - rng.randint(0, max_years), rng.randint(1, 12), rng.randint(1, 28))


def _square(lon: float, lat: float) -> dict:
    ring = [[lon, lat], [lon + 0.006, lat], [lon + 0.006, lat + 0.003], [lon, lat + 0.003], [lon, lat]]
    return {"type": "Polygon", "coordinates": [ring]}


def get_or_create_demo_ranch(db: Session, user_id: str) -> Ranch:
    ranch = (
        db.query(Ranch)
        .join(UserRanch, UserRanch.ranch_id == Ranch.id)
        .filter(UserRanch.user_id == user_id, Ranch.name == DEMO_RANCH_NAME)
        .first()
    )
    if ranch is not None:
        logger.info("Reusing demo ranch %s", ranch.id)
        return ranch

    ranch = Ranch(name=DEMO_RANCH_NAME, description="Seeded demo data", phys_state="CO")
    db.add(ranch)
    db.flush()
    db.add(UserRanch(user_id=user_id, ranch_id=ranch.id, role="owner"))
    ensure_transfer_herd(db, ranch.id)
    db.commit()
    ensure_ranch_structure(ranch.id)
    logger.info("Created demo ranch %s", ranch.id)
    return ranch


def seed_animals(db: Session, ranch_id: str, user_id: str, rng: random.Random) -> int:
    now = datetime.now(timezone.utc)
    counters: dict[str, int] = {}
    total = 0

    for herd_def in HERD_DEFS:
        herd = Herd(
            ranch_id=ranch_id,
            name=herd_def["name"],
            species=herd_def["species"],
            breed=herd_def["breed"],
        )
        db.add(herd)
        db.flush()

        for _ in range(herd_def["count"]):
            prefix = herd_def["prefix"]
            counters[prefix] = counters.get(prefix, 0) + 1
            sex = rng.choice(("male", "female"))
            neutered = rng.random() < (0.2 if sex == "male" else 0.05)
            breeds = BREEDS.get(herd_def["species"])

            animal = Animal(
                species=herd_def["species"],
                breed=rng.choice(breeds) if breeds else None,
                sex=sex,
                birth_date=_years_ago(rng, 12),
                birth_date_is_estimated=rng.random() < 0.3,
                status="active",
                neutered=neutered,
                neutered_date=(now - timedelta(days=rng.randint(90, 1500))).date() if neutered else None,
                notes="Seeded test animal" if rng.random() < 0.15 else None,
            )
            db.add(animal)
            db.flush()

            db.add(AnimalHerdMembership(animal_id=animal.id, herd_id=herd.id, start_at=now))
            db.add(AnimalTagHistory(
                animal_id=animal.id,
                tag_number=f"{prefix}-{counters[prefix]:03d}",
                tag_color=rng.choice(TAG_COLORS) if rng.random() < 0.85 else None,
                tag_ear=rng.choice(TAG_EARS) if rng.random() < 0.9 else None,
                start_at=now,
                change_reason="seed",
                changed_by_user_id=user_id,
            ))
            total += 1

    db.commit()
    return total


def seed_land(db: Session, ranch_id: str, rng: random.Random) -> int:
    today = datetime.now(timezone.utc).date()

    for name, lon, lat in ZONE_DEFS:
        geom = _square(lon, lat)
        zone = Zone(
            ranch_id=ranch_id,
            name=name,
            geom=dump_geometry(geom),
            area_acres=area_acres(geom),
        )
        db.add(zone)
        db.flush()

        rest_days = rng.randint(5, 40)
        for offset in range(STATE_DAYS, 0, -1):
            day = today - timedelta(days=offset - 1)
            db.add(ZoneDailyState(
                ranch_id=ranch_id,
                zone_id=zone.id,
                state_date=day,
                rest_days=rest_days - offset + 1,
                estimated_forage_lb_per_acre=float(rng.randint(600, 2600)),
                utilization_pct=float(rng.randint(20, 75)),
                moisture_stress_score=rng.randint(1, 9),
                needs_rest=rng.random() < 0.3,
            ))
            db.add(ZoneWeatherDaily(
                ranch_id=ranch_id,
                zone_id=zone.id,
                weather_date=day,
                min_temp_f=float(rng.randint(25, 50)),
                max_temp_f=float(rng.randint(55, 95)),
                rain_inches=round(rng.random() * 0.6, 2),
                forecast_rain_inches_next_3d=round(rng.random() * 1.2, 2),
                source="seed",
            ))

    db.commit()
    return len(ZONE_DEFS)


def main(firebase_uid: Optional[str] = None, seed: Optional[int] = None) -> None:
    configure_logging()
    firebase_uid = firebase_uid or os.getenv("SEED_FIREBASE_UID")
    if not firebase_uid:
        logger.error("SEED_FIREBASE_UID is required")
        sys.exit(1)

    init_db()
    os.makedirs(config.IMAGES_ROOT, exist_ok=True)
    rng = random.Random(seed)

    db = SessionLocal()
    try:
        user = resolve_user(db, firebase_uid, os.getenv("SEED_EMAIL"))
        ranch_id = get_or_create_demo_ranch(db, user.id).id
        animals = seed_animals(db, ranch_id, user.id, rng)
        zones = seed_land(db, ranch_id, rng)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    logger.info("Seeded ranch %s: %d animals, %d zones", ranch_id, animals, zones)


if __name__ == "__main__":
    main()
