"""Seed the Port table with major container and energy ports keyed by UN/LOCODE.

Congestion and pre-arrival products are only available for ports that carry
coordinates; every entry here does. Coordinates are the port centroid used as
the reference point for the anchorage/approach rings, not a berth position.

Usage:
    from app.database import SessionLocal
    from scripts.seed_ports import seed_ports
    db = SessionLocal()
    seed_ports(db)
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# (unlocode, name, country, lat, lon)
MAJOR_PORTS: list[tuple[str, str, str, float, float]] = [
    # ── Asia ──────────────────────────────────────────────────────────────────
    ("SGSIN", "Singapore", "Singapore", 1.2644, 103.8217),
    ("CNSHA", "Shanghai", "China", 31.2304, 121.4737),
    ("HKHKG", "Hong Kong", "Hong Kong", 22.3193, 114.1694),
    ("CNNGB", "Ningbo", "China", 29.8683, 121.5440),
    ("CNYTN", "Yantian", "China", 22.5833, 114.2667),
    ("KRPUS", "Busan", "South Korea", 35.1028, 129.0403),
    ("INNSA", "Nhava Sheva (JNPT)", "India", 18.9388, 72.9508),
    ("INMUN", "Mumbai", "India", 18.9388, 72.8355),
    ("INMAA", "Chennai", "India", 13.0827, 80.2707),
    ("INCCU", "Kolkata", "India", 22.5726, 88.3639),
    ("AEJEA", "Jebel Ali", "UAE", 25.0117, 55.1139),

    # ── Europe ────────────────────────────────────────────────────────────────
    ("NLRTM", "Rotterdam", "Netherlands", 51.9225, 4.4792),
    ("BEANR", "Antwerp", "Belgium", 51.2194, 4.4025),
    ("DEHAM", "Hamburg", "Germany", 53.5488, 9.9872),
    ("GBFXT", "Felixstowe", "United Kingdom", 51.9611, 1.3517),
    ("ESVLC", "Valencia", "Spain", 39.4699, -0.3763),
    ("ITGOA", "Genoa", "Italy", 44.4056, 8.9463),
    ("GRPIR", "Piraeus", "Greece", 37.9456, 23.6469),

    # ── Americas ──────────────────────────────────────────────────────────────
    ("USLAX", "Los Angeles", "United States", 33.7361, -118.2694),
    ("USLGB", "Long Beach", "United States", 33.7701, -118.1937),
    ("USNYC", "New York", "United States", 40.7128, -74.0060),
    ("USSAV", "Savannah", "United States", 32.0809, -81.0912),
    ("USHOU", "Houston", "United States", 29.7604, -95.3698),
    ("MXZLO", "Manzanillo", "Mexico", 19.0543, -104.3185),
    ("BRSSZ", "Santos", "Brazil", -23.9608, -46.3333),
    ("PABLB", "Balboa", "Panama", 8.9536, -79.5672),
    ("PAMIT", "Cristobal", "Panama", 9.3592, -79.9108),

    # ── Africa / Middle East ──────────────────────────────────────────────────
    ("EGSUZ", "Suez", "Egypt", 29.9669, 32.5498),
    ("ZADUR", "Durban", "South Africa", -29.8587, 31.0218),
    ("MAPTM", "Tanger Med", "Morocco", 35.8742, -5.4194),

    # ── Oceania ───────────────────────────────────────────────────────────────
    ("AUMEL", "Melbourne", "Australia", -37.8136, 144.9631),
    ("AUSYD", "Sydney", "Australia", -33.8688, 151.2093),
]


def seed_ports(db: Session) -> dict:
    """Insert major ports if not already present. Idempotent, keyed by UN/LOCODE.

    Existing ports that were imported without coordinates are backfilled.
    """
    from app.models.port import Port

    inserted = 0
    skipped = 0
    backfilled = 0
    for unlocode, name, country, lat, lon in MAJOR_PORTS:
        existing = db.query(Port).filter(Port.unlocode == unlocode).first()
        if existing:
            if existing.lat is None or existing.lon is None:
                existing.lat, existing.lon = lat, lon
                backfilled += 1
            skipped += 1
            continue
        db.add(Port(unlocode=unlocode, name=name, country=country, lat=lat, lon=lon))
        inserted += 1

    db.commit()
    logger.info("seed_ports: inserted=%d skipped=%d backfilled=%d", inserted, skipped, backfilled)
    return {"inserted": inserted, "skipped": skipped, "backfilled": backfilled}
