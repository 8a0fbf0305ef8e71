# Overview: Placeholder stockist matching.

"""
Nearby stockist lookup.

PLACEHOLDER: there is no location data, no live pricing and no ranking.
Every active stockist is returned, annotated with randomly generated
distance, rating, delivery fee and delivery window. Replace the annotation
step with real geospatial and pricing logic when it exists; callers only
rely on the shape of the returned dicts.

The random source is injectable; when none is passed, MATCHING_SEED from
the app config seeds it (None = non-deterministic).
"""

from __future__ import annotations

import random

from flask import current_app

from .auth_service import get_users_by_type


def _rng_from_config() -> random.Random:
    return random.Random(current_app.config.get("MATCHING_SEED"))


def _annotate(stockist, rng: random.Random) -> dict:
    window_start = int(15 + rng.random() * 25)
    window_end = int(30 + rng.random() * 15)
    return {
        "id": stockist.id,
        "name": stockist.name,
        "business_name": stockist.business_name,
        "is_vat_registered": stockist.is_vat_registered,
        "address": stockist.address,
        "distance_km": round(rng.random() * 2, 2),
        "rating": round(3.5 + rng.random() * 1.5, 1),
        "delivery_fee_cents": int(40 + rng.random() * 60) * 100,
        "estimated_time": f"{window_start}-{window_end} min",
    }


def find_nearby_stockists(rng: random.Random | None = None) -> list[dict]:
    if rng is None:
        rng = _rng_from_config()
    return [_annotate(stockist, rng) for stockist in get_users_by_type("stockist")]
