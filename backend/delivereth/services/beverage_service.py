# Overview: Service-layer operations for the beverage catalog.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Beverage


class CatalogError(ValueError):
    """Raised for catalog operation errors."""
    pass


# Launch catalog; prices in cents
DEFAULT_CATALOG = [
    {
        "name": "Heineken Beer",
        "description": "330ml × 24 bottles per crate",
        "category": "beer",
        "unit_price_cents": 26500,
        "vat_included": True,
        "image_url": "https://images.unsplash.com/photo-1600788886242-5c96aabe3757?q=80&w=200&h=150&auto=format&fit=crop",
        "quantity_per_crate": 24,
    },
    {
        "name": "Coca-Cola Crate",
        "description": "500ml × 24 bottles per crate",
        "category": "soft-drinks",
        "unit_price_cents": 35000,
        "vat_included": True,
        "image_url": "https://images.unsplash.com/photo-1629203432180-71e9b18d855a?q=80&w=200&h=150&auto=format&fit=crop",
        "quantity_per_crate": 24,
    },
    {
        "name": "St. George Beer",
        "description": "330ml × 24 bottles per crate",
        "category": "beer",
        "unit_price_cents": 24000,
        "vat_included": True,
        "image_url": "https://images.unsplash.com/photo-1608270586620-248524c67de9?q=80&w=200&h=150&auto=format&fit=crop",
        "quantity_per_crate": 24,
    },
    {
        "name": "Ambo Water",
        "description": "500ml × 20 bottles per crate",
        "category": "water",
        "unit_price_cents": 18000,
        "vat_included": True,
        "image_url": "https://images.unsplash.com/photo-1616118132534-381148898bb4?q=80&w=200&h=150&auto=format&fit=crop",
        "quantity_per_crate": 20,
    },
    {
        "name": "Dashen Beer",
        "description": "330ml × 24 bottles per crate",
        "category": "beer",
        "unit_price_cents": 23000,
        "vat_included": True,
        "image_url": "https://images.unsplash.com/photo-1518791841217-8f162f1e1131?q=80&w=200&h=150&auto=format&fit=crop",
        "quantity_per_crate": 24,
    },
    {
        "name": "Sprite Crate",
        "description": "500ml × 24 bottles per crate",
        "category": "soft-drinks",
        "unit_price_cents": 35000,
        "vat_included": True,
        "image_url": "https://images.unsplash.com/photo-1553136122-a3bbf3e2c483?q=80&w=200&h=150&auto=format&fit=crop",
        "quantity_per_crate": 24,
    },
]


def get_beverage(beverage_id: int) -> Beverage | None:
    return db.session.get(Beverage, beverage_id)


def get_beverages() -> list[Beverage]:
    return db.session.query(Beverage).order_by(Beverage.id).all()


def get_beverages_by_category(category: str | None) -> list[Beverage]:
    """
    'all' (or no category) returns the whole catalog; anything else is a
    case-insensitive exact match on category.
    """
    if category is None or category.strip().lower() in ("", "all"):
        return get_beverages()
    return (
        db.session.query(Beverage)
        .filter(func.lower(Beverage.category) == category.strip().lower())
        .order_by(Beverage.id)
        .all()
    )


def list_categories() -> list[str]:
    rows = db.session.query(Beverage.category).distinct().order_by(Beverage.category).all()
    return [row[0] for row in rows]


def create_beverage(
    *,
    name: str,
    category: str,
    unit_price_cents: int,
    description: str | None = None,
    vat_included: bool = True,
    image_url: str | None = None,
    quantity_per_crate: int | None = None,
    commit: bool = True,
) -> Beverage:
    if unit_price_cents is None or unit_price_cents < 0:
        raise CatalogError("unit_price_cents must be >= 0")
    if quantity_per_crate is not None and quantity_per_crate <= 0:
        raise CatalogError("quantity_per_crate must be > 0")
    if db.session.query(Beverage).filter_by(name=name).first():
        raise CatalogError(f"Beverage '{name}' already exists")

    beverage = Beverage(
        name=name,
        description=description,
        category=category.strip().lower(),
        unit_price_cents=unit_price_cents,
        vat_included=vat_included,
        image_url=image_url,
        quantity_per_crate=quantity_per_crate,
    )
    db.session.add(beverage)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return beverage


def seed_default_catalog() -> list[Beverage]:
    """
    Insert the launch catalog. Idempotent: beverages are matched by name
    and existing rows are left untouched.

    Returns the beverages that were created.
    """
    created = []
    for entry in DEFAULT_CATALOG:
        if db.session.query(Beverage).filter_by(name=entry["name"]).first():
            continue
        created.append(create_beverage(**entry, commit=False))
    db.session.commit()
    return created
