from __future__ import annotations

from ..extensions import db
from delivereth.time_utils import to_utc_z


class Beverage(db.Model):
    """
    Catalog entry, sold by the crate.

    Prices are stored in cents (santim): 265.00 ETB is 26500.
    """
    __tablename__ = "beverages"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_beverages_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # beer, soft-drinks, water, ...
    category = db.Column(db.String(64), nullable=False, index=True)

    unit_price_cents = db.Column(db.Integer, nullable=False)
    vat_included = db.Column(db.Boolean, nullable=False, default=True)
    image_url = db.Column(db.String(512), nullable=True)

    # Bottles per crate
    quantity_per_crate = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "unit_price_cents": self.unit_price_cents,
            "vat_included": self.vat_included,
            "image_url": self.image_url,
            "quantity_per_crate": self.quantity_per_crate,
            "created_at": to_utc_z(self.created_at),
        }


class StockistInventory(db.Model):
    """
    Crates on hand per (stockist, beverage).

    Exactly one row per pair; edits overwrite the quantity in place.
    """
    __tablename__ = "stockist_inventory"
    __table_args__ = (
        db.UniqueConstraint("stockist_id", "beverage_id", name="uq_stockist_inventory_pair"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    stockist_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    beverage_id = db.Column(db.Integer, db.ForeignKey("beverages.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    stockist = db.relationship("User", backref=db.backref("inventory", lazy=True))
    beverage = db.relationship("Beverage")

    def to_dict(self, include_beverage: bool = False) -> dict:
        data = {
            "id": self.id,
            "stockist_id": self.stockist_id,
            "beverage_id": self.beverage_id,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_beverage:
            data["beverage"] = self.beverage.to_dict() if self.beverage else None
        return data
