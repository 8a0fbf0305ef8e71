# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/delivereth/services/inventory_service.py

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Beverage, StockistInventory, User
from delivereth.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
"""
Stockist Inventory Invariants (authoritative)

- One StockistInventory row per (stockist_id, beverage_id), guarded by a
  unique constraint.
- Quantity is a stored level (crates on hand), overwritten on every edit;
  it is never negative.
- Only users of type 'stockist' own inventory, and only catalog beverages
  can be stocked.
- Reads join inventory rows to the catalog; a row whose beverage has gone
  missing is skipped rather than returned half-empty.
"""


class InventoryError(Exception):
    """Raised for inventory operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _ensure_stockist(stockist_id: int) -> User:
    stockist = db.session.get(User, stockist_id)
    if stockist is None or stockist.user_type != "stockist":
        raise InventoryError("Stockist not found", details={"stockist_id": stockist_id})
    return stockist


def get_stockist_inventory(stockist_id: int) -> list[StockistInventory]:
    """Inventory rows for a stockist, joined with (and ordered by) beverage."""
    return (
        db.session.query(StockistInventory)
        .join(Beverage, Beverage.id == StockistInventory.beverage_id)
        .filter(StockistInventory.stockist_id == stockist_id)
        .order_by(Beverage.id)
        .all()
    )


def get_stockist_inventory_item(stockist_id: int, beverage_id: int) -> StockistInventory | None:
    return db.session.query(StockistInventory).filter_by(
        stockist_id=stockist_id,
        beverage_id=beverage_id,
    ).first()


def upsert_inventory(stockist_id: int, beverage_id: int, quantity: int) -> StockistInventory:
    """
    Set the crate count for (stockist, beverage).

    Inserts the row if absent, otherwise overwrites quantity and refreshes
    updated_at. A concurrent insert of the same pair trips the unique
    constraint; the loser rolls back and retries as an update.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InventoryError("quantity must be an integer")
    if quantity < 0:
        raise InventoryError("quantity must be >= 0", details={"quantity": quantity})

    def _op() -> StockistInventory:
        _ensure_stockist(stockist_id)

        if db.session.get(Beverage, beverage_id) is None:
            raise InventoryError("Beverage not found", details={"beverage_id": beverage_id})

        row = lock_for_update(
            db.session.query(StockistInventory).filter_by(
                stockist_id=stockist_id,
                beverage_id=beverage_id,
            )
        ).first()

        if row is not None:
            row.quantity = quantity
            row.updated_at = utcnow()
            db.session.commit()
            return row

        row = StockistInventory(
            stockist_id=stockist_id,
            beverage_id=beverage_id,
            quantity=quantity,
            updated_at=utcnow(),
        )
        db.session.add(row)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            existing = get_stockist_inventory_item(stockist_id, beverage_id)
            if existing is None:
                raise
            existing.quantity = quantity
            existing.updated_at = utcnow()
            db.session.commit()
            return existing
        return row

    return run_with_retry(_op)


def get_stockist_inventory_for_display(stockist_id: int) -> list[dict]:
    """Joined rows as dicts, raising if stockist_id is not a stockist."""
    _ensure_stockist(stockist_id)
    return [row.to_dict(include_beverage=True) for row in get_stockist_inventory(stockist_id)]
