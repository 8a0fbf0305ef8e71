from __future__ import annotations

from ..extensions import db
from delivereth.time_utils import to_utc_z


# Lifecycle order; transitions are enforced in services/order_service.py
ORDER_STATUSES = ("placed", "matched", "accepted", "delivering", "delivered", "completed")


class Order(db.Model):
    """
    Customer order.

    All monetary fields are recomputed server-side from catalog prices at
    creation time and stored in cents.
    total_cents = subtotal_cents + vat_amount_cents + delivery_fee_cents
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_customer_created", "customer_id", "created_at"),
        db.Index("ix_orders_stockist_status", "stockist_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable order number (e.g., "ETX7K2QD")
    order_number = db.Column(db.String(16), nullable=False, unique=True, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    stockist_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="placed", index=True)

    delivery_address = db.Column(db.String(255), nullable=False)
    delivery_time = db.Column(db.String(64), nullable=True)
    customer_tin = db.Column(db.String(32), nullable=True)

    delivery_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    vat_amount_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("User", foreign_keys=[customer_id], backref=db.backref("orders_placed", lazy=True))
    stockist = db.relationship("User", foreign_keys=[stockist_id], backref=db.backref("orders_fulfilled", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def is_participant(self, user_id: int) -> bool:
        return user_id == self.customer_id or (self.stockist_id is not None and user_id == self.stockist_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "stockist_id": self.stockist_id,
            "status": self.status,
            "delivery_address": self.delivery_address,
            "delivery_time": self.delivery_time,
            "customer_tin": self.customer_tin,
            "delivery_fee_cents": self.delivery_fee_cents,
            "subtotal_cents": self.subtotal_cents,
            "vat_amount_cents": self.vat_amount_cents,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "version_id": self.version_id,
        }


class OrderItem(db.Model):
    """Line item with the catalog price captured at order time."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    beverage_id = db.Column(db.Integer, db.ForeignKey("beverages.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", backref=db.backref("items", lazy=True, order_by="OrderItem.id"))
    beverage = db.relationship("Beverage")

    def to_dict(self, include_beverage: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_id": self.order_id,
            "beverage_id": self.beverage_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }
        if include_beverage:
            data["beverage"] = self.beverage.to_dict() if self.beverage else None
        return data


class OrderStatusEvent(db.Model):
    """
    Append-only history of order status changes.

    Written in the same DB transaction as the change it records.
    The first event of every order has from_status NULL and to_status 'placed'.
    """
    __tablename__ = "order_status_events"
    __table_args__ = (
        db.Index("ix_order_status_events_order_occurred", "order_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    from_status = db.Column(db.String(16), nullable=True)
    to_status = db.Column(db.String(16), nullable=False)

    # Stockist assigned after this change
    stockist_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    note = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("status_events", lazy=True, order_by="OrderStatusEvent.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "stockist_id": self.stockist_id,
            "actor_user_id": self.actor_user_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class VatReceipt(db.Model):
    """
    VAT receipt, one per order.

    Seller is the assigned stockist, buyer is the ordering business.
    Amounts are copied from the order; receipt_data keeps a JSON snapshot of
    the lines so the document stays stable if the catalog changes.
    """
    __tablename__ = "vat_receipts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, unique=True, index=True)

    # e.g., "VAT-4KQ9ZT2M"
    receipt_number = db.Column(db.String(16), nullable=False, unique=True)

    seller_name = db.Column(db.String(255), nullable=False)
    seller_tin = db.Column(db.String(32), nullable=False)
    buyer_name = db.Column(db.String(255), nullable=False)
    buyer_tin = db.Column(db.String(32), nullable=False)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    vat_amount_cents = db.Column(db.Integer, nullable=False)
    delivery_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    receipt_data = db.Column(db.JSON, nullable=True)

    issued_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    issued_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("receipt", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "receipt_number": self.receipt_number,
            "seller_name": self.seller_name,
            "seller_tin": self.seller_tin,
            "buyer_name": self.buyer_name,
            "buyer_tin": self.buyer_tin,
            "subtotal_cents": self.subtotal_cents,
            "vat_amount_cents": self.vat_amount_cents,
            "delivery_fee_cents": self.delivery_fee_cents,
            "total_cents": self.total_cents,
            "receipt_data": self.receipt_data,
            "issued_by_user_id": self.issued_by_user_id,
            "issued_at": to_utc_z(self.issued_at),
        }
