# Overview: Order pricing arithmetic in integer cents.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app, has_app_context


DEFAULT_VAT_RATE_BPS = 1500  # 15%


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    vat_amount_cents: int
    delivery_fee_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "vat_amount_cents": self.vat_amount_cents,
            "delivery_fee_cents": self.delivery_fee_cents,
            "total_cents": self.total_cents,
        }


def vat_rate_bps() -> int:
    if has_app_context():
        return int(current_app.config.get("VAT_RATE_BPS", DEFAULT_VAT_RATE_BPS))
    return DEFAULT_VAT_RATE_BPS


def line_subtotal_cents(unit_price_cents: int, quantity: int) -> int:
    return unit_price_cents * quantity


def compute_vat_cents(subtotal_cents: int, rate_bps: int | None = None) -> int:
    """VAT on a subtotal, nearest-cent rounding (half-up)."""
    if rate_bps is None:
        rate_bps = vat_rate_bps()
    return (subtotal_cents * rate_bps + 5_000) // 10_000


def compute_order_totals(
    line_subtotals: list[int],
    delivery_fee_cents: int = 0,
    rate_bps: int | None = None,
) -> OrderTotals:
    subtotal = sum(line_subtotals)
    vat = compute_vat_cents(subtotal, rate_bps)
    return OrderTotals(
        subtotal_cents=subtotal,
        vat_amount_cents=vat,
        delivery_fee_cents=delivery_fee_cents,
        total_cents=subtotal + vat + delivery_fee_cents,
    )
