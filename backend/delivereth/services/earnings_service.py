# Overview: Service-layer reporting on stockist earnings.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from delivereth.extensions import db
from delivereth.models import Beverage, Order, OrderItem
from delivereth.time_utils import parse_iso_datetime


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end, end_of_day=True) if end else None
    except ValueError as e:
        raise ReportError("start and end must be ISO-8601 dates or datetimes") from e
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start must be before end")
    return start_dt, end_dt


def _period_expr(group_by: str):
    if group_by == "day":
        return func.strftime("%Y-%m-%d", Order.completed_at)
    if group_by == "week":
        return func.strftime("%Y-W%W", Order.completed_at)
    if group_by == "month":
        return func.strftime("%Y-%m", Order.completed_at)
    raise ReportError("group_by must be day, week, or month")


def stockist_earnings(
    stockist_id: int,
    *,
    start: str | None = None,
    end: str | None = None,
    group_by: str = "day",
) -> dict:
    """
    Earnings over a stockist's completed orders, bucketed by completion time.

    gross_sales_cents is the pre-VAT subtotal; VAT collected and delivery fees
    are reported separately and add up to total_cents.
    """
    start_dt, end_dt = _parse_range(start, end)
    period_expr = _period_expr(group_by)

    def _scoped(query):
        query = query.filter(Order.stockist_id == stockist_id, Order.status == "completed")
        if start_dt:
            query = query.filter(Order.completed_at >= start_dt)
        if end_dt:
            query = query.filter(Order.completed_at <= end_dt)
        return query

    totals_row = _scoped(db.session.query(
        func.count(Order.id).label("orders"),
        func.coalesce(func.sum(Order.subtotal_cents), 0).label("gross"),
        func.coalesce(func.sum(Order.vat_amount_cents), 0).label("vat"),
        func.coalesce(func.sum(Order.delivery_fee_cents), 0).label("fees"),
        func.coalesce(func.sum(Order.total_cents), 0).label("total"),
    )).one()

    period_rows = _scoped(db.session.query(
        period_expr.label("period"),
        func.count(Order.id).label("orders"),
        func.coalesce(func.sum(Order.subtotal_cents), 0).label("gross"),
        func.coalesce(func.sum(Order.delivery_fee_cents), 0).label("fees"),
        func.coalesce(func.sum(Order.total_cents), 0).label("total"),
    )).group_by(period_expr).order_by(period_expr).all()

    category_rows = _scoped(
        db.session.query(
            Beverage.category.label("category"),
            func.coalesce(func.sum(OrderItem.quantity), 0).label("crates"),
            func.coalesce(func.sum(OrderItem.subtotal_cents), 0).label("gross"),
        )
        .select_from(Order)
        .join(OrderItem, OrderItem.order_id == Order.id)
        .join(Beverage, Beverage.id == OrderItem.beverage_id)
    ).group_by(Beverage.category).order_by(func.sum(OrderItem.subtotal_cents).desc()).all()

    return {
        "stockist_id": stockist_id,
        "group_by": group_by,
        "start": start,
        "end": end,
        "totals": {
            "orders_count": int(totals_row.orders or 0),
            "gross_sales_cents": int(totals_row.gross or 0),
            "vat_collected_cents": int(totals_row.vat or 0),
            "delivery_fees_cents": int(totals_row.fees or 0),
            "total_cents": int(totals_row.total or 0),
        },
        "periods": [
            {
                "period": row.period,
                "orders_count": int(row.orders or 0),
                "gross_sales_cents": int(row.gross or 0),
                "delivery_fees_cents": int(row.fees or 0),
                "total_cents": int(row.total or 0),
            }
            for row in period_rows
        ],
        "categories": [
            {
                "category": row.category,
                "crates_sold": int(row.crates or 0),
                "gross_sales_cents": int(row.gross or 0),
            }
            for row in category_rows
        ],
    }
