"""
Dashboard reporting.

Read-only aggregations over the order, user and product collections. Each
report is its own query. Store errors are not caught here: a failing
aggregation aborts the whole dashboard instead of yielding partial totals.

Money is always summed from what the order persisted (`total`, and
`price * amount` on its lines), never from a product's current price.
"""

import calendar
import logging
from datetime import datetime, timedelta
from typing import Optional

from bson import ObjectId
from pymongo.database import Database

from database import serialize, utcnow

logger = logging.getLogger(__name__)

REPORT_MONTHS = 6
REPORT_DAYS = 7
TOP_PRODUCTS = 5
LOW_STOCK_THRESHOLD = 10
LOW_STOCK_LIMIT = 10
MOST_REVIEWED = 5

PAID = {"is_paid": True}
LINE_REVENUE = {"$multiply": ["$items.price", "$items.amount"]}


def months_back(now: datetime, months: int = REPORT_MONTHS) -> datetime:
    """First instant of the oldest month in a window of `months` calendar months ending with `now`'s month."""
    year, month = now.year, now.month - (months - 1)
    while month <= 0:
        month += 12
        year -= 1
    return datetime(year, month, 1)


def days_back(now: datetime, days: int = REPORT_DAYS) -> datetime:
    midnight = datetime(now.year, now.month, now.day)
    return midnight - timedelta(days=days - 1)


def month_label(year: int, month: int) -> str:
    return f"{calendar.month_name[month]} {year}"


def average_order_value(revenue: float, count: int) -> float:
    return round(revenue / count, 2) if count else 0


def repeat_customer_percentage(repeat_count: int, active_count: int) -> float:
    return round(repeat_count / active_count * 100, 1) if active_count else 0


def average_revenue_per_user(revenue: float, users: int) -> float:
    return round(revenue / users, 2) if users else 0


def _paid_totals(db: Database, since: Optional[datetime] = None) -> dict:
    match = dict(PAID)
    if since is not None:
        match["created_at"] = {"$gte": since}
    rows = list(db["order"].aggregate([
        {"$match": match},
        {"$group": {"_id": None, "revenue": {"$sum": "$total"}, "count": {"$sum": 1}}},
    ]))
    if not rows:
        return {"revenue": 0, "count": 0}
    return {"revenue": rows[0]["revenue"], "count": rows[0]["count"]}


def monthly_stats(db: Database, now: datetime) -> list:
    rows = db["order"].aggregate([
        {"$match": {"is_paid": True, "created_at": {"$gte": months_back(now)}}},
        {"$group": {
            "_id": {"year": {"$year": "$created_at"}, "month": {"$month": "$created_at"}},
            "count": {"$sum": 1},
            "amount": {"$sum": "$total"},
        }},
        {"$sort": {"_id.year": -1, "_id.month": -1}},
        {"$limit": REPORT_MONTHS},
    ])
    return [
        {"date": month_label(r["_id"]["year"], r["_id"]["month"]), "count": r["count"], "amount": r["amount"]}
        for r in rows
    ]


def revenue_by_category(db: Database) -> list:
    per_product = list(db["order"].aggregate([
        {"$match": PAID},
        {"$unwind": "$items"},
        {"$group": {"_id": "$items.product_id", "revenue": {"$sum": LINE_REVENUE}}},
    ]))
    if not per_product:
        return []

    product_ids = [ObjectId(r["_id"]) for r in per_product if ObjectId.is_valid(r["_id"])]
    products = {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": product_ids}}, {"category_id": 1})}
    category_ids = {p["category_id"] for p in products.values() if ObjectId.is_valid(p.get("category_id"))}
    categories = {
        str(c["_id"]): c["name"]
        for c in db["category"].find({"_id": {"$in": [ObjectId(cid) for cid in category_ids]}}, {"name": 1})
    }

    revenue = {}
    for row in per_product:
        product = products.get(row["_id"])
        name = categories.get(product["category_id"]) if product else None
        # lines whose product or category no longer exists are dropped
        if name is None:
            continue
        revenue[name] = revenue.get(name, 0) + row["revenue"]
    ranked = sorted(revenue.items(), key=lambda kv: kv[1], reverse=True)
    return [{"category": name, "revenue": amount} for name, amount in ranked]


def top_products(db: Database) -> list:
    rows = db["order"].aggregate([
        {"$match": PAID},
        {"$unwind": "$items"},
        {"$group": {
            "_id": "$items.product_id",
            "name": {"$first": "$items.name"},
            "quantity": {"$sum": "$items.amount"},
            "revenue": {"$sum": LINE_REVENUE},
        }},
        {"$sort": {"quantity": -1}},
        {"$limit": TOP_PRODUCTS},
    ])
    return [
        {"product_id": r["_id"], "name": r["name"], "quantity": r["quantity"], "revenue": r["revenue"]}
        for r in rows
    ]


def orders_by_status(db: Database) -> list:
    rows = db["order"].aggregate([
        {"$group": {"_id": "$status", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ])
    return [{"status": r["_id"], "count": r["count"]} for r in rows]


def new_users_per_month(db: Database, now: datetime) -> list:
    rows = db["user"].aggregate([
        {"$match": {"role": "user", "created_at": {"$gte": months_back(now)}}},
        {"$group": {
            "_id": {"year": {"$year": "$created_at"}, "month": {"$month": "$created_at"}},
            "count": {"$sum": 1},
        }},
        {"$sort": {"_id.year": -1, "_id.month": -1}},
        {"$limit": REPORT_MONTHS},
    ])
    return [{"date": month_label(r["_id"]["year"], r["_id"]["month"]), "count": r["count"]} for r in rows]


def active_user_count(db: Database) -> int:
    # any order counts, paid or not
    return len(db["order"].distinct("user_id"))


def repeat_customer_count(db: Database) -> int:
    # only paid orders count here
    rows = db["order"].aggregate([
        {"$match": PAID},
        {"$group": {"_id": "$user_id", "orders": {"$sum": 1}}},
        {"$match": {"orders": {"$gt": 1}}},
    ])
    return len(list(rows))


def low_stock_products(db: Database) -> list:
    cursor = (
        db["product"]
        .find({"inventory": {"$lte": LOW_STOCK_THRESHOLD}}, {"name": 1, "inventory": 1, "price": 1})
        .sort("inventory", 1)
        .limit(LOW_STOCK_LIMIT)
    )
    return [serialize(p) for p in cursor]


def most_reviewed_products(db: Database) -> list:
    cursor = (
        db["product"]
        .find({}, {"name": 1, "num_of_reviews": 1, "average_rating": 1})
        .sort("num_of_reviews", -1)
        .limit(MOST_REVIEWED)
    )
    return [serialize(p) for p in cursor]


def daily_sales(db: Database, now: datetime) -> list:
    rows = db["order"].aggregate([
        {"$match": {"is_paid": True, "created_at": {"$gte": days_back(now)}}},
        {"$group": {
            "_id": {
                "year": {"$year": "$created_at"},
                "month": {"$month": "$created_at"},
                "day": {"$dayOfMonth": "$created_at"},
            },
            "sales": {"$sum": "$total"},
            "count": {"$sum": 1},
        }},
        {"$sort": {"_id.year": 1, "_id.month": 1, "_id.day": 1}},
    ])
    return [
        {
            "date": f"{r['_id']['year']:04d}-{r['_id']['month']:02d}-{r['_id']['day']:02d}",
            "sales": round(r["sales"], 2),
            "count": r["count"],
        }
        for r in rows
    ]


def build_dashboard(db: Database, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()

    total_users = db["user"].count_documents({"role": "user"})
    total_orders = db["order"].count_documents({})
    paid = _paid_totals(db)
    total_revenue = paid["revenue"]
    active = active_user_count(db)
    repeat = repeat_customer_count(db)
    this_year = _paid_totals(db, since=datetime(now.year, 1, 1))

    stats = {
        "total_users": total_users,
        "total_orders": total_orders,
        "total_revenue": total_revenue,
        "monthly_stats": monthly_stats(db, now),
        "revenue_by_category": revenue_by_category(db),
        "top_products": top_products(db),
        "orders_by_status": orders_by_status(db),
        "average_order_value": average_order_value(total_revenue, paid["count"]),
        "new_users_per_month": new_users_per_month(db, now),
        "active_users": active,
        "inactive_users": max(0, total_users - active),
        "repeat_customers": repeat,
        "repeat_customer_percentage": repeat_customer_percentage(repeat, active),
        "average_revenue_per_user": average_revenue_per_user(total_revenue, total_users),
        "low_stock_products": low_stock_products(db),
        "most_reviewed_products": most_reviewed_products(db),
        "daily_sales": daily_sales(db, now),
        "revenue_this_year": round(this_year["revenue"], 2),
    }
    logger.debug("Built dashboard for %d orders", total_orders)
    return stats
