from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List


def summary(db) -> Dict[str, Any]:
    """Head counts plus total sales/revenue over every order."""
    sales = list(db["order"].aggregate([
        {
            "$group": {
                "_id": None,
                "total_sales": {"$sum": 1},
                "total_revenue": {"$sum": "$total_amount"},
            }
        }
    ]))
    totals = sales[0] if sales else {"total_sales": 0, "total_revenue": 0}
    return {
        "users": db["user"].count_documents({}),
        "products": db["product"].count_documents({}),
        "total_sales": totals["total_sales"],
        "total_revenue": totals["total_revenue"],
    }


def _as_date(value) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def dates_in_range(start, end) -> List[str]:
    current, last = _as_date(start), _as_date(end)
    days = []
    while current <= last:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days


def daily_series(db, start, end) -> List[Dict[str, Any]]:
    """Orders per UTC calendar day for every day from start to end inclusive.

    Days without orders are reported with zero sales and revenue.
    """
    first, last = _as_date(start), _as_date(end)
    # pymongo compares naive datetimes as UTC
    window_start = datetime.combine(first, time.min)
    window_end = datetime.combine(last + timedelta(days=1), time.min)

    rows = db["order"].aggregate([
        {"$match": {"created_at": {"$gte": window_start, "$lt": window_end}}},
        {
            "$group": {
                "_id": {
                    "year": {"$year": "$created_at"},
                    "month": {"$month": "$created_at"},
                    "day": {"$dayOfMonth": "$created_at"},
                },
                "sales": {"$sum": 1},
                "revenue": {"$sum": "$total_amount"},
            }
        },
    ])
    by_day = {
        date(row["_id"]["year"], row["_id"]["month"], row["_id"]["day"]).isoformat(): row
        for row in rows
    }

    return [
        {
            "date": day,
            "sales": by_day[day]["sales"] if day in by_day else 0,
            "revenue": by_day[day]["revenue"] if day in by_day else 0,
        }
        for day in dates_in_range(first, last)
    ]
