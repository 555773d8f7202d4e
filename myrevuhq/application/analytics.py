"""Monthly send statistics for Pro and Business accounts."""

import calendar
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from myrevuhq.domain.models import to_iso, utc_now
from myrevuhq.domain.tiers import has_analytics, has_customer_analytics
from myrevuhq.infrastructure.persistence import Database

from .errors import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)

MONTHS_OF_HISTORY = 12


def window_start(now: datetime, months: int = MONTHS_OF_HISTORY) -> datetime:
    """First instant of the month (months - 1) months before `now`."""
    index = now.year * 12 + (now.month - 1) - (months - 1)
    year, month = divmod(index, 12)
    return now.replace(year=year, month=month + 1, day=1, hour=0, minute=0, second=0, microsecond=0)


def get_analytics(db: Database, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Group a user's sent messages by calendar month, newest month first.

    Business accounts also get the customer behind every message.

    Raises:
        NotFoundError: unknown user
        ForbiddenError: tier without analytics
    """
    user = db.get_user(user_id)
    if not user:
        raise NotFoundError("User not found")

    tier = user.subscription_tier
    if not has_analytics(tier):
        raise ForbiddenError("Analytics are only available for Pro and Business plans")

    now = now or utc_now()
    messages = db.get_messages_since(user_id, to_iso(window_start(now)))
    with_customers = has_customer_analytics(tier)

    customers = {}
    if with_customers and messages:
        ids = list({m.customer_id for m in messages})
        customers = {c.id: c for c in db.get_customers_by_ids(user_id, ids)}

    monthly: Dict[str, Dict[str, Any]] = {}
    for message in messages:
        sent = datetime.fromisoformat(message.sent_at)
        key = f"{sent.year}-{sent.month:02d}"

        if key not in monthly:
            monthly[key] = {
                "month": f"{calendar.month_name[sent.month]} {sent.year}",
                "year": sent.year,
                "count": 0,
            }
            if with_customers:
                monthly[key]["customers"] = []

        monthly[key]["count"] += 1

        customer = customers.get(message.customer_id)
        if with_customers and customer:
            monthly[key]["customers"].append({
                "id": customer.id,
                "name": customer.name,
                "phone": customer.phone_number or "N/A",
                "job_description": customer.job_description,
                "sent_at": message.sent_at,
            })

    return {
        "tier": tier,
        "monthlyStats": [monthly[key] for key in sorted(monthly, reverse=True)],
        "totalMessages": len(messages),
    }
