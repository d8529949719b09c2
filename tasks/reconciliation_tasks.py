import datetime as dt
from typing import Optional
from zoneinfo import ZoneInfo

from celery import current_app

from core.config import settings
from core.db import db_session
from core.logging_config import get_logger
from services.reconciliation import reconcile_payments

logger = get_logger(__name__)


def previous_local_day(now: Optional[dt.datetime] = None) -> dt.date:
    now = now or dt.datetime.now(ZoneInfo(settings.TIMEZONE))
    return now.date() - dt.timedelta(days=1)


@current_app.task(bind=True, max_retries=3)
def reconcile_previous_day(self, date: Optional[str] = None):
    """
    Run the payment reconciliation for one local day (yesterday by default)
    and log the summary. Never auto-fixes; that is left to an admin.
    """
    day = dt.date.fromisoformat(date) if date else previous_local_day()
    try:
        with db_session() as db:
            result = reconcile_payments(db, day, include_partial=False, auto_fix=False)
    except Exception as exc:
        logger.exception("scheduled_reconciliation_failed", date=day.isoformat())
        countdown = min(2 ** self.request.retries * 60, 15 * 60)
        raise self.retry(exc=exc, countdown=countdown)

    summary = result["reconciliation"]["summary"]
    if summary["total_issues_found"]:
        logger.warning("scheduled_reconciliation_found_issues", date=day.isoformat(), **summary)
    return {"date": day.isoformat(), "summary": summary}
