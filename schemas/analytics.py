from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class DateRangeQuery(BaseModel):
    """Query string for the admin analytics endpoints; range order is checked by the service."""
    start_date: datetime
    end_date: datetime
    group_by: Literal["day", "week", "month"] = "day"
    include_comparison: bool = False
