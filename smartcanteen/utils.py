"""Small helpers shared across the canteen modules."""

import time
import uuid
from datetime import date, timedelta


def now_ms() -> int:
    """Current time as epoch milliseconds, the timestamp unit of stored documents."""
    return int(time.time() * 1000)


def new_id() -> str:
    return uuid.uuid4().hex[:9]


def today() -> date:
    return date.today()


def tomorrow() -> date:
    return date.today() + timedelta(days=1)
