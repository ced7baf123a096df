import uuid
from datetime import datetime, timezone


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Naive UTC timestamp, sqlite stores datetimes without offset."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
