from datetime import datetime, timezone


def utcnow() -> datetime:
    # Naive UTC: SQLite drops tzinfo on the way in
    return datetime.now(timezone.utc).replace(tzinfo=None)
