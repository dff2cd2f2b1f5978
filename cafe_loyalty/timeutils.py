from datetime import datetime, timezone


def utcnow() -> datetime:
    # Keep naive UTC timestamps to match the TIMESTAMP column types.
    return datetime.now(timezone.utc).replace(tzinfo=None)
