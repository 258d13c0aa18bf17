from datetime import datetime, timezone


# Naive UTC timestamp; the store keeps all times in UTC without tzinfo
def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
