from datetime import datetime, timezone


def utc_now() -> datetime:
    """Naive UTC timestamp, matching what the database hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def usage_period(moment: datetime = None) -> str:
    moment = moment or utc_now()
    return moment.strftime("%Y-%m")
