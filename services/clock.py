from datetime import datetime, timezone


class SystemClock:
    """Naive UTC wall clock, matching how timestamps are stored."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)
