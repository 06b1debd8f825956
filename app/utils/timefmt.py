from datetime import datetime
from zoneinfo import ZoneInfo

_MONTHS_ID = ("Jan", "Feb", "Mar", "Apr", "Mei", "Jun", "Jul", "Agu", "Sep", "Okt", "Nov", "Des")


def format_label(when: datetime, timezone: str = "Asia/Jakarta") -> str:
    """Indonesian medium date + short time, e.g. ``2 Jan 2024 08.00``."""
    local = when.astimezone(ZoneInfo(timezone))
    return f"{local.day} {_MONTHS_ID[local.month - 1]} {local.year} {local:%H.%M}"
