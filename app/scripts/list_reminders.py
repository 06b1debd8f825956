"""Print pending reminders from the durable store.

    python -m app.scripts.list_reminders [path]
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone

from app.utils.timefmt import format_label
from config import settings
from db import ReminderStore


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    path = argv[0] if argv else settings.REMINDERS_PATH
    store = ReminderStore(path)
    now = datetime.now(timezone.utc)

    reminders = store.load_all()
    if not reminders:
        print(f"No pending reminders in {store.path}")
        return 0

    for r in reminders:
        flag = "" if r.fire_at > now else "  (stale)"
        print(f"{r.id}  {r.conversation_id}  {format_label(r.fire_at, settings.DEFAULT_TIMEZONE)}  {r.note}{flag}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
