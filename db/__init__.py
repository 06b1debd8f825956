from .store import (
    ReminderStore,
    dump_reminders,
    parse_reminders,
)  # noqa: F401
