"""Error taxonomy for the reminder and reply pipeline.

Reminder errors carry a user-facing ``message`` so the router can answer the
user directly.  Backend and durable-storage errors never reach the user; they
are logged where they happen and degrade to an apology or a warning.
"""

from __future__ import annotations


class ReminderError(Exception):
    """Base class for reminder requests that cannot be honoured."""

    message = "Pengingat tidak dapat diproses."

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


class AmbiguousFormat(ReminderError):
    """Reminder prefix matched but nothing follows it."""

    message = "Format pengingat kurang jelas."


class UnrecognizedTime(ReminderError):
    """No temporal expression could be found after the prefix."""

    message = "Tidak bisa mengenali waktu pengingat."


class TimeAlreadyPast(ReminderError):
    """The resolved time is not in the future."""

    message = "Waktu pengingat sudah lewat. Tolong kirim ulang dengan waktu yang lebih jelas."


class BackendUnavailable(Exception):
    """Every step of the reply fallback chain came back empty."""


class DurableIOFailure(Exception):
    """Reading or writing the reminder record failed."""
