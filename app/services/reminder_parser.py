"""
Natural-language reminder extraction.

``ReminderParser.parse`` looks for a reminder prefix ("remind me",
"ingatkan saya", ...) and then for the first temporal expression in the rest of
the message.  A temporal expression is a day ("tomorrow", "besok", or anything
:func:`dateparser.search.search_dates` recognises), a clock time ("8am",
"19:30", "jam 8 pagi"), or a day immediately followed or preceded by a clock
time.  Day and clock are resolved separately and combined in the configured
zone; whatever text is left becomes the note.

A message without a reminder prefix yields ``None`` so the caller can treat it
as conversation.  A prefix with nothing usable after it raises
:class:`AmbiguousFormat` or :class:`UnrecognizedTime`.  Whether the resolved
time is still in the future is the caller's decision.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, time, timedelta
from typing import List, NamedTuple, Optional, Sequence
from zoneinfo import ZoneInfo

from dateparser.search import search_dates

from app.types.errors import AmbiguousFormat, UnrecognizedTime
from app.types.reminder_contract import DEFAULT_NOTE, ParsedReminder

_LOGGER = logging.getLogger(__name__)

# Longest first so "reminder" never shadows a longer prefix.
REMINDER_PREFIXES: tuple[str, ...] = ("ingatkan saya", "remind me", "reminder")
LANGUAGES: tuple[str, ...] = ("en", "id")

_DAY_OFFSETS = {
    "day after tomorrow": 2,
    "tomorrow": 1,
    "today": 0,
    "tonight": 0,
    "yesterday": -1,
    "lusa": 2,
    "besok": 1,
    "hari ini": 0,
    "malam ini": 0,
    "nanti malam": 0,
    "kemarin": -1,
}
_EVENING_DAYS = ("tonight", "malam ini", "nanti malam")
_EVENING_HOUR = 20

_DAY_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(w) for w in sorted(_DAY_OFFSETS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)

# Order matters on ties: a longer match starting at the same place wins.
_CLOCK_PATTERNS = (
    # 8am, 8 pm, 8:30pm, at 7.15 a.m.
    re.compile(
        r"(?:\bat\s+)?\b(?P<hour>\d{1,2})(?:[:.](?P<minute>\d{2}))?\s*(?P<meridiem>[ap])\.?m\b\.?",
        re.IGNORECASE,
    ),
    # jam 8 pagi, pukul 19.30
    re.compile(
        r"\b(?:jam|pukul)\s+(?P<hour>\d{1,2})(?:[:.](?P<minute>\d{2}))?(?:\s+(?P<period>pagi|siang|sore|malam)\b)?",
        re.IGNORECASE,
    ),
    # 19:30, at 7.45
    re.compile(r"(?:\bat\s+)?\b(?P<hour>[01]?\d|2[0-3])[:.](?P<minute>[0-5]\d)\b", re.IGNORECASE),
)

# What may sit between a day and a clock time for them to count as one expression.
_JOINER = re.compile(r"[\s,]*(?:at|on|pada)?[\s,]*", re.IGNORECASE)

# Phrases that pin a time to the current day; these are never rolled forward.
_SAME_DAY_MARKERS = ("today", "tonight", "now", "ago", "hari ini", "malam ini", "sekarang", "lalu", "tadi")
_LEADING_CONNECTOR = re.compile(r"^(?:to|that|untuk|agar|supaya)\b\s*", re.IGNORECASE)


class _Span(NamedTuple):
    start: int
    end: int
    value: object  # datetime for days, time for clocks
    evening: bool = False
    explicit_period: bool = False


def _clean_note(raw: str) -> str:
    note = re.sub(r"\s{2,}", " ", raw).strip(" \t,.;:-")
    note = _LEADING_CONNECTOR.sub("", note).strip(" \t,.;:-")
    return note or DEFAULT_NOTE


def _clock_value(match: re.Match) -> Optional[time]:
    groups = match.groupdict()
    hour = int(groups["hour"])
    minute = int(groups.get("minute") or 0)
    meridiem = (groups.get("meridiem") or "").lower()
    period = (groups.get("period") or "").lower()

    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if meridiem == "p" else 0)
    elif period == "pagi":
        hour = hour % 12
    elif period == "siang":
        hour = hour if hour >= 11 else hour + 12
    elif period == "sore":
        hour = hour if hour >= 12 else hour + 12
    elif period == "malam":
        if hour == 12:
            hour = 0
        elif 6 <= hour < 12:
            hour += 12

    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def find_clock(text: str) -> Optional[_Span]:
    """Leftmost clock time in ``text``."""
    candidates: List[tuple] = []
    for order, pattern in enumerate(_CLOCK_PATTERNS):
        for match in pattern.finditer(text):
            value = _clock_value(match)
            if value is not None:
                groups = match.groupdict()
                explicit = bool(groups.get("meridiem") or groups.get("period"))
                span = _Span(match.start(), match.end(), value, explicit_period=explicit)
                candidates.append((match.start(), -match.end(), order, span))
                break
    if not candidates:
        return None
    return min(candidates, key=lambda c: c[:3])[3]


class ReminderParser:
    def __init__(
        self,
        timezone: str = "Asia/Jakarta",
        prefixes: Sequence[str] = REMINDER_PREFIXES,
        languages: Sequence[str] = LANGUAGES,
    ):
        self.timezone = timezone
        self.tz = ZoneInfo(timezone)
        self.prefixes = tuple(sorted((p.lower() for p in prefixes), key=len, reverse=True))
        self.languages = list(languages)

    def match_prefix(self, text: str) -> Optional[str]:
        normalized = (text or "").strip().lower()
        for prefix in self.prefixes:
            if normalized.startswith(prefix):
                return prefix
        return None

    def is_reminder(self, text: str) -> bool:
        return self.match_prefix(text) is not None

    def parse(self, text: str, now: datetime) -> Optional[ParsedReminder]:
        """Return the parsed reminder, or None when ``text`` is not a reminder."""
        prefix = self.match_prefix(text)
        if prefix is None:
            return None

        remainder = text.strip()[len(prefix):].strip()
        if not remainder:
            raise AmbiguousFormat()

        local_now = now.astimezone(self.tz)
        clock = find_clock(remainder)
        day = self._find_day(remainder, local_now, clock)
        if day is None and clock is None:
            _LOGGER.info("No time expression in reminder text %r", remainder)
            raise UnrecognizedTime()

        spans = sorted((s for s in (day, clock) if s is not None), key=lambda s: s.start)
        used = spans[:1]
        if len(spans) == 2 and _JOINER.fullmatch(remainder[spans[0].end:spans[1].start]):
            used = spans
        use_day = day is not None and any(s is day for s in used)
        use_clock = clock is not None and any(s is clock for s in used)

        if use_day and use_clock:
            fire_at = self._at_clock(day.value, clock)
            if day.evening and not clock.explicit_period and fire_at.hour < 12:
                fire_at += timedelta(hours=12)
        elif use_clock:
            fire_at = self._at_clock(local_now, clock)
            if fire_at <= local_now:
                # A bare clock time that already passed today means the same time tomorrow.
                fire_at += timedelta(days=1)
        else:
            fire_at = day.value
            if day.evening:
                fire_at = fire_at.replace(hour=_EVENING_HOUR, minute=0, second=0, microsecond=0)
            fire_at = self._forward(fire_at, local_now, remainder[day.start:day.end])

        start, end = used[0].start, used[-1].end
        note = _clean_note(remainder[:start] + " " + remainder[end:])
        return ParsedReminder(fire_at=fire_at, note=note)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _find_day(self, text: str, local_now: datetime, clock: Optional[_Span]) -> Optional[_Span]:
        for match in _DAY_PATTERN.finditer(text):
            if clock is not None and match.start() < clock.end and clock.start < match.end():
                continue
            word = re.sub(r"\s+", " ", match.group(0).lower())
            return _Span(
                match.start(),
                match.end(),
                local_now + timedelta(days=_DAY_OFFSETS[word]),
                evening=word in _EVENING_DAYS,
            )

        # Blank the clock out so dateparser only sees the day part.
        blanked = text
        if clock is not None:
            blanked = text[:clock.start] + " " * (clock.end - clock.start) + text[clock.end:]
        found = search_dates(
            blanked,
            languages=self.languages,
            settings={
                "PREFER_DATES_FROM": "future",
                "RELATIVE_BASE": local_now.replace(tzinfo=None),
                "TIMEZONE": self.timezone,
                "RETURN_AS_TIMEZONE_AWARE": True,
            },
        )
        if not found:
            return None
        phrase, when = found[0]
        start = blanked.find(phrase)
        if start < 0:
            return None
        return _Span(start, start + len(phrase), self._to_zone(when))

    def _at_clock(self, day: datetime, clock: _Span) -> datetime:
        return day.replace(hour=clock.value.hour, minute=clock.value.minute, second=0, microsecond=0)

    def _to_zone(self, when: datetime) -> datetime:
        if when.tzinfo is None:
            return when.replace(tzinfo=self.tz)
        return when.astimezone(self.tz)

    def _forward(self, fire_at: datetime, local_now: datetime, phrase: str) -> datetime:
        if fire_at > local_now or fire_at.date() != local_now.date():
            return fire_at
        lowered = phrase.lower()
        if any(marker in lowered for marker in _SAME_DAY_MARKERS):
            return fire_at
        return fire_at + timedelta(days=1)
