import json
from datetime import datetime, timedelta

from app.types.reminder_contract import Reminder
from db import ReminderStore

from conftest import JAKARTA, NOW


def _reminder(note="call mom", hours=8, **kwargs):
    return Reminder(conversation_id="+6281", fire_at=NOW + timedelta(hours=hours), note=note, **kwargs)


def test_first_load_creates_empty_record(store):
    assert store.load_all() == []
    assert store.path.exists()
    assert json.loads(store.path.read_text()) == []


def test_save_then_load_round_trip(store):
    reminders = [_reminder("a", 1), _reminder("b", 2), _reminder("c", 3)]
    store.save(reminders)
    loaded = store.load_all()
    assert loaded == reminders
    assert [r.id for r in loaded] == [r.id for r in reminders]


def test_persisted_layout(store):
    r = Reminder(id="r1", conversation_id="+6281", fire_at=datetime(2024, 1, 2, 8, 0, tzinfo=JAKARTA), note="call mom")
    store.append(r)
    doc = json.loads(store.path.read_text())
    assert doc == [{"id": "r1", "conversationId": "+6281", "fireAt": "2024-01-02T08:00:00+07:00", "note": "call mom"}]


def test_append_keeps_order_and_ignores_duplicate_ids(store):
    first, second = _reminder("a"), _reminder("b")
    assert store.append(first)
    assert store.append(second)
    assert store.append(first)
    assert [r.note for r in store.load_all()] == ["a", "b"]


def test_remove_is_idempotent(store):
    r = _reminder()
    store.append(r)
    assert store.remove(r.id) is True
    assert store.remove(r.id) is False
    assert store.load_all() == []


def test_corrupt_record_reads_as_empty(store):
    store.path.parent.mkdir(parents=True, exist_ok=True)
    store.path.write_text("{not json")
    assert store.load_all() == []


def test_write_failure_is_logged_not_raised(tmp_path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    store = ReminderStore(blocker / "reminders.json")
    assert store.append(_reminder()) is False
    assert "not persisted" in caplog.text
