try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
from pathlib import Path

from _factories import NOW_MS, TOKEN, make_session
from lab_portal.clients.storage import MemoryStorage, SQLiteStorage
from lab_portal.services.session_store import SessionStore


def test_save_then_load_returns_the_same_fields(store: SessionStore) -> None:
    session = make_session()

    store.save(session, TOKEN, session.expires_at)
    record = store.load()

    assert record is not None
    assert json.loads(record.session_data) == session.model_dump()
    assert record.session_token == TOKEN
    assert record.session_expires == str(session.expires_at)


def test_load_returns_none_when_any_field_is_missing(storage: MemoryStorage, store: SessionStore) -> None:
    store.save(make_session(), TOKEN, NOW_MS)
    storage.delete_many(["session_token"])

    assert store.load() is None


def test_clear_is_idempotent(storage: MemoryStorage, store: SessionStore) -> None:
    storage.set_many({"unrelated": "keep-me"})
    store.save(make_session(), TOKEN, NOW_MS)

    store.clear()
    store.clear()

    assert store.load() is None
    assert storage.snapshot() == {"unrelated": "keep-me"}


def test_store_uses_configured_keys(settings) -> None:
    settings.session.data_key = "lab_data"
    storage = MemoryStorage()
    store = SessionStore(storage, settings.session)

    store.save("{}", TOKEN, "123")

    assert set(storage.snapshot()) == {"lab_data", "session_token", "session_expires"}
    assert store.keys[0] == "lab_data"


def test_sqlite_storage_persists_between_instances(tmp_path: Path, settings) -> None:
    db_path = tmp_path / "nested" / "client.db"
    first = SessionStore(SQLiteStorage(str(db_path)), settings.session)
    first.save(make_session(), TOKEN, NOW_MS)

    second = SessionStore(SQLiteStorage(str(db_path)), settings.session)
    record = second.load()
    assert record is not None
    assert record.session_expires == str(NOW_MS)

    second.clear()
    assert first.load() is None
