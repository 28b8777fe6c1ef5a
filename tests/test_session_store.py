# tests/test_session_store.py
from app.core.state_machine import TargetState
from app.services.sessions import SessionStore

URL = "https://panel.example.com"


def test_empty_store():
    store = SessionStore()
    assert not store.has(URL)
    assert store.get(URL) is None
    assert store.state_of(URL) is TargetState.NO_SESSION


def test_upsert_creates_then_merges():
    store = SessionStore()
    page = object()
    rec = store.upsert(URL, page=page, username="admin", password="secret")
    assert store.has(URL) and store.get(URL) is rec
    assert store.state_of(URL) is TargetState.IDLE

    # 只改 busy，页面与凭据保留
    store.upsert(URL, busy=True)
    assert rec.page is page
    assert rec.credentials() == {"username": "admin", "password": "secret"}
    assert store.state_of(URL) is TargetState.BUSY

    # 只改口令，用户名保留
    store.upsert(URL, password="changed")
    assert rec.credentials() == {"username": "admin", "password": "changed"}
    assert len(store) == 1


def test_credentials_are_not_kept_in_plaintext():
    store = SessionStore()
    rec = store.upsert(URL, username="admin", password="secret")
    assert "secret" not in rec.secret
    assert "secret" not in repr(rec)


def test_targets_are_case_and_scheme_sensitive():
    store = SessionStore()
    store.upsert(URL, busy=True)
    assert store.state_of("http://panel.example.com") is TargetState.NO_SESSION
    assert store.state_of("https://PANEL.example.com") is TargetState.NO_SESSION


def test_unknown_field_rejected():
    store = SessionStore()
    try:
        store.upsert(URL, colour="red")
    except ValueError as e:
        assert "colour" in str(e)
    else:
        raise AssertionError("expected ValueError")
    assert not store.has(URL)
