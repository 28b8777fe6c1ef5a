# tests/test_gate.py
import asyncio

import pytest

from app.core.errors import CredentialsChangedError, InvalidCredentialsError, TargetBusyError, UnknownTargetError
from app.core.state_machine import GateEvent, TargetState

URL = "https://panel-a.example.com"


async def _login(gate, username="admin", password="p"):
    return await gate.login(URL, username, password)


@pytest.mark.asyncio
async def test_action_without_session_is_unknown(gate, connector):
    with pytest.raises(UnknownTargetError):
        async with gate.admit(URL):
            pass
    assert gate.store.state_of(URL) is TargetState.NO_SESSION
    assert connector.calls == []


@pytest.mark.asyncio
async def test_first_login_opens_page_and_stores_credentials(gate, browser):
    res = await _login(gate)
    assert not res.already
    rec = gate.store.get(URL)
    assert rec.page is browser.pages[0]
    assert rec.credentials() == {"username": "admin", "password": "p"}
    assert gate.store.state_of(URL) is TargetState.IDLE


@pytest.mark.asyncio
async def test_second_login_is_already_available(gate, connector, browser):
    await _login(gate)
    res = await _login(gate)
    assert res.already
    assert connector.count("login") == 1
    assert len(browser.pages) == 1
    assert gate.store.state_of(URL) is TargetState.IDLE


@pytest.mark.asyncio
async def test_failed_login_keeps_session_unauthenticated(gate, connector):
    await _login(gate, password="p")
    other = "https://panel-b.example.com"
    with pytest.raises(InvalidCredentialsError):
        await gate.login(other, "admin", "wrong")
    assert gate.store.state_of(other) is TargetState.IDLE
    assert gate.store.get(other).credentials()["password"] == "wrong"


@pytest.mark.asyncio
async def test_busy_target_rejects_action_and_login(gate):
    await _login(gate)
    lease = gate.try_acquire(URL, GateEvent.ACTION)
    with pytest.raises(TargetBusyError):
        gate.try_acquire(URL, GateEvent.ACTION)
    with pytest.raises(TargetBusyError):
        await _login(gate)
    lease.release()
    assert gate.store.state_of(URL) is TargetState.IDLE


@pytest.mark.asyncio
async def test_release_runs_once(gate):
    await _login(gate)
    lease = gate.try_acquire(URL, GateEvent.ACTION)
    lease.release()
    lease.release()
    assert gate.store.state_of(URL) is TargetState.IDLE
    # 第二个 lease 不受上一个 lease 的重复 release 影响
    lease2 = gate.try_acquire(URL, GateEvent.ACTION)
    lease.release()
    assert gate.store.state_of(URL) is TargetState.BUSY
    lease2.release()


@pytest.mark.asyncio
async def test_admit_releases_on_exception(gate):
    await _login(gate)
    with pytest.raises(RuntimeError):
        async with gate.admit(URL):
            assert gate.store.state_of(URL) is TargetState.BUSY
            raise RuntimeError("navigation timeout")
    assert gate.store.state_of(URL) is TargetState.IDLE


@pytest.mark.asyncio
async def test_authenticated_session_is_forwarded_without_login(gate, connector):
    await _login(gate)
    connector.calls.clear()
    async with gate.admit(URL) as rec:
        assert rec.target == URL
    assert connector.calls == ["is_login"]


@pytest.mark.asyncio
async def test_expired_session_is_repaired_before_forwarding(gate, connector):
    await _login(gate)
    connector.panel.expire_sessions()
    connector.calls.clear()
    async with gate.admit(URL) as rec:
        assert gate.store.state_of(URL) is TargetState.BUSY
        assert await connector.is_login(rec.page, URL)
    assert connector.calls[:2] == ["is_login", "login"]
    assert gate.store.state_of(URL) is TargetState.IDLE


@pytest.mark.asyncio
async def test_repair_failure_rejects_and_releases(gate, connector):
    await _login(gate)
    connector.panel.set_admin_password("admin", "rotated")
    reached = False
    with pytest.raises(CredentialsChangedError):
        async with gate.admit(URL):
            reached = True
    assert not reached
    assert gate.store.state_of(URL) is TargetState.IDLE


@pytest.mark.asyncio
async def test_repair_exception_is_credentials_error(gate, connector):
    await _login(gate)
    connector.panel.expire_sessions()
    connector.fail_with["login"] = TimeoutError("login page timeout")
    with pytest.raises(CredentialsChangedError) as ei:
        async with gate.admit(URL):
            pass
    assert "timeout" in ei.value.detail
    assert gate.store.state_of(URL) is TargetState.IDLE


@pytest.mark.asyncio
async def test_verifier_fault_propagates_and_releases(gate, connector):
    await _login(gate)
    connector.fail_with["is_login"] = RuntimeError("browser crashed")
    with pytest.raises(RuntimeError):
        async with gate.admit(URL):
            pass
    assert gate.store.state_of(URL) is TargetState.IDLE


@pytest.mark.asyncio
async def test_closed_page_is_replaced_and_relogged(gate, connector, browser):
    await _login(gate)
    old = gate.store.get(URL).page
    old.close()
    connector.calls.clear()
    async with gate.admit(URL) as rec:
        assert rec.page is not old
    assert len(browser.pages) == 2
    # 新页面必然未登录，直接补登，不再询问 is_login
    assert connector.calls == ["login"]


@pytest.mark.asyncio
async def test_targets_are_independent(gate):
    other = "https://panel-b.example.com"
    await _login(gate)
    await gate.login(other, "admin", "p")
    async with gate.admit(URL):
        async with gate.admit(other):
            assert gate.store.state_of(URL) is TargetState.BUSY
            assert gate.store.state_of(other) is TargetState.BUSY


@pytest.mark.asyncio
async def test_concurrent_admissions_only_one_proceeds(gate, connector):
    await _login(gate)
    connector.delay = 0.05
    entered = []

    async def attempt(i):
        try:
            async with gate.admit(URL):
                entered.append(i)
                await asyncio.sleep(0.05)
            return "ok"
        except TargetBusyError:
            return "busy"

    results = await asyncio.gather(*(attempt(i) for i in range(5)))
    assert sorted(results) == ["busy"] * 4 + ["ok"]
    assert len(entered) == 1
    assert gate.store.state_of(URL) is TargetState.IDLE


@pytest.mark.asyncio
async def test_shutdown_closes_every_page(gate, browser):
    await _login(gate)
    await gate.login("https://panel-b.example.com", "admin", "p")
    await gate.shutdown()
    assert browser.closed
    assert all(p.closed for p in browser.pages)


@pytest.mark.asyncio
async def test_admission_log_failure_does_not_leave_target_busy(gate, monkeypatch):
    await _login(gate)

    def broken_emit(event, /, **kwargs):
        raise RuntimeError("log sink down")

    monkeypatch.setattr("app.services.gate.emit", broken_emit)
    with pytest.raises(RuntimeError):
        async with gate.admit(URL):
            pass
    assert gate.store.state_of(URL) is TargetState.IDLE

    monkeypatch.undo()
    async with gate.admit(URL):
        assert gate.store.state_of(URL) is TargetState.BUSY
    assert gate.store.state_of(URL) is TargetState.IDLE


@pytest.mark.asyncio
async def test_store_failure_during_acquire_does_not_leave_target_busy(gate, monkeypatch):
    await _login(gate)
    real_upsert = gate.store.upsert

    def broken_upsert(target, **patch):
        if patch.get("busy"):
            raise RuntimeError("store unavailable")
        return real_upsert(target, **patch)

    monkeypatch.setattr(gate.store, "upsert", broken_upsert)
    with pytest.raises(RuntimeError):
        gate.try_acquire(URL, GateEvent.ACTION)
    assert gate.store.state_of(URL) is TargetState.IDLE


@pytest.mark.asyncio
async def test_admit_and_release_log_the_gate_event(gate, monkeypatch):
    seen = []
    monkeypatch.setattr("app.services.gate.emit", lambda event, /, **kw: seen.append((event, kw)))
    await _login(gate)
    async with gate.admit(URL):
        pass
    admits = [kw for ev, kw in seen if ev == "gate_admit"]
    assert [kw["gate_event"] for kw in admits] == ["LOGIN", "ACTION"]
    assert gate.store.state_of(URL) is TargetState.IDLE
