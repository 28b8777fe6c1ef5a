"""
模块职能：
- 准入网关：保证同一站点（target URL）同一时刻只有一个自动化动作在操作它的页面。
- 动作前校验登录态；失效则用已保存的凭据补登（repair-login），成功才放行。
- 繁忙直接拒绝（429），不排队；未建立会话拒绝（404）；补登失败拒绝（400）。

状态迁移见 app.core.state_machine：NO_SESSION / IDLE / BUSY。

主要类：
- Lease：一次准入的释放句柄，release() 只生效一次。
- AdmissionGate：
  - try_acquire(target, event)：检查并置 busy，单次原子决策（期间没有 await）
  - admit(target)：async with 用法，校验/补登后交出 SessionRecord，退出时必定释放
  - login(target, username, password)：/login 的专用流程
  - shutdown()：一次性关闭浏览器（所有页面）

日志事件：
- gate_admit / gate_reject_busy / gate_reject_unknown / gate_release
- session_page_opened / session_page_replaced / session_repair_login / session_repair_failed
- session_login_ok / session_login_failed / session_login_reuse
"""
from __future__ import annotations
import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator

from app.connectors.base import BaseBrowser, BaseConnector
from app.core.errors import (
    CredentialsChangedError, InvalidCredentialsError, TargetBusyError, UnknownTargetError,
)
from app.core.state_machine import Decision, GateEvent, transit
from app.infra.logger import emit, emit_warn, emit_error
from app.services.sessions import SessionRecord, SessionStore


class Lease:
    def __init__(self, gate: "AdmissionGate", record: SessionRecord):
        self._gate = gate
        self.record = record
        self.released = False

    def release(self):
        if self.released:
            return
        self.released = True
        self._gate._release(self.record)


class LoginOutcome:
    def __init__(self, target: str, already: bool, message: str):
        self.target = target
        self.already = already
        self.message = message


class AdmissionGate:
    def __init__(self, store: SessionStore, connector: BaseConnector, browser: BaseBrowser):
        self.store = store
        self.connector = connector
        self.browser = browser
        # 检查 busy 与置 busy 必须是同一个决策；锁内不允许 await
        self._mutex = threading.Lock()

    # —— 准入 / 释放 —— #
    def try_acquire(self, target: str, event: GateEvent) -> Lease:
        with self._mutex:
            decision, _ = transit(self.store.state_of(target), event)
            if decision is Decision.REJECT_BUSY:
                emit_warn("gate_reject_busy", url=target, gate_event=event.value)
                raise TargetBusyError(target)
            if decision is Decision.REJECT_UNKNOWN:
                emit_warn("gate_reject_unknown", url=target)
                raise UnknownTargetError(target)
            emit("gate_admit", url=target, gate_event=event.value)
            # 置 busy 之后到交出 Lease 之间不能再有可能抛错的调用
            return Lease(self, self.store.upsert(target, busy=True))

    def _release(self, record: SessionRecord):
        with self._mutex:
            transit(self.store.state_of(record.target), GateEvent.RELEASE)
            self.store.upsert(record.target, busy=False)
        emit("gate_release", url=record.target)

    # —— 页面与登录态 —— #
    async def _ensure_page(self, record: SessionRecord) -> bool:
        """页面不可用时新开一个；返回 True 表示是新页面（必然未登录）。"""
        if record.page is not None and self.browser.is_alive(record.page):
            return False
        replaced = record.page is not None
        self.store.upsert(record.target, page=await self.browser.new_page())
        if replaced:
            emit_warn("session_page_replaced", url=record.target)
        else:
            emit("session_page_opened", url=record.target)
        return True

    async def _verify(self, record: SessionRecord):
        fresh = await self._ensure_page(record)
        if not fresh and await self.connector.is_login(record.page, record.target):
            return

        emit("session_repair_login", url=record.target, username=record.username)
        creds = record.credentials()
        try:
            ok = await self.connector.login(record.page, record.target, creds["username"], creds["password"])
        except Exception as e:
            emit_error("session_repair_failed", url=record.target, error=str(e))
            raise CredentialsChangedError(record.target, str(e)) from e
        if not ok:
            emit_warn("session_repair_failed", url=record.target, username=record.username)
            raise CredentialsChangedError(record.target)

    @asynccontextmanager
    async def admit(self, target: str) -> AsyncIterator[SessionRecord]:
        lease = self.try_acquire(target, GateEvent.ACTION)
        try:
            await self._verify(lease.record)
            yield lease.record
        finally:
            lease.release()

    async def login(self, target: str, username: str, password: str) -> LoginOutcome:
        lease = self.try_acquire(target, GateEvent.LOGIN)
        record = lease.record
        try:
            fresh = await self._ensure_page(record)
            if not fresh and await self.connector.is_login(record.page, target):
                emit("session_login_reuse", url=target)
                return LoginOutcome(target, True, f"login already available for url: {target}")

            self.store.upsert(target, username=username, password=password)
            try:
                ok = await self.connector.login(record.page, target, username, password)
            except Exception as e:
                emit_error("session_login_failed", url=target, username=username, error=str(e))
                raise InvalidCredentialsError(target, str(e)) from e
            if not ok:
                emit_warn("session_login_failed", url=target, username=username)
                raise InvalidCredentialsError(target, "invalid credentials")
            emit("session_login_ok", url=target, username=username)
            return LoginOutcome(target, False, f"login success to url {target}")
        finally:
            lease.release()

    async def shutdown(self):
        await self.browser.close()
        emit("gate_shutdown", sessions=len(self.store))
