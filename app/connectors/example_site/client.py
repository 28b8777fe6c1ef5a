"""
模块职能：
- “示例站点”连接器：内存里模拟一个后台面板（管理员、玩家、余额、锁定）。
- 不依赖浏览器和外网，便于本地端到端打通与测试（CONNECTOR=example）。

类：
- ExamplePanel：面板状态；expire_sessions() 模拟登录过期，set_admin_password() 模拟站点改密。
- ExamplePage / ExampleBrowser：页面句柄与“浏览器”。
- ExampleConnector：实现 BaseConnector 全部动作。

日志事件：
- connector_example_login_ok / connector_example_login_failed / connector_example_action
"""
import asyncio
import itertools
import os
from decimal import Decimal
from typing import Dict, Optional

from app.connectors.base import ActionResult, BaseBrowser, BaseConnector
from app.core.constants import DEFAULT_PASSWORD
from app.infra.logger import emit

ACTION_DELAY = int(os.getenv("EXAMPLE_ACTION_DELAY_MS", "0")) / 1000


class ExamplePanel:
    def __init__(self):
        self.admins: Dict[str, str] = {}
        self.users: Dict[str, dict] = {}
        self.generation = 0   # 自增即令所有已登录页面失效

    def set_admin_password(self, username: str, password: str):
        self.admins[username] = password
        self.expire_sessions()

    def expire_sessions(self):
        self.generation += 1


class ExamplePage:
    _ids = itertools.count(1)

    def __init__(self):
        self.id = next(self._ids)
        self.url: Optional[str] = None
        self.admin: Optional[str] = None
        self.generation = -1
        self.closed = False

    def close(self):
        self.closed = True


class ExampleBrowser(BaseBrowser):
    def __init__(self):
        self.pages = []
        self.closed = False

    async def new_page(self) -> ExamplePage:
        page = ExamplePage()
        self.pages.append(page)
        return page

    def is_alive(self, page) -> bool:
        return page is not None and not page.closed and not self.closed

    async def close(self) -> None:
        for page in self.pages:
            page.close()
        self.closed = True


class ExampleConnector(BaseConnector):
    name = "example"

    def __init__(self, panel: Optional[ExamplePanel] = None, delay: float = ACTION_DELAY):
        self.panel = panel or ExamplePanel()
        self.delay = delay

    def browser(self) -> BaseBrowser:
        return ExampleBrowser()

    async def _pause(self):
        await asyncio.sleep(self.delay)

    async def is_login(self, page: ExamplePage, url: str) -> bool:
        await self._pause()
        return (page.url == url and page.admin is not None
                and page.generation == self.panel.generation)

    async def login(self, page: ExamplePage, url: str, username: str, password: str) -> bool:
        await self._pause()
        # 首次出现的管理员以本次口令开户，之后必须一致
        expected = self.panel.admins.setdefault(username, password)
        if not username or expected != password:
            emit("connector_example_login_failed", url=url, username=username)
            return False
        page.url, page.admin, page.generation = url, username, self.panel.generation
        emit("connector_example_login_ok", url=url, username=username)
        return True

    async def register(self, page, username: str) -> ActionResult:
        await self._pause()
        if username in self.panel.users:
            return ActionResult(False, f"user {username} already exists")
        self.panel.users[username] = {"password": DEFAULT_PASSWORD, "balance": Decimal("0"), "locked": False}
        emit("connector_example_action", action="register", username=username)
        return ActionResult(True, f"user {username} created", {"username": username})

    async def change_password(self, page, username: str, password: str) -> ActionResult:
        await self._pause()
        user = self.panel.users.get(username)
        if user is None:
            return ActionResult(False, f"user {username} not found")
        user["password"] = password
        emit("connector_example_action", action="change_password", username=username)
        return ActionResult(True, "password changed")

    async def deposit(self, page, username: str, amount: str) -> ActionResult:
        await self._pause()
        user = self.panel.users.get(username)
        if user is None:
            return ActionResult(False, f"user {username} not found")
        if user["locked"]:
            return ActionResult(False, f"user {username} is locked")
        user["balance"] += Decimal(str(amount))
        emit("connector_example_action", action="deposit", username=username, amount=str(amount))
        return ActionResult(True, "deposit done", {"balance": str(user["balance"])})

    async def withdraw(self, page, username: str, amount: str) -> ActionResult:
        await self._pause()
        user = self.panel.users.get(username)
        if user is None:
            return ActionResult(False, f"user {username} not found")
        if user["locked"]:
            return ActionResult(False, f"user {username} is locked")
        amount = Decimal(str(amount))
        if user["balance"] < amount:
            return ActionResult(False, "insufficient balance", {"balance": str(user["balance"])})
        user["balance"] -= amount
        emit("connector_example_action", action="withdraw", username=username, amount=str(amount))
        return ActionResult(True, "withdraw done", {"balance": str(user["balance"])})

    async def lock_user(self, page, username: str) -> ActionResult:
        await self._pause()
        user = self.panel.users.get(username)
        if user is None:
            return ActionResult(False, f"user {username} not found")
        user["locked"] = True
        emit("connector_example_action", action="lock_user", username=username)
        return ActionResult(True, f"user {username} locked")
