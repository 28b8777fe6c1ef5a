"""
模块职能：
- 后台面板连接器（Playwright）：登录校验、登录、开户、改密、上分、下分、锁定。
- 页面路径与选择器全部来自环境变量 PANEL_*，换站点只改 .env。
- 每个动作：导航 → 填表 → 提交 → 读取提示框文字；出现错误提示即判定失败。

日志事件：
- connector_panel_login / connector_panel_action
"""
import os
import weakref
from typing import Dict, Optional

from playwright.async_api import Page, TimeoutError as PWTimeout

from app.connectors.base import ActionResult, BaseConnector
from app.core.constants import DEFAULT_PASSWORD
from app.infra.logger import emit

NAV_TIMEOUT_MS = int(os.getenv("PANEL_NAV_TIMEOUT_MS", "30000"))

PATHS = {
    "login": os.getenv("PANEL_LOGIN_PATH", "/login"),
    "register": os.getenv("PANEL_REGISTER_PATH", "/users/create"),
    "change_password": os.getenv("PANEL_CHANGEPASS_PATH", "/users/password"),
    "deposit": os.getenv("PANEL_DEPOSIT_PATH", "/users/deposit"),
    "withdraw": os.getenv("PANEL_WITHDRAW_PATH", "/users/withdraw"),
    "lock_user": os.getenv("PANEL_LOCK_PATH", "/users/lock"),
}

SEL = {
    "login_user": os.getenv("PANEL_SEL_LOGIN_USER", "input[name='username']"),
    "login_pass": os.getenv("PANEL_SEL_LOGIN_PASS", "input[type='password']"),
    "logged_in": os.getenv("PANEL_SEL_LOGGED_IN", "a[href*='logout'], .logout"),
    "username": os.getenv("PANEL_SEL_USERNAME", "input[name='username']"),
    "password": os.getenv("PANEL_SEL_PASSWORD", "input[name='password']"),
    "amount": os.getenv("PANEL_SEL_AMOUNT", "input[name='amount']"),
    "submit": os.getenv("PANEL_SEL_SUBMIT", "button[type='submit']"),
    "message": os.getenv("PANEL_SEL_MESSAGE", ".alert, .toast, .message"),
    "error": os.getenv("PANEL_SEL_ERROR", ".alert-danger, .toast-error, .error"),
}


def _join(url: str, path: str) -> str:
    return url.rstrip("/") + "/" + path.lstrip("/")


async def wait_idle(page: Page, timeout: int = 12000):
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout)
    except PWTimeout:
        pass


class PanelConnector(BaseConnector):
    name = "panel"

    def __init__(self):
        # page -> 站点根 URL；动作接口不带 url，按页面反查。页面被替换回收后条目自动消失
        self._origins: "weakref.WeakKeyDictionary[Page, str]" = weakref.WeakKeyDictionary()

    def _origin(self, page: Page) -> str:
        origin = self._origins.get(page)
        if origin is None:
            raise RuntimeError("page is not bound to a site, login first")
        return origin

    async def is_login(self, page: Page, url: str) -> bool:
        if not page.url.startswith(url.rstrip("/")):
            await page.goto(url, timeout=NAV_TIMEOUT_MS)
            await wait_idle(page)
        return await page.locator(SEL["logged_in"]).count() > 0

    async def login(self, page: Page, url: str, username: str, password: str) -> bool:
        await page.goto(_join(url, PATHS["login"]), timeout=NAV_TIMEOUT_MS)
        await page.locator(SEL["login_user"]).first.fill(username)
        await page.locator(SEL["login_pass"]).first.fill(password)
        await page.locator(SEL["submit"]).first.click()
        await wait_idle(page)
        ok = await page.locator(SEL["logged_in"]).count() > 0
        if ok:
            self._origins[page] = url
        emit("connector_panel_login", url=url, username=username, ok=ok)
        return ok

    async def _submit(self, page: Page, action: str, fields: Dict[str, str]) -> ActionResult:
        await page.goto(_join(self._origin(page), PATHS[action]), timeout=NAV_TIMEOUT_MS)
        await wait_idle(page)
        for key, value in fields.items():
            await page.locator(SEL[key]).first.fill(value)
        await page.locator(SEL["submit"]).first.click()
        await wait_idle(page)

        message = await self._read(page, SEL["error"])
        if message is not None:
            emit("connector_panel_action", action=action, ok=False, message=message)
            return ActionResult(False, message)
        message = await self._read(page, SEL["message"]) or "done"
        emit("connector_panel_action", action=action, ok=True, message=message)
        return ActionResult(True, message, {"username": fields.get("username")})

    async def _read(self, page: Page, selector: str) -> Optional[str]:
        loc = page.locator(selector)
        if not await loc.count():
            return None
        return (await loc.first.inner_text()).strip()

    async def register(self, page: Page, username: str) -> ActionResult:
        return await self._submit(page, "register", {"username": username, "password": DEFAULT_PASSWORD})

    async def change_password(self, page: Page, username: str, password: str) -> ActionResult:
        return await self._submit(page, "change_password", {"username": username, "password": password})

    async def deposit(self, page: Page, username: str, amount: str) -> ActionResult:
        return await self._submit(page, "deposit", {"username": username, "amount": str(amount)})

    async def withdraw(self, page: Page, username: str, amount: str) -> ActionResult:
        return await self._submit(page, "withdraw", {"username": username, "amount": str(amount)})

    async def lock_user(self, page: Page, username: str) -> ActionResult:
        return await self._submit(page, "lock_user", {"username": username})
