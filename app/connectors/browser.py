"""
模块职能：
- Playwright 无头 Chromium：进程启动时 launch 一次，每个站点独占一个页面；
  进程退出时 close() 一次性释放全部页面。

日志事件：
- browser_launch / browser_new_page / browser_close
"""
import os
from typing import Any, Optional

from playwright.async_api import async_playwright, Browser, Page, Playwright

from app.connectors.base import BaseBrowser
from app.infra.logger import emit

HEADLESS = os.getenv("BROWSER_HEADLESS", "true").lower() == "true"
EXECUTABLE_PATH = os.getenv("BROWSER_EXECUTABLE_PATH") or None
LAUNCH_TIMEOUT_MS = int(os.getenv("BROWSER_TIMEOUT_MS", "120000"))
VIEWPORT = {"width": 1600, "height": 900}
LAUNCH_ARGS = [
    "--disable-setuid-sandbox",
    "--no-sandbox",
    "--no-zygote",
    "--disable-gpu",
]


class PlaywrightBrowser(BaseBrowser):
    def __init__(self):
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def start(self) -> None:
        if self._browser is not None:
            return
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=HEADLESS,
            executable_path=EXECUTABLE_PATH,
            args=LAUNCH_ARGS,
            timeout=LAUNCH_TIMEOUT_MS,
        )
        emit("browser_launch", headless=HEADLESS, executable=EXECUTABLE_PATH or "bundled")

    async def new_page(self) -> Page:
        if self._browser is None:
            await self.start()
        page = await self._browser.new_page(viewport=VIEWPORT)
        emit("browser_new_page")
        return page

    def is_alive(self, page: Any) -> bool:
        return page is not None and not page.is_closed() and bool(self._browser and self._browser.is_connected())

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        emit("browser_close")
