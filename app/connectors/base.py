"""
模块职能：
- 定义后台面板连接器抽象（登录校验 + 自动化动作），统一返回结构。
- 定义浏览器抽象：为每个站点开一个页面、检查页面存活、进程退出时整体关闭。

函数/类：
- ActionResult：统一返回 {success, message, payload}。
- BaseBrowser：new_page / is_alive / close。
- BaseConnector：站点适配器基类（is_login / login / register / change_password /
  deposit / withdraw / lock_user），全部为 async，第一个参数是页面句柄。
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional


class ActionResult:
    def __init__(self, success: bool, message: str = "", payload: Any = None):
        self.success = success
        self.message = message
        self.payload = payload

    def to_dict(self) -> dict:
        return {"success": self.success, "message": self.message, "payload": self.payload}

    def __repr__(self) -> str:
        return f"ActionResult(success={self.success}, message={self.message!r})"


class BaseBrowser(ABC):
    async def start(self) -> None:
        return None

    @abstractmethod
    async def new_page(self) -> Any: ...
    @abstractmethod
    def is_alive(self, page: Any) -> bool: ...
    @abstractmethod
    async def close(self) -> None: ...


class BaseConnector(ABC):
    name: ClassVar[str]

    @abstractmethod
    async def is_login(self, page: Any, url: str) -> bool: ...
    @abstractmethod
    async def login(self, page: Any, url: str, username: str, password: str) -> bool: ...
    @abstractmethod
    async def register(self, page: Any, username: str) -> ActionResult: ...
    @abstractmethod
    async def change_password(self, page: Any, username: str, password: str) -> ActionResult: ...
    @abstractmethod
    async def deposit(self, page: Any, username: str, amount: str) -> ActionResult: ...
    @abstractmethod
    async def withdraw(self, page: Any, username: str, amount: str) -> ActionResult: ...
    @abstractmethod
    async def lock_user(self, page: Any, username: str) -> ActionResult: ...

    def browser(self) -> Optional[BaseBrowser]:
        """连接器自带的浏览器实现；返回 None 表示使用默认的 Playwright 浏览器。"""
        return None
