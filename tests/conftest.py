# tests/conftest.py
# 先设环境变量，再导入 app（engine / logger 在导入时读取环境）
import os, time, tempfile
_tmp = tempfile.mkdtemp(prefix="gate_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp}/pytest_{int(time.time())}.db"
os.environ["LOG_TO_FILE"] = "false"
os.environ["LOG_DIR"] = os.path.join(_tmp, "logs")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["CONNECTOR"] = "example"
os.environ.setdefault("SECRET_KEY", "test-secret")

import asyncio
import pytest

from app.connectors.example_site.client import ExampleBrowser, ExampleConnector, ExamplePanel
from app.infra.db import init_db
from app.services.gate import AdmissionGate
from app.services.sessions import SessionStore

RECORDED = ("is_login", "login", "register", "change_password", "deposit", "withdraw", "lock_user")


class RecordingConnector(ExampleConnector):
    """示例连接器 + 调用记录（calls 记动作名，args 记参数）；fail_with[name] 让某个动作抛异常，hold 让动作挂起。"""

    def __init__(self, panel=None, delay: float = 0):
        super().__init__(panel or ExamplePanel(), delay=delay)
        self.calls = []
        self.args = []
        self.fail_with = {}
        self.hold = None

    def count(self, name: str) -> int:
        return self.calls.count(name)


def _recorded(name):
    async def method(self, *args):
        self.calls.append(name)
        self.args.append((name, args))
        if name in self.fail_with:
            raise self.fail_with[name]
        if self.hold is not None and name not in ("is_login", "login"):
            await self.hold.wait()
        return await getattr(ExampleConnector, name)(self, *args)
    method.__name__ = name
    return method


for _name in RECORDED:
    setattr(RecordingConnector, _name, _recorded(_name))


@pytest.fixture(scope="session", autouse=True)
def _schema():
    init_db()
    yield


@pytest.fixture
def connector():
    return RecordingConnector()


@pytest.fixture
def browser():
    return ExampleBrowser()


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def gate(store, connector, browser):
    return AdmissionGate(store, connector, browser)
