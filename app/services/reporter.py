"""
模块职能：
- 结果上报：每个经过网关的动作结束后记一条交易，并输出结构化日志。
- 发完即走：report() 只创建后台 task，不阻塞、也不影响 HTTP 响应；
  task 自己的失败通过 emit_error("report_failed") 记录。

类：
- Outcome：一次动作的结果（url / kind / username / amount / elapsed_ms / message / success / host）
- OutcomeReporter：report() / drain()
"""
from __future__ import annotations
import asyncio
from typing import Callable, Optional, Set

from app.core.constants import ActionKind
from app.infra.db import session_scope
from app.infra.logger import emit, emit_warn, emit_error
from app.services.transactions import create_transaction


class Outcome:
    def __init__(self, url: str, kind: ActionKind, username: Optional[str], success: bool,
                 message: str = "", amount: Optional[str] = None, elapsed_ms: Optional[int] = None,
                 host: Optional[str] = None, status_code: int = 200):
        self.url = url
        self.kind = kind
        self.username = username
        self.success = success
        self.message = message
        self.amount = amount
        self.elapsed_ms = elapsed_ms
        self.host = host
        self.status_code = status_code

    def log_fields(self) -> dict:
        return {
            "url": self.url, "kind": self.kind.value, "username": self.username,
            "amount": self.amount, "status": self.status_code, "message": self.message,
            "elapsed_ms": self.elapsed_ms,
        }


def _persist(outcome: Outcome):
    with session_scope() as db:
        create_transaction(db, outcome)


class OutcomeReporter:
    def __init__(self, sink: Callable[[Outcome], None] = _persist):
        self._sink = sink
        self._tasks: Set[asyncio.Task] = set()

    def report(self, outcome: Outcome) -> asyncio.Task:
        if outcome.success:
            emit("action_result", **outcome.log_fields())
        else:
            emit_warn("action_result", **outcome.log_fields())
        task = asyncio.get_running_loop().create_task(self._run(outcome))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, outcome: Outcome):
        try:
            await asyncio.to_thread(self._sink, outcome)
        except Exception as e:
            emit_error("report_failed", url=outcome.url, kind=outcome.kind.value, error=repr(e))

    async def drain(self):
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
