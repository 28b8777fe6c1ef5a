"""
模块职能：
- 会话仓库：target(URL) -> SessionRecord（页面句柄、凭据密文、busy 标记）。
- 只是被动的键值容器，不持有任何锁；互斥完全由 AdmissionGate 负责。
- 由 app.main 创建并注入 AdmissionGate，测试可以各自构造独立的仓库。

类：
- SessionRecord：单个站点的会话记录
- SessionStore：has / get / upsert / state_of
"""
from __future__ import annotations
from typing import Any, Dict, Iterator, Optional

from app.core.state_machine import TargetState
from app.services.secrets import seal_credentials, open_credentials


class SessionRecord:
    def __init__(self, target: str):
        self.target = target
        self.page: Any = None       # 浏览器页面，首次登录时创建，之后复用
        self.username: Optional[str] = None
        self.secret: Optional[str] = None   # 加密后的 {username, password}
        self.busy = False

    @property
    def has_credentials(self) -> bool:
        return self.secret is not None

    def credentials(self) -> Dict[str, str]:
        if self.secret is None:
            return {"username": "", "password": ""}
        return open_credentials(self.secret)

    def __repr__(self) -> str:
        return f"SessionRecord(target={self.target!r}, username={self.username!r}, busy={self.busy})"


class SessionStore:
    _FIELDS = {"page", "username", "password", "busy"}

    def __init__(self):
        self._records: Dict[str, SessionRecord] = {}

    def has(self, target: str) -> bool:
        return target in self._records

    def get(self, target: str) -> Optional[SessionRecord]:
        return self._records.get(target)

    def upsert(self, target: str, **patch) -> SessionRecord:
        """合并写入：只覆盖 patch 中给出的字段，不存在则新建。"""
        unknown = set(patch) - self._FIELDS
        if unknown:
            raise ValueError(f"unknown session fields: {sorted(unknown)}")
        rec = self._records.get(target)
        if rec is None:
            rec = self._records[target] = SessionRecord(target)
        if "page" in patch:
            rec.page = patch["page"]
        if "busy" in patch:
            rec.busy = bool(patch["busy"])
        if "username" in patch or "password" in patch:
            creds = rec.credentials()
            username = patch.get("username", creds["username"])
            password = patch.get("password", creds["password"])
            rec.username = username
            rec.secret = seal_credentials(username, password)
        return rec

    def state_of(self, target: str) -> TargetState:
        rec = self._records.get(target)
        if rec is None:
            return TargetState.NO_SESSION
        return TargetState.BUSY if rec.busy else TargetState.IDLE

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[SessionRecord]:
        return iter(list(self._records.values()))
