""""
模块职能：

定义 transactions 表：记录每一次经过网关的自动化动作（存款/取款/注册/改密/锁定/登录）

主要类型/方法：

Transaction：字段 url / kind / username / amount / response_time_ms / message / status / host

Transaction.record(db, ...)：写入一条记录

Transaction.between(db, start, end, host)：按日期区间（含首尾）与来源 host 查询"""

# app/core/models.py
from sqlalchemy.orm import declarative_base, Session
from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime
import uuid
from datetime import date, datetime, time
from typing import List, Optional


def _uuid() -> str: return str(uuid.uuid4())

Base = declarative_base()

class Transaction(Base):
    __tablename__ = "transactions"
    id = Column(String, primary_key=True, default=_uuid)
    url = Column(String, index=True, nullable=False)          # 站点 URL（target）
    kind = Column(String(1), nullable=False)                   # ActionKind 代码
    username = Column(String, nullable=True)
    amount = Column(String, nullable=True)                     # 保留请求原文，避免精度损失
    response_time_ms = Column(Integer, nullable=True)
    message = Column(Text, default="")
    status = Column(Boolean, nullable=False, default=False)
    host = Column(String, index=True, nullable=True)
    created_at = Column(DateTime, default=datetime.now, index=True)

    @staticmethod
    def record(db: Session, url: str, kind: str, username: Optional[str], amount: Optional[str],
               response_time_ms: Optional[int], message: str, status: bool, host: Optional[str]) -> "Transaction":
        obj = Transaction(url=url, kind=kind, username=username, amount=amount,
                          response_time_ms=response_time_ms, message=message or "",
                          status=status, host=host)
        db.add(obj); db.commit(); db.refresh(obj)
        return obj

    @staticmethod
    def between(db: Session, start: date, end: date, host: Optional[str] = None) -> List["Transaction"]:
        q = db.query(Transaction).filter(
            Transaction.created_at >= datetime.combine(start, time.min),
            Transaction.created_at <= datetime.combine(end, time.max),
        )
        if host: q = q.filter(Transaction.host == host)
        return q.order_by(Transaction.created_at.asc()).all()
