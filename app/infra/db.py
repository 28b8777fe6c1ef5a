# app/infra/db.py
""""模块职能：

读取 DATABASE_URL，创建 SQLAlchemy 引擎（transactions 记账库）

主要函数：

init_db()：启动时建表

get_db()：FastAPI 依赖，报表接口按请求取 Session

session_scope()：后台记账线程使用，提交或回滚后关闭"""

import os
from contextlib import contextmanager
from typing import Generator, Iterator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from app.core.models import Base

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./app.db")

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db():
    Base.metadata.create_all(bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
