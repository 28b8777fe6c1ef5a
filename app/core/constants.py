# app/core/constants.py
import os
from enum import Enum

DEFAULT_PASSWORD = os.getenv("DEFAULT_PASSWORD", "Abc123456")


class ActionKind(str, Enum):
    """交易记录里的一字母动作代码。"""
    LOGIN = "l"
    REGISTER = "r"
    CHANGE_PASSWORD = "c"
    DEPOSIT = "d"
    WITHDRAW = "w"
    LOCK_USER = "k"
