# app/core/validators.py
"""金额校验：纯函数，无副作用；不合法的金额永远不会到达 connector。"""
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

_AMOUNT_RE = re.compile(r"[0-9]{1,12}(\.[0-9]{1,2})?")


def normalize_amount(value) -> Optional[str]:
    """合法则返回交给 connector 的金额文本（去掉首尾空白），否则 None。"""
    # bool 是 int 的子类，需先排除
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        value = repr(value)
    text = str(value).strip()
    if not _AMOUNT_RE.fullmatch(text):
        return None
    try:
        return text if Decimal(text) > 0 else None
    except InvalidOperation:
        return None


def is_valid_amount(value) -> bool:
    return normalize_amount(value) is not None
