"""
模块职能：
- 交易记账与报表：写入 transactions 表；按日期区间导出 Excel（openpyxl）。

函数：
- create_transaction(db, outcome)：落库一条记录
- parse_day(value)：解析 yyyy-mm-dd，非法抛 ValueError
- build_workbook(rows)：生成 openpyxl Workbook

日志：
- txn_saved / txn_report_built
"""
from datetime import date, datetime
from typing import Iterable

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from sqlalchemy.orm import Session

from app.core.models import Transaction
from app.infra.logger import emit

KIND_LABELS = {
    "l": "login",
    "r": "register",
    "c": "change password",
    "d": "deposit",
    "w": "withdraw",
    "k": "lock user",
}
HEADERS = ["Time", "Site", "Action", "Username", "Amount", "Response (ms)", "Status", "Message", "Host"]
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def create_transaction(db: Session, outcome) -> Transaction:
    row = Transaction.record(
        db,
        url=outcome.url,
        kind=outcome.kind.value,
        username=outcome.username,
        amount=None if outcome.amount is None else str(outcome.amount),
        response_time_ms=outcome.elapsed_ms,
        message=outcome.message,
        status=outcome.success,
        host=outcome.host,
    )
    emit("txn_saved", txn_id=row.id, url=row.url, kind=row.kind, status=row.status)
    return row


def parse_day(value: str) -> date:
    return datetime.strptime(value or "", "%Y-%m-%d").date()


def build_workbook(rows: Iterable[Transaction]) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = "Transactions"

    ws.append(HEADERS)
    header_fill = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")
    for cell in ws[1]:
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")

    count = 0
    for r in rows:
        ws.append([
            r.created_at.strftime("%Y-%m-%d %H:%M:%S") if r.created_at else "",
            r.url,
            KIND_LABELS.get(r.kind, r.kind),
            r.username or "",
            r.amount or "",
            r.response_time_ms if r.response_time_ms is not None else "",
            "success" if r.status else "failed",
            r.message or "",
            r.host or "",
        ])
        count += 1

    for col, width in zip("ABCDEFGHI", (20, 32, 16, 18, 12, 14, 10, 48, 24)):
        ws.column_dimensions[col].width = width

    emit("txn_report_built", rows=count)
    return wb
