# app/api/reports.py
# -*- coding: utf-8 -*-
"""
日志与报表 API（不经过准入网关，不占用任何站点会话）
------------------------------------------------
职能：
- POST /logs：按月份（yyyy-mm）下载 combined-YYYY-MM.log
- POST /generate-excel：按日期区间导出当前 host 的交易记录（xlsx）

运行逻辑（/logs）：
1) date 缺失 → 400；格式不是 yyyy-mm → 400
2) 文件不存在 → 404
3) FileResponse 返回文件
"""
import io
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse, StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.models import Transaction
from app.infra.db import get_db
from app.infra.logger import emit, emit_error, monthly_log_path
from app.services.transactions import XLSX_MEDIA_TYPE, build_workbook, parse_day

router = APIRouter(tags=["reports"])

_PERIOD_RE = re.compile(r"[0-9]{4}-[0-9]{2}")


class LogsIn(BaseModel):
    date: Optional[str] = None


class ExcelIn(BaseModel):
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")


@router.post("/logs")
def download_logs(body: LogsIn):
    if not body.date:
        raise HTTPException(status_code=400, detail="Date is required in the request body.")
    if not _PERIOD_RE.fullmatch(body.date):
        raise HTTPException(status_code=400, detail="Invalid date format. Please use yyyy-mm.")

    path = monthly_log_path(body.date)
    if not path.exists():
        emit("logs_not_found", period=body.date)
        raise HTTPException(status_code=404, detail="Log file not found.")

    emit("logs_download", period=body.date)
    return FileResponse(path, media_type="text/plain", filename=path.name)


@router.post("/generate-excel")
def generate_excel(body: ExcelIn, request: Request, db: Session = Depends(get_db)):
    try:
        start, end = parse_day(body.start_date), parse_day(body.end_date)
    except ValueError:
        raise HTTPException(status_code=400, detail="startDate and endDate must be yyyy-mm-dd")
    if start > end:
        raise HTTPException(status_code=400, detail="startDate must not be after endDate")

    host = request.headers.get("host")
    try:
        rows = Transaction.between(db, start, end, host)
        buf = io.BytesIO()
        build_workbook(rows).save(buf)
    except Exception as e:
        emit_error("excel_failed", start=body.start_date, end=body.end_date, error=str(e))
        raise HTTPException(status_code=500, detail="Error generating Excel file")
    buf.seek(0)

    emit("excel_generated", start=body.start_date, end=body.end_date, host=host, rows=len(rows))
    filename = f"log-{body.start_date}-{body.end_date}.xlsx"
    return StreamingResponse(
        buf,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
