# app/api/pages.py
"""静态表单页：/credentials（添加站点）、/details（下载日志/报表）。不需要会话。"""
from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse, PlainTextResponse

PUBLIC_DIR = Path(__file__).resolve().parents[2] / "public"

router = APIRouter(tags=["pages"])


@router.get("/", response_class=PlainTextResponse)
def index():
    return "server up and running"


@router.get("/credentials")
def credentials_page():
    return FileResponse(PUBLIC_DIR / "addsite.html", media_type="text/html")


@router.get("/details")
def details_page():
    return FileResponse(PUBLIC_DIR / "downloadlogs.html", media_type="text/html")
