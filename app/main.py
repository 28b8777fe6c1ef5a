"""
应用入口：
- 加载 .env（先 .env.example 作默认，再用 .env 覆盖）
- create_app()：组装 SessionStore → AdmissionGate → OutcomeReporter，挂到 app.state
- lifespan 启动阶段：配置日志 → 打印 logger_config → 初始化数据库 → 启动浏览器
- lifespan 关闭阶段：等待上报任务 → 一次性关闭浏览器（所有站点页面）
- 装载请求日志中间件、CORS、静态文件、路由；GateError 统一转 JSON，入参校验失败转 400
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# 1) 先加载 .env，务必在导入 logger 之前
ROOT = Path(__file__).resolve().parents[1]
ENV = ROOT / ".env"
ENV_EXAMPLE = ROOT / ".env.example"
if ENV_EXAMPLE.exists():
    load_dotenv(ENV_EXAMPLE, override=False)
if ENV.exists():
    load_dotenv(ENV, override=True)

# 2) 正常导入
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from app.middleware.logging import RequestLoggingMiddleware
from app.infra.logger import configure_logging, emit, emit_warn, LOG_TO_FILE, LOG_DIR, LEVEL
from app.infra.db import init_db
from app.api import actions as actions_api
from app.api import reports as reports_api
from app.api import pages as pages_api
from app.connectors.base import BaseBrowser, BaseConnector
from app.connectors.registry import get_connector
from app.core.errors import GateError
from app.services.gate import AdmissionGate
from app.services.reporter import OutcomeReporter
from app.services.sessions import SessionStore

ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()]
PORT = int(os.getenv("PORT", "5000"))


def _default_browser(connector: BaseConnector) -> BaseBrowser:
    browser = connector.browser()
    if browser is None:
        from app.connectors.browser import PlaywrightBrowser
        browser = PlaywrightBrowser()
    return browser


def create_app(
    connector: Optional[BaseConnector] = None,
    browser: Optional[BaseBrowser] = None,
    store: Optional[SessionStore] = None,
    reporter: Optional[OutcomeReporter] = None,
) -> FastAPI:
    connector = connector or get_connector()()
    browser = browser or _default_browser(connector)
    gate = AdmissionGate(store or SessionStore(), connector, browser)
    reporter = reporter or OutcomeReporter()

    # 3) lifespan：替代 on_event（startup/shutdown）
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        emit("logger_config", to_file=LOG_TO_FILE, dir=LOG_DIR, log_level=LEVEL)
        init_db()
        emit("db_init_done")
        await browser.start()
        emit("app_ready", connector=connector.name, port=PORT)
        yield
        await reporter.drain()
        await gate.shutdown()
        emit("app_shutdown")

    app = FastAPI(title="Admin panel automation gateway", lifespan=lifespan)
    app.state.gate = gate
    app.state.reporter = reporter

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        allow_credentials=False,
    )

    @app.exception_handler(GateError)
    async def gate_error_handler(request: Request, exc: GateError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})

    # 入参缺失或类型不对统一按 400 返回
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        emit_warn("request_invalid", path=request.url.path, errors=exc.errors())
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors()), "code": "invalid_request"})

    @app.get("/health")
    def health():
        return {"ok": True, "sessions": len(gate.store)}

    # 路由
    app.include_router(pages_api.router)
    app.include_router(actions_api.router)
    app.include_router(reports_api.router)
    app.mount("/static", StaticFiles(directory=pages_api.PUBLIC_DIR), name="static")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=os.getenv("HOST", "0.0.0.0"), port=PORT)
