"""
模块职责：请求级日志中间件。
- 为每个请求生成 request_id，并写入响应头 x-request-id；
- request_start / request_end（含耗时、状态码、来源 host）；
- 4xx 记 WARNING（准入拒绝、业务失败不是系统故障），5xx 记 ERROR；
- 未处理异常输出 request_error，随后抛出让 FastAPI 处理。
"""
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from app.infra.logger import emit, emit_warn, emit_error


def _ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = str(uuid.uuid4())
        start = time.perf_counter()
        path = str(request.url.path)
        emit("request_start", request_id=rid, method=request.method, path=path,
             host=request.headers.get("host"))
        try:
            response: Response = await call_next(request)
        except Exception as e:
            emit_error("request_error", request_id=rid, method=request.method, path=path,
                       error=repr(e), duration_ms=_ms(start))
            raise

        status = response.status_code
        log = emit_error if status >= 500 else emit_warn if status >= 400 else emit
        log("request_end", request_id=rid, method=request.method, path=path,
            status_code=status, duration_ms=_ms(start))
        response.headers["x-request-id"] = rid
        return response
