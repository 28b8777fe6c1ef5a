"""
模块职责：统一日志配置与结构化输出（控制台 + 按月文件）。
- configure_logging(): 根据环境变量设置日志等级，兼容 uvicorn。
- emit / emit_warn / emit_error: 输出结构化日志（dict -> JSON 一行），方便检索。
- 文件按自然月切分：LOG_DIR/combined-YYYY-MM.log，/logs 接口按月份下载。
"""
import logging, json, os, pathlib
from datetime import datetime


LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "true").lower() == "true"
LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_PREFIX = os.getenv("LOG_PREFIX", "combined")

_configured = False


def monthly_log_path(period: str, log_dir: str = None) -> pathlib.Path:
    """period 形如 2024-05。"""
    return pathlib.Path(log_dir or LOG_DIR) / f"{LOG_PREFIX}-{period}.log"


class MonthlyFileHandler(logging.FileHandler):
    """跨月时自动切换到新的 combined-YYYY-MM.log。"""

    def __init__(self, log_dir: str, encoding: str = "utf-8"):
        self.log_dir = log_dir
        self.period = datetime.now().strftime("%Y-%m")
        super().__init__(monthly_log_path(self.period, log_dir), encoding=encoding, delay=True)

    def emit(self, record: logging.LogRecord):
        period = datetime.now().strftime("%Y-%m")
        if period != self.period:
            self.acquire()
            try:
                if self.stream:
                    self.stream.close()
                    self.stream = None
                self.period = period
                self.baseFilename = os.path.abspath(monthly_log_path(period, self.log_dir))
            finally:
                self.release()
        super().emit(record)


def configure_logging():
    global _configured
    if _configured:
        return

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler()
    console.setLevel(getattr(logging, LEVEL, logging.INFO))
    console.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    ))
    root.addHandler(console)

    if LOG_TO_FILE:
        pathlib.Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
        fileh = MonthlyFileHandler(LOG_DIR)
        fileh.setLevel(getattr(logging, LEVEL, logging.INFO))
        # 文件里只写 message，本项目 message 是纯 JSON
        fileh.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(fileh)

    root.setLevel(getattr(logging, LEVEL, logging.INFO))

    # 合流 uvicorn 日志
    for ln in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(ln)
        lg.handlers = []
        lg.propagate = True

    _configured = True

_app_logger = logging.getLogger("app")

def _now_iso():
    return datetime.now().astimezone().isoformat(timespec="milliseconds")

def _log(level: int, event: str, /, **kwargs):
    rec = {"ts": _now_iso(), "level": logging.getLevelName(level), "event": event}
    for k, v in kwargs.items():
        # 与固定字段同名的业务字段加下划线前缀保留
        rec[f"_{k}" if k in rec else k] = v
    try:
        _app_logger.log(level, json.dumps(rec, ensure_ascii=False, default=str))
    except Exception:
        _app_logger.log(level, str(rec))


def emit(event: str, /, **kwargs):
    """
    结构化日志（INFO）。
    用法：emit("action_request", url=..., kind="d", username=...)
    """
    _log(logging.INFO, event, **kwargs)


def emit_warn(event: str, /, **kwargs):
    """业务失败 / 准入拒绝：不是系统故障，用 WARNING。"""
    _log(logging.WARNING, event, **kwargs)


def emit_error(event: str, /, **kwargs):
    """
    错误日志（level=ERROR）。
    用法：emit_error("action_fault", url=..., error=str(e))
    """
    _log(logging.ERROR, event, **kwargs)
