# app/core/errors.py
"""
网关错误分类（与 HTTP 状态码一一对应）：
- UnknownTargetError：站点未建立会话 → 404
- TargetBusyError：站点正在执行其他动作 → 429
- CredentialsChangedError：修复登录被站点拒绝 → 400
- InvalidCredentialsError：/login 登录失败 → 400

app.main 注册统一的 exception handler，输出 {"detail", "code"}。
"""


class GateError(Exception):
    status_code = 500
    code = "gate_error"

    def __init__(self, target: str, detail: str = ""):
        super().__init__(detail or self.code)
        self.target = target
        self.detail = detail or self.code


class UnknownTargetError(GateError):
    status_code = 404
    code = "unknown_target"

    def __init__(self, target: str):
        super().__init__(target, "admin missing, login to continue")


class TargetBusyError(GateError):
    status_code = 429
    code = "target_busy"

    def __init__(self, target: str):
        super().__init__(target, "the site is busy")


class CredentialsChangedError(GateError):
    status_code = 400
    code = "credentials_changed"

    def __init__(self, target: str, detail: str = ""):
        super().__init__(target, detail or "admin updated login again")


class InvalidCredentialsError(GateError):
    status_code = 400
    code = "invalid_credentials"


class ExecutorFaultError(GateError):
    status_code = 500
    code = "executor_fault"

    def __init__(self, target: str):
        super().__init__(target, "Internal server error")
