# app/api/actions.py
# -*- coding: utf-8 -*-
"""
自动化动作 API（经过准入网关）
------------------------------------
职能：
- /login：建立或复用站点会话（网关专用流程）
- /register /changepass /deposit /withdraw /lockuser：先过 AdmissionGate.admit()，
  再调用 connector 对应动作

引用库说明：
- FastAPI: APIRouter / Depends / Request
- Pydantic: 入参模型
- 项目内模块：
  - app.services.gate.AdmissionGate：准入、补登、释放
  - app.services.reporter.OutcomeReporter：结果上报（后台 task，不阻塞响应）
  - app.core.validators.normalize_amount：金额预校验，合法金额去空白后交给 connector
  - app.infra.logger.emit / emit_error：结构化日志

运行逻辑（一次动作）：
1) 金额类动作先校验金额，不合法直接 400（不占用站点、不计时、不调用 connector）
2) gate.admit(url)：未登录过 → 404；繁忙 → 429；登录失效且补登失败 → 400
3) 计时调用 connector 动作；success → 200，否则 400（透传 connector 的 message）
4) connector 抛异常 → 500
5) 无论结果如何，admit 退出时释放 busy；被准入的请求都会上报一条结果
"""
import time
from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from app.api.deps.runtime import get_gate, get_reporter
from app.connectors.base import ActionResult
from app.core.constants import ActionKind, DEFAULT_PASSWORD
from app.core.errors import CredentialsChangedError, ExecutorFaultError, GateError, InvalidCredentialsError
from app.core.validators import normalize_amount
from app.infra.logger import emit, emit_error, emit_warn
from app.services.gate import AdmissionGate
from app.services.reporter import Outcome, OutcomeReporter

router = APIRouter(tags=["actions"])


class LoginIn(BaseModel):
    url: str
    username: str
    password: str


class UserIn(BaseModel):
    url: str
    username: str


class ChangePassIn(UserIn):
    model_config = ConfigDict(populate_by_name=True)

    password: str = Field(alias="pass")


class AmountIn(UserIn):
    amount: Any = None   # 原样接收，交给 normalize_amount 判断


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


async def _perform(
    request: Request,
    gate: AdmissionGate,
    reporter: OutcomeReporter,
    url: str,
    kind: ActionKind,
    username: str,
    run: Callable[[Any], Awaitable[ActionResult]],
    amount: Optional[str] = None,
) -> ActionResult:
    host = request.headers.get("host")
    emit("action_request", url=url, kind=kind.value, username=username, amount=amount)
    outcome = None
    elapsed = None
    try:
        async with gate.admit(url) as record:
            start = time.perf_counter()
            try:
                result = await run(record.page)
            finally:
                elapsed = _elapsed_ms(start)
    except CredentialsChangedError as e:
        outcome = Outcome(url, kind, username, False, e.detail, amount, elapsed, host, e.status_code)
        raise
    except GateError:
        # 404 / 429：未被准入，不上报
        raise
    except Exception as e:
        emit_error("action_fault", url=url, kind=kind.value, username=username, error=str(e))
        outcome = Outcome(url, kind, username, False, str(e), amount, elapsed, host, 500)
        raise ExecutorFaultError(url) from e
    else:
        outcome = Outcome(url, kind, username, result.success, result.message, amount, elapsed, host,
                          200 if result.success else 400)
        return result
    finally:
        if outcome is not None:
            reporter.report(outcome)


@router.post("/login")
async def login(
    body: LoginIn,
    request: Request,
    gate: AdmissionGate = Depends(get_gate),
    reporter: OutcomeReporter = Depends(get_reporter),
):
    host = request.headers.get("host")
    start = time.perf_counter()
    try:
        res = await gate.login(body.url, body.username, body.password)
    except InvalidCredentialsError as e:
        reporter.report(Outcome(body.url, ActionKind.LOGIN, body.username, False, e.detail,
                                elapsed_ms=_elapsed_ms(start), host=host, status_code=400))
        raise
    except GateError:
        raise
    except Exception as e:
        emit_error("action_fault", url=body.url, kind=ActionKind.LOGIN.value, error=str(e))
        reporter.report(Outcome(body.url, ActionKind.LOGIN, body.username, False, str(e),
                                elapsed_ms=_elapsed_ms(start), host=host, status_code=500))
        raise ExecutorFaultError(body.url) from e

    if not res.already:
        reporter.report(Outcome(body.url, ActionKind.LOGIN, body.username, True, res.message,
                                elapsed_ms=_elapsed_ms(start), host=host))
    return {"message": res.message, "already": res.already}


@router.post("/register")
async def register(
    body: UserIn,
    request: Request,
    gate: AdmissionGate = Depends(get_gate),
    reporter: OutcomeReporter = Depends(get_reporter),
):
    result = await _perform(request, gate, reporter, body.url, ActionKind.REGISTER, body.username,
                            lambda page: gate.connector.register(page, body.username))
    if not result.success:
        return JSONResponse(status_code=400, content={"message": "User registration not successful",
                                                      "result": result.to_dict()})
    return {"message": result.message, "defaultPassword": DEFAULT_PASSWORD}


@router.post("/changepass")
async def change_password(
    body: ChangePassIn,
    request: Request,
    gate: AdmissionGate = Depends(get_gate),
    reporter: OutcomeReporter = Depends(get_reporter),
):
    result = await _perform(request, gate, reporter, body.url, ActionKind.CHANGE_PASSWORD, body.username,
                            lambda page: gate.connector.change_password(page, body.username, body.password))
    return JSONResponse(status_code=200 if result.success else 400, content=result.to_dict())


async def _money(body: AmountIn, request: Request, gate: AdmissionGate, reporter: OutcomeReporter,
                 kind: ActionKind, verb: str, done: str):
    amount = normalize_amount(body.amount)
    if amount is None:
        emit_warn("action_invalid_amount", url=body.url, kind=kind.value, amount=repr(body.amount))
        return JSONResponse(status_code=400, content={"message": "invalid amount format"})

    do = gate.connector.deposit if kind is ActionKind.DEPOSIT else gate.connector.withdraw
    result = await _perform(request, gate, reporter, body.url, kind, body.username,
                            lambda page: do(page, body.username, amount), amount=amount)
    if not result.success:
        return JSONResponse(status_code=400, content={"message": f"{verb} not successful",
                                                      "result": result.to_dict()})
    return {"message": done, "result": result.to_dict()}


@router.post("/deposit")
async def deposit(
    body: AmountIn,
    request: Request,
    gate: AdmissionGate = Depends(get_gate),
    reporter: OutcomeReporter = Depends(get_reporter),
):
    return await _money(body, request, gate, reporter, ActionKind.DEPOSIT, "deposit", "deposited successfully")


@router.post("/withdraw")
async def withdraw(
    body: AmountIn,
    request: Request,
    gate: AdmissionGate = Depends(get_gate),
    reporter: OutcomeReporter = Depends(get_reporter),
):
    return await _money(body, request, gate, reporter, ActionKind.WITHDRAW, "withdraw", "Withdrawn successfully")


@router.post("/lockuser")
async def lock_user(
    body: UserIn,
    request: Request,
    gate: AdmissionGate = Depends(get_gate),
    reporter: OutcomeReporter = Depends(get_reporter),
):
    result = await _perform(request, gate, reporter, body.url, ActionKind.LOCK_USER, body.username,
                            lambda page: gate.connector.lock_user(page, body.username))
    if not result.success:
        return JSONResponse(status_code=400, content={"message": "User lock not successful",
                                                      "result": result.to_dict()})
    return {"message": "User locked successfully", "result": result.to_dict()}
