# app/core/state_machine.py
""""模块职能：

定义每个 target（站点 URL）的会话状态与合法迁移，保障“同一站点同一时刻只有一个自动化动作”

主要函数/枚举：

TargetState：NO_SESSION / IDLE / BUSY

GateEvent：LOGIN / ACTION / RELEASE

Decision：ADMIT / REJECT_UNKNOWN / REJECT_BUSY / RELEASED

transit(state, event)：返回 (Decision, 新状态)；非法迁移抛 InvalidTransition"""

from enum import Enum
from typing import Tuple


class TargetState(str, Enum):
    NO_SESSION = "NO_SESSION"
    IDLE = "IDLE"
    BUSY = "BUSY"


class GateEvent(str, Enum):
    LOGIN = "LOGIN"      # /login
    ACTION = "ACTION"    # 其他需要会话的动作
    RELEASE = "RELEASE"  # 动作结束（成功/失败/异常）


class Decision(str, Enum):
    ADMIT = "ADMIT"
    REJECT_UNKNOWN = "REJECT_UNKNOWN"
    REJECT_BUSY = "REJECT_BUSY"
    RELEASED = "RELEASED"


class InvalidTransition(Exception):
    def __init__(self, state: TargetState, event: GateEvent):
        super().__init__(f"invalid transition: {state.value} --{event.value}-->")
        self.state = state
        self.event = event


VALID = {
    (TargetState.NO_SESSION, GateEvent.LOGIN): (Decision.ADMIT, TargetState.BUSY),
    (TargetState.NO_SESSION, GateEvent.ACTION): (Decision.REJECT_UNKNOWN, TargetState.NO_SESSION),
    (TargetState.IDLE, GateEvent.LOGIN): (Decision.ADMIT, TargetState.BUSY),
    (TargetState.IDLE, GateEvent.ACTION): (Decision.ADMIT, TargetState.BUSY),
    (TargetState.BUSY, GateEvent.LOGIN): (Decision.REJECT_BUSY, TargetState.BUSY),
    (TargetState.BUSY, GateEvent.ACTION): (Decision.REJECT_BUSY, TargetState.BUSY),
    (TargetState.BUSY, GateEvent.RELEASE): (Decision.RELEASED, TargetState.IDLE),
}


def transit(state: TargetState, event: GateEvent) -> Tuple[Decision, TargetState]:
    try:
        return VALID[(state, event)]
    except KeyError:
        raise InvalidTransition(state, event) from None
