# app/api/deps/runtime.py
from fastapi import Request

from app.services.gate import AdmissionGate
from app.services.reporter import OutcomeReporter


def get_gate(request: Request) -> AdmissionGate:
    return request.app.state.gate


def get_reporter(request: Request) -> OutcomeReporter:
    return request.app.state.reporter
