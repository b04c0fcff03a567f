from __future__ import annotations

from typing import List, Optional

from fastapi import FastAPI, HTTPException, Response, status
from pydantic import BaseModel, Field

from bfi.config import DEFAULT_GROWTH_CHUNK, EngineConfig
from bfi.engine import BrainfuckEngine, ExecutionState, Fault, RunFault
from bfi.errors import StepLimitExceeded
from bfi.streams import ByteInput, ByteOutput
from bfi.visualizer import VisualizerSession, to_input_bytes

from .session import SessionRecord, SessionStore


def _state_to_dict(state: ExecutionState) -> dict:
    return {
        "step": state.step,
        "pc": state.pc,
        "command": state.command,
        "pointer": state.pointer,
        "tape_start": state.tape_start,
        "tape": list(state.tape),
        "output": state.output,
        "code_length": state.code_length,
    }


def _calculate_total_steps(
    code: str,
    input_template: List[int],
    config: EngineConfig,
    cap: int = 10000,
) -> tuple[int, bool]:
    engine = BrainfuckEngine(
        config,
        input=ByteInput.from_bytes(input_template),
        output=ByteOutput.capture(),
    )
    with engine:
        engine.load(code)
        try:
            engine.run(max_steps=cap)
        except StepLimitExceeded:
            return cap, True
        return engine.steps, engine.steps >= cap


class SessionConfiguration(BaseModel):
    code: str = ""
    input: str = ""
    tape_window: int = Field(default=10, ge=0)
    max_steps: Optional[int] = Field(default=None, ge=1)
    history_limit: int = Field(default=200, ge=1)
    growth_chunk: int = Field(default=DEFAULT_GROWTH_CHUNK, ge=1)
    max_memory: Optional[int] = Field(default=None, ge=1)


class SessionState(BaseModel):
    step: int
    pc: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: str
    code_length: int


class FaultInfo(BaseModel):
    kind: str
    error: str
    message: str
    offset: Optional[int] = None
    pc: Optional[int] = None
    command: Optional[str] = None


class SessionPayload(BaseModel):
    session_id: str
    code: str
    state: SessionState
    history: List[SessionState]
    finished: bool
    status: str
    outcome: str
    fault: Optional[FaultInfo]
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    total_steps: int
    total_steps_capped: bool


class StepRequest(BaseModel):
    count: int = Field(default=1, ge=1)


class StepResponse(BaseModel):
    session_id: str
    code: str
    states: List[SessionState]
    history: List[SessionState]
    finished: bool
    status: str
    outcome: str
    fault: Optional[FaultInfo]
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    total_steps: int
    total_steps_capped: bool


class RunRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)
    ignore_breakpoints: bool = False


class BreakpointRequest(BaseModel):
    pc: int = Field(ge=0)


def _fault_info(fault: Optional[Fault]) -> Optional[FaultInfo]:
    if fault is None:
        return None
    if isinstance(fault, RunFault):
        return FaultInfo(
            kind="run",
            error=type(fault.error).__name__,
            message=str(fault.error),
            pc=fault.pc,
            command=fault.command,
        )
    return FaultInfo(
        kind="load",
        error=type(fault.error).__name__,
        message=str(fault.error),
        offset=fault.offset,
    )


def create_app(store: Optional[SessionStore] = None) -> FastAPI:
    session_store = store or SessionStore()
    app = FastAPI(title="bfi debugger API", version="0.1.0")

    def _history_states(session: VisualizerSession) -> List[SessionState]:
        return [SessionState(**_state_to_dict(state)) for state in session.history]

    def _serialize_states(states: List[ExecutionState]) -> List[SessionState]:
        return [SessionState(**_state_to_dict(state)) for state in states]

    def _common_fields(record: SessionRecord) -> dict:
        session = record.session
        return {
            "session_id": record.session_id,
            "code": session.code,
            "history": _history_states(session),
            "finished": session.is_finished(),
            "status": session.status.value,
            "outcome": session.outcome.value,
            "fault": _fault_info(session.fault),
            "history_size": len(session.history),
            "breakpoints": session.list_breakpoints(),
            "hit_breakpoint": session.hit_breakpoint,
            "total_steps": record.total_steps,
            "total_steps_capped": record.total_steps_capped,
        }

    def _build_payload(record: SessionRecord) -> SessionPayload:
        state = record.session.current_state()
        return SessionPayload(
            state=SessionState(**_state_to_dict(state)),
            **_common_fields(record),
        )

    def _lookup(session_id: str) -> SessionRecord:
        try:
            return session_store.get(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    @app.post("/api/session", response_model=SessionPayload, status_code=status.HTTP_201_CREATED)
    def create_session(payload: SessionConfiguration) -> SessionPayload:
        try:
            config = EngineConfig(
                growth_chunk=payload.growth_chunk,
                max_size=payload.max_memory,
            )
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc

        input_bytes = to_input_bytes(payload.input)
        total_steps, total_steps_capped = _calculate_total_steps(
            payload.code,
            input_bytes,
            config,
        )

        record = session_store.create_session(
            code=payload.code,
            input_template=input_bytes,
            tape_window=payload.tape_window,
            max_steps=payload.max_steps,
            history_limit=payload.history_limit,
            config=config,
            total_steps=total_steps,
            total_steps_capped=total_steps_capped,
        )
        return _build_payload(record)

    @app.get("/api/session/{session_id}", response_model=SessionPayload)
    def get_session(session_id: str) -> SessionPayload:
        return _build_payload(_lookup(session_id))

    @app.post("/api/session/{session_id}/reset", response_model=SessionPayload)
    def reset_session(session_id: str) -> SessionPayload:
        try:
            record = session_store.reset(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return _build_payload(record)

    @app.post("/api/session/{session_id}/step", response_model=StepResponse)
    def step_session(session_id: str, payload: StepRequest) -> StepResponse:
        record = _lookup(session_id)
        try:
            states = record.session.step_forward(payload.count)
        except StepLimitExceeded as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=str(exc),
            ) from exc

        return StepResponse(states=_serialize_states(list(states)), **_common_fields(record))

    @app.post("/api/session/{session_id}/run", response_model=StepResponse)
    def run_session(session_id: str, payload: RunRequest) -> StepResponse:
        record = _lookup(session_id)
        session = record.session
        original_breakpoints: Optional[set[int]] = None
        if payload.ignore_breakpoints:
            original_breakpoints = set(session.breakpoints)
            session.clear_breakpoints()
            session.hit_breakpoint = None

        try:
            states = list(session.run_until_break(payload.limit))
        except StepLimitExceeded as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=str(exc),
            ) from exc
        finally:
            if original_breakpoints is not None:
                session.breakpoints = set(original_breakpoints)
                session.hit_breakpoint = None

        return StepResponse(states=_serialize_states(states), **_common_fields(record))

    @app.post("/api/session/{session_id}/breakpoints", response_model=SessionPayload)
    def add_breakpoint(session_id: str, payload: BreakpointRequest) -> SessionPayload:
        record = _lookup(session_id)
        record.session.add_breakpoint(payload.pc)
        return _build_payload(record)

    @app.delete("/api/session/{session_id}/breakpoints/{pc}", response_model=SessionPayload)
    def remove_breakpoint(session_id: str, pc: int) -> SessionPayload:
        record = _lookup(session_id)
        removed = record.session.remove_breakpoint(pc)
        if not removed:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Breakpoint not found at pc={pc}",
            )
        return _build_payload(record)

    @app.delete("/api/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_session(session_id: str) -> Response:
        removed = session_store.remove(session_id)
        if not removed:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown session id: {session_id}",
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
