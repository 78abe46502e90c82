import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .llm import InterviewOracle, OracleError
from .orchestrator import InterviewOrchestrator
from .policy import ResumeChoice, ResumePolicy
from .resume import DOCX_MIME, PDF_MIME, SUPPORTED_MIME_TYPES, EmptyContent, ExtractionFailure, UnsupportedType
from .schemas import (
    AnswerPayload,
    ChatPayload,
    DraftPayload,
    InterviewSession,
    ManualEntryPayload,
    ResumeChoicePayload,
    StartInterviewPayload,
    grade_for,
)
from .session import InvalidState, SessionController
from .store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()


def build_orchestrator(settings: Settings) -> InterviewOrchestrator:
    controller = SessionController(SessionStore(settings.session_store_path))
    policy = ResumePolicy(controller, timeout=timedelta(hours=settings.session_timeout_hours))
    return InterviewOrchestrator(
        controller,
        InterviewOracle(),
        policy=policy,
        tick_interval=settings.timer_interval_seconds,
    )


def get_orchestrator(request: Request) -> InterviewOrchestrator:
    return request.app.state.orchestrator


def _mime_type(file: UploadFile) -> str:
    if file.content_type in SUPPORTED_MIME_TYPES:
        return file.content_type
    name = (file.filename or "").lower()
    if name.endswith(".pdf"):
        return PDF_MIME
    if name.endswith(".docx"):
        return DOCX_MIME
    return file.content_type or "application/octet-stream"


async def _read_upload(file: UploadFile) -> bytes:
    content = await file.read()
    limit = get_settings().max_upload_bytes
    if len(content) > limit:
        raise HTTPException(status_code=413, detail=f"File exceeds the {limit // (1024 * 1024)}MB limit.")
    return content


def _session_view(orchestrator: InterviewOrchestrator) -> dict:
    session = orchestrator.session
    return {
        "phase": orchestrator.phase.value,
        "session": session.model_dump(mode="json") if session else None,
    }


def _completed_view(session: InterviewSession) -> dict:
    data = session.model_dump(mode="json")
    data["grade"] = grade_for(session.final_score or 0)
    return data


@router.get("/health")
async def health():
    settings = get_settings()
    return JSONResponse({"status": "ok", "model": settings.openai_model})


@router.post("/extract")
async def extract(file: UploadFile = File(...), orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    content = await _read_upload(file)
    try:
        text = await asyncio.to_thread(orchestrator.extractor, content, _mime_type(file))
    except (UnsupportedType, EmptyContent) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ExtractionFailure as e:
        raise HTTPException(status_code=422, detail=str(e))
    try:
        extracted = await orchestrator.oracle.extract_contact(text)
    except OracleError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"extracted": extracted.model_dump()}


@router.get("/session")
async def get_session(orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    return _session_view(orchestrator)


@router.post("/session/upload")
async def upload_resume(file: UploadFile = File(...), orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    content = await _read_upload(file)
    result = await orchestrator.upload(content, _mime_type(file))
    view = _session_view(orchestrator)
    view["error"] = result.error
    return view


@router.post("/session/manual")
async def manual_entry(payload: ManualEntryPayload, orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    orchestrator.enter_manually(payload.to_contact())
    return _session_view(orchestrator)


@router.post("/session/messages")
async def send_message(payload: ChatPayload, orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    await orchestrator.send_message(payload.content)
    return _session_view(orchestrator)


@router.post("/session/interview")
async def start_interview(payload: StartInterviewPayload, orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    await orchestrator.start_interview(payload.role)
    return _session_view(orchestrator)


@router.put("/session/draft")
async def update_draft(payload: DraftPayload, orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    orchestrator.update_draft(payload.text)
    return {"draft": orchestrator.draft}


@router.post("/session/answer")
async def submit_answer(payload: AnswerPayload, orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    applied = await orchestrator.submit_answer(payload.answer, question_index=payload.question_index)
    view = _session_view(orchestrator)
    view["applied"] = applied
    if orchestrator.session is None and orchestrator.controller.completed_sessions:
        view["result"] = _completed_view(orchestrator.controller.completed_sessions[-1])
    return view


@router.post("/session/pause")
async def pause(orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    orchestrator.pause()
    return _session_view(orchestrator)


@router.post("/session/resume")
async def resume(orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    orchestrator.resume()
    return _session_view(orchestrator)


@router.get("/session/resume-prompt")
async def resume_prompt(orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    prompt = orchestrator.resume_prompt()
    return {"prompt": prompt.model_dump() if prompt else None}


@router.post("/session/resume-choice")
async def resume_choice(payload: ResumeChoicePayload, orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    await orchestrator.resolve_resume(ResumeChoice(payload.choice))
    return _session_view(orchestrator)


@router.delete("/session")
async def clear_session(orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    orchestrator.reset()
    return _session_view(orchestrator)


@router.get("/sessions/completed")
async def completed_sessions(orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    return {"sessions": [_completed_view(s) for s in orchestrator.controller.completed_sessions]}


@router.get("/sessions/completed/{session_id}")
async def completed_session(session_id: str, orchestrator: InterviewOrchestrator = Depends(get_orchestrator)):
    session = orchestrator.controller.get_completed(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    return _completed_view(session)


@router.websocket("/ws/timer")
async def timer_events(ws: WebSocket):
    await ws.accept()
    orchestrator: InterviewOrchestrator = ws.app.state.orchestrator
    queue = orchestrator.timer.subscribe()
    # Client frames are ignored, but reading them is how a disconnect is noticed.
    receiver = asyncio.create_task(ws.receive_text())
    try:
        session = orchestrator.session
        await ws.send_json({
            "type": "state",
            "phase": orchestrator.phase.value,
            "time_left": session.time_left if session else None,
            "is_paused": session.is_paused if session else False,
        })
        while True:
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if receiver in done:
                getter.cancel()
                receiver.result()
                receiver = asyncio.create_task(ws.receive_text())
                continue
            await ws.send_json(getter.result())
    except WebSocketDisconnect:
        return
    finally:
        receiver.cancel()
        orchestrator.timer.unsubscribe(queue)


async def invalid_state_handler(request: Request, exc: InvalidState):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def create_app(orchestrator: Optional[InterviewOrchestrator] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.orchestrator is None:
            app.state.orchestrator = build_orchestrator(get_settings())
        # Expired sessions are discarded here; anything else waits for the resume choice.
        prompt = app.state.orchestrator.resume_prompt()
        if prompt:
            logger.info(f"Found resumable session {prompt.session_id}: {prompt.status}")
        yield
        app.state.orchestrator.timer.stop()

    app = FastAPI(title="Resume Screener", version="0.1.0", lifespan=lifespan)
    app.state.orchestrator = orchestrator
    app.add_exception_handler(InvalidState, invalid_state_handler)
    app.include_router(router)
    return app


app = create_app()
