# quizbee/api/quiz_routes.py
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from redis.exceptions import RedisError
from starlette.datastructures import UploadFile

from quizbee.errors import DocumentError, DocumentTooLarge, GenerationFailure
from quizbee.documents import read_pdf_text
from quizbee.quiz_manager import QuizManager, SessionNotFound
from quizbee.reconciler import ReconciliationEngine
from quizbee.schemas import ChatPayload, ChatRequest, GenerationRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def _manager(request) -> QuizManager:
    return request.app.state.quiz_manager


def _engine(request: Request, session_id: str) -> ReconciliationEngine:
    try:
        return _manager(request).get_session(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")


def _generation_error(e: Exception) -> HTTPException:
    if isinstance(e, GenerationFailure):
        return HTTPException(status_code=500, detail={"error": "Failed to generate quiz.", "details": e.reason})
    # httpx transport/provider errors
    return HTTPException(status_code=502, detail={"error": "Model provider error.", "details": str(e)})


async def _publish(manager: QuizManager, session_id: str) -> None:
    # Clients can still poll GET /sessions/{id} when Redis is unavailable
    try:
        await manager.publish_session(session_id)
    except RedisError:
        logger.warning("Could not publish update for session %s", session_id, exc_info=True)


async def _read_generation_form(request: Request) -> dict:
    """Accepts multipart/form-data (with an optional pdfFile) or a JSON body."""
    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" in content_type:
        form = await request.form()
        pdf_file = form.get("pdfFile")
        return {
            "subject": form.get("subject") or "",
            "difficulty": form.get("difficulty") or "medium",
            "numQuestions": form.get("numQuestions") or "10",
            "pdfFile": pdf_file if isinstance(pdf_file, UploadFile) else None,
        }
    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    return {
        "subject": body.get("subject") or "",
        "difficulty": body.get("difficulty") or "medium",
        "numQuestions": body.get("numQuestions") or "10",
        "pdfFile": None,
    }


async def _source_text(pdf_file: Optional[UploadFile]) -> Optional[str]:
    if pdf_file is None:
        return None
    data = await pdf_file.read()
    try:
        return read_pdf_text(data, pdf_file.content_type)
    except DocumentTooLarge as e:
        raise HTTPException(status_code=413, detail=str(e))
    except DocumentError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/quizzes")
async def create_quiz(request: Request):
    fields = await _read_generation_form(request)
    if not fields["subject"]:
        raise HTTPException(status_code=400, detail="Missing required form fields (subject or number of questions).")

    try:
        generation = GenerationRequest(
            subject=str(fields["subject"]),
            difficulty=fields["difficulty"],
            desired_count=int(fields["numQuestions"]),
            source_text=await _source_text(fields["pdfFile"]),
        )
    except (TypeError, ValueError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid quiz request: {e}")

    # 1. GENERATE QUIZ
    engine = ReconciliationEngine(request.app.state.synthesizer)
    try:
        await engine.generate(generation)
    except (GenerationFailure, httpx.HTTPError) as e:
        logger.error("Error generating quiz for %r", generation.subject, exc_info=True)
        raise _generation_error(e)

    # 2. OPEN SESSION AND NOTIFY LISTENERS
    manager = _manager(request)
    session_id = manager.open_session(engine)
    await _publish(manager, session_id)

    return {"message": "Quiz generated successfully!", **manager.snapshot(session_id)}


@router.get("/sessions/{session_id}")
async def get_session(request: Request, session_id: str):
    _engine(request, session_id)
    return _manager(request).snapshot(session_id)


@router.post("/sessions/{session_id}/chat")
async def chat(request: Request, session_id: str, body: ChatRequest):
    engine = _engine(request, session_id)
    try:
        payload = await request.app.state.interpreter.interpret(body.message, engine.quiz, engine.form)
        await engine.apply_turn(payload)
    except (GenerationFailure, httpx.HTTPError) as e:
        logger.error("Chat turn failed for session %s", session_id, exc_info=True)
        raise _generation_error(e)

    await _publish(_manager(request), session_id)
    return {
        "success": True,
        "content": payload.content,
        **_manager(request).snapshot(session_id),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/sessions/{session_id}/turn")
async def apply_turn(request: Request, session_id: str, payload: ChatPayload):
    """Apply an already-interpreted turn (quiz, patches and/or modification)."""
    engine = _engine(request, session_id)
    try:
        await engine.apply_turn(payload)
    except (GenerationFailure, httpx.HTTPError) as e:
        raise _generation_error(e)

    await _publish(_manager(request), session_id)
    return {"content": payload.content, **_manager(request).snapshot(session_id)}


@router.websocket("/ws/{session_id}")
async def session_websocket(websocket: WebSocket, session_id: str):
    manager: QuizManager = websocket.app.state.quiz_manager
    await manager.connect(session_id, websocket)
    try:
        while True:
            # keep the connection alive; updates arrive through the Redis listener
            text = await websocket.receive_text()
            if text == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        await manager.disconnect(session_id, websocket)
    except Exception:
        logger.warning("WebSocket for session %s failed", session_id, exc_info=True)
        await manager.disconnect(session_id, websocket)
