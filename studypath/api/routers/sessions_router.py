"""
Learning Session API Router.

Endpoints:
- Session management (create, list, get, delete, progress)
- Sub-module selection and answer submission
- Scratchpad drafts
- Chat transcript and assistant
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import Field

from studypath.path.models import (
    ChatMessage,
    ChatRole,
    ModuleProgress,
    PathModel,
    Session,
    SessionSummary,
    SubModule,
)
from studypath.path.orchestrator import SessionOrchestrator

router = APIRouter()


def get_orchestrator(request: Request) -> SessionOrchestrator:
    """FastAPI dependency returning the application's orchestrator."""
    return request.app.state.orchestrator


# ========================================
# Request Models
# ========================================


class SessionCreateRequest(PathModel):
    topic: str = Field(..., min_length=1, description="Topic to build a learning path for")


class AnswersSubmitRequest(PathModel):
    answers: dict[str, str] = Field(default_factory=dict, description="Exercise id -> answer")


class DraftAnswerRequest(PathModel):
    value: str = Field(..., description="Draft answer text")


class ChatMessageRequest(PathModel):
    role: ChatRole = Field(ChatRole.USER, description="Message author")
    text: str = Field(..., min_length=1)


class AssistantQuestionRequest(PathModel):
    text: str = Field(..., min_length=1, description="Question about the open sub-module")


# ========================================
# Sessions
# ========================================


@router.post("", response_model=Session, status_code=status.HTTP_201_CREATED)
async def create_session(
    body: SessionCreateRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.create_session(body.topic)


@router.get("", response_model=list[SessionSummary])
async def list_sessions(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    return orchestrator.list_sessions()


@router.get("/{session_id}", response_model=Session)
async def get_session(session_id: str, orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    return await orchestrator.load_session(session_id)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str, orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    orchestrator.delete_session(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{session_id}/progress", response_model=list[ModuleProgress])
async def get_progress(session_id: str, orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    return orchestrator.module_progress(session_id)


# ========================================
# Progression
# ========================================


@router.post("/{session_id}/sub-modules/{sub_module_id}/select", response_model=SubModule)
async def select_sub_module(
    session_id: str,
    sub_module_id: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.select_sub_module(session_id, sub_module_id)


@router.post("/{session_id}/sub-modules/{sub_module_id}/answers", response_model=Session)
async def submit_answers(
    session_id: str,
    sub_module_id: str,
    body: AnswersSubmitRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.submit_answers(session_id, sub_module_id, body.answers)


@router.post("/{session_id}/sub-modules/{sub_module_id}/exercises", response_model=Session)
async def generate_exercises(
    session_id: str,
    sub_module_id: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.generate_exercises(session_id, sub_module_id)


@router.put("/{session_id}/scratchpad/{exercise_id}", response_model=Session)
async def record_answer(
    session_id: str,
    exercise_id: str,
    body: DraftAnswerRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.record_answer(session_id, exercise_id, body.value)


# ========================================
# Chat
# ========================================


@router.post("/{session_id}/chat", response_model=Session)
async def append_chat_message(
    session_id: str,
    body: ChatMessageRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    message = ChatMessage(role=body.role, text=body.text)
    return await orchestrator.append_chat_message(session_id, message)


@router.post("/{session_id}/sub-modules/{sub_module_id}/assistant", response_model=Session)
async def ask_assistant(
    session_id: str,
    sub_module_id: str,
    body: AssistantQuestionRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.ask_assistant(session_id, sub_module_id, body.text)
