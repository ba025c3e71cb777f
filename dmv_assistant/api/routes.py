from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from langchain_core.tools import StructuredTool

from dmv_assistant.api.schemas import (
    AgentToolsResponse,
    AgentToolSpec,
    ChatTurnRequest,
    ChatTurnResponse,
    SessionResponse,
    StartSessionRequest,
    StartSessionResponse,
    TicketRequest,
    TicketResponse,
    UpsertIntentRequest,
    UpsertIntentResponse,
    VerifyDocumentResponse,
)
from dmv_assistant.core.errors import ValidationError
from dmv_assistant.deps import get_agent_tools, get_intent_store, get_session_workflow, get_upload_limit
from dmv_assistant.domain.models import UploadedFile
from dmv_assistant.services.agent_tools import AGENT_INSTRUCTIONS
from dmv_assistant.services.intent_store import IntentStore
from dmv_assistant.services.session_workflow import SessionWorkflow

router = APIRouter()


async def _read_limited(file: UploadFile, max_bytes: int) -> bytes:
    """Read at most one byte past the limit, so an oversized upload is never read into memory in full."""
    if file.size is not None and file.size > max_bytes:
        raise ValidationError(f"Uploaded file exceeds the {max_bytes} byte limit")
    data = await file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ValidationError(f"Uploaded file exceeds the {max_bytes} byte limit")
    return data


@router.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


@router.post("/ticket", response_model=TicketResponse, tags=["tickets"])
def check_ticket(
    payload: TicketRequest,
    workflow: SessionWorkflow = Depends(get_session_workflow),
):
    verdict = workflow.evaluate_ticket(payload.state, payload.service, payload.provided_docs)
    return TicketResponse.from_verdict(verdict)


@router.post("/sessions", response_model=StartSessionResponse, status_code=status.HTTP_201_CREATED, tags=["sessions"])
async def start_session(
    payload: StartSessionRequest,
    intents: IntentStore = Depends(get_intent_store),
):
    session_id = await intents.create(payload.intent)
    return StartSessionResponse(session_id=session_id)


@router.get("/sessions/{session_id}", response_model=SessionResponse, tags=["sessions"])
async def get_session(
    session_id: str,
    intents: IntentStore = Depends(get_intent_store),
):
    session = await intents.get(session_id)
    return SessionResponse(
        session_id=session.id,
        intent=session.intent,
        verified_documents=session.verified_documents,
    )


@router.put("/sessions/{session_id}/intent", response_model=UpsertIntentResponse, tags=["sessions"])
async def upsert_intent(
    session_id: str,
    payload: UpsertIntentRequest,
    workflow: SessionWorkflow = Depends(get_session_workflow),
):
    await workflow.upsert_intent(session_id, payload.intent)
    return UpsertIntentResponse()


@router.post("/sessions/{session_id}/messages", response_model=ChatTurnResponse, tags=["chat"])
async def chat_turn(
    session_id: str,
    payload: ChatTurnRequest,
    workflow: SessionWorkflow = Depends(get_session_workflow),
):
    capture = await workflow.capture_intent(session_id, payload.messages)
    return ChatTurnResponse.from_capture(capture)


@router.post("/sessions/{session_id}/documents", response_model=VerifyDocumentResponse, tags=["documents"])
async def verify_document(
    session_id: str,
    file: UploadFile = File(...),
    expected_type: str = Form(...),
    workflow: SessionWorkflow = Depends(get_session_workflow),
    max_bytes: int = Depends(get_upload_limit),
):
    upload = UploadedFile(
        filename=file.filename or "",
        content_type=file.content_type,
        data=await _read_limited(file, max_bytes),
    )
    outcome = await workflow.handle_upload(session_id, upload, expected_type)
    return VerifyDocumentResponse.from_outcome(outcome)


@router.get("/agent/tools", response_model=AgentToolsResponse, tags=["agent"])
def agent_tools(tools: list[StructuredTool] = Depends(get_agent_tools)):
    return AgentToolsResponse(
        instructions=AGENT_INSTRUCTIONS,
        tools=[
            AgentToolSpec(
                name=tool.name,
                description=tool.description,
                parameters={"type": "object", "properties": tool.args},
            )
            for tool in tools
        ],
    )
