from pydantic import BaseModel, Field

from dmv_assistant.domain.models import (
    ChatMessage,
    ClassificationVerdict,
    IntentCapture,
    TicketStatus,
    TicketVerdict,
    UploadOutcome,
    VerifiedDocument,
    WorkflowState,
)


class StartSessionRequest(BaseModel):
    intent: str = Field("", description="Initial intent, may be empty")


class StartSessionResponse(BaseModel):
    session_id: str


class SessionResponse(BaseModel):
    session_id: str
    intent: str | None
    verified_documents: list[VerifiedDocument]


class UpsertIntentRequest(BaseModel):
    intent: str = Field(..., min_length=1, description="What the user wants to do at the DMV")


class UpsertIntentResponse(BaseModel):
    success: bool = True


class ChatTurnRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1)


class ChatTurnResponse(BaseModel):
    intent_captured: bool
    matched_service: str | None = None

    @staticmethod
    def from_capture(capture: IntentCapture) -> "ChatTurnResponse":
        return ChatTurnResponse(intent_captured=capture.captured, matched_service=capture.matched_service)


class TicketRequest(BaseModel):
    state: str = Field(..., min_length=1, description="Jurisdiction code, e.g. CA")
    service: str = Field(..., min_length=1, description="Requested DMV service")
    provided_docs: list[str] = Field(default_factory=list)


class TicketResponse(BaseModel):
    category: str
    ticket_type: str
    status: TicketStatus
    missing_docs: list[str]

    @staticmethod
    def from_verdict(verdict: TicketVerdict) -> "TicketResponse":
        return TicketResponse(
            category=verdict.category,
            ticket_type=verdict.ticket_type,
            status=verdict.status,
            missing_docs=verdict.missing_documents,
        )


class VerifyDocumentResponse(BaseModel):
    verdict: ClassificationVerdict
    rationale: str
    reply: str
    recorded: bool
    guessed_type: str | None = None
    state: WorkflowState

    @staticmethod
    def from_outcome(outcome: UploadOutcome) -> "VerifyDocumentResponse":
        return VerifyDocumentResponse(**outcome.model_dump())


class AgentToolSpec(BaseModel):
    name: str
    description: str
    parameters: dict


class AgentToolsResponse(BaseModel):
    instructions: str
    tools: list[AgentToolSpec]
