from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class TicketStatus(StrEnum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"


class ClassificationVerdict(StrEnum):
    MATCH = "match"
    NO_MATCH = "no-match"


class LedgerOutcome(StrEnum):
    RECORDED = "recorded"
    SKIPPED = "skipped"


class WorkflowState(StrEnum):
    RECEIVED = "received"
    EXTRACTED = "extracted"
    CLASSIFIED = "classified"
    RECORDED = "recorded"
    SKIPPED_RECORD = "skipped_record"
    REPLIED = "replied"
    FAILED = "failed"


class TicketTypeInfo(BaseModel):
    category: str
    services: list[str] = Field(default_factory=list)


class TicketType(BaseModel):
    model_config = ConfigDict(frozen=True)

    ticket_type: str = ""
    category: str = ""


class TicketVerdict(BaseModel):
    category: str = Field(..., description="Human-readable category, empty if the service is unknown")
    ticket_type: str = Field(..., description="Owning ticket type key, empty if the service is unknown")
    status: TicketStatus
    missing_documents: list[str] = Field(default_factory=list)


class VerifiedDocument(BaseModel):
    expected_type: str
    filename: str
    verified_at: datetime


class Session(BaseModel):
    id: str
    intent: str | None = None
    verified_documents: list[VerifiedDocument] = Field(default_factory=list)
    revision: int = 0


class TextContent(BaseModel):
    kind: Literal["text"] = "text"
    value: str


class ImageContent(BaseModel):
    kind: Literal["image"] = "image"
    value: str = Field(..., description="Base64-encoded image bytes")
    mime_type: str


ExtractedContent = Annotated[TextContent | ImageContent, Field(discriminator="kind")]


class ClassificationResult(BaseModel):
    verdict: ClassificationVerdict
    rationale: str = ""

    @property
    def is_match(self) -> bool:
        return self.verdict is ClassificationVerdict.MATCH


class UploadedFile(BaseModel):
    filename: str = ""
    content_type: str | None = None
    data: bytes


class UploadOutcome(BaseModel):
    verdict: ClassificationVerdict
    rationale: str
    reply: str
    recorded: bool = False
    guessed_type: str | None = None
    state: WorkflowState


class IntentCapture(BaseModel):
    matched_service: str | None = None
    captured: bool = False


class ChatMessage(BaseModel):
    role: str
    content: str = ""
