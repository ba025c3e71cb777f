from collections.abc import Sequence
from typing import Protocol

from dmv_assistant.domain.models import (
    ClassificationResult,
    ExtractedContent,
    Session,
    TicketType,
    VerifiedDocument,
)


class SessionRepository(Protocol):
    async def insert(self, intent: str) -> str: ...

    async def get(self, session_id: str) -> Session | None: ...

    async def update_intent(self, session_id: str, intent: str) -> int: ...

    async def replace_verified_documents(
        self,
        session_id: str,
        documents: Sequence[VerifiedDocument],
        expected_revision: int,
    ) -> int: ...


class DocumentClassifier(Protocol):
    async def classify(self, expected_type: str, content: ExtractedContent) -> ClassificationResult: ...


class RequirementCatalog(Protocol):
    def required_documents(self, jurisdiction: str, service: str) -> tuple[str, ...]: ...

    def resolve_ticket_type(self, service: str) -> TicketType: ...

    def all_known_services(self) -> tuple[str, ...]: ...
