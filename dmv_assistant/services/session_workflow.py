import asyncio
import logging
import re
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Final

from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from dmv_assistant.core.errors import (
    AppError,
    ClassificationUnavailableError,
    NotFoundError,
    RepositoryError,
    ValidationError,
)
from dmv_assistant.domain.models import (
    ChatMessage,
    ClassificationResult,
    ExtractedContent,
    IntentCapture,
    LedgerOutcome,
    TicketVerdict,
    UploadedFile,
    UploadOutcome,
    WorkflowState,
)
from dmv_assistant.domain.ports import DocumentClassifier, RequirementCatalog
from dmv_assistant.infra.document_extractor import DocumentExtractor
from dmv_assistant.services.intent_store import IntentStore
from dmv_assistant.services.ticket_evaluator import TicketEvaluator
from dmv_assistant.services.verified_ledger import VerifiedDocumentLedger

logger = logging.getLogger(__name__)

_GUESSED_TYPE_RE: Final[re.Pattern[str]] = re.compile(
    r"document type is\s*[:\-]?\s*[\"'“]?([^\"'”.;\n]+)", re.IGNORECASE
)
_RETRY_MAX_WAIT_SECONDS: Final[float] = 10.0


def guess_document_type(rationale: str) -> str | None:
    """Best-effort hint: the phrase after "document type is" in the classifier's reasoning."""
    match = _GUESSED_TYPE_RE.search(rationale)
    if not match:
        return None
    guess = match.group(1).strip(" *_")
    return guess or None


def find_known_service(message: str, services: Iterable[str]) -> str | None:
    """Longest catalog service name contained in the message, ignoring case."""
    lowered = message.lower()
    matches = [service for service in services if service and service.lower() in lowered]
    return max(matches, key=len, default=None)


def _latest_user_message(messages: Sequence[ChatMessage]) -> str:
    return next((m.content for m in reversed(messages) if m.role == "user"), "")


def compose_reply(
    expected_type: str,
    filename: str,
    result: ClassificationResult,
    recorded: bool,
    guessed_type: str | None,
) -> str:
    if result.is_match:
        reply = f'Your document "{filename}" has been verified as {expected_type}.'
        if recorded:
            return f"{reply} I've added it to your verified documents."
        return f"{reply} I couldn't save it to your session, so you may be asked for it again."

    guess = f"It looks like {guessed_type}." if guessed_type else "I couldn't tell what type of document it is."
    reply = f'The document "{filename}" does not appear to be a valid {expected_type}. {guess}'
    if result.rationale:
        reply = f"{reply} Details: {result.rationale}"
    return reply


class SessionWorkflow:
    """
    Orchestrates one inbound request for a chat session.

    File upload: Received -> Extracted -> Classified -> Recorded | SkippedRecord -> Replied,
    leaving for Failed on extraction or classification errors (re-raised for
    the request boundary). A ledger failure after a verdict is logged and the
    verdict is still replied.

    Text turn: if the latest user message names a known service, it is stored
    as the session's intent.
    """

    def __init__(
        self,
        catalog: RequirementCatalog,
        intents: IntentStore,
        extractor: DocumentExtractor,
        classifier: DocumentClassifier,
        ledger: VerifiedDocumentLedger,
        classify_attempts: int = 1,
        retry_wait_seconds: float = 1.0,
    ) -> None:
        self._catalog = catalog
        self._evaluator = TicketEvaluator(catalog)
        self._intents = intents
        self._extractor = extractor
        self._classifier = classifier
        self._ledger = ledger
        self._classify_attempts = max(1, classify_attempts)
        self._retry_wait_seconds = retry_wait_seconds

    def evaluate_ticket(self, jurisdiction: str, service: str, provided_documents: Iterable[str]) -> TicketVerdict:
        return self._evaluator.evaluate(jurisdiction, service, provided_documents)

    async def start_session(self, intent: str = "") -> str:
        return await self._intents.create(intent)

    async def upsert_intent(self, session_id: str, intent: str) -> None:
        if not session_id or not session_id.strip():
            raise ValidationError("session_id is required")
        if not intent or not intent.strip():
            raise ValidationError("intent is required")
        await self._intents.upsert(session_id, intent.strip())

    async def capture_intent(self, session_id: str, messages: Sequence[ChatMessage]) -> IntentCapture:
        message = _latest_user_message(messages)
        service = find_known_service(message, self._catalog.all_known_services())
        if service is None:
            return IntentCapture()

        await self._intents.upsert(session_id, message)
        logger.info("Captured intent %r for session %s from chat text", service, session_id)
        return IntentCapture(matched_service=service, captured=True)

    async def handle_upload(self, session_id: str, file: UploadedFile, expected_type: str) -> UploadOutcome:
        expected_type = (expected_type or "").strip()
        if not expected_type:
            raise ValidationError("expected_type is required")
        filename = file.filename or "upload"

        state = WorkflowState.RECEIVED
        try:
            # pdfplumber and Pillow are blocking; keep them off the event loop.
            content = await asyncio.to_thread(self._extractor.extract, file)
            state = self._advance(session_id, state, WorkflowState.EXTRACTED)

            result = await self._classify(expected_type, content)
            verified_at = datetime.now(timezone.utc)
            state = self._advance(session_id, state, WorkflowState.CLASSIFIED)
        except AppError as e:
            self._advance(session_id, state, WorkflowState.FAILED, reason=str(e))
            raise

        try:
            outcome = await self._ledger.append_if_verified(
                session_id, expected_type, filename, result.verdict, verified_at=verified_at
            )
        except (NotFoundError, RepositoryError) as e:
            logger.warning("Verdict for session %s not recorded: %s", session_id, e)
            ledger_state = self._advance(session_id, state, WorkflowState.FAILED, reason=str(e))
        else:
            target = WorkflowState.RECORDED if outcome is LedgerOutcome.RECORDED else WorkflowState.SKIPPED_RECORD
            ledger_state = self._advance(session_id, state, target)

        recorded = ledger_state is WorkflowState.RECORDED
        guessed_type = None if result.is_match else guess_document_type(result.rationale)
        reply = compose_reply(expected_type, filename, result, recorded, guessed_type)
        self._advance(session_id, ledger_state, WorkflowState.REPLIED)

        return UploadOutcome(
            verdict=result.verdict,
            rationale=result.rationale,
            reply=reply,
            recorded=recorded,
            guessed_type=guessed_type,
            state=ledger_state,
        )

    async def _classify(self, expected_type: str, content: ExtractedContent) -> ClassificationResult:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._classify_attempts),
            wait=wait_exponential(multiplier=self._retry_wait_seconds, max=_RETRY_MAX_WAIT_SECONDS),
            retry=retry_if_exception_type(ClassificationUnavailableError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await self._classifier.classify(expected_type, content)
        return result

    @staticmethod
    def _advance(session_id: str, current: WorkflowState, target: WorkflowState, reason: str = "") -> WorkflowState:
        if reason:
            logger.info("Upload for session %s: %s -> %s (%s)", session_id, current, target, reason)
        else:
            logger.info("Upload for session %s: %s -> %s", session_id, current, target)
        return target
