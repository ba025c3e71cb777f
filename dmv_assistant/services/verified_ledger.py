import logging
from datetime import datetime, timezone

from dmv_assistant.core.errors import ConcurrentUpdateError, NotFoundError
from dmv_assistant.domain.models import ClassificationVerdict, LedgerOutcome, VerifiedDocument
from dmv_assistant.domain.ports import SessionRepository

logger = logging.getLogger(__name__)


class VerifiedDocumentLedger:
    """
    Accumulates documents that passed classification on the session record.

    The append is read-modify-write guarded by the record's revision: a write
    based on a stale read affects no rows and is retried on a fresh read, so
    concurrent appends to one session do not drop entries. Other sessions are
    never blocked.
    """

    def __init__(self, repo: SessionRepository, max_attempts: int = 3) -> None:
        self._repo = repo
        self._max_attempts = max(1, max_attempts)

    async def append_if_verified(
        self,
        session_id: str,
        expected_type: str,
        filename: str,
        verdict: ClassificationVerdict,
        verified_at: datetime | None = None,
    ) -> LedgerOutcome:
        if verdict is not ClassificationVerdict.MATCH:
            return LedgerOutcome.SKIPPED

        entry = VerifiedDocument(
            expected_type=expected_type,
            filename=filename,
            verified_at=verified_at or datetime.now(timezone.utc),
        )

        for attempt in range(1, self._max_attempts + 1):
            session = await self._repo.get(session_id)
            if session is None:
                raise NotFoundError(f"No chat session found with id {session_id}")

            documents = [*session.verified_documents, entry]
            if await self._repo.replace_verified_documents(session_id, documents, session.revision):
                logger.info("Recorded verified %r for session %s", expected_type, session_id)
                return LedgerOutcome.RECORDED

            logger.warning(
                "Session %s changed during append (attempt %d/%d)", session_id, attempt, self._max_attempts
            )

        raise ConcurrentUpdateError(f"Could not record {expected_type!r} for session {session_id}: concurrent updates")
