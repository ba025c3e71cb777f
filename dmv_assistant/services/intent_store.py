import logging

from dmv_assistant.core.errors import NotFoundError
from dmv_assistant.domain.models import Session
from dmv_assistant.domain.ports import SessionRepository

logger = logging.getLogger(__name__)


class IntentStore:
    """
    Per-session record of what the user wants to do at the DMV.

    Writes are last-write-wins: both the dialogue agent's tool call and the
    literal service match on a chat turn may upsert the same session, and
    whichever commits last is kept.
    """

    def __init__(self, repo: SessionRepository) -> None:
        self._repo = repo

    async def create(self, initial_intent: str = "") -> str:
        session_id = await self._repo.insert(initial_intent or "")
        logger.info("Created chat session %s", session_id)
        return session_id

    async def upsert(self, session_id: str, intent: str) -> None:
        affected = await self._repo.update_intent(session_id, intent)
        if affected == 0:
            raise NotFoundError(f"No chat session found with id {session_id}")
        logger.info("Stored intent for session %s", session_id)

    async def get(self, session_id: str) -> Session:
        session = await self._repo.get(session_id)
        if session is None:
            raise NotFoundError(f"No chat session found with id {session_id}")
        return session
