import logging
from collections.abc import Sequence
from typing import Any
from uuid import UUID

from supabase import AsyncClient, acreate_client

from dmv_assistant.core.errors import RepositoryError
from dmv_assistant.domain.models import Session, VerifiedDocument
from dmv_assistant.domain.ports import SessionRepository

logger = logging.getLogger(__name__)

_COLUMNS = "id, user_intent, verified_docs, revision"


def _is_uuid(value: str) -> bool:
    try:
        UUID(value)
    except (TypeError, ValueError):
        return False
    return True


def _to_session(row: dict[str, Any]) -> Session:
    return Session(
        id=str(row["id"]),
        intent=row.get("user_intent"),
        verified_documents=row.get("verified_docs") or [],
        revision=row.get("revision") or 0,
    )


class SupabaseSessionRepository(SessionRepository):
    """
    Session records in a Supabase table.

    Ids are Postgres UUIDs, so anything that does not parse as one is reported
    as absent without a round trip.
    """

    def __init__(self, supabase_url: str, supabase_service_role_key: str, table: str = "chat_sessions") -> None:
        self._url = supabase_url
        self._key = supabase_service_role_key
        self._table = table
        self._client: AsyncClient | None = None

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = await acreate_client(self._url, self._key)
        return self._client

    async def insert(self, intent: str) -> str:
        try:
            client = await self._get_client()
            resp = (
                await client.table(self._table)
                .insert({"user_intent": intent, "verified_docs": [], "revision": 0})
                .execute()
            )
        except Exception as e:
            logger.exception("Supabase insert failed")
            raise RepositoryError("Failed to create chat session in Supabase") from e

        data = getattr(resp, "data", None)
        if not data:
            raise RepositoryError("Supabase did not return the created chat session")
        return str(data[0]["id"])

    async def get(self, session_id: str) -> Session | None:
        if not _is_uuid(session_id):
            return None
        try:
            client = await self._get_client()
            resp = await client.table(self._table).select(_COLUMNS).eq("id", session_id).limit(1).execute()
        except Exception as e:
            logger.exception("Supabase select failed")
            raise RepositoryError("Failed to read chat session from Supabase") from e

        data = getattr(resp, "data", None)
        if not data:
            return None
        return _to_session(data[0])

    async def update_intent(self, session_id: str, intent: str) -> int:
        if not _is_uuid(session_id):
            return 0
        return await self._update(session_id, {"user_intent": intent})

    async def replace_verified_documents(
        self,
        session_id: str,
        documents: Sequence[VerifiedDocument],
        expected_revision: int,
    ) -> int:
        if not _is_uuid(session_id):
            return 0
        fields = {
            "verified_docs": [doc.model_dump(mode="json") for doc in documents],
            "revision": expected_revision + 1,
        }
        return await self._update(session_id, fields, revision=expected_revision)

    async def _update(self, session_id: str, fields: dict[str, Any], revision: int | None = None) -> int:
        try:
            client = await self._get_client()
            query = client.table(self._table).update(fields).eq("id", session_id)
            if revision is not None:
                query = query.eq("revision", revision)
            resp = await query.execute()
        except Exception as e:
            logger.exception("Supabase update failed")
            raise RepositoryError("Failed to update chat session in Supabase") from e

        return len(getattr(resp, "data", None) or [])
