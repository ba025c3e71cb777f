"""Unit tests for the Supabase session repository, with the client mocked out."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from dmv_assistant.core.errors import RepositoryError
from dmv_assistant.domain.models import VerifiedDocument
from dmv_assistant.infra.supabase_repo import SupabaseSessionRepository

SESSION_ID = "5b0f8a52-3f1e-4a59-9d43-1c1f3d2a9e10"


def _query(data=None, error=None):
    """A chainable PostgREST query double whose execute() returns `data` or raises `error`."""
    query = MagicMock()
    for method in ("insert", "select", "update", "eq", "limit"):
        getattr(query, method).return_value = query
    query.execute = AsyncMock(return_value=SimpleNamespace(data=data), side_effect=error)
    return query


def _repo(query):
    repo = SupabaseSessionRepository("https://example.supabase.co", "key")
    client = MagicMock()
    client.table.return_value = query
    repo._client = client
    return repo, client


@pytest.mark.unit
class TestSupabaseSessionRepository:
    @pytest.mark.asyncio
    async def test_insert_returns_new_id(self):
        query = _query(data=[{"id": SESSION_ID}])
        repo, client = _repo(query)

        session_id = await repo.insert("Renew my license")

        assert session_id == SESSION_ID
        client.table.assert_called_with("chat_sessions")
        query.insert.assert_called_once_with({"user_intent": "Renew my license", "verified_docs": [], "revision": 0})

    @pytest.mark.asyncio
    async def test_insert_failure_is_repository_error(self):
        repo, _ = _repo(_query(error=RuntimeError("connection reset")))

        with pytest.raises(RepositoryError):
            await repo.insert("")

    @pytest.mark.asyncio
    async def test_get_maps_row(self):
        row = {
            "id": SESSION_ID,
            "user_intent": "REAL ID",
            "verified_docs": [
                {"expected_type": "Passport", "filename": "p.pdf", "verified_at": "2026-10-19T12:00:00+00:00"}
            ],
            "revision": 4,
        }
        repo, _ = _repo(_query(data=[row]))

        session = await repo.get(SESSION_ID)

        assert session.id == SESSION_ID
        assert session.intent == "REAL ID"
        assert session.revision == 4
        assert session.verified_documents[0].expected_type == "Passport"

    @pytest.mark.asyncio
    async def test_get_missing_row_is_none(self):
        repo, _ = _repo(_query(data=[]))

        assert await repo.get(SESSION_ID) is None

    @pytest.mark.asyncio
    async def test_non_uuid_ids_skip_the_round_trip(self):
        query = _query(data=[{"id": SESSION_ID}])
        repo, _ = _repo(query)

        assert await repo.get("not-a-uuid") is None
        assert await repo.update_intent("not-a-uuid", "x") == 0
        query.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_intent_reports_affected_rows(self):
        query = _query(data=[{"id": SESSION_ID}])
        repo, _ = _repo(query)

        assert await repo.update_intent(SESSION_ID, "Register a vehicle") == 1
        query.update.assert_called_once_with({"user_intent": "Register a vehicle"})
        query.eq.assert_called_once_with("id", SESSION_ID)

    @pytest.mark.asyncio
    async def test_replace_documents_is_conditional_on_revision(self):
        query = _query(data=[])
        repo, _ = _repo(query)
        doc = VerifiedDocument(expected_type="Passport", filename="p.pdf", verified_at="2026-10-19T12:00:00Z")

        affected = await repo.replace_verified_documents(SESSION_ID, [doc], expected_revision=2)

        assert affected == 0
        fields = query.update.call_args.args[0]
        assert fields["revision"] == 3
        assert fields["verified_docs"][0]["expected_type"] == "Passport"
        query.eq.assert_any_call("revision", 2)

    @pytest.mark.asyncio
    async def test_update_failure_is_repository_error(self):
        repo, _ = _repo(_query(error=RuntimeError("boom")))

        with pytest.raises(RepositoryError):
            await repo.update_intent(SESSION_ID, "x")
