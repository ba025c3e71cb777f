from functools import lru_cache

from langchain_core.tools import StructuredTool

from dmv_assistant.core.config import settings
from dmv_assistant.infra.document_extractor import DocumentExtractor
from dmv_assistant.infra.json_catalog import JsonRequirementCatalog
from dmv_assistant.infra.llm_classifier import LangChainDocumentClassifier
from dmv_assistant.infra.supabase_repo import SupabaseSessionRepository
from dmv_assistant.services.agent_tools import build_agent_tools
from dmv_assistant.services.intent_store import IntentStore
from dmv_assistant.services.session_workflow import SessionWorkflow
from dmv_assistant.services.verified_ledger import VerifiedDocumentLedger


@lru_cache(maxsize=1)
def get_catalog() -> JsonRequirementCatalog:
    return JsonRequirementCatalog.from_directory(settings.catalog_dir)


@lru_cache(maxsize=1)
def get_session_repository() -> SupabaseSessionRepository:
    return SupabaseSessionRepository(
        settings.supabase_url,
        settings.supabase_service_role_key,
        table=settings.sessions_table,
    )


@lru_cache(maxsize=1)
def get_document_classifier() -> LangChainDocumentClassifier:
    return LangChainDocumentClassifier()


def get_session_workflow() -> SessionWorkflow:
    repo = get_session_repository()
    return SessionWorkflow(
        catalog=get_catalog(),
        intents=IntentStore(repo),
        extractor=DocumentExtractor(max_bytes=settings.max_upload_bytes),
        classifier=get_document_classifier(),
        ledger=VerifiedDocumentLedger(repo, max_attempts=settings.ledger_max_attempts),
        classify_attempts=settings.classifier_max_attempts,
        retry_wait_seconds=settings.classifier_retry_wait_seconds,
    )


def get_intent_store() -> IntentStore:
    return IntentStore(get_session_repository())


def get_agent_tools() -> list[StructuredTool]:
    return build_agent_tools(get_session_workflow())


def get_upload_limit() -> int:
    return settings.max_upload_bytes
