"""Pytest configuration and fixtures."""

import asyncio
import io
import os
from collections.abc import Sequence
from uuid import uuid4

# Settings are read at import time; provide the required values before any app module loads.
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("OPENAI_API_KEY", "test-key")

import pytest
from PIL import Image

from dmv_assistant.domain.models import (
    ClassificationResult,
    ClassificationVerdict,
    ExtractedContent,
    Session,
    TicketTypeInfo,
    VerifiedDocument,
)
from dmv_assistant.infra.document_extractor import DocumentExtractor
from dmv_assistant.infra.json_catalog import JsonRequirementCatalog
from dmv_assistant.services.intent_store import IntentStore
from dmv_assistant.services.session_workflow import SessionWorkflow
from dmv_assistant.services.verified_ledger import VerifiedDocumentLedger

NEW_LICENSE = "Apply for a new standard driver license"


class InMemorySessionRepository:
    """Session store double with the same conditional-update semantics as the Supabase table."""

    def __init__(self) -> None:
        self.rows: dict[str, dict] = {}
        self.intent_writes = 0

    async def insert(self, intent: str) -> str:
        session_id = str(uuid4())
        self.rows[session_id] = {"intent": intent, "verified_documents": [], "revision": 0}
        return session_id

    async def get(self, session_id: str) -> Session | None:
        row = self.rows.get(session_id)
        if row is None:
            return None
        session = Session(
            id=session_id,
            intent=row["intent"],
            verified_documents=list(row["verified_documents"]),
            revision=row["revision"],
        )
        # Yield so concurrent callers can interleave between read and write.
        await asyncio.sleep(0)
        return session

    async def update_intent(self, session_id: str, intent: str) -> int:
        await asyncio.sleep(0)
        row = self.rows.get(session_id)
        if row is None:
            return 0
        row["intent"] = intent
        self.intent_writes += 1
        return 1

    async def replace_verified_documents(
        self,
        session_id: str,
        documents: Sequence[VerifiedDocument],
        expected_revision: int,
    ) -> int:
        row = self.rows.get(session_id)
        if row is None or row["revision"] != expected_revision:
            return 0
        row["verified_documents"] = list(documents)
        row["revision"] += 1
        return 1


class StubClassifier:
    """Returns (or raises) queued outcomes in order; the last one repeats."""

    def __init__(self, *outcomes: ClassificationResult | Exception) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[tuple[str, ExtractedContent]] = []

    async def classify(self, expected_type: str, content: ExtractedContent) -> ClassificationResult:
        self.calls.append((expected_type, content))
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_pdf(text: str) -> bytes:
    """Build a one-page PDF whose page shows `text` in Helvetica."""
    stream = f"BT /F1 18 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_at = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF\n".encode()
    return bytes(out)


def make_image(fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), color=(200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


def match(rationale: str = "") -> ClassificationResult:
    return ClassificationResult(verdict=ClassificationVerdict.MATCH, rationale=rationale)


def no_match(rationale: str = "") -> ClassificationResult:
    return ClassificationResult(verdict=ClassificationVerdict.NO_MATCH, rationale=rationale)


@pytest.fixture
def catalog() -> JsonRequirementCatalog:
    return JsonRequirementCatalog(
        required_docs={
            "CA": {
                NEW_LICENSE: ["Proof of Identity", "Proof of Address"],
                "REAL ID": ["Proof of Identity", "Proof of Social Security Number", "Proof of Address"],
                "Register a vehicle": ["Vehicle Title", "Proof of Insurance", "Vehicle Title"],
            },
            "NY": {
                NEW_LICENSE: ["Proof of Identity", "Proof of Date of Birth"],
            },
        },
        ticket_types={
            "driver_license": TicketTypeInfo(category="Licensing", services=[NEW_LICENSE, "Renew a driver license"]),
            "real_id": TicketTypeInfo(category="Identification", services=["REAL ID"]),
            "vehicle_registration": TicketTypeInfo(category="Vehicles", services=["Register a vehicle"]),
        },
    )


@pytest.fixture
def repo() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf("PASSPORT United States of America")


@pytest.fixture
def png_bytes() -> bytes:
    return make_image("PNG")


@pytest.fixture
def workflow_factory(catalog, repo):
    """Build a SessionWorkflow around the in-memory repo and a stub classifier."""

    def create(classifier: StubClassifier, classify_attempts: int = 1, ledger_attempts: int = 3) -> SessionWorkflow:
        return SessionWorkflow(
            catalog=catalog,
            intents=IntentStore(repo),
            extractor=DocumentExtractor(max_bytes=1024 * 1024),
            classifier=classifier,
            ledger=VerifiedDocumentLedger(repo, max_attempts=ledger_attempts),
            classify_attempts=classify_attempts,
            retry_wait_seconds=0,
        )

    return create
