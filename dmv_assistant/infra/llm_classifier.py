import logging
import re
from typing import Any, Final

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from dmv_assistant.core.config import settings
from dmv_assistant.core.errors import ClassificationUnavailableError, ConfigurationError
from dmv_assistant.domain.models import (
    ClassificationResult,
    ClassificationVerdict,
    ExtractedContent,
    ImageContent,
)
from dmv_assistant.domain.ports import DocumentClassifier

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT: Final[str] = "You are a DMV document verification agent."
_ANSWER_FORMAT: Final[str] = (
    "Does this document match the expected type? Reply with YES or NO first, then a short reasoning. "
    'If it does not match, include the sentence "The document type is <your best guess>."'
)
_MAX_TEXT_CHARS: Final[int] = 12_000
_VERDICT_RE: Final[re.Pattern[str]] = re.compile(r"^\W*\b(yes|no)\b\W*", re.IGNORECASE)


def _build_llm() -> BaseChatModel:
    provider = settings.llm_provider.lower().strip()

    if provider == "openai":
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for LLM_PROVIDER=openai")

        from langchain_openai import ChatOpenAI

        # Retries are the workflow's decision, not the client's.
        return ChatOpenAI(
            model=settings.llm_model,
            temperature=0.2,
            max_tokens=settings.classifier_max_tokens,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
            api_key=settings.openai_api_key,
        )

    raise ConfigurationError(f"Unsupported LLM_PROVIDER: {settings.llm_provider}")


def parse_verdict(reply: str) -> ClassificationResult:
    """Split a classifier reply into its leading YES/NO verdict and the rationale after it."""
    match = _VERDICT_RE.match(reply)
    if not match:
        raise ClassificationUnavailableError("Classifier reply did not start with YES or NO")

    verdict = ClassificationVerdict.MATCH if match.group(1).lower() == "yes" else ClassificationVerdict.NO_MATCH
    return ClassificationResult(verdict=verdict, rationale=reply[match.end():].strip())


def build_messages(expected_type: str, content: ExtractedContent) -> list[BaseMessage]:
    if isinstance(content, ImageContent):
        instruction = (
            f'The user has uploaded an image. The expected document type is: "{expected_type}".\n\n'
            f"{_ANSWER_FORMAT}"
        )
        human = HumanMessage(
            content=[
                {"type": "text", "text": instruction},
                {"type": "image_url", "image_url": {"url": f"data:{content.mime_type};base64,{content.value}"}},
            ]
        )
    else:
        text = content.value[:_MAX_TEXT_CHARS]
        if len(content.value) > _MAX_TEXT_CHARS:
            logger.info(
                "Truncated extracted text for %r from %d to %d characters",
                expected_type,
                len(content.value),
                _MAX_TEXT_CHARS,
            )
        instruction = (
            f'The user has uploaded a document. The expected document type is: "{expected_type}". '
            f"Here is the text extracted from the document:\n\n{text}\n\n{_ANSWER_FORMAT}"
        )
        human = HumanMessage(content=instruction)

    return [SystemMessage(content=_SYSTEM_PROMPT), human]


def _reply_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = (part if isinstance(part, str) else part.get("text", "") for part in content)
        return "".join(parts)
    raise ClassificationUnavailableError("Classifier returned an unexpected payload")


class LangChainDocumentClassifier(DocumentClassifier):
    """
    Single responsibility: ask a chat model whether extracted content is the
    expected document type.

    Infrastructure failures raise ClassificationUnavailableError; they are
    never reported as a NO verdict.
    """

    def __init__(self, llm: BaseChatModel | None = None) -> None:
        self._llm = llm

    def _get_llm(self) -> BaseChatModel:
        if self._llm is None:
            self._llm = _build_llm()
        return self._llm

    async def classify(self, expected_type: str, content: ExtractedContent) -> ClassificationResult:
        llm = self._get_llm()
        messages = build_messages(expected_type, content)
        try:
            response = await llm.ainvoke(messages)
        except Exception as e:
            logger.warning("Classification call failed: %s", e)
            raise ClassificationUnavailableError("LLM provider failed during classification") from e

        reply = _reply_text(getattr(response, "content", None)).strip()
        if not reply:
            raise ClassificationUnavailableError("LLM returned an empty response")

        result = parse_verdict(reply)
        logger.info("Classified upload as %s for expected type %r", result.verdict, expected_type)
        return result
