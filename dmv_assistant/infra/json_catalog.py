import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from types import MappingProxyType
from typing import Final

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from dmv_assistant.core.errors import ConfigurationError
from dmv_assistant.domain.models import TicketType, TicketTypeInfo
from dmv_assistant.domain.ports import RequirementCatalog

logger = logging.getLogger(__name__)

REQUIRED_DOCS_FILE: Final[str] = "required_docs.json"
JOBS_FILE: Final[str] = "dmv_jobs.json"

_REQUIRED_DOCS_ADAPTER: Final = TypeAdapter(dict[str, dict[str, list[str]]])
_JOBS_ADAPTER: Final = TypeAdapter(dict[str, TicketTypeInfo])
_UNKNOWN_TICKET: Final[TicketType] = TicketType()


class JsonRequirementCatalog(RequirementCatalog):
    """
    Read-only view over the two catalog tables:
    - required documents per jurisdiction and service
    - services per ticket type, with the ticket type's category

    A service listed under several ticket types belongs to the first one in
    file order; later listings are ignored with a warning.
    """

    def __init__(
        self,
        required_docs: Mapping[str, Mapping[str, Sequence[str]]],
        ticket_types: Mapping[str, TicketTypeInfo],
    ) -> None:
        self._required = MappingProxyType(
            {
                jurisdiction: MappingProxyType(
                    {service: tuple(dict.fromkeys(docs)) for service, docs in services.items()}
                )
                for jurisdiction, services in required_docs.items()
            }
        )

        index: dict[str, TicketType] = {}
        for ticket_type, info in ticket_types.items():
            for service in info.services:
                if service in index:
                    logger.warning(
                        "Service %r is listed under %r and %r; keeping %r",
                        service,
                        index[service].ticket_type,
                        ticket_type,
                        index[service].ticket_type,
                    )
                    continue
                index[service] = TicketType(ticket_type=ticket_type, category=info.category)
        self._ticket_types = MappingProxyType(index)

    @classmethod
    def from_directory(cls, directory: Path) -> "JsonRequirementCatalog":
        try:
            required_docs = _REQUIRED_DOCS_ADAPTER.validate_json((directory / REQUIRED_DOCS_FILE).read_bytes())
            ticket_types = _JOBS_ADAPTER.validate_json((directory / JOBS_FILE).read_bytes())
        except OSError as e:
            raise ConfigurationError(f"Cannot read requirement catalog in {directory}") from e
        except PydanticValidationError as e:
            raise ConfigurationError(f"Malformed requirement catalog in {directory}: {e}") from e

        catalog = cls(required_docs, ticket_types)
        logger.info(
            "Loaded requirement catalog: %d jurisdictions, %d services",
            len(required_docs),
            len(catalog.all_known_services()),
        )
        return catalog

    def required_documents(self, jurisdiction: str, service: str) -> tuple[str, ...]:
        return self._required.get(jurisdiction, MappingProxyType({})).get(service, ())

    def resolve_ticket_type(self, service: str) -> TicketType:
        return self._ticket_types.get(service, _UNKNOWN_TICKET)

    def all_known_services(self) -> tuple[str, ...]:
        return tuple(self._ticket_types)
