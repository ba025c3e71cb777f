from collections.abc import Iterable

from dmv_assistant.domain.models import TicketStatus, TicketVerdict
from dmv_assistant.domain.ports import RequirementCatalog


class TicketEvaluator:
    """
    Pure use-case: compare the documents a user already has with what the
    catalog requires for (jurisdiction, service).

    Unknown jurisdictions or services are not errors; they yield an empty
    requirement set and empty ticket type/category.
    """

    def __init__(self, catalog: RequirementCatalog) -> None:
        self._catalog = catalog

    def evaluate(self, jurisdiction: str, service: str, provided_documents: Iterable[str]) -> TicketVerdict:
        provided = set(provided_documents)
        required = self._catalog.required_documents(jurisdiction, service)
        missing = [doc for doc in dict.fromkeys(required) if doc not in provided]
        ticket = self._catalog.resolve_ticket_type(service)

        return TicketVerdict(
            category=ticket.category,
            ticket_type=ticket.ticket_type,
            status=TicketStatus.INCOMPLETE if missing else TicketStatus.COMPLETE,
            missing_documents=missing,
        )
