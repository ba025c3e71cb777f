from typing import Final

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, Field

from dmv_assistant.core.errors import NotFoundError
from dmv_assistant.services.session_workflow import SessionWorkflow

AGENT_INSTRUCTIONS: Final[str] = (
    "You are a helpful DMV agent. Gather the user's state, the DMV service they want "
    "(including REAL ID or a REAL ID-compliant license), and the documents they have. "
    "When you have all three, call the check_dmv_ticket tool and reply with the ticket result, "
    "including missing documents if any. Use the store_user_intent tool to save or update the "
    "user's intent for the chat session. If the user expresses an intent to get a REAL ID, treat it "
    "as a DMV service and call store_user_intent immediately, even if other details are missing."
)


class CheckTicketInput(BaseModel):
    state: str = Field(..., description="The state abbreviation (e.g., CA, NY, TX)")
    service: str = Field(..., description="The DMV service requested")
    provided_docs: list[str] = Field(default_factory=list, description="List of provided documents")


class StoreIntentInput(BaseModel):
    session_id: str = Field(..., description="Unique session identifier for the chat session")
    intent: str = Field(..., description="What the user wants to do at the DMV")


def build_agent_tools(workflow: SessionWorkflow) -> list[StructuredTool]:
    """Tools handed to the dialogue agent; each one delegates to the workflow."""

    def check_dmv_ticket(state: str, service: str, provided_docs: list[str]) -> dict:
        return workflow.evaluate_ticket(state, service, provided_docs).model_dump(mode="json")

    async def store_user_intent(session_id: str, intent: str) -> dict:
        try:
            await workflow.upsert_intent(session_id, intent)
        except NotFoundError as e:
            return {"success": False, "error": str(e)}
        return {"success": True}

    return [
        StructuredTool.from_function(
            func=check_dmv_ticket,
            name="check_dmv_ticket",
            description="Checks DMV ticket requirements and status based on state, service, and provided documents.",
            args_schema=CheckTicketInput,
        ),
        StructuredTool.from_function(
            coroutine=store_user_intent,
            name="store_user_intent",
            description="Stores or updates the user's DMV intent for the chat session.",
            args_schema=StoreIntentInput,
        ),
    ]
