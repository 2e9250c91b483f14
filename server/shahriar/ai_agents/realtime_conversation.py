"""Instructions and local tools for the realtime voice conversation."""
from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from agents import function_tool

from ..models.schemas import UserProfile
from ..services.tasks import TaskItem

KNOWLEDGE_BASE_TOOL = "search_knowledge_base"

_RAFSANJAN_FACTS = (
    "Rafsanjan is the largest pistachio producer in the world. "
    "Sights include the Haj Agha Ali house, the Presidential museum and the historic bazaar."
)


def lookup_local_knowledge(query: str) -> str:
    """Answer a knowledge-base query from the bundled facts.

    There is no index behind this yet; every query gets the same facts.
    """
    return f'Information for "{query}": {_RAFSANJAN_FACTS}'


@function_tool(name_override=KNOWLEDGE_BASE_TOOL)
async def search_knowledge_base(query: str) -> str:
    """Search for specific information about Rafsanjan in the knowledge base.

    Args:
        query: The search query.
    """
    return lookup_local_knowledge(query)


def _format_tasks(tasks: Iterable[TaskItem]) -> str:
    return "\n".join(f"- {task.title} ({task.status})" for task in tasks)


def build_system_instruction(
    user: UserProfile,
    tasks: Iterable[TaskItem],
    today: Optional[date] = None,
) -> str:
    """Compose the assistant persona prompt for one user."""
    today = today or date.today()
    tasks_summary = _format_tasks(tasks)
    return f"""
You are "Shahriar", the native, smart AI assistant of the city of Rafsanjan.
Today's date is {today.strftime('%A, %d %B %Y')}.
User's custom instructions: {user.custom_instructions or 'none'}
Your knowledge covers Rafsanjan's sights, its pistachios and its culture.
The user's tasks:
{tasks_summary or 'No tasks yet'}

If you need specialised information, use the "{KNOWLEDGE_BASE_TOOL}" tool.
Keep your answers short, spoken and conversational, in Persian unless the user speaks another language.
"""
