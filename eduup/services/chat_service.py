"""The AI teacher behind the chat widget.

History comes either from the request or from the stored conversation and
is flattened into a single prompt, one ``Student:`` / ``Učitel:`` line per
turn.
"""

import logging
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from eduup.core import ai_service
from eduup.core.config import settings
from eduup.crud import chat_crud
from eduup.models.chat.chat_message_model import ChatRole

logger = logging.getLogger(__name__)

REFUSAL_REPLY = "Promiň, s tímto ti nemohu pomoci. Zeptej se mě raději na něco ze školy. 😊"
FALLBACK_REPLY = "Promiň, nepodařilo se mi vygenerovat odpověď. Zkus to prosím znovu."
GREETING_MESSAGE = "Ahoj! Jsem učící pomocník. Zeptej se na cokoli ke škole (čeština, matika, aj.). 🙂"
QUOTA_MESSAGE = (
    "AI je dočasně nedostupná kvůli limitům (quota). Zkus to prosím později, "
    "nebo zapni billing / použij jiný API key."
)

SYSTEM_PROMPT = (
    "Jsi AI školní učitel. Pomáhej se školní látkou (matematika, čeština, angličtina atd.).\n"
    "Neodpovídej na dotazy mimo školu. Pokud přijde takový dotaz, napiš:\n"
    f'"{REFUSAL_REPLY}"\n'
    "Odpovídej česky."
)


class ChatConfigurationError(RuntimeError):
    """The server has no model credentials."""


def normalize_history(raw_history: Any, limit: Optional[int] = None) -> list[dict[str, str]]:
    """Last ``limit`` turns as ``{role, content}`` with role ``user`` or ``assistant``."""

    if not isinstance(raw_history, list):
        return []
    limit = limit or settings.CHAT_HISTORY_LIMIT
    history = []
    for entry in raw_history[-limit:]:
        entry = entry if isinstance(entry, dict) else {}
        content = entry.get("content")
        history.append(
            {
                "role": "assistant" if entry.get("role") == "assistant" else "user",
                "content": "" if content is None else str(content),
            }
        )
    return history


def is_out_of_scope(message: str, keywords: Optional[Iterable[str]] = None) -> bool:
    lowered = message.lower()
    blocked = settings.CHAT_BLOCKED_KEYWORDS if keywords is None else keywords
    return any(keyword and keyword.lower() in lowered for keyword in blocked)


def build_prompt(message: str, history: list[dict[str, str]]) -> str:
    transcript = "\n".join(
        f"{'Student' if turn['role'] == 'user' else 'Učitel'}: {turn['content']}" for turn in history
    )
    body = f"{transcript}\n" if transcript else ""
    return f"{SYSTEM_PROMPT}\n{body}Student: {message}\nUčitel:".strip()


def stored_history(db: Session, user_id: int) -> list[dict[str, str]]:
    messages = chat_crud.list_messages_for_user(db, user_id, limit=settings.CHAT_HISTORY_LIMIT)
    return [{"role": message.role.value, "content": message.content} for message in messages]


def history_for_display(db: Session, user_id: int) -> list[dict[str, Any]]:
    messages = chat_crud.list_messages_for_user(db, user_id)
    if not messages:
        return [{"role": ChatRole.ASSISTANT.value, "content": GREETING_MESSAGE, "created_at": None}]
    return [
        {"role": message.role.value, "content": message.content, "created_at": message.created_at}
        for message in messages
    ]


def generate_reply(
    db: Session,
    user_id: int,
    message: str,
    history: Optional[list] = None,
) -> str:
    """
    Answers a student message and stores both turns.

    Raises:
        ChatConfigurationError: no Gemini API key.
        ai_service.AIQuotaExceededError: provider quota exhausted.
        ai_service.AIServiceError: any other model failure.
    """
    if not settings.GEMINI_API_KEY:
        raise ChatConfigurationError("GEMINI_API_KEY missing")

    turns = normalize_history(history) if history is not None else stored_history(db, user_id)

    if is_out_of_scope(message):
        logger.info("Chat message of user %s refused by keyword filter", user_id)
        reply = REFUSAL_REPLY
    else:
        reply = ai_service.call_gemini(build_prompt(message, turns)).strip() or FALLBACK_REPLY

    chat_crud.append_exchange(db, user_id, question=message, reply=reply)
    return reply
