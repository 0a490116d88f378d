from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ChatHistoryEntry(BaseModel):
    role: str
    content: str
    created_at: Optional[datetime] = None


class ChatReply(BaseModel):
    reply: str
