import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class MessageCreateRequest(BaseModel):
    text: str


class MessageResponse(BaseModel):
    id: uuid.UUID
    conversation_id: str
    sender_id: uuid.UUID
    text: str
    sequence: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
