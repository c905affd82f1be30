from typing import List, Optional
from pydantic import BaseModel, Field

# Subset of the Telegram Bot API Update object this bot consumes.
# Unknown fields are ignored (pydantic default), so new API fields never break parsing.

class Chat(BaseModel):
    id: int
    type: Optional[str] = None

class User(BaseModel):
    id: int
    is_bot: bool = False
    username: Optional[str] = None

class Message(BaseModel):
    message_id: int
    chat: Chat
    text: Optional[str] = None
    from_user: Optional[User] = Field(default=None, alias="from")

class CallbackQuery(BaseModel):
    id: str
    data: Optional[str] = None
    # Absent when the originating message is too old to be accessible
    message: Optional[Message] = None
    from_user: Optional[User] = Field(default=None, alias="from")

class ReactionType(BaseModel):
    type: str
    emoji: Optional[str] = None

class MessageReactionUpdated(BaseModel):
    chat: Chat
    message_id: int
    new_reaction: List[ReactionType] = Field(default_factory=list)

class Update(BaseModel):
    update_id: int
    message: Optional[Message] = None
    callback_query: Optional[CallbackQuery] = None
    message_reaction: Optional[MessageReactionUpdated] = None

class WebhookResponse(BaseModel):
    ok: bool = True
