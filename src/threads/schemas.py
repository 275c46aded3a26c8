"""Pydantic schemas for thread and message requests and responses."""

import uuid
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field


# --- Message parts ---

class TextPart(BaseModel):
    type: Literal["text"]
    text: str


class FilePart(BaseModel):
    type: Literal["file"]
    media_type: str
    url: str
    filename: str | None = None


MessagePart = Annotated[TextPart | FilePart, Field(discriminator="type")]


class ThreadMessage(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Literal["user"] = "user"
    parts: list[MessagePart] = Field(min_length=1)


# --- Requests ---

class ChatRequest(BaseModel):
    message: ThreadMessage
    model_id: str


# --- Responses ---

class ThreadResponse(BaseModel):
    id: str
    user_id: str
    status: str
    stream_id: str | None = None
    title: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class MessageResponse(BaseModel):
    id: str
    thread_id: str
    role: str
    parts: list[dict[str, Any]]
    created_at: str | None = None


class ThreadView(BaseModel):
    """What the message list renders: ordered ids plus the streaming flag."""
    status: str = "success"
    thread: ThreadResponse
    message_ids: list[str]
    is_streaming: bool
    messages: list[MessageResponse]


class ThreadListResponse(BaseModel):
    status: str = "success"
    data: list[ThreadResponse]
    page: int
    per_page: int
