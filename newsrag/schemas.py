"""Pydantic request/response schemas for the API.

Defines the public contracts used by the FastAPI endpoints:
- ChatRequest: Input payload for the chat endpoint.
- Source: Retrieved source reference returned alongside a reply.
- ChatResponse: Output payload with the reply, sources and session id.
- HistoryMessage / HistoryResponse: Session history payloads.
"""
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Request body for a chat message.

    Attributes:
        message: The user message; whitespace-only messages are rejected by the route.
    """
    message: str = Field(default="", description="User message")


class Source(BaseModel):
    """A retrieved source cited in the reply.

    Attributes:
        id: Citation label ("S1", "S2", ...) matching the prompt's source order.
        title: Document title.
        url: Document URL.
        score: Similarity score of the retrieved chunk.
    """
    id: str
    title: str
    url: str
    score: float


class ChatResponse(BaseModel):
    """Response body returned by the chat endpoint.

    Attributes:
        reply: The generated (or informational) reply text.
        sources: Sources in citation order; empty when nothing was retrieved or
            the backend was unavailable.
        session_id: Session identifier (serialized as ``sessionId``).
    """
    model_config = ConfigDict(populate_by_name=True)

    reply: str
    sources: List[Source]
    session_id: str = Field(..., alias="sessionId")


class HistoryMessage(BaseModel):
    role: str
    content: str
    ts: int = 0


class HistoryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    history: List[HistoryMessage]
