"""FastAPI application entrypoint and routes.

Exposes /health, the /api/chat endpoint and session history endpoints,
configures CORS, and builds the service container at startup. The chat
endpoint delegates retrieval, generation and history to ChatService and maps
its tagged outcome to HTTP.
"""
import logging
import uuid
from typing import Optional

import redis
from fastapi import Cookie, Depends, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware

from newsrag.chat import OutcomeKind
from newsrag.config import settings
from newsrag.dependencies import Services, build_services, get_services
from newsrag.schemas import ChatRequest, ChatResponse, HistoryResponse

logger = logging.getLogger(__name__)

SESSION_COOKIE = "sessionId"

app = FastAPI(title="News RAG API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_credentials=True,
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    """Configure logging and build long-lived clients once per process."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    # Tests install their own container before startup
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings)


def session_id_cookie(
    response: Response,
    session_id: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
) -> str:
    """Return the caller's session id, issuing a new cookie when absent."""
    if session_id:
        return session_id
    session_id = str(uuid.uuid4())
    response.set_cookie(SESSION_COOKIE, session_id, httponly=False, samesite="lax")
    return session_id


@app.get("/health")
def health():
    """Liveness probe endpoint.

    Returns:
        dict: {"ok": true} when the service is running.
    """
    return {"ok": True}


@app.post("/api/chat", response_model=ChatResponse)
def chat(
    req: ChatRequest,
    session_id: str = Depends(session_id_cookie),
    services: Services = Depends(get_services),
) -> ChatResponse:
    """Answer a news question grounded on retrieved articles.

    Workflow:
    - Reject blank messages (400)
    - Record the message, retrieve top-k chunks, build the cited prompt
    - Generate with retry/fallback and record the reply
    - Map backend failures to a friendly 200 reply, configuration errors to 500

    Returns:
        ChatResponse: Reply, sources (S1..Sn) and the session id.
    """
    if not req.message or not req.message.strip():
        raise HTTPException(status_code=400, detail="message is required")

    outcome = services.chat.handle(req.message, session_id)
    if outcome.kind is OutcomeKind.FATAL:
        logger.error("Chat failed for session %s: %s", session_id, outcome.error)
        raise HTTPException(status_code=500, detail="internal error")
    return ChatResponse(reply=outcome.reply, sources=outcome.sources, session_id=session_id)


@app.get("/api/session/{session_id}/history", response_model=HistoryResponse)
def session_history(session_id: str, services: Services = Depends(get_services)) -> HistoryResponse:
    try:
        history = services.sessions.get_history(session_id)
    except redis.RedisError as e:
        logger.exception("History lookup failed for session %s", session_id)
        raise HTTPException(status_code=500, detail=str(e))
    return HistoryResponse(session_id=session_id, history=history)


@app.delete("/api/session/{session_id}")
def reset_session(session_id: str, services: Services = Depends(get_services)):
    """Delete a session's history."""
    try:
        services.sessions.delete(session_id)
    except redis.RedisError as e:
        logger.exception("Session reset failed for session %s", session_id)
        raise HTTPException(status_code=500, detail=str(e))
    return {"ok": True}
