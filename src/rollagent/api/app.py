"""
FastAPI application factory.

Exposes one conversational operation and the session CRUD around it:

    GET    /api/health
    POST   /api/sessions/{session_id}/messages
    GET    /api/sessions
    GET    /api/sessions/{session_id}
    DELETE /api/sessions/{session_id}
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..agent import SessionManager
from ..config import Settings, get_settings
from ..exceptions import SessionNotFoundError
from ..storage import SessionRecord

logger = structlog.get_logger()

API_VERSION = "0.1.0"


class MessageRequest(BaseModel):
    """An incoming user message."""
    message: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    session_id: str
    reply: str


def _summary(record: SessionRecord) -> dict[str, Any]:
    return {
        "session_id": record.session_id,
        "title": record.title,
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
        "message_count": len(record.messages),
        "summary_count": len(record.rolling_summaries),
    }


def create_app(
    session_manager: SessionManager | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    When no session manager is given, the lifespan handler builds the full
    runtime from settings and drains background work on shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        runtime = None
        if session_manager is None:
            from ..runtime import build_runtime

            runtime = await build_runtime(settings)
            app.state.session_manager = runtime.session_manager
        else:
            app.state.session_manager = session_manager

        yield

        if runtime is not None:
            await runtime.shutdown()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        description="Conversational agent runtime with rolling session memory",
        version=API_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def manager(request: Request) -> SessionManager:
        current = getattr(request.app.state, "session_manager", None)
        if current is None:
            raise HTTPException(status_code=503, detail="Service not ready")
        return current

    @app.get("/api/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": API_VERSION,
            "ready": getattr(request.app.state, "session_manager", None) is not None,
            "provider": settings.default_provider,
            "session_backend": settings.session_backend,
        }

    @app.post("/api/sessions/{session_id}/messages", response_model=MessageResponse)
    async def send_message(session_id: str, body: MessageRequest, request: Request):
        """Run one conversational turn and return the final reply."""
        reply = await manager(request).handle_incoming_message(session_id, body.message)
        return MessageResponse(session_id=session_id, reply=reply)

    @app.get("/api/sessions")
    async def list_sessions(request: Request):
        """List sessions, most recently updated first."""
        records = await manager(request).list_sessions()
        return {"sessions": [_summary(r) for r in records], "count": len(records)}

    @app.get("/api/sessions/{session_id}")
    async def get_session(session_id: str, request: Request):
        """Get a session with its raw transcript and rolling summaries."""
        try:
            record = await manager(request).get_session(session_id)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        data = _summary(record)
        data["messages"] = [m.to_dict() for m in record.messages]
        data["rolling_summaries"] = [s.to_dict() for s in record.rolling_summaries]
        return data

    @app.delete("/api/sessions/{session_id}")
    async def delete_session(session_id: str, request: Request):
        """Delete a session."""
        try:
            await manager(request).delete_session(session_id)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"status": "deleted", "session_id": session_id}

    return app
