"""FastAPI backend for streaming LLM council sessions.

Serve with ``uvicorn council_backend.main:create_app --factory`` or
``python -m council_backend.main``.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from .config import CouncilConfig
from .council import CouncilOrchestrator, CouncilValidationError, encode_sse
from .providers import ModelBackend, OpenRouterProvider
from .storage import JSONMessageStore, MessageSink

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ========== Models ==========


class CouncilRequest(BaseModel):
    prompt: Optional[str] = None
    selectedModels: Optional[List[str]] = None
    conversationId: Optional[str] = None
    chairmanModel: Optional[str] = None


# ========== App ==========


def create_app(
    config: Optional[CouncilConfig] = None,
    backend: Optional[ModelBackend] = None,
    sink: Optional[MessageSink] = None,
) -> FastAPI:
    """Build the API around one config, backend and sink, created here when not supplied."""
    if config is None:
        configure_logging()
        config = CouncilConfig.from_env()
    backend = backend or OpenRouterProvider(config)
    sink = sink or JSONMessageStore(config.data_dir)
    orchestrator = CouncilOrchestrator(config, backend, sink)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting LLM Council API...")
        logger.info("Default chairman: %s", config.default_chairman)
        if not config.api_key:
            logger.warning("OPENROUTER_API_KEY is not set; model calls will fail")
        yield
        await backend.aclose()
        logger.info("Shutting down LLM Council API...")

    app = FastAPI(title="LLM Council", lifespan=lifespan)
    app.state.config = config
    app.state.orchestrator = orchestrator
    app.state.sink = sink

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========== Council Endpoint ==========

    @app.post("/api/council")
    async def run_council(request: CouncilRequest):
        try:
            orchestrator.validate(request.prompt, request.selectedModels)
        except CouncilValidationError as e:
            return JSONResponse(status_code=400, content={"error": str(e)})

        logger.info("Council request received for %d models", len(request.selectedModels))

        async def event_stream():
            async for event in orchestrator.stream(
                request.prompt,
                request.selectedModels,
                conversation_id=request.conversationId,
                chairman=request.chairmanModel,
            ):
                yield encode_sse(event)

        return StreamingResponse(
            event_stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    # ========== Conversation Endpoints ==========

    @app.get("/api/conversations/{conversation_id}")
    async def get_conversation(conversation_id: str):
        conversation = await sink.get_conversation(conversation_id)
        if not conversation:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return conversation

    # ========== Health Check ==========

    @app.get("/api/health")
    async def health_check():
        return {
            "status": "ok",
            "chairman": config.default_chairman,
            "api_key_configured": bool(config.api_key),
        }

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "council_backend.main:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8001")),
    )
