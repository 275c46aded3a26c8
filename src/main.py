"""Thread Chat API: FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config.settings import get_settings
from src.db.client import init_supabase
from src.middleware.error_handler import register_error_handlers
from src.threads.routes import router as threads_router
from src.usage.routes import router as usage_router

logging.basicConfig(
    level=get_settings().LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_supabase()
    yield


app = FastAPI(
    title="Thread Chat API",
    description=(
        "Orchestration API for AI chat threads.\n\n"
        "## Features\n"
        "- Thread preparation with ownership, stream-state and credit checks\n"
        "- Token-by-token streaming via SSE, resumable after disconnects\n"
        "- Automatic thread titles\n"
        "- Anonymous, free and pro quota tiers\n\n"
        "## Authentication\n"
        "All endpoints except `/health` and `/docs` require `Authorization: Bearer <jwt>`."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Threads", "description": "Chat, resume and view threads"},
        {"name": "Usage", "description": "Usage, limits and model information"},
    ],
)

# --- Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Stream-Id"],
)

# --- Error handlers ---
register_error_handlers(app)

# --- Routes ---
app.include_router(threads_router)
app.include_router(usage_router)


@app.get("/health", tags=["Health"], summary="Health check", description="Returns OK if the service is running.")
async def health_check():
    return {"status": "ok"}
