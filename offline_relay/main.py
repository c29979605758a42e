"""
Offline AI Relay - Main Entry Point

Relays chat requests from a browser UI to a local Ollama runtime and
streams the generated text back as it is produced.

Usage:
    python -m offline_relay.main

Environment Variables:
    RELAY_HOST      - Server host (default: 0.0.0.0)
    PORT            - Server port (default: 3001)
    OLLAMA_URL      - Ollama API URL (default: http://localhost:11434)
    CHAT_MODEL      - Default model (default: llama3.1)
    WARMUP          - Load the default model at startup (default: 1)
    HISTORY_WINDOW  - Forward only the last N turns, 0 for all (default: 0)
    UPSTREAM_KEEPALIVE_EXPIRY - Seconds an idle Ollama connection is kept (default: 30)
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import config
from .ollama_client import ollama
from .api import router as api_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""

    # Startup
    logger.info("=" * 60)
    logger.info("Offline AI Relay Starting")
    logger.info("=" * 60)
    logger.info(f"Ollama URL: {config.ollama_url}")
    logger.info(f"Default model: {config.chat_model}")
    logger.info(f"Default options: {config.default_options()}")
    if config.history_window > 0:
        logger.info(f"History window: last {config.history_window} turns")

    # Warm-up is never awaited by request handling
    warmup_task = None
    if config.warmup:
        warmup_task = asyncio.create_task(ollama.warm_up())
    else:
        logger.info("Warm-up disabled")

    logger.info("-" * 60)
    logger.info(f"API up on http://{config.host}:{config.port}")
    logger.info(f"Chat endpoint: http://{config.host}:{config.port}/api/chat")
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("Shutting down...")
    if warmup_task and not warmup_task.done():
        warmup_task.cancel()
        try:
            await warmup_task
        except asyncio.CancelledError:
            pass
    await ollama.close()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Offline AI Relay",
    description=(
        "Streams chat completions from a local Ollama runtime. "
        "Accepts a conversation or a single prompt and relays the "
        "generated text as it arrives."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(api_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "ok": True,
        "server": config.server_name,
        "model": config.chat_model,
        "ollama": config.ollama_url,
    }


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {
        "name": "Offline AI Relay",
        "version": "0.1.0",
        "endpoints": {
            "chat": "/api/chat",
            "models": "/api/models",
            "echo": "/api/echo",
            "health": "/health",
        },
    }


def main():
    """Run the relay server."""
    uvicorn.run(
        "offline_relay.main:app",
        host=config.host,
        port=config.port,
        reload=False,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
