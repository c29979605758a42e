"""
Relay HTTP endpoints.

POST /api/chat forwards a conversation or a single prompt to Ollama and
either streams the generated text back as text/plain or returns one JSON
document when the caller asks for stream=false.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse, StreamingResponse

from .config import config
from .models import ChatRequest, ChatShape, EchoRequest
from .ollama_client import UpstreamRejected, UpstreamUnreachable, ollama, read_detail
from .relay import extract_reply, normalize_request, relay_stream

logger = logging.getLogger(__name__)

router = APIRouter()


def _upstream_error(detail: str) -> JSONResponse:
    return JSONResponse(status_code=502, content={"error": "upstream_error", "detail": detail})


def _server_error(detail: str) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": "server_error", "detail": detail})


@router.post("/api/chat")
async def chat(body: ChatRequest):
    """
    Relay a chat request to Ollama.

    Accepts either {"messages": [{role, content}, ...]} or {"prompt": "..."}.
    Upstream failures before any output map to 502, anything else to 500.

    A missing body is only detectable before streaming from a 204 or
    Content-Length: 0. A chunked body that turns out to hold zero bytes
    is found after headers are committed, so it ends as a 200 with a
    single empty chunk.
    """
    try:
        upstream = normalize_request(body)
        turns = len(upstream.shape.messages) if isinstance(upstream.shape, ChatShape) else 0
        logger.info(f"Chat: endpoint={upstream.path}, model={upstream.model}, "
                    f"turns={turns}, stream={upstream.stream}")

        response = await ollama.send(upstream.path, upstream.payload(), streaming=upstream.stream)

        if not response.is_success:
            detail = await read_detail(response)
            raise UpstreamRejected(response.status_code, detail)

        if not upstream.stream:
            return {"response": extract_reply(response.json()), "model": upstream.model}

        if response.status_code == 204 or response.headers.get("content-length") == "0":
            await response.aclose()
            raise UpstreamRejected(response.status_code, "empty upstream body")

        return StreamingResponse(
            relay_stream(response),
            media_type="text/plain",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
            },
        )

    except UpstreamRejected as e:
        logger.error(f"Ollama rejected request: HTTP {e.status_code} {e.detail[:200]}")
        return _upstream_error(e.detail)
    except UpstreamUnreachable as e:
        return _upstream_error(str(e))
    except Exception as e:
        logger.exception("Chat request failed")
        return _server_error(str(e))


@router.get("/api/models")
async def list_models():
    """Models installed in Ollama."""
    try:
        models = await ollama.list_models()
    except UpstreamRejected as e:
        return _upstream_error(e.detail)
    except UpstreamUnreachable as e:
        return _upstream_error(str(e))
    return {"models": models, "default": config.chat_model}


@router.post("/api/echo")
async def echo(body: EchoRequest):
    """Echo the last message (or the prompt) without touching Ollama."""
    last = body.messages[-1].content if body.messages else body.prompt
    return {"response": f"echo: {last}"}
