"""
Streaming relay between the inbound chat call and Ollama.

Ollama streams newline-delimited JSON. Each line carries either a
"response" field (generate endpoint), a "message.content" field (chat
endpoint) or an "error" field. The relay decodes the byte stream
incrementally, pulls the text out of every complete line and writes it to
the client in arrival order.

Per-request state lives in RelayState and is never shared between
requests.
"""

import codecs
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, List, Optional

import httpx

from .config import Config, config
from .models import (
    ChatRequest,
    ChatShape,
    ChunkKind,
    ChunkPart,
    PromptShape,
    UpstreamRequest,
)

logger = logging.getLogger(__name__)


def normalize_request(body: ChatRequest, cfg: Config = config) -> UpstreamRequest:
    """Pick the upstream shape and fill in model and option defaults."""
    model = str(body.model or cfg.chat_model)

    options = cfg.default_options()
    options.update(body.options or {})

    if body.messages:
        turns = [{"role": t.role, "content": t.content} for t in body.messages]
        if cfg.history_window > 0:
            turns = turns[-cfg.history_window:]
        shape = ChatShape(messages=turns)
    else:
        shape = PromptShape(prompt=str(body.prompt or ""))

    return UpstreamRequest(shape=shape, model=model, stream=body.stream, options=options)


def decode_chunk(obj: Any) -> List[ChunkPart]:
    """
    Extract every recognized text field from one decoded chunk.

    "response" and "message.content" are checked independently, so a chunk
    carrying both yields both. Empty strings are skipped.
    """
    if not isinstance(obj, dict):
        return []

    parts = []

    response = obj.get("response")
    if isinstance(response, str) and response:
        parts.append(ChunkPart(ChunkKind.GENERATE, response))

    message = obj.get("message")
    if isinstance(message, dict):
        content = message.get("content")
        if isinstance(content, str) and content:
            parts.append(ChunkPart(ChunkKind.CHAT, content))

    error = obj.get("error")
    if error:
        parts.append(ChunkPart(ChunkKind.ERROR, error if isinstance(error, str) else json.dumps(error)))

    return parts


def extract_reply(data: Any) -> str:
    """Text of a complete (non-streaming) upstream reply."""
    for part in decode_chunk(data):
        if part.kind != ChunkKind.ERROR:
            return part.text
    return ""


@dataclass
class RelayState:
    """Line buffer and output flag for one relayed request."""
    buffer: str = ""
    wrote_any: bool = False
    fragments: int = 0
    decoder: codecs.IncrementalDecoder = field(
        default_factory=lambda: codecs.getincrementaldecoder("utf-8")(errors="replace")
    )

    def feed(self, data: bytes) -> List[str]:
        """
        Decode a read and return the fragments of every line it completed.

        Bytes of a character split across reads stay in the decoder; the
        text after the last newline stays in the buffer.
        """
        self.buffer += self.decoder.decode(data)
        if "\n" not in self.buffer:
            return []

        *lines, self.buffer = self.buffer.split("\n")
        out = []
        for line in lines:
            out.extend(self.handle_line(line))
        return out

    def finish(self) -> List[str]:
        """Flush the decoder and handle whatever is left as a final line."""
        self.buffer += self.decoder.decode(b"", final=True)
        residue, self.buffer = self.buffer, ""
        return self.handle_line(residue)

    def handle_line(self, line: str) -> List[str]:
        """Fragments to write for one complete line."""
        if not line.strip():
            return []

        try:
            obj = json.loads(line)
        except ValueError:
            logger.debug(f"Forwarding unparseable line: {line[:100]}")
            return self._emit([line])

        out = []
        for part in decode_chunk(obj):
            if part.kind == ChunkKind.ERROR:
                if not self.wrote_any and not out:
                    logger.warning(f"Ollama stream error: {part.text}")
                    out.append(part.text)
            else:
                out.append(part.text)
        return self._emit(out)

    def _emit(self, fragments: List[str]) -> List[str]:
        if fragments:
            self.wrote_any = True
            self.fragments += len(fragments)
        return fragments


async def relay_stream(response: httpx.Response, state: Optional[RelayState] = None) -> AsyncIterator[str]:
    """
    Yield text fragments from a streaming Ollama response.

    Headers have already been committed when this runs, so faults are
    logged and end the stream instead of propagating. The upstream
    response is always closed, including when the client disconnects and
    the generator is cancelled.
    """
    state = state or RelayState()
    try:
        try:
            async for data in response.aiter_bytes():
                for fragment in state.feed(data):
                    yield fragment
            for fragment in state.finish():
                yield fragment
        except Exception:
            logger.exception("Stream relay failed after output started")
            return

        if not state.wrote_any:
            yield ""
        logger.debug(f"Stream complete: {state.fragments} fragments")
    finally:
        await response.aclose()

