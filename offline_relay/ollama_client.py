"""Ollama API client with a shared keep-alive connection pool."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import config

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Base class for failures talking to the generation service."""


class UpstreamUnreachable(RelayError):
    """The generation service could not be reached at the network level."""


class UpstreamRejected(RelayError):
    """The generation service answered, but not with a usable body."""

    def __init__(self, status_code: int, detail: str = ""):
        super().__init__(detail or f"upstream returned HTTP {status_code}")
        self.status_code = status_code
        self.detail = detail


class OllamaClient:
    """
    Async client for the Ollama API.

    One httpx.AsyncClient is shared by every request, so idle connections
    are reused instead of opening a new one per call. httpx keeps separate
    pooled connections per scheme and host, so plain and TLS upstreams are
    both handled by the same client.
    """

    def __init__(self, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (base_url or config.ollama_url).rstrip("/")
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(config.upstream_timeout, connect=config.upstream_connect_timeout),
            limits=httpx.Limits(
                max_connections=config.max_connections,
                max_keepalive_connections=config.max_keepalive_connections,
                keepalive_expiry=config.keepalive_expiry,
            ),
            transport=transport,
        )

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def send(self, path: str, payload: Dict[str, Any], streaming: bool) -> httpx.Response:
        """
        POST a JSON payload to an upstream endpoint.

        With streaming=True the body is left unread and the caller owns the
        response and must aclose() it. Otherwise the body is fully read.

        Raises:
            UpstreamUnreachable: on connect/read/protocol failures
        """
        url = f"{self.base_url}{path}"
        request = self.client.build_request("POST", url, json=payload)
        try:
            return await self.client.send(request, stream=streaming)
        except httpx.TransportError as e:
            logger.error(f"Ollama unreachable at {url}: {e!r}")
            raise UpstreamUnreachable(str(e) or e.__class__.__name__) from e

    async def list_models(self) -> List[str]:
        """List model names installed in Ollama."""
        try:
            resp = await self.client.get(f"{self.base_url}/api/tags")
        except httpx.TransportError as e:
            raise UpstreamUnreachable(str(e) or e.__class__.__name__) from e
        if not resp.is_success:
            raise UpstreamRejected(resp.status_code, resp.text)
        data = resp.json()
        return [m.get("name", "unknown") for m in data.get("models", [])]

    async def warm_up(self, model: Optional[str] = None) -> bool:
        """
        Load the default model into Ollama before real traffic arrives.

        Sends a one-token generate request with a long keep_alive. Failure
        is logged and reported as False, never raised.
        """
        model = model or config.chat_model
        payload = {
            "model": model,
            "prompt": "",
            "stream": False,
            "keep_alive": config.warmup_keep_alive,
            "options": {"num_predict": 1},
        }
        logger.info(f"Warming up model {model}")
        try:
            resp = await self.send("/api/generate", payload, streaming=False)
        except UpstreamUnreachable as e:
            logger.warning(f"Warm-up failed, Ollama unreachable: {e}")
            return False
        if not resp.is_success:
            logger.warning(f"Warm-up failed: HTTP {resp.status_code} {resp.text[:200]}")
            return False
        logger.info(f"Model {model} is loaded")
        return True


async def read_detail(response: httpx.Response) -> str:
    """Best-effort diagnostic text from a failed upstream response."""
    try:
        await response.aread()
        return response.text
    except (httpx.HTTPError, UnicodeDecodeError) as e:
        logger.debug(f"Could not read upstream error body: {e!r}")
        return ""
    finally:
        await response.aclose()


# Global instance
ollama = OllamaClient()
