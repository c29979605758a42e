"""Relay configuration."""

import os
from dataclasses import dataclass, field
from typing import Any, Dict

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Config:
    """Configuration loaded from environment variables."""

    # Server
    host: str = field(default_factory=lambda: os.getenv("RELAY_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "3001")))
    server_name: str = field(default_factory=lambda: os.getenv("SERVER_NAME", "offline-ai"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Ollama
    ollama_url: str = field(default_factory=lambda: os.getenv("OLLAMA_URL", "http://localhost:11434").rstrip("/"))
    chat_model: str = field(default_factory=lambda: os.getenv("CHAT_MODEL", "llama3.1"))

    # Generation defaults (caller options override key-by-key)
    num_ctx: int = field(default_factory=lambda: int(os.getenv("OLLAMA_NUM_CTX", "2048")))
    num_predict: int = field(default_factory=lambda: int(os.getenv("OLLAMA_NUM_PREDICT", "256")))
    keep_alive: str = field(default_factory=lambda: os.getenv("OLLAMA_KEEP_ALIVE", "30m"))

    # Warm-up
    warmup: bool = field(default_factory=lambda: os.getenv("WARMUP", "1").lower() not in ("0", "false", "no"))
    warmup_keep_alive: str = field(default_factory=lambda: os.getenv("WARMUP_KEEP_ALIVE", "24h"))

    # Upstream transport
    upstream_timeout: float = field(default_factory=lambda: float(os.getenv("UPSTREAM_TIMEOUT", "300")))
    upstream_connect_timeout: float = field(default_factory=lambda: float(os.getenv("UPSTREAM_CONNECT_TIMEOUT", "10")))
    max_connections: int = field(default_factory=lambda: int(os.getenv("UPSTREAM_MAX_CONNECTIONS", "20")))
    max_keepalive_connections: int = field(default_factory=lambda: int(os.getenv("UPSTREAM_MAX_KEEPALIVE", "10")))
    keepalive_expiry: float = field(default_factory=lambda: float(os.getenv("UPSTREAM_KEEPALIVE_EXPIRY", "30")))

    # 0 forwards every turn
    history_window: int = field(default_factory=lambda: int(os.getenv("HISTORY_WINDOW", "0")))

    def default_options(self) -> Dict[str, Any]:
        """Generation options applied before the caller's own."""
        return {
            "num_ctx": self.num_ctx,
            "num_predict": self.num_predict,
            "keep_alive": self.keep_alive,
        }


# Global config instance
config = Config()
