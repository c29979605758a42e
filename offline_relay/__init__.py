"""
Offline AI Relay

Streams chat completions from a local Ollama runtime to a chat UI.

Components:
- relay: request normalization and the NDJSON streaming relay
- ollama_client: pooled Ollama client and warm-up
- api: /api/chat, /api/models and /api/echo endpoints
- conversation: client-side conversation state and interactive CLI
"""

from .main import app

__version__ = "0.1.0"
