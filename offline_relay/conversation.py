"""
Client-side conversation state for talking to the relay.

Keeps the full local history, sends only the most recent turns, and
appends streamed fragments to an assistant placeholder as they arrive.

Usage:
    python -m offline_relay.conversation [--url http://localhost:3001]
"""

import argparse
import asyncio
import codecs
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from .models import ConversationState

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 12  # keep last N messages
GREETING = "Hi! I'm your offline AI. Ask me anything."
CLEARED = "Chat cleared. How can I help?"
ERROR_NOTICE = "Can't reach the relay. Is it running?"
NO_RESPONSE = "(no response)"


class Conversation:
    """
    One chat conversation against POST /api/chat.

    State moves idle -> awaiting_response -> streaming -> idle. A failed
    turn passes through error, replaces the placeholder with ERROR_NOTICE,
    records last_error and returns to idle; the busy flag is cleared on
    every path.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        history_window: int = HISTORY_WINDOW,
        options: Optional[Dict[str, Any]] = None,
        client: Optional[httpx.AsyncClient] = None,
        on_fragment: Optional[Callable[[str], None]] = None,
    ):
        self.history_window = history_window
        self.options = {"num_predict": 256} if options is None else options
        self.on_fragment = on_fragment
        self.client = client or httpx.AsyncClient(
            base_url=base_url, timeout=httpx.Timeout(300.0, connect=10.0)
        )
        self.turns: List[Dict[str, str]] = [{"role": "assistant", "content": GREETING}]
        self.state = ConversationState.IDLE
        self.busy = False
        self.last_error: Optional[str] = None

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    def clear(self):
        """Drop the history, leaving a fresh greeting."""
        self.turns = [{"role": "assistant", "content": CLEARED}]

    async def send(self, text: str) -> Optional[str]:
        """
        Send a user message and wait for the full reply.

        Returns the final assistant text, or None if the message was blank
        or another send is still in flight.
        """
        text = text.strip()
        if not text or self.busy:
            return None

        user = {"role": "user", "content": text}
        convo = [
            {"role": t["role"], "content": t["content"]}
            for t in (self.turns + [user])[-self.history_window:]
        ]

        self.turns.extend([user, {"role": "assistant", "content": ""}])
        self.busy = True
        self.state = ConversationState.AWAITING_RESPONSE
        self.last_error = None

        try:
            async with self.client.stream(
                "POST",
                "/api/chat",
                json={"messages": convo, "options": self.options},
            ) as resp:
                resp.raise_for_status()
                content_type = resp.headers.get("content-type", "").lower()

                if "application/json" in content_type:
                    await resp.aread()
                    reply = resp.json().get("response")
                    self._replace_last(NO_RESPONSE if reply is None else reply)
                else:
                    self.state = ConversationState.STREAMING
                    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
                    reply = ""
                    async for data in resp.aiter_bytes():
                        reply += self._append(decoder.decode(data))
                    reply += self._append(decoder.decode(b"", final=True))
                    self._replace_last(reply)

        except Exception as e:
            logger.warning(f"Chat turn failed: {e!r}")
            self.state = ConversationState.ERROR
            self.last_error = str(e) or e.__class__.__name__
            self.turns[-1] = {"role": "assistant", "content": ERROR_NOTICE}
        finally:
            self.busy = False
            self.state = ConversationState.IDLE

        return self.turns[-1]["content"]

    def _append(self, chunk: str) -> str:
        if not chunk:
            return ""
        last = self.turns[-1]
        if last["role"] == "assistant":
            last["content"] += chunk
            if self.on_fragment:
                self.on_fragment(chunk)
        return chunk

    def _replace_last(self, content: str):
        self.turns[-1] = {"role": "assistant", "content": content}


# =============================================================================
# CLI Interface
# =============================================================================

async def main(argv: Optional[List[str]] = None):
    """Interactive chat against a running relay."""
    parser = argparse.ArgumentParser(description="Chat with the offline AI relay")
    parser.add_argument("--url", default="http://localhost:3001", help="Relay base URL")
    parser.add_argument("--window", type=int, default=HISTORY_WINDOW, help="Turns sent per request")
    parser.add_argument("--num-predict", type=int, default=256, help="Max tokens per reply")
    args = parser.parse_args(argv)

    convo = Conversation(
        base_url=args.url,
        history_window=args.window,
        options={"num_predict": args.num_predict},
        on_fragment=lambda chunk: print(chunk, end="", flush=True),
    )

    print(f"AI: {convo.turns[-1]['content']}")
    print("Enter messages (/clear to reset, Ctrl+C to quit):\n")

    try:
        while True:
            try:
                user_input = input("You: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\nGoodbye!")
                break

            if not user_input:
                continue
            if user_input == "/clear":
                convo.clear()
                print(f"AI: {convo.turns[-1]['content']}\n")
                continue

            print("AI: ", end="", flush=True)
            reply = await convo.send(user_input)
            if convo.last_error:
                print(reply, end="")
            print("\n")
    finally:
        await convo.close()


if __name__ == "__main__":
    asyncio.run(main())
