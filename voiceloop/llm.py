import logging
import threading
from typing import List

import requests

from . import config
from .errors import GenerationError

log = logging.getLogger(__name__)


class LLMClient:
    """
    OpenAI-compatible chat completion client.
    Works with any server that implements POST /v1/chat/completions.
    Keeps the last *history_turns* exchanges (0 = all); call reset() to clear.
    """

    def __init__(self, history_turns: int = config.LLM_HISTORY_TURNS):
        self._history: List[dict] = []
        self._history_turns = history_turns
        self._lock = threading.Lock()

    @property
    def history(self) -> List[dict]:
        with self._lock:
            return list(self._history)

    def send(self, user_text: str) -> str:
        with self._lock:
            messages = [
                {"role": "system", "content": config.LLM_SYSTEM_PROMPT}
            ] + self._history + [{"role": "user", "content": user_text}]

        payload = {
            "model": config.LLM_MODEL,
            "messages": messages,
            "max_tokens": config.LLM_MAX_TOKENS,
            "temperature": config.LLM_TEMPERATURE,
            "stream": False,
        }
        headers = {"Authorization": f"Bearer {config.LLM_API_KEY}"}
        url = f"{config.LLM_BASE_URL}/chat/completions"

        try:
            resp = requests.post(
                url,
                json=payload,
                headers=headers,
                timeout=config.LLM_TIMEOUT,
            )
            resp.raise_for_status()
            reply = (resp.json()["choices"][0]["message"]["content"] or "").strip()
        except requests.RequestException as exc:
            raise GenerationError(f"LLM request failed: {exc}") from exc
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise GenerationError(f"LLM unexpected response: {exc}") from exc

        with self._lock:
            self._history.append({"role": "user", "content": user_text})
            self._history.append({"role": "assistant", "content": reply})
            if self._history_turns > 0:
                del self._history[:-2 * self._history_turns]
        log.debug("LLM reply: %r", reply)
        return reply

    def reset(self):
        with self._lock:
            self._history.clear()
        log.info("Conversation history cleared.")


class EchoClient:
    """Stand-in for the LLM that repeats the command back (TEST_MODE)."""

    def send(self, user_text: str) -> str:
        return f"I heard you say: {user_text}"

    def reset(self):
        pass
