"""
narrative.py — Optional AI commentary for a saved journal entry.

A summary is generated at most once per entry: a stored summary is reused,
and while a request for an entry is pending a second one is rejected.
"""

from __future__ import annotations
import logging
import threading
from typing import Dict, Optional, Protocol, Set

import requests

from .config import DEFAULT_MODEL, NARRATIVE_TIMEOUT, OPENROUTER_API_URL
from .errors import JournalError, NarrativeError, NarrativeInFlightError
from .journal import JournalEntry, JournalService

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a calm, thoughtful I Ching reader. "
    "Given the question, the primary hexagram, any changing lines and the resulting hexagram, "
    "write a short reflective interpretation in plain language. "
    "Be practical and kind; avoid fatalistic predictions."
)


class NarrativeBackend(Protocol):
    def generate(self, entry: JournalEntry) -> str:
        ...


def _hexagram_label(hexagram: Optional[Dict]) -> str:
    if not hexagram:
        return "unknown"
    number = hexagram.get("number")
    name = hexagram.get("name") or "unknown"
    return f"#{number} {name}" if number else name


def describe_entry(entry: JournalEntry) -> str:
    """Plain-text description of an entry for prompting."""
    moving = [str(i) for i, line in enumerate(entry.primary_lines, start=1) if line.get("moving")]
    parts = [
        f"The question is: '{entry.question or 'No question given'}'",
        f"Primary hexagram: {_hexagram_label(entry.primary)}",
    ]
    if moving:
        parts.append(f"Changing lines: {', '.join(moving)}")
        parts.append(f"Resulting hexagram: {_hexagram_label(entry.resulting)}")
    else:
        parts.append("No changing lines.")
    if entry.note:
        parts.append(f"The querent's note: {entry.note}")
    return "\n".join(parts)


class EdgeFunctionBackend:
    """Calls the backend's `ai_summary` function, which generates and stores the text."""

    def __init__(self, base_url: str, api_key: str, user_id: Optional[str] = None,
                 access_token: Optional[str] = None, session: Optional[requests.Session] = None,
                 timeout: float = NARRATIVE_TIMEOUT):
        self.url = f"{base_url.rstrip('/')}/functions/v1/ai_summary"
        self.api_key = api_key
        self.user_id = user_id
        self.access_token = access_token
        self.session = session or requests.Session()
        self.timeout = timeout

    def generate(self, entry: JournalEntry) -> str:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "apikey": self.api_key,
        }
        payload = {"entry_id": entry.id, "user_id": self.user_id}
        logger.debug("Invoking AI summary with payload: %s", payload)
        try:
            response = self.session.post(self.url, headers=headers, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise NarrativeError(f"Unable to reach the summary service: {e}") from e

        try:
            data = response.json() if response.content else {}
        except ValueError as e:
            raise NarrativeError("Unexpected response from oracle") from e
        if not isinstance(data, dict):
            data = {}

        text = data.get("summary") or data.get("message") or ""
        if not response.ok or not text:
            raise NarrativeError(data.get("error") or f"Unable to receive insight (HTTP {response.status_code})")
        return text


class OpenRouterBackend:
    """Generates the text directly through an OpenRouter chat model."""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, session: Optional[requests.Session] = None,
                 timeout: float = NARRATIVE_TIMEOUT, url: str = OPENROUTER_API_URL):
        self.api_key = api_key
        self.model = model
        self.session = session or requests.Session()
        self.timeout = timeout
        self.url = url

    def generate(self, entry: JournalEntry) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": describe_entry(entry)},
            ],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "hexcast",
        }
        try:
            response = self.session.post(self.url, headers=headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except requests.exceptions.HTTPError as e:
            raise NarrativeError(f"OpenRouter API error: {e.response.text if e.response is not None else e}") from e
        except requests.exceptions.ConnectionError as e:
            raise NarrativeError("Unable to connect to OpenRouter. Check your internet connection.") from e
        except requests.exceptions.RequestException as e:
            raise NarrativeError(f"OpenRouter request failed: {e}") from e
        except ValueError as e:
            raise NarrativeError("OpenRouter returned invalid JSON") from e

        if not isinstance(result, dict):
            raise NarrativeError("Unexpected response from OpenRouter")
        choices = result.get("choices") or [{}]
        choice = choices[0] if isinstance(choices, list) else None
        message = choice.get("message") if isinstance(choice, dict) else None
        text = message.get("content") if isinstance(message, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise NarrativeError("No response from LLM.")
        return text.strip()


class NarrativeService:
    """Cached, one-at-a-time-per-entry summary requests."""

    def __init__(self, journal: JournalService, backend: NarrativeBackend):
        self.journal = journal
        self.backend = backend
        self._pending: Set[str] = set()
        self._lock = threading.Lock()

    def cached(self, entry_id: str) -> Optional[str]:
        """The stored summary, or None if none has been produced yet."""
        entry = self.journal.get(entry_id)
        if entry is None or not entry.ai_summary:
            return None
        return entry.ai_summary

    def is_pending(self, entry_id: str) -> bool:
        with self._lock:
            return entry_id in self._pending

    def request(self, entry_id: str) -> str:
        """
        Return the entry's summary, generating it if needed.
        Raises NarrativeInFlightError while another request for the entry is
        running, and NarrativeError if generation fails.
        """
        entry = self.journal.get(entry_id)
        if entry is None:
            raise NarrativeError(f"unknown journal entry {entry_id}")
        if entry.ai_summary:
            return entry.ai_summary

        with self._lock:
            if entry_id in self._pending:
                raise NarrativeInFlightError(entry_id)
            self._pending.add(entry_id)

        try:
            text = ""
            try:
                text = self.journal.fetch_ai_summary(entry_id)
            except JournalError as e:
                logger.warning("AI summary lookup error: %s", e)
            if not text:
                text = self.backend.generate(entry)
                logger.info("Generated AI summary for entry %s", entry_id)
            self.journal.set_ai_summary(entry_id, text)
            return text
        finally:
            with self._lock:
                self._pending.discard(entry_id)
