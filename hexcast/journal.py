"""
journal.py — Saving readings.

Every entry lives in a local JSON cache (one file per user, or a guest file).
Signed-in premium members are additionally backed up to a remote REST table;
when the backup is unreachable the entry stays local and is flagged unsynced.
"""

from __future__ import annotations
import json
import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import requests

from .config import HTTP_TIMEOUT, JOURNAL_TABLE, LOCAL_ID_PREFIX, NOTE_WORD_LIMIT, REMOTE_BACKUP_LIMIT
from .errors import JournalError, NoteTooLongError
from .reading import Reading

logger = logging.getLogger(__name__)

REMOTE_COLUMNS = "id, question, notes, hexagram_primary, hexagram_resulting, summary, ai_summary, created_at"

# fromisoformat before 3.11 only takes 3 or 6 fractional digits
_FRACTION = re.compile(r"\.(\d+)")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: object) -> datetime:
    """ISO-8601 to an aware datetime; unreadable values become now."""
    if isinstance(value, datetime):
        stamp = value
    else:
        try:
            text = str(value).replace("Z", "+00:00")
            text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
            stamp = datetime.fromisoformat(text)
        except ValueError:
            return utcnow()
    return stamp if stamp.tzinfo else stamp.replace(tzinfo=timezone.utc)


def safe_parse_json(value: object, fallback: Any) -> Any:
    if not value:
        return fallback
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError as e:
        logger.warning("JSON parse error: %s", e)
        return fallback


def new_local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def word_count(text: str) -> int:
    return len(text.split())


def check_note(note: str, limit: int = NOTE_WORD_LIMIT) -> None:
    words = word_count(note or "")
    if words > limit:
        raise NoteTooLongError(words, limit)


@dataclass
class JournalEntry:
    id: str
    created_at: datetime = field(default_factory=utcnow)
    question: str = ""
    note: str = ""
    primary: Optional[Dict[str, Any]] = None
    resulting: Optional[Dict[str, Any]] = None
    primary_lines: List[Dict[str, Any]] = field(default_factory=list)
    resulting_lines: List[Dict[str, Any]] = field(default_factory=list)
    ai_summary: str = ""
    synced: bool = False

    @property
    def is_local(self) -> bool:
        return str(self.id).startswith(LOCAL_ID_PREFIX)

    def summary_payload(self) -> Dict[str, Any]:
        return {
            "primary": self.primary,
            "resulting": self.resulting,
            "primaryLines": self.primary_lines,
            "resultingLines": self.resulting_lines,
        }

    def to_local_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "createdAt": self.created_at.isoformat(),
            "note": self.note,
            "question": self.question,
            "aiSummary": self.ai_summary,
            "synced": self.synced,
        }
        data.update(self.summary_payload())
        return data

    @classmethod
    def from_local_dict(cls, item: Any) -> Optional["JournalEntry"]:
        if not isinstance(item, dict) or not item.get("id"):
            return None
        return cls(
            id=str(item["id"]),
            created_at=parse_timestamp(item.get("createdAt") or utcnow()),
            note=item.get("note") or "",
            question=item.get("question") or "",
            primary=item.get("primary"),
            resulting=item.get("resulting"),
            primary_lines=_as_list(item.get("primaryLines")),
            resulting_lines=_as_list(item.get("resultingLines")),
            ai_summary=item.get("aiSummary") or "",
            synced=bool(item.get("synced")),
        )

    @classmethod
    def from_remote_row(cls, row: Dict[str, Any], summary: Optional[Dict[str, Any]] = None) -> "JournalEntry":
        """Hydrate a table row; `summary` overrides the row's stored summary blob."""
        payload = summary if summary else safe_parse_json(row.get("summary"), {})
        if not isinstance(payload, dict):
            payload = {}
        return cls(
            id=str(row.get("id")),
            created_at=parse_timestamp(row.get("created_at") or utcnow()),
            note=row.get("notes") or "",
            question=row.get("question") or "",
            primary=payload.get("primary"),
            resulting=payload.get("resulting"),
            primary_lines=_as_list(payload.get("primaryLines")),
            resulting_lines=_as_list(payload.get("resultingLines")),
            ai_summary=payload.get("aiSummary") or row.get("ai_summary") or "",
            synced=True,
        )


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _newest_first(entries: List[JournalEntry]) -> List[JournalEntry]:
    return sorted(entries, key=lambda entry: entry.created_at, reverse=True)


# === Local cache ===
class LocalJournalStore:
    """JSON file per storage key inside the data directory."""

    def __init__(self, data_dir: Union[str, Path], user_id: Optional[str] = None):
        self.data_dir = Path(data_dir)
        self.user_id = user_id

    @property
    def storage_key(self) -> str:
        return f"journal_entries_{self.user_id}" if self.user_id else "journal_entries_guest"

    @property
    def path(self) -> Path:
        return self.data_dir / f"{self.storage_key}.json"

    def load(self) -> List[JournalEntry]:
        if not self.path.exists():
            return []
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Local journal read error: %s", e)
            return []
        parsed = safe_parse_json(raw, [])
        if not isinstance(parsed, list):
            return []
        entries = [JournalEntry.from_local_dict(item) for item in parsed]
        return _newest_first([entry for entry in entries if entry is not None])

    def save(self, entries: List[JournalEntry]) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump([entry.to_local_dict() for entry in entries], f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.error("Local journal persist error: %s", e)


# === Remote backup ===
class RemoteJournalStore:
    """PostgREST-style table client (`/rest/v1/<table>`)."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT,
        table: str = JOURNAL_TABLE,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.session = session or requests.Session()
        self.timeout = timeout
        self.table = table

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def _headers(self, representation: bool = False) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if representation:
            headers["Prefer"] = "return=representation"
        return headers

    def _request(self, method: str, params: Optional[Dict[str, str]] = None, payload: Any = None,
                 representation: bool = False) -> Any:
        try:
            response = self.session.request(
                method,
                self.endpoint,
                params=params,
                json=payload,
                headers=self._headers(representation),
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json() if response.content else None
        except requests.exceptions.RequestException as e:
            raise JournalError(f"{method} {self.table} failed: {e}") from e
        except ValueError as e:
            raise JournalError(f"{method} {self.table} returned invalid JSON: {e}") from e

    def list_entries(self, user_id: str, limit: int = REMOTE_BACKUP_LIMIT) -> List[Dict[str, Any]]:
        rows = self._request("GET", params={
            "select": REMOTE_COLUMNS,
            "user_id": f"eq.{user_id}",
            "order": "created_at.desc",
            "limit": str(limit),
        })
        return rows or []

    def insert_entry(self, user_id: str, question: str, note: str, summary: Dict[str, Any]) -> Dict[str, Any]:
        primary = summary.get("primary") or {}
        resulting = summary.get("resulting") or {}
        rows = self._request("POST", payload={
            "user_id": user_id,
            "question": question,
            "notes": note,
            "hexagram_primary": primary.get("number"),
            "hexagram_resulting": resulting.get("number"),
            "summary": json.dumps(summary, ensure_ascii=False),
        }, representation=True)
        if isinstance(rows, list):
            rows = rows[0] if rows else None
        if not isinstance(rows, dict) or not rows.get("id"):
            raise JournalError("insert returned no row")
        return rows

    def update_notes(self, entry_id: str, user_id: str, note: str) -> None:
        self._request("PATCH", params={"id": f"eq.{entry_id}", "user_id": f"eq.{user_id}"},
                      payload={"notes": note})

    def delete_entry(self, entry_id: str, user_id: str) -> None:
        self._request("DELETE", params={"id": f"eq.{entry_id}", "user_id": f"eq.{user_id}"})

    def fetch_ai_summary(self, entry_id: str, user_id: str) -> str:
        rows = self._request("GET", params={
            "select": "ai_summary",
            "id": f"eq.{entry_id}",
            "user_id": f"eq.{user_id}",
        })
        if not rows:
            return ""
        return (rows[0] or {}).get("ai_summary") or ""


# === Service ===
@dataclass(frozen=True)
class JournalContext:
    """Who is journaling. Passed explicitly instead of living in globals."""
    user_id: Optional[str] = None
    access_token: Optional[str] = None
    premium: bool = False

    @property
    def remote_enabled(self) -> bool:
        return bool(self.premium and self.user_id)


class JournalService:
    """Local-first journal with optional remote backup."""

    def __init__(self, local: LocalJournalStore, remote: Optional[RemoteJournalStore] = None,
                 context: Optional[JournalContext] = None, backup_limit: int = REMOTE_BACKUP_LIMIT):
        self.local = local
        self.remote = remote
        self.context = context or JournalContext()
        self.backup_limit = backup_limit
        self.entries: List[JournalEntry] = []
        self.remote_count = 0
        self._loaded = False

    @property
    def _use_remote(self) -> bool:
        return self.remote is not None and self.context.remote_enabled

    def _persist(self):
        self.local.save(self.entries)

    def _ensure_loaded(self):
        if not self._loaded:
            self.load()

    def _can_sync(self, entry: Optional[JournalEntry]) -> bool:
        return bool(self._use_remote and entry is not None and entry.synced and not entry.is_local)

    def get(self, entry_id: str) -> Optional[JournalEntry]:
        self._ensure_loaded()
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def load(self) -> List[JournalEntry]:
        """Read the local cache, then merge in the remote backup when available."""
        local_entries = self.local.load()
        self._loaded = True
        self.entries = local_entries
        if not self._use_remote:
            self.remote_count = 0
            self._persist()
            return self.entries

        try:
            rows = self.remote.list_entries(self.context.user_id, limit=self.backup_limit)
        except JournalError as e:
            logger.warning("Cloud backup unavailable, showing local entries: %s", e)
            self.remote_count = sum(1 for entry in local_entries if entry.synced)
            return self.entries

        remote_entries = [JournalEntry.from_remote_row(row) for row in rows]
        self.remote_count = len(remote_entries)
        remote_ids = {entry.id for entry in remote_entries}
        merged = list(remote_entries)
        for entry in local_entries:
            if entry.id not in remote_ids:
                entry.synced = False
                merged.append(entry)
        self.entries = _newest_first(merged)
        self._persist()
        return self.entries

    def add_entry(self, reading: Reading, note: str = "", ai_summary: str = "") -> str:
        """Save a reading and return its id. Raises NoteTooLongError for an over-long note."""
        check_note(note)
        self._ensure_loaded()
        summary = reading.to_summary()
        question = reading.question or ""

        if self._use_remote and self.remote_count < self.backup_limit:
            try:
                row = self.remote.insert_entry(self.context.user_id, question, note, summary)
            except JournalError as e:
                logger.warning("Cloud backup unavailable, saving on this device: %s", e)
            else:
                entry = JournalEntry.from_remote_row(row, summary)
                self.remote_count += 1
                self.entries.insert(0, entry)
                self._persist()
                return entry.id
        elif self._use_remote:
            logger.warning("Backup limit of %d entries reached; new readings stay on this device",
                           self.backup_limit)

        entry = JournalEntry(
            id=new_local_id(),
            question=question,
            note=note,
            primary=summary["primary"],
            resulting=summary["resulting"],
            primary_lines=summary["primaryLines"],
            resulting_lines=summary["resultingLines"],
            ai_summary=ai_summary,
            synced=False,
        )
        self.entries.insert(0, entry)
        self._persist()
        return entry.id

    def update_note(self, entry_id: str, note: str) -> bool:
        try:
            check_note(note)
        except NoteTooLongError as e:
            logger.warning("Note not saved: %s", e)
            return False
        entry = self.get(entry_id)
        if entry is None:
            return False
        entry.note = note
        self._persist()
        if self._can_sync(entry):
            try:
                self.remote.update_notes(entry_id, self.context.user_id, note)
            except JournalError as e:
                logger.warning("Note update error: %s", e)
        return True

    def remove_entry(self, entry_id: str) -> bool:
        """Delete locally, then remotely; a failed remote delete restores the entry."""
        entry = self.get(entry_id)
        if entry is None:
            return False
        self.entries = [item for item in self.entries if item.id != entry_id]
        self._persist()
        if not self._can_sync(entry):
            return True
        try:
            self.remote.delete_entry(entry_id, self.context.user_id)
        except JournalError as e:
            logger.error("Delete error, keeping entry locally: %s", e)
            self.entries = _newest_first(self.entries + [entry])
            self._persist()
            return False
        self.remote_count = max(0, self.remote_count - 1)
        return True

    def set_ai_summary(self, entry_id: str, ai_summary: str) -> None:
        entry = self.get(entry_id)
        if entry is not None:
            entry.ai_summary = ai_summary
            self._persist()

    def fetch_ai_summary(self, entry_id: str) -> str:
        """Stored summary for an entry, refreshed from the backup when synced."""
        entry = self.get(entry_id)
        if not self._can_sync(entry):
            return entry.ai_summary if entry else ""
        ai_summary = self.remote.fetch_ai_summary(entry_id, self.context.user_id)
        self.set_ai_summary(entry_id, ai_summary)
        return ai_summary
