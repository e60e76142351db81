"""
config.py — Endpoints, limits and environment overrides.
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# === Hexagram catalog feed ===
# Published spreadsheet rendered as a JSON list of rows.
DEFAULT_CATALOG_URL = "https://opensheet.elk.sh/1IYLzxYHomdVern98otj9Ff4C31qiJwK2S65tHMIJIC0/Sheet1"
HTTP_TIMEOUT = 20  # seconds

# === Journal ===
JOURNAL_TABLE = "JournalEntries"
REMOTE_BACKUP_LIMIT = 1000
NOTE_WORD_LIMIT = 1000
LOCAL_ID_PREFIX = "local-"
DEFAULT_DATA_DIR = Path.home() / ".hexcast"

# === AI narrative ===
# See a list of models at https://openrouter.ai/models
DEFAULT_MODEL = "x-ai/grok-3-beta"
OPENROUTER_API_URL = "https://openrouter.ai/api/v1/chat/completions"
NARRATIVE_TIMEOUT = 300  # seconds; generation is slow


@dataclass(frozen=True)
class Settings:
    """Runtime settings gathered from the environment."""
    catalog_url: str = DEFAULT_CATALOG_URL
    data_dir: Path = DEFAULT_DATA_DIR
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    user_id: Optional[str] = None
    access_token: Optional[str] = None
    premium: bool = False

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        data_dir = env.get("HEXCAST_DATA_DIR")
        return cls(
            catalog_url=env.get("HEXCAST_CATALOG_URL") or DEFAULT_CATALOG_URL,
            data_dir=Path(data_dir).expanduser() if data_dir else DEFAULT_DATA_DIR,
            supabase_url=(env.get("SUPABASE_URL") or "").rstrip("/") or None,
            supabase_anon_key=env.get("SUPABASE_ANON_KEY") or None,
            openrouter_api_key=env.get("OPENROUTER_API_KEY") or None,
            model=env.get("HEXCAST_MODEL") or DEFAULT_MODEL,
            user_id=env.get("HEXCAST_USER_ID") or None,
            access_token=env.get("HEXCAST_ACCESS_TOKEN") or None,
            premium=(env.get("HEXCAST_PREMIUM") or "").strip().lower() in ("1", "true", "yes"),
        )

    @property
    def has_backend(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)
