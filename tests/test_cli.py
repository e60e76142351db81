"""
Tests for the command-line entry point and settings.
"""

import json
from pathlib import Path

import pytest

from hexcast.cli import build_journal, build_narrative, main
from hexcast.config import DEFAULT_CATALOG_URL, Settings
from hexcast.display import console
from hexcast.journal import LocalJournalStore
from hexcast.narrative import EdgeFunctionBackend, OpenRouterBackend

ENV_VARS = [
    "HEXCAST_CATALOG_URL", "HEXCAST_DATA_DIR", "SUPABASE_URL", "SUPABASE_ANON_KEY",
    "OPENROUTER_API_KEY", "HEXCAST_MODEL", "HEXCAST_USER_ID", "HEXCAST_ACCESS_TOKEN", "HEXCAST_PREMIUM",
]


@pytest.fixture
def env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HEXCAST_DATA_DIR", str(tmp_path / "data"))
    return monkeypatch


@pytest.fixture
def catalog_file(tmp_path, catalog_rows):
    path = tmp_path / "hexagrams.json"
    path.write_text(json.dumps(catalog_rows, ensure_ascii=False), encoding="utf-8")
    return str(path)


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.catalog_url == DEFAULT_CATALOG_URL
        assert not settings.has_backend
        assert settings.premium is False

    def test_overrides(self):
        settings = Settings.from_env({
            "HEXCAST_CATALOG_URL": "https://feed.example/rows",
            "HEXCAST_DATA_DIR": "/tmp/hexcast-data",
            "SUPABASE_URL": "https://db.example/",
            "SUPABASE_ANON_KEY": "anon",
            "HEXCAST_PREMIUM": "true",
            "HEXCAST_USER_ID": "user-1",
        })
        assert settings.catalog_url == "https://feed.example/rows"
        assert settings.data_dir == Path("/tmp/hexcast-data")
        assert settings.supabase_url == "https://db.example"
        assert settings.has_backend
        assert settings.premium is True


class TestBuilders:
    def test_guest_journal_has_no_remote(self, tmp_path):
        journal = build_journal(Settings(data_dir=tmp_path))
        assert journal.remote is None
        assert journal.local.storage_key == "journal_entries_guest"

    def test_narrative_backend_choice(self, tmp_path):
        guest = Settings(data_dir=tmp_path)
        assert build_narrative(guest, build_journal(guest)) is None

        openrouter = Settings(data_dir=tmp_path, openrouter_api_key="key")
        service = build_narrative(openrouter, build_journal(openrouter))
        assert isinstance(service.backend, OpenRouterBackend)

        member = Settings(data_dir=tmp_path, supabase_url="https://db.example", supabase_anon_key="anon",
                          user_id="user-1", premium=True)
        service = build_narrative(member, build_journal(member))
        assert isinstance(service.backend, EdgeFunctionBackend)


class TestCast:
    def test_manual_cast(self, env, catalog_file, capsys):
        code = main(["cast", "-q", "Will it rain?", "--manual", "6", "7", "8", "9", "7", "8",
                     "--catalog", catalog_file])
        out = capsys.readouterr().out
        assert code == 0
        assert "Kun / Oppression" in out
        assert "Jie / Limitation" in out
        assert "One sits oppressed under a bare tree." in out

    def test_invalid_manual_value(self, env, catalog_file, capsys):
        code = main(["cast", "--manual", "6", "7", "5", "9", "7", "8", "--catalog", catalog_file])
        assert code == 2
        assert "line 3: '5'" in capsys.readouterr().err

    def test_seeded_cast_saved_as_jsonl(self, env, catalog_file, tmp_path):
        target = tmp_path / "readings.jsonl"
        for _ in range(2):
            assert main(["cast", "-q", "q", "--seed", "7", "--catalog", catalog_file,
                         "--save", str(target)]) == 0
        rows = [json.loads(line) for line in target.read_text(encoding="utf-8").splitlines()]
        assert len(rows) == 2
        assert rows[0] == rows[1]
        assert len(rows[0]["primaryKey"]) == 6

    def test_missing_catalog_still_casts(self, env, tmp_path, capsys):
        code = main(["cast", "-q", "q", "--manual", "7", "7", "7", "7", "7", "7",
                     "--catalog", str(tmp_path / "nowhere.json")])
        out = capsys.readouterr().out
        assert code == 0
        assert "Hexagram unavailable" in out

    def test_cast_into_journal(self, env, catalog_file, tmp_path, capsys):
        assert main(["cast", "-q", "Journal me", "--manual", "6", "7", "8", "9", "7", "8",
                     "--catalog", catalog_file, "--journal", "--note", "remember"]) == 0
        capsys.readouterr()
        assert main(["journal", "list"]) == 0
        assert "Journal" in capsys.readouterr().out
        entries = LocalJournalStore(tmp_path / "data").load()
        assert [(e.question, e.note) for e in entries] == [("Journal me", "remember")]
        assert entries[0].primary == {"number": 47, "name": "Kun / Oppression"}


class TestBrowse:
    def test_shows_all_line_texts(self, env, catalog_file, capsys):
        assert main(["browse", "1", "--catalog", catalog_file]) == 0
        out = capsys.readouterr().out
        assert "Hidden dragon" in out
        assert "Arrogant dragon" in out

    def test_unknown_number(self, env, catalog_file, capsys):
        assert main(["browse", "64", "--catalog", catalog_file]) == 1


class TestJournalCommands:
    def test_empty_list(self, env, capsys):
        assert main(["journal", "list"]) == 0
        assert "No journal entries yet" in capsys.readouterr().out

    def test_summary_without_backend(self, env, capsys):
        assert main(["journal", "summary", "local-1"]) == 1
        assert "no narrative backend" in capsys.readouterr().err


class TestRichText:
    def test_bracketed_question_is_printed_verbatim(self, env, catalog_file, tmp_path, capsys):
        target = tmp_path / "reading.json"
        code = main(["cast", "-q", "Is [/b] the [bold]answer[/bold]?", "--manual", "7", "7", "7", "7", "7", "7",
                     "--catalog", catalog_file, "--save", str(target), "--journal"])
        assert code == 0
        assert "Is [/b] the [bold]answer[/bold]?" in capsys.readouterr().out
        assert json.loads(target.read_text(encoding="utf-8"))["question"] == "Is [/b] the [bold]answer[/bold]?"
        assert main(["journal", "list"]) == 0

    def test_bracketed_catalog_text(self, env, tmp_path, catalog_rows, capsys):
        rows = [dict(row) for row in catalog_rows]
        rows[0]["Name"] = "Kun [/i] Oppression"
        path = tmp_path / "odd.json"
        path.write_text(json.dumps(rows, ensure_ascii=False), encoding="utf-8")
        assert main(["cast", "-q", "q", "--manual", "6", "7", "8", "9", "7", "8", "--catalog", str(path)]) == 0
        assert "Kun [/i] Oppression" in capsys.readouterr().out


class TestStepCast:
    def test_one_line_per_prompt(self, env, catalog_file, monkeypatch, capsys):
        prompts = []
        monkeypatch.setattr(console, "input", lambda prompt="", **kwargs: prompts.append(prompt) or "")
        assert main(["cast", "-q", "q", "--step", "--seed", "3", "--catalog", catalog_file]) == 0
        assert len(prompts) == 6
        assert "line 1 of 6" in prompts[0]
        assert "line 6 of 6" in prompts[-1]


class TestNoteLimit:
    def test_long_note_rejected_before_casting(self, env, catalog_file, tmp_path, capsys):
        code = main(["cast", "-q", "q", "--manual", "7", "7", "7", "7", "7", "7", "--catalog", catalog_file,
                     "--journal", "--note", "word " * 1001])
        assert code == 2
        assert "1000 words" in capsys.readouterr().err
        assert LocalJournalStore(tmp_path / "data").load() == []
