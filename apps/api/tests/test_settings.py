from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from app.settings import Settings, validate_settings

KEY_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


def test_settings_loads_values_from_env_file(tmp_path: Path, monkeypatch) -> None:
    env_file = tmp_path / "test.env"
    env_file.write_text(
        "GROBID_URL=http://grobid.internal:8070\nGEMINI_API_KEY=key-from-file\nMISSING_REF_HANDLING=skip\n",
        encoding="utf-8",
    )
    for name in (*KEY_VARS, "GROBID_URL", "MISSING_REF_HANDLING"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=str(env_file))

    assert settings.grobid_url == "http://grobid.internal:8070"
    assert settings.gemini_api_key == "key-from-file"
    assert settings.missing_ref_handling == "skip"


def test_google_api_key_is_accepted(monkeypatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("GOOGLE_API_KEY", "google-key")

    assert Settings(_env_file=None).gemini_api_key == "google-key"


def test_rejects_unknown_missing_reference_policy(monkeypatch) -> None:
    monkeypatch.setenv("MISSING_REF_HANDLING", "ignore")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_validate_settings_reports_missing_key_and_database(tmp_path: Path, monkeypatch) -> None:
    for name in KEY_VARS:
        monkeypatch.delenv(name, raising=False)

    broken = Settings(_env_file=None, document_db_path=str(tmp_path / "missing"))
    issues = validate_settings(broken)

    assert len(issues) == 2
    assert "GEMINI_API_KEY" in issues[0]
    assert "does not exist" in issues[1]

    healthy = Settings(_env_file=None, gemini_api_key="k", document_db_path=str(tmp_path))
    assert validate_settings(healthy) == []
