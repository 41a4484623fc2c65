import json

from typer.testing import CliRunner

from gradevault import config
from gradevault.domain.models import GradeRecord, DecryptionState
from gradevault.main import app
from scripts import seed_ledger

import pytest


def test_get_settings_defaults(monkeypatch):
    for name in ("DB_HOST", "DB_PORT", "DB_NAME", "LEDGER_BACKEND", "REVEAL_TIMEOUT_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    settings = config.Settings(_env_file=None)
    assert settings.db_host == "localhost"
    assert settings.db_port == 5432
    assert settings.db_name == "gradevault"
    assert settings.ledger_backend == "postgres"
    assert settings.reveal_timeout_seconds > 0


def test_build_dsn_uses_settings():
    settings = config.Settings(
        _env_file=None, db_user="u", db_password="p", db_host="h", db_port=1, db_name="n"
    )
    assert config.build_dsn(settings) == "postgresql://u:p@h:1/n"


def test_grade_record_rejects_score_without_decrypted_state():
    with pytest.raises(ValueError):
        GradeRecord(
            id=0, subject="Math", ciphertext_handle="0x1", owner="0xa", plaintext_score=50
        )
    with pytest.raises(ValueError):
        GradeRecord(
            id=0,
            subject="Math",
            ciphertext_handle="0x1",
            owner="0xa",
            decryption_state=DecryptionState.DECRYPTED,
        )


def test_grade_record_rejects_out_of_range_score():
    with pytest.raises(ValueError):
        GradeRecord(
            id=0,
            subject="Math",
            ciphertext_handle="0x1",
            owner="0xa",
            plaintext_score=101,
            decryption_state=DecryptionState.DECRYPTED,
        )


def test_seed_generation_is_deterministic():
    students = seed_ledger._student_addresses(2, seed=7)
    first = seed_ledger._generate_grades(students, per_student=3, seed=7)
    second = seed_ledger._generate_grades(students, per_student=3, seed=7)

    assert first == second
    assert len(first) == 6
    assert all(40 <= score <= 100 for _, _, score in first)
    assert all(len(owner) == 42 for owner in students)


def test_cli_info(memory_settings):
    result = CliRunner().invoke(app, ["info"])
    assert result.exit_code == 0
    assert "ledger=memory" in result.stdout


def test_cli_list_json_on_empty_memory_ledger(memory_settings):
    result = CliRunner().invoke(app, ["list", "--json"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["records"] == []
    assert payload["status"] == "ready"
    assert payload["aggregates"]["student_average"] is None


def test_cli_decrypt_unknown_record_fails(memory_settings):
    result = CliRunner().invoke(app, ["decrypt", "5"])
    assert result.exit_code == 2
