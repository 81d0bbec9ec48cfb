"""
tests/unit/test_config.py — Unit tests for the env helpers and production guard in config.py.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from backend.config import (
    _first_non_empty_env,
    _parse_list_env,
    config_by_name,
    validate_production_config,
)


def test_parse_list_env_trims_and_drops_blanks(monkeypatch):
    monkeypatch.setenv("LEDGER_DEFAULT_PEOPLE", "Ann, Bob ,,Cy")
    assert _parse_list_env("LEDGER_DEFAULT_PEOPLE", ["X"]) == ["Ann", "Bob", "Cy"]


@pytest.mark.parametrize("raw", ["", " , ,"])
def test_parse_list_env_blank_uses_default(monkeypatch, raw):
    monkeypatch.setenv("LEDGER_DEFAULT_PEOPLE", raw)
    assert _parse_list_env("LEDGER_DEFAULT_PEOPLE", ["X"]) == ["X"]


def test_first_non_empty_env_skips_empty_values(monkeypatch):
    monkeypatch.setenv("FIRST_VAR", "")
    monkeypatch.setenv("SECOND_VAR", "value")
    assert _first_non_empty_env("FIRST_VAR", "SECOND_VAR", default="d") == "value"


def test_testing_config_uses_its_own_storage_key():
    assert config_by_name["testing"].LEDGER_STORAGE_KEY == "billSplitter.test"
    assert config_by_name["testing"].TESTING is True


def _app(**config):
    base = {
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SECRET_KEY": "s3cret",
        "LEDGER_DEFAULT_PEOPLE": ["A"],
    }
    base.update(config)
    return SimpleNamespace(config=base)


def test_production_guard_accepts_complete_config():
    validate_production_config(_app())


@pytest.mark.parametrize("override, fragment", [
    ({"SQLALCHEMY_DATABASE_URI": ""}, "DATABASE_URL"),
    ({"SECRET_KEY": "change-me-in-production"}, "SECRET_KEY"),
    ({"LEDGER_DEFAULT_PEOPLE": []}, "LEDGER_DEFAULT_PEOPLE"),
])
def test_production_guard_rejects_unsafe_config(override, fragment):
    with pytest.raises(ValueError, match=fragment):
        validate_production_config(_app(**override))
