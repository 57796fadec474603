from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from app.config import get_database_settings, get_settings
from app.core.database import _database_url, redacted_database_url
from app.utils.env import load_env_file

BASE_ENV = {"PUSHRELAY_ALLOWED_ORIGINS": "http://localhost:3000, https://admin.example.com"}


@pytest.fixture(autouse=True)
def clear_settings_cache():
  get_settings.cache_clear()
  get_database_settings.cache_clear()
  yield
  get_settings.cache_clear()
  get_database_settings.cache_clear()


def test_settings_defaults():
  with patch.dict(os.environ, BASE_ENV, clear=True):
    settings = get_settings()

  assert settings.allowed_origins == ("http://localhost:3000", "https://admin.example.com")
  assert settings.environment == "development"
  assert settings.push_enabled is False
  assert settings.expo_base_url == "https://exp.host"
  assert settings.push_batch_size == 100
  assert settings.push_default_sound == "default"
  assert settings.error_log_default_limit == 50
  assert settings.error_log_max_limit == 500
  assert settings.pg_dsn is None


@pytest.mark.parametrize("origins", ["", "*", "http://localhost:3000,*", " , "])
def test_settings_reject_missing_or_wildcard_origins(origins):
  with patch.dict(os.environ, {"PUSHRELAY_ALLOWED_ORIGINS": origins}, clear=True):
    with pytest.raises(ValueError, match="PUSHRELAY_ALLOWED_ORIGINS"):
      get_settings()


@pytest.mark.parametrize("batch_size", ["0", "101"])
def test_settings_reject_batch_size_outside_gateway_limit(batch_size):
  with patch.dict(os.environ, {**BASE_ENV, "PUSHRELAY_PUSH_BATCH_SIZE": batch_size}, clear=True):
    with pytest.raises(ValueError, match="PUSHRELAY_PUSH_BATCH_SIZE"):
      get_settings()


def test_settings_reject_default_limit_above_max():
  with patch.dict(os.environ, {**BASE_ENV, "PUSHRELAY_ERROR_LOG_DEFAULT_LIMIT": "600"}, clear=True):
    with pytest.raises(ValueError, match="PUSHRELAY_ERROR_LOG_DEFAULT_LIMIT"):
      get_settings()


def test_settings_read_push_configuration():
  env = {**BASE_ENV, "PUSHRELAY_PUSH_ENABLED": "yes", "PUSHRELAY_EXPO_BASE_URL": "https://push.example.com/", "PUSHRELAY_EXPO_ACCESS_TOKEN": " secret ", "PUSHRELAY_PUSH_BATCH_SIZE": "25"}
  with patch.dict(os.environ, env, clear=True):
    settings = get_settings()

  assert settings.push_enabled is True
  assert settings.expo_base_url == "https://push.example.com"
  assert settings.expo_access_token == "secret"
  assert settings.push_batch_size == 25


def test_database_url_uses_asyncpg_driver():
  with patch.dict(os.environ, {"DATABASE_URL": "postgres://relay:pw@db:5432/relay"}, clear=True):
    assert _database_url().render_as_string(hide_password=False) == "postgresql+asyncpg://relay:pw@db:5432/relay"

  get_database_settings.cache_clear()
  with patch.dict(os.environ, {"PUSHRELAY_PG_DSN": "postgresql://relay@db/relay", "DATABASE_URL": "postgres://ignored"}, clear=True):
    assert _database_url().render_as_string(hide_password=False) == "postgresql+asyncpg://relay@db/relay"


def test_load_env_file_does_not_override_existing(tmp_path):
  env_file = tmp_path / ".env"
  env_file.write_text('# comment\nexport PUSHRELAY_ENV="staging"\nPUSHRELAY_DEBUG=true\nbroken-line\n', encoding="utf-8")

  with patch.dict(os.environ, {"PUSHRELAY_DEBUG": "false"}, clear=True):
    applied = load_env_file(env_file)
    assert applied == 1
    assert os.environ["PUSHRELAY_ENV"] == "staging"
    assert os.environ["PUSHRELAY_DEBUG"] == "false"

  assert load_env_file(tmp_path / "missing.env") == 0


@pytest.mark.parametrize(
  ("env", "expected"),
  [
    ({"PUSHRELAY_PG_DSN": "postgresql://relay:secret@db:5432/pushrelay"}, "postgresql+asyncpg://relay:***@db:5432/pushrelay"),
    ({}, "<unset>"),
    ({"PUSHRELAY_PG_DSN": "not a dsn"}, "<invalid>"),
  ],
)
def test_redacted_database_url_masks_password(env, expected):
  with patch.dict(os.environ, env, clear=True):
    assert redacted_database_url() == expected
