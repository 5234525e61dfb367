"""
Unit tests for application configuration (corretorcrm/config.py).

Config is a class with attributes set at class-body parse time, and a module-level
singleton created immediately after. Testing different env var states requires
re-importing the module, with load_dotenv mocked to a no-op so a .env file on
disk doesn't override what we set in the test environment.
"""

import importlib
import logging
import sys
import pytest
from unittest.mock import patch

DB_URL = 'postgresql://u:p@localhost/db'


# ---------------------------------------------------------------------------
# Helper: reload corretorcrm.config with a controlled environment
# ---------------------------------------------------------------------------

def _reload_config(env_overrides: dict):
    """
    Re-import corretorcrm.config with exactly env_overrides as the environment.
    Always restores the original module in sys.modules afterward.
    """
    original = sys.modules.get('corretorcrm.config')
    try:
        with patch.dict('os.environ', env_overrides, clear=True), \
             patch('dotenv.load_dotenv'):
            sys.modules.pop('corretorcrm.config', None)
            return importlib.import_module('corretorcrm.config')
    finally:
        if original is not None:
            sys.modules['corretorcrm.config'] = original
        elif 'corretorcrm.config' in sys.modules:
            del sys.modules['corretorcrm.config']


# ---------------------------------------------------------------------------
# DATABASE_URL guard
# ---------------------------------------------------------------------------

def test_missing_database_url_raises_value_error():
    with pytest.raises(ValueError, match='DATABASE_URL'):
        _reload_config({})


def test_empty_database_url_raises_value_error():
    with pytest.raises(ValueError, match='DATABASE_URL'):
        _reload_config({'DATABASE_URL': ''})


def test_missing_database_url_logs_critical(caplog):
    with caplog.at_level(logging.CRITICAL, logger='corretorcrm.config'):
        with pytest.raises(ValueError):
            _reload_config({})
    assert any('DATABASE_URL' in r.message for r in caplog.records)


def test_database_url_set_does_not_raise():
    mod = _reload_config({'DATABASE_URL': DB_URL})
    assert mod.Config.DATABASE_URL == DB_URL
    assert mod.config.DATABASE_URL == DB_URL


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

def test_defaults():
    mod = _reload_config({'DATABASE_URL': DB_URL})
    assert mod.Config.TIMEZONE == 'America/Sao_Paulo'
    assert mod.Config.DEFAULT_PAGE_SIZE == 50
    assert mod.Config.FOLLOW_UP_BATCH_SIZE == 200
    assert mod.Config.INTERACTION_HISTORY_LIMIT == 20


# ---------------------------------------------------------------------------
# Custom env var values are picked up
# ---------------------------------------------------------------------------

def test_custom_timezone():
    mod = _reload_config({'DATABASE_URL': DB_URL, 'TIMEZONE': 'America/Manaus'})
    assert mod.Config.TIMEZONE == 'America/Manaus'


def test_custom_page_size():
    mod = _reload_config({'DATABASE_URL': DB_URL, 'DEFAULT_PAGE_SIZE': '25'})
    assert mod.Config.DEFAULT_PAGE_SIZE == 25


def test_custom_follow_up_batch_size():
    mod = _reload_config({'DATABASE_URL': DB_URL, 'FOLLOW_UP_BATCH_SIZE': '1000'})
    assert mod.Config.FOLLOW_UP_BATCH_SIZE == 1000


def test_custom_history_limit():
    mod = _reload_config({'DATABASE_URL': DB_URL, 'INTERACTION_HISTORY_LIMIT': '5'})
    assert mod.Config.INTERACTION_HISTORY_LIMIT == 5


def test_non_numeric_page_size_fails_fast():
    with pytest.raises(ValueError):
        _reload_config({'DATABASE_URL': DB_URL, 'DEFAULT_PAGE_SIZE': 'many'})
